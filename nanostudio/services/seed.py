"""
Fixed Seed Derivation
Stable integer seed from prompt text so identical prompts reproduce.
"""


def _utf16_units(text: str):
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def fixed_seed(prompt: str, style: str = "") -> int:
    """
    Rolling polynomial hash (h = h * 31 + c) over the UTF-16 code units of
    prompt + style, wrapped to a signed 32-bit integer, absolute value.

    Same inputs always give the same seed; the result fits in 0..2**31.
    """
    h = 0
    for unit in _utf16_units(prompt + (style or "")):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)
