"""
Result Normalizer
Maps provider-specific payloads onto the canonical GenerationResult.
Pure functions, no I/O.
"""

import base64
import binascii
import json
import re
from typing import Any, Optional, Tuple, Union

from nanostudio.core.exceptions import InputValidationError
from nanostudio.schemas.generate import GenerationResult

_DATA_URI_RE = re.compile(r"^data:([^;,]+);base64,(.*)$", re.DOTALL)

# Kie record states
PENDING_STATES = {"waiting", "queuing", "generating"}
SUCCESS_STATES = {"success"}
FAILED_STATES = {"fail", "failed", "generate_failed", "create_task_failed"}

EMPTY_RESULT_REASON = "Provider reported success but returned no image"


def is_data_uri(value: str) -> bool:
    return bool(value) and value.startswith("data:")


def split_data_uri(value: str) -> Tuple[bytes, str]:
    """Split ``data:<mime>;base64,<payload>`` into raw bytes and mime type."""
    match = _DATA_URI_RE.match(value or "")
    if not match:
        raise InputValidationError("Image must be a base64 data URI")
    mime_type, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InputValidationError(f"Invalid base64 payload for {mime_type} image")
    if not data:
        raise InputValidationError(f"Empty {mime_type} image")
    return data, mime_type


def to_data_uri(data: Union[bytes, str], mime_type: str = "image/png") -> str:
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{data}"


def _first_url(items: Any) -> Optional[str]:
    if not isinstance(items, list):
        return None
    for item in items:
        if isinstance(item, str) and item:
            return item
        if isinstance(item, dict) and item.get("url"):
            return item["url"]
    return None


def extract_result_url(result_json: Union[str, dict, None]) -> Optional[str]:
    """
    First image URL from a task's resultJson.

    Accepts the stringified form Kie returns as well as an already decoded
    dict, and both ``resultUrls`` and ``images`` field names.
    """
    if not result_json:
        return None
    if isinstance(result_json, str):
        try:
            result_json = json.loads(result_json)
        except json.JSONDecodeError:
            return None
    if not isinstance(result_json, dict):
        return None
    return _first_url(result_json.get("resultUrls")) or _first_url(result_json.get("images"))


def normalize_record_info(record: dict) -> GenerationResult:
    """Normalize the ``data`` object of a Kie recordInfo response."""
    state = (record.get("state") or "").lower()

    if state in SUCCESS_STATES:
        url = extract_result_url(record.get("resultJson"))
        if not url:
            return GenerationResult.failed(EMPTY_RESULT_REASON)
        return GenerationResult.completed(url)

    if state in FAILED_STATES:
        return GenerationResult.failed(record.get("failMsg") or "Generation failed")

    return GenerationResult.pending(progress="Running" if state == "generating" else (state or None))


def normalize_gemini_response(response: Any) -> GenerationResult:
    """
    Normalize a google-genai GenerateContentResponse.

    Inline image data wins; text that is a URL is taken as the image; any
    other text is the model explaining why it did not draw anything.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return GenerationResult.failed("Unexpected response format: no candidates")

    candidate = candidates[0]
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return GenerationResult.completed(to_data_uri(inline.data, inline.mime_type or "image/png"))

    texts = [part.text for part in parts if getattr(part, "text", None)]
    if texts:
        text = texts[0].strip()
        if text.startswith("http"):
            return GenerationResult.completed(text)
        return GenerationResult.failed(text)

    finish_reason = getattr(candidate, "finish_reason", None)
    return GenerationResult.failed(f"No image generated. Finish Reason: {finish_reason or 'Unknown'}")
