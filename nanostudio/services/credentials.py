"""
Credential Pool
Round-robin rotation over provider API keys.
"""

import logging
import threading
from typing import List, Sequence

from nanostudio.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CredentialPool:
    """
    Hands out credentials in round-robin order.

    Every call to next() advances the index, so a retry never reuses the key
    that just failed (unless the pool holds a single key). The index is
    guarded by a lock because concurrent requests share one pool.
    """

    def __init__(self, keys: Sequence[str], name: str = "provider"):
        self._keys: List[str] = [k for k in keys if k]
        self._index = 0
        self._lock = threading.Lock()
        self.name = name
        if self._keys:
            logger.info(f"Loaded {len(self._keys)} {name} API key(s)")
        else:
            logger.warning(f"No {name} API keys configured")

    def __len__(self) -> int:
        return len(self._keys)

    def next(self) -> str:
        """Return the current key and advance the rotation."""
        if not self._keys:
            raise ConfigurationError(f"No {self.name} API keys configured")
        with self._lock:
            key = self._keys[self._index]
            self._index = (self._index + 1) % len(self._keys)
        return key

    @staticmethod
    def mask(key: str) -> str:
        return f"...{key[-4:]}"
