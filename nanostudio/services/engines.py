"""
Generation Engines
The closed set of provider variants and the capability interfaces they share.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from nanostudio.core.exceptions import GenerationTimeoutError, InputValidationError
from nanostudio.schemas.generate import GenerateRequest, GenerationResult, Quality

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Engine(str, Enum):
    """Selectable backends."""
    GEMINI = "gemini"  # synchronous multimodal
    KIE = "kie"  # generic job queue (nano-banana-pro)
    MIDJOURNEY = "midjourney"  # creative queue

    @classmethod
    def parse(cls, value: Optional[str], default: str) -> "Engine":
        raw = (value or default or "").strip().lower()
        try:
            return cls(raw)
        except ValueError:
            allowed = ", ".join(e.value for e in cls)
            raise InputValidationError(f"Unknown engine '{raw}'. Expected one of: {allowed}")


class SyncImageProvider(ABC):
    """Provider that returns a final result within one call."""

    engine: Engine

    @abstractmethod
    async def generate(self, request: GenerateRequest) -> GenerationResult:
        """Generate an image, raising on failure."""
        raise NotImplementedError

    def seed_for(self, request: GenerateRequest) -> Optional[int]:
        return None

    async def enhance(self, image: str, quality: Quality, aspect_ratio: str = "1:1") -> GenerationResult:
        """Raise an image to a higher quality tier. Identity by default."""
        return GenerationResult.completed(image)


class QueueImageProvider(ABC):
    """Provider that hands back a task id and is polled for completion."""

    engine: Engine

    def __init__(self, poll_interval: float = 2.0, max_poll_attempts: int = 150, sleep: Optional[Sleep] = None):
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._sleep = sleep or asyncio.sleep

    @abstractmethod
    async def submit_request(self, request: GenerateRequest, seed: Optional[int] = None) -> str:
        """Submit a generation request and return the provider task id."""
        raise NotImplementedError

    @abstractmethod
    async def poll(self, task_id: str) -> GenerationResult:
        """One status lookup. Never blocks waiting for completion."""
        raise NotImplementedError

    async def wait_for_result(self, task_id: str) -> GenerationResult:
        """
        Poll until the task is terminal, bounded by max_poll_attempts.

        Transient lookup errors count as an attempt and are retried; a
        terminal result is returned as is (including failures).
        """
        for attempt in range(self.max_poll_attempts):
            await self._sleep(self.poll_interval)
            try:
                result = await self.poll(task_id)
            except InputValidationError:
                raise
            except Exception as e:
                logger.warning(f"[{self.engine.value}] Poll {attempt + 1} for {task_id} failed: {e}")
                continue
            if result.is_terminal:
                return result

        raise GenerationTimeoutError(
            f"Task {task_id} timed out after {self.max_poll_attempts} polls",
            details={"task_id": task_id},
        )


ImageProvider = Union[SyncImageProvider, QueueImageProvider]


@dataclass
class ProviderSet:
    """One adapter per engine."""

    gemini: SyncImageProvider
    kie: QueueImageProvider
    midjourney: QueueImageProvider

    def select(self, engine: Engine) -> ImageProvider:
        if engine is Engine.GEMINI:
            return self.gemini
        if engine is Engine.KIE:
            return self.kie
        if engine is Engine.MIDJOURNEY:
            return self.midjourney
        raise ValueError(f"Unhandled engine: {engine!r}")

    def queue_for(self, engine_tag: Optional[str]) -> QueueImageProvider:
        """Owning queue adapter for a persisted engine tag (generic queue by default)."""
        if engine_tag == Engine.MIDJOURNEY.value:
            return self.midjourney
        return self.kie
