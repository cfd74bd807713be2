"""
Kie Midjourney Service
Creative-queue engine: text-to-image submit plus upscale / vary actions on
an earlier task. Every call returns a brand-new task id.
"""

import logging
from typing import Optional

from nanostudio.core.config import settings
from nanostudio.core.exceptions import InputValidationError
from nanostudio.schemas.generate import (
    ActionType,
    GenerateRequest,
    GenerationResult,
    MidjourneyOptions,
)
from nanostudio.services.engines import Engine, QueueImageProvider, Sleep
from nanostudio.services.kie_client import KieClient
from nanostudio.services.normalizer import normalize_record_info

logger = logging.getLogger(__name__)

# Provider-side action names
_ACTIONS = {ActionType.UPSCALE: "upscale", ActionType.VARY: "variation"}


def style_label(options: Optional[MidjourneyOptions] = None) -> str:
    return f"Midjourney v{normalize_version((options or MidjourneyOptions()).version)}"


def normalize_version(version: Optional[str]) -> str:
    version = (version or "6.0").strip()
    return version[1:] if version.lower().startswith("v") else version


class KieMidjourneyService(QueueImageProvider):
    """Adapter for Midjourney through the Kie proxy."""

    engine = Engine.MIDJOURNEY

    def __init__(
        self,
        client: Optional[KieClient] = None,
        poll_interval: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        sleep: Optional[Sleep] = None,
    ):
        super().__init__(
            poll_interval=settings.KIE_POLL_INTERVAL if poll_interval is None else poll_interval,
            max_poll_attempts=max_poll_attempts or settings.KIE_MAX_POLL_ATTEMPTS,
            sleep=sleep,
        )
        self.client = client or KieClient()

    async def submit(self, prompt: str, aspect_ratio: str = "1:1", options: Optional[MidjourneyOptions] = None) -> str:
        """Submit a text-to-image task."""
        if not prompt:
            raise InputValidationError("Prompt is required")

        options = options or MidjourneyOptions()
        payload = {
            "model": "midjourney_generate",
            "taskType": "mj_txt2img",
            "prompt": prompt,
            "aspectRatio": aspect_ratio or "1:1",
            "version": normalize_version(options.version),
            "stylization": options.stylize,
            "weirdness": options.weirdness,
            "variety": options.variety,
            "speed": options.speed or "fast",
        }
        logger.info(f"[Kie MJ] Submitting txt2img ({payload['aspectRatio']}, v{payload['version']})")
        return await self.client.create_task("mj/generate", payload, "Kie MJ")

    async def submit_request(self, request: GenerateRequest, seed: Optional[int] = None) -> str:
        return await self.submit(request.prompt, request.aspect_ratio, request.midjourney)

    async def act(self, action: ActionType, origin_task_id: str, index: int) -> str:
        """Upscale or vary image ``index`` (1-4) of an earlier grid task."""
        if not origin_task_id:
            raise InputValidationError("Missing taskId")
        if not isinstance(index, int) or not 1 <= index <= 4:
            raise InputValidationError("Index must be between 1 and 4")

        payload = {
            "model": "midjourney",
            "input": {
                "action": _ACTIONS[action],
                "taskId": origin_task_id,
                "index": index,
            },
        }
        logger.info(f"[Kie MJ] {action.value} [{index}] for task {origin_task_id}")
        return await self.client.create_task("jobs/createTask", payload, f"Kie MJ {action.value}")

    async def upscale(self, origin_task_id: str, index: int) -> str:
        return await self.act(ActionType.UPSCALE, origin_task_id, index)

    async def vary(self, origin_task_id: str, index: int) -> str:
        return await self.act(ActionType.VARY, origin_task_id, index)

    async def poll(self, task_id: str) -> GenerationResult:
        if not task_id:
            raise InputValidationError("Missing task id")
        record = await self.client.record_info(task_id)
        return normalize_record_info(record)
