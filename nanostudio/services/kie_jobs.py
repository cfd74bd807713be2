"""
Kie Jobs Queue Service
Generic job-queue engine running the nano-banana-pro model.
Submit returns a task id; completion is observed through poll().
"""

import logging
import time
from typing import List, Optional

from nanostudio.core.config import settings
from nanostudio.core.exceptions import InputValidationError, ProviderSubmitError
from nanostudio.schemas.generate import (
    SUPPORTED_ASPECT_RATIOS,
    GenerateRequest,
    GenerationResult,
)
from nanostudio.services.engines import Engine, QueueImageProvider, Sleep
from nanostudio.services.kie_client import KieClient
from nanostudio.services.normalizer import normalize_record_info, split_data_uri

logger = logging.getLogger(__name__)

MODEL = "nano-banana-pro"
RESOLUTIONS = ("1K", "2K", "4K")
OUTPUT_FORMATS = ("png", "jpg")
SUPPORTED_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp")
_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/jpg": "jpg", "image/webp": "webp"}


class KieJobsService(QueueImageProvider):
    """Adapter for Kie's jobs/createTask queue."""

    engine = Engine.KIE

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

    async def upload_image(self, image: str) -> str:
        """
        Upload a data URI through Kie's base64 upload API.

        Kie expects reachable URLs for image_input, so inline images are
        uploaded first. URLs pass through untouched.
        """
        if image.startswith("http"):
            return image

        # Validates the payload and yields the mime type
        _, mime_type = split_data_uri(image)
        if mime_type not in SUPPORTED_MIME_TYPES:
            logger.warning(f"[Kie] MIME type {mime_type} may not be supported. Supported: PNG, JPEG, WEBP")

        filename = f"upload_{int(time.time() * 1000)}.{_EXTENSIONS.get(mime_type, 'png')}"
        logger.info(f"[Kie] Uploading {mime_type} image as {filename}")

        response = await self.client.post(self.client.upload_url, {
            "base64Data": image,
            "uploadPath": "/nano-banana-uploads",
            "fileName": filename,
        })
        body = response.json() if response.content else {}
        download_url = (body.get("data") or {}).get("downloadUrl")
        if not download_url:
            raise ProviderSubmitError(
                f"Kie Upload Error ({body.get('code')}): {body.get('msg') or 'No download URL returned'}"
            )
        return download_url

    async def submit(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        resolution: str = "1K",
        output_format: str = "png",
        image_input: Optional[List[str]] = None,
        seed: Optional[int] = None,
    ) -> str:
        """Create a nano-banana-pro task and return its task id."""
        if not prompt:
            raise InputValidationError("Prompt is required")

        image_urls = None
        if image_input:
            logger.info(f"[Kie] Uploading {len(image_input)} image(s)...")
            image_urls = [await self.upload_image(img) for img in image_input]

        payload = {
            "model": MODEL,
            "input": {
                "prompt": prompt,
                "aspect_ratio": aspect_ratio if aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1",
                "resolution": resolution if resolution in RESOLUTIONS else "1K",
                "output_format": output_format if output_format in OUTPUT_FORMATS else "png",
                "image_input": image_urls,
                "seed": seed,
            },
        }
        logger.debug(f"[Kie] Input payload: {payload['input']}")
        return await self.client.create_task("jobs/createTask", payload, "Kie")

    async def submit_request(self, request: GenerateRequest, seed: Optional[int] = None) -> str:
        prompt = request.prompt
        if request.edit_instruction:
            prompt = f"{prompt} . {request.edit_instruction}" if prompt else request.edit_instruction
        return await self.submit(
            prompt=prompt,
            aspect_ratio=request.safe_aspect_ratio(),
            resolution=request.quality.resolution,
            output_format="png",
            image_input=request.reference_images or None,
            seed=seed,
        )

    async def poll(self, task_id: str) -> GenerationResult:
        if not task_id:
            raise InputValidationError("Missing task id")
        record = await self.client.record_info(task_id)
        return normalize_record_info(record)
