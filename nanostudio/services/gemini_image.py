"""
Gemini "Nano Banana" Image Generation Service
Synchronous multimodal engine: text plus optional images in, one image out.
Rotates API keys on every attempt and backs off on rate limits.
Documentation: https://ai.google.dev/gemini-api/docs/image-generation
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

import httpx
from google import genai
from google.genai import types

from nanostudio.core.config import settings
from nanostudio.core.exceptions import GenerationRefusedError, InputValidationError
from nanostudio.schemas.generate import GenerateRequest, GenerationResult, Quality, TaskState
from nanostudio.services.credentials import CredentialPool
from nanostudio.services.engines import Engine, Sleep, SyncImageProvider
from nanostudio.services.normalizer import is_data_uri, normalize_gemini_response, split_data_uri
from nanostudio.services.seed import fixed_seed

logger = logging.getLogger(__name__)

# Markers of a rate-limited or overloaded backend
_BACKOFF_CODES = {429, 503}
_BACKOFF_MARKERS = ("429", "503", "overloaded", "RESOURCE_EXHAUSTED", "UNAVAILABLE")


class GeminiImageService(SyncImageProvider):
    """Image generation with Gemini image models."""

    engine = Engine.GEMINI

    def __init__(
        self,
        credentials: Optional[CredentialPool] = None,
        model_name: Optional[str] = None,
        max_retries: Optional[int] = None,
        initial_backoff: Optional[float] = None,
        retry_delay: Optional[float] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.credentials = credentials or CredentialPool(settings.gemini_keys, name="Gemini")
        self.model_name = model_name or settings.GEMINI_MODEL
        self.max_retries = settings.GEMINI_MAX_RETRIES if max_retries is None else max_retries
        self.initial_backoff = settings.GEMINI_INITIAL_BACKOFF if initial_backoff is None else initial_backoff
        self.retry_delay = settings.GEMINI_RETRY_DELAY if retry_delay is None else retry_delay
        self.client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._sleep = sleep or asyncio.sleep
        logger.info(f"[Gemini] Initialized with model: {self.model_name}")

    @staticmethod
    def compose_prompt(request: GenerateRequest) -> str:
        """Text sent to the model: edit instruction, or prompt + style + fixed objects."""
        if request.is_edit:
            return f"Edit this image: {request.edit_instruction}"

        prompt = f"{request.prompt}\n\nStyle: {request.style or 'None'}"
        fixed = ", ".join(name for name, keep in request.fixed_objects.items() if keep)
        if fixed:
            prompt += f"\nKeep fixed: {fixed}"
        return prompt

    def seed_for(self, request: GenerateRequest) -> Optional[int]:
        if not request.fixed_seed:
            return None
        return fixed_seed(self.compose_prompt(request), request.style or "")

    async def _load_image_bytes(self, image_url: str) -> tuple:
        """Download a remote reference image, returning (bytes, mime type)."""
        async with httpx.AsyncClient() as client:
            response = await client.get(image_url, timeout=30.0)
        if not response.is_success:
            raise InputValidationError(f"Failed to download image: HTTP {response.status_code}")
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        logger.debug(f"[Gemini] Downloaded {len(response.content)} bytes from {image_url}")
        return response.content, mime_type

    async def _image_part(self, image: str) -> types.Part:
        if is_data_uri(image):
            data, mime_type = split_data_uri(image)
        elif image.startswith("http"):
            data, mime_type = await self._load_image_bytes(image)
        else:
            raise InputValidationError("Images must be data URIs or http(s) URLs")
        return types.Part.from_bytes(data=data, mime_type=mime_type)

    async def build_parts(self, request: GenerateRequest) -> List[types.Part]:
        parts = [types.Part.from_text(text=self.compose_prompt(request))]
        if request.edit_image:
            parts.append(await self._image_part(request.edit_image))
        else:
            for image in request.reference_images:
                parts.append(await self._image_part(image))
        return parts

    @staticmethod
    def image_size_for(quality: Quality) -> str:
        # The model tops out at 2K; larger tiers are reached by enhance()
        return "1K" if quality is Quality.BASE_1K else "2K"

    @staticmethod
    def is_rate_limited(error: Exception) -> bool:
        code = getattr(error, "code", None) or getattr(error, "status_code", None)
        if code in _BACKOFF_CODES:
            return True
        message = str(error)
        return any(marker in message for marker in _BACKOFF_MARKERS)

    async def generate(self, request: GenerateRequest) -> GenerationResult:
        """
        Generate an image, retrying with the next key on any failure.

        Returns a completed GenerationResult whose image is a data URI (or a
        URL when the model answers with one). Raises the last error once
        all attempts are spent.
        """
        if not request.prompt and not request.edit_instruction:
            raise InputValidationError("Prompt is required")

        parts = await self.build_parts(request)
        seed = self.seed_for(request)
        config = types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            image_config=types.ImageConfig(
                aspect_ratio=request.aspect_ratio or "1:1",
                image_size=self.image_size_for(request.quality),
            ),
            seed=seed,
        )
        logger.info(
            f"[Gemini] Generating ({'edit' if request.is_edit else 'create'}, "
            f"{len(parts) - 1} image part(s), seed={seed})"
        )
        return await self._generate_with_retry(parts, config)

    async def _generate_with_retry(self, parts: List[types.Part], config: types.GenerateContentConfig) -> GenerationResult:
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            key = self.credentials.next()
            logger.info(f"[Gemini] Attempt {attempt + 1}/{attempts} using key {CredentialPool.mask(key)}")
            try:
                client = self.client_factory(key)
                response = await client.aio.models.generate_content(
                    model=self.model_name,
                    contents=[types.Content(role="user", parts=parts)],
                    config=config,
                )
                result = normalize_gemini_response(response)
                if result.status is TaskState.FAILED:
                    raise GenerationRefusedError(result.fail_reason or "Model returned text instead of image")
                logger.info(f"[Gemini] [OK] Image generated on attempt {attempt + 1}")
                return result

            except Exception as e:
                last_error = e
                logger.warning(f"[Gemini] Attempt {attempt + 1} failed: {e}")
                if attempt == attempts - 1:
                    break

                if self.is_rate_limited(e):
                    delay = self.initial_backoff * (2 ** attempt)
                    logger.info(f"[Gemini] Rate limited, retrying in {delay:.1f}s with next key...")
                else:
                    delay = self.retry_delay
                    logger.info(f"[Gemini] Switching key and retrying in {delay:.1f}s...")
                await self._sleep(delay)

        logger.error(f"[Gemini] [ERROR] All {attempts} attempts failed")
        raise last_error

    async def enhance(self, image: str, quality: Quality, aspect_ratio: str = "1:1") -> GenerationResult:
        """Second pass that re-renders an image at a higher quality tier."""
        label = "4K Ultra HD, highly detailed" if quality is Quality.ULTRA_4K else "2K High Resolution, highly detailed"
        logger.info(f"[Gemini] Enhancing image to {quality.value}")
        return await self.generate(GenerateRequest(
            prompt=f"Enhance this image to {label}. Maintain all details and composition.",
            edit_image=image,
            edit_instruction=f"Enhance to {label}",
            aspect_ratio=aspect_ratio,
            quality=Quality.HIRES_2K,
        ))
