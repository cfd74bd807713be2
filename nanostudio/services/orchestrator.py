"""
Generation Orchestrator
Credit gating, engine selection, provider invocation and history persistence
for every generation entry point.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.core.exceptions import (
    InputValidationError,
    ProviderError,
    StudioError,
)
from nanostudio.models.generation import Generation, GenerationStatus
from nanostudio.schemas.generate import (
    SUPPORTED_ASPECT_RATIOS,
    ActionRequest,
    ActionType,
    GenerateRequest,
    GenerationResult,
    Quality,
    QueueGenerateRequest,
    TaskState,
    dimensions_for,
)
from nanostudio.services.credits import CreditService
from nanostudio.services.engines import Engine, ProviderSet, QueueImageProvider, SyncImageProvider
from nanostudio.services.kie_midjourney import style_label
from nanostudio.services.records import GenerationRecorder
from nanostudio.services.seed import fixed_seed
from nanostudio.services.storage import StorageService

logger = logging.getLogger(__name__)

KIE_STYLE = "Nano Banana Pro"


@dataclass
class GenerateOutcome:
    """Result of one accepted generation request."""
    generation: Generation
    engine: Engine
    credits: int
    result: Optional[GenerationResult] = None
    task_id: Optional[str] = None
    seed: Optional[int] = None

    @property
    def status(self) -> TaskState:
        return self.result.status if self.result else TaskState.PENDING


def _as_provider_error(error: Exception, context: str) -> StudioError:
    if isinstance(error, StudioError):
        return error
    return ProviderError(f"{context}: {error}")


def _reference_url(images) -> Optional[str]:
    for image in images or []:
        if image.startswith("http"):
            return image
    return None


class GenerationOrchestrator:
    """Entry point behind POST /generate, /queue-generate and /generate/action."""

    def __init__(
        self,
        db: Session,
        providers: ProviderSet,
        credits: Optional[CreditService] = None,
        storage: Optional[StorageService] = None,
        debit_policy: Optional[str] = None,
        fallback_to_gemini: Optional[bool] = None,
        cache_images: Optional[bool] = None,
    ):
        self.db = db
        self.providers = providers
        self.credits = credits or CreditService(db)
        self.records = GenerationRecorder(db, self.credits, debit_policy)
        self.storage = storage or StorageService()
        self.fallback_to_gemini = settings.KIE_FALLBACK_TO_GEMINI if fallback_to_gemini is None else fallback_to_gemini
        self.cache_images = settings.CACHE_IMAGES_LOCALLY if cache_images is None else cache_images

    async def handle_generate(self, request: GenerateRequest, user_id: int) -> GenerateOutcome:
        """
        Validate, gate on credits, dispatch to the selected engine.

        The synchronous engine yields a final image and a completed record.
        Queue engines yield a task id and a pending record that the
        TaskPoller resolves later.
        """
        if not request.prompt and not request.edit_instruction:
            raise InputValidationError("Prompt is required")
        engine = Engine.parse(request.engine, settings.DEFAULT_ENGINE)

        self.credits.ensure_available(user_id)

        width, height = request.resolve_dimensions()
        size = f"{width}x{height}"
        logger.info(f"[Orchestrator] Generate: engine={engine.value} quality={request.quality.value} size={size}")

        provider = self.providers.select(engine)
        if isinstance(provider, QueueImageProvider):
            seed = fixed_seed(request.prompt or "", request.style or "") if request.fixed_seed else None
            try:
                task_id = await provider.submit_request(request, seed=seed)
            except InputValidationError:
                raise
            except Exception as e:
                if engine is Engine.KIE and self.fallback_to_gemini:
                    logger.warning(f"[Orchestrator] Kie submit failed ({e}), falling back to Gemini...")
                    return await self._generate_sync(self.providers.gemini, request, user_id, size)
                raise _as_provider_error(e, "Generation failed")
            return self._record_queued(provider, request, user_id, size, task_id, seed)

        return await self._generate_sync(provider, request, user_id, size)

    def _record_queued(
        self,
        provider: QueueImageProvider,
        request: GenerateRequest,
        user_id: int,
        size: str,
        task_id: str,
        seed: Optional[int],
    ) -> GenerateOutcome:
        """Persist the pending record for a task the provider accepted."""
        if provider.engine is Engine.MIDJOURNEY:
            style = style_label(request.midjourney)
        else:
            style = KIE_STYLE

        generation = self.records.create(
            user_id=user_id,
            prompt=request.display_prompt,
            style=style,
            size=size,
            quality=request.quality.value,
            engine=provider.engine.value,
            status=GenerationStatus.PENDING,
            task_id=task_id,
            reference_image_url=_reference_url(request.reference_images),
        )
        credits = self.records.debit_for_acceptance(user_id)
        return GenerateOutcome(
            generation=generation, engine=provider.engine, credits=credits, task_id=task_id, seed=seed
        )

    async def _generate_sync(
        self, provider: SyncImageProvider, request: GenerateRequest, user_id: int, size: str
    ) -> GenerateOutcome:
        seed = provider.seed_for(request)
        style = request.style or "None"
        try:
            result = await provider.generate(request)
            if request.quality is not Quality.BASE_1K:
                logger.info(f"[Orchestrator] Quality is {request.quality.value}, running enhancer...")
                result = await provider.enhance(result.image, request.quality, request.aspect_ratio)
        except InputValidationError:
            raise
        except Exception as e:
            logger.error(f"[Orchestrator] Synchronous generation failed: {e}")
            self.records.create(
                user_id=user_id,
                prompt=request.display_prompt,
                style=style,
                size=size,
                quality=request.quality.value,
                engine=provider.engine.value,
                status=GenerationStatus.FAILED,
            )
            self.records.debit_for_acceptance(user_id)
            raise _as_provider_error(e, "Generation failed")

        generation = self.records.create(
            user_id=user_id,
            prompt=request.display_prompt,
            style=style,
            size=size,
            quality=request.quality.value,
            engine=provider.engine.value,
            status=GenerationStatus.COMPLETED,
            image_url=result.image,
            reference_image_url=_reference_url(request.reference_images),
        )
        self.records.debit_for_acceptance(user_id)
        credits = self.records.debit_for_success(user_id)
        await self._cache(generation)
        return GenerateOutcome(
            generation=generation, engine=provider.engine, credits=credits, result=result, seed=seed
        )

    async def handle_queue_generate(self, request: QueueGenerateRequest, user_id: int) -> GenerateOutcome:
        """
        Generic-queue generation that waits for the final image.

        The record is saved pending at submission, so a timeout leaves it
        for the poller or the reconciler to finish.
        """
        if not request.prompt:
            raise InputValidationError("Prompt is required")
        self.credits.ensure_available(user_id)

        provider = self.providers.kie
        try:
            task_id = await provider.submit(
                prompt=request.prompt,
                aspect_ratio=request.aspect_ratio,
                resolution=request.resolution,
                output_format=request.output_format,
                image_input=request.image_input or None,
            )
        except InputValidationError:
            raise
        except Exception as e:
            raise _as_provider_error(e, "Kie generation failed")

        resolution = request.resolution if request.resolution in ("1K", "2K", "4K") else "1K"
        quality = {"1K": Quality.BASE_1K, "2K": Quality.HIRES_2K, "4K": Quality.ULTRA_4K}[resolution]
        aspect_ratio = request.aspect_ratio if request.aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1"
        width, height = dimensions_for(aspect_ratio, quality)

        self.records.create(
            user_id=user_id,
            prompt=request.prompt,
            style=KIE_STYLE,
            size=f"{width}x{height}",
            quality=resolution,
            engine=Engine.KIE.value,
            status=GenerationStatus.PENDING,
            task_id=task_id,
            reference_image_url=_reference_url(request.image_input),
        )
        self.records.debit_for_acceptance(user_id)

        result = await provider.wait_for_result(task_id)
        changed = self.records.resolve(task_id, result)
        for generation in changed:
            await self._cache(generation)

        if result.status is TaskState.FAILED:
            raise ProviderError(f"Kie Task Failed: {result.fail_reason}")

        generation = self.db.query(Generation).filter(Generation.task_id == task_id).first()
        return GenerateOutcome(
            generation=generation,
            engine=Engine.KIE,
            credits=self.credits.get_balance(user_id),
            result=result,
            task_id=task_id,
        )

    async def handle_action(self, request: ActionRequest, user_id: int) -> GenerateOutcome:
        """Upscale or vary one image of an earlier creative-queue grid."""
        try:
            action = ActionType(request.action)
        except ValueError:
            raise InputValidationError("Invalid action")
        if not request.task_id or not request.index:
            raise InputValidationError("Missing taskId or index")

        self.credits.ensure_available(user_id)

        provider = self.providers.midjourney
        try:
            task_id = await provider.act(action, request.task_id, request.index)
        except InputValidationError:
            raise
        except Exception as e:
            raise _as_provider_error(e, "Action Failed")

        prompt, style = "MJ Action", style_label()
        if request.generation_id:
            original = (
                self.db.query(Generation)
                .filter(Generation.id == request.generation_id, Generation.user_id == user_id)
                .first()
            )
            if original:
                label = "Upscale" if action is ActionType.UPSCALE else "Variation"
                prompt = f"{original.prompt} ({label} {request.index})"
                style = original.style

        generation = self.records.create(
            user_id=user_id,
            prompt=prompt,
            style=style,
            size="1024x1024",
            quality=Quality.BASE_1K.value,
            engine=Engine.MIDJOURNEY.value,
            status=GenerationStatus.PENDING,
            task_id=task_id,
        )
        credits = self.records.debit_for_acceptance(user_id)
        return GenerateOutcome(generation=generation, engine=Engine.MIDJOURNEY, credits=credits, task_id=task_id)

    async def _cache(self, generation: Generation):
        if not self.cache_images:
            return
        local_path = await self.storage.cache_image(generation)
        if local_path:
            generation.local_path = local_path
            self.db.commit()
