"""
Generation API Routes
Handles generation requests, queue actions and task status checks.
"""

import logging
import traceback

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from nanostudio.api.deps import get_current_user_id, get_db, get_providers
from nanostudio.core.exceptions import StudioError
from nanostudio.schemas.generate import (
    ActionRequest,
    ActionResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationResult,
    QueueGenerateRequest,
    QueueGenerateResponse,
)
from nanostudio.services.engines import ProviderSet
from nanostudio.services.orchestrator import GenerationOrchestrator
from nanostudio.services.task_poller import TaskPoller

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error(context: str, error: Exception) -> HTTPException:
    logger.error(f"{context}: {error}\n{traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{context}: {str(error)}",
    )


@router.post("/generate", response_model=GenerateResponse)
async def generate_image(
    request: GenerateRequest,
    db: Session = Depends(get_db),
    providers: ProviderSet = Depends(get_providers),
    user_id: int = Depends(get_current_user_id),
):
    """
    Submit a generation.

    Gemini answers with the final image. Queue engines answer with a
    pending task id to be polled at /generate/status/{task_id}.
    """
    logger.info(f"Generate request from user {user_id} (engine={request.engine or 'default'})")
    orchestrator = GenerationOrchestrator(db, providers)
    try:
        outcome = await orchestrator.handle_generate(request, user_id)
    except StudioError:
        raise
    except Exception as e:
        raise _internal_error("Generation failed", e)

    return GenerateResponse(
        status=outcome.status,
        image=outcome.result.image if outcome.result else None,
        task_id=outcome.task_id,
        generation_id=outcome.generation.id,
        engine=outcome.engine.value,
        size=outcome.generation.size,
        quality=request.quality,
        aspect_ratio=request.aspect_ratio,
        seed=outcome.seed,
        credits=outcome.credits,
    )


@router.post("/queue-generate", response_model=QueueGenerateResponse)
async def queue_generate(
    request: QueueGenerateRequest,
    db: Session = Depends(get_db),
    providers: ProviderSet = Depends(get_providers),
    user_id: int = Depends(get_current_user_id),
):
    """Generate on the generic job queue and wait for the image."""
    orchestrator = GenerationOrchestrator(db, providers)
    try:
        outcome = await orchestrator.handle_queue_generate(request, user_id)
    except StudioError:
        raise
    except Exception as e:
        raise _internal_error("Kie generation failed", e)

    return QueueGenerateResponse(
        image_url=outcome.result.image,
        aspect_ratio=request.aspect_ratio,
        resolution=outcome.generation.quality,
        credits=outcome.credits,
    )


@router.post("/generate/action", response_model=ActionResponse)
async def generate_action(
    request: ActionRequest,
    db: Session = Depends(get_db),
    providers: ProviderSet = Depends(get_providers),
    user_id: int = Depends(get_current_user_id),
):
    """Upscale or vary one image of a Midjourney grid."""
    orchestrator = GenerationOrchestrator(db, providers)
    try:
        outcome = await orchestrator.handle_action(request, user_id)
    except StudioError:
        raise
    except Exception as e:
        raise _internal_error("Action failed", e)

    return ActionResponse(
        task_id=outcome.task_id,
        generation_id=outcome.generation.id,
        credits=outcome.credits,
    )


@router.get("/generate/status/{task_id}", response_model=GenerationResult)
async def get_task_status(
    task_id: str,
    db: Session = Depends(get_db),
    providers: ProviderSet = Depends(get_providers),
):
    """Poll a queue task once; terminal results are written to history."""
    poller = TaskPoller(db, providers)
    try:
        return await poller.check_status(task_id)
    except StudioError:
        raise
    except Exception as e:
        raise _internal_error("Failed to check status", e)
