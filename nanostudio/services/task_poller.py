"""
Task Poller
Server-side status check for queue-engine tasks. Each call polls the owning
provider once and writes terminal results back to history.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.core.exceptions import InputValidationError
from nanostudio.models.generation import Generation
from nanostudio.schemas.generate import GenerationResult
from nanostudio.services.credits import CreditService
from nanostudio.services.engines import ProviderSet
from nanostudio.services.records import GenerationRecorder
from nanostudio.services.storage import StorageService

logger = logging.getLogger(__name__)


class TaskPoller:
    """
    Resolves pending generations.

    Polling is driven by the caller (the client feed or the reconciler).
    Only pending rows are rewritten, so polling a task again after it is
    terminal leaves history untouched and returns the same result.
    """

    def __init__(
        self,
        db: Session,
        providers: ProviderSet,
        credits: Optional[CreditService] = None,
        storage: Optional[StorageService] = None,
        debit_policy: Optional[str] = None,
        cache_images: Optional[bool] = None,
    ):
        self.db = db
        self.providers = providers
        self.records = GenerationRecorder(db, credits or CreditService(db), debit_policy)
        self.storage = storage or StorageService()
        self.cache_images = settings.CACHE_IMAGES_LOCALLY if cache_images is None else cache_images

    def _engine_tag(self, task_id: str) -> Optional[str]:
        row = self.db.query(Generation.engine).filter(Generation.task_id == task_id).first()
        return row[0] if row else None

    async def check_status(self, task_id: str) -> GenerationResult:
        if not task_id:
            raise InputValidationError("Missing Task ID")

        provider = self.providers.queue_for(self._engine_tag(task_id))
        logger.info(f"[Poller] Checking status for task {task_id} ({provider.engine.value})")
        result = await provider.poll(task_id)

        if result.is_terminal:
            changed = self.records.resolve(task_id, result)
            if changed:
                logger.info(f"[Poller] Task {task_id} {result.status.value}, updated {len(changed)} record(s)")
            if self.cache_images:
                for generation in changed:
                    local_path = await self.storage.cache_image(generation)
                    if local_path:
                        generation.local_path = local_path
                self.db.commit()

        return result
