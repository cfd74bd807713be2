"""
History Service
Listing and deletion of generation records.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.core.exceptions import InputValidationError, TaskNotFoundError
from nanostudio.models.generation import Generation
from nanostudio.services.storage import StorageService

logger = logging.getLogger(__name__)


class HistoryService:
    def __init__(self, db: Session, storage: Optional[StorageService] = None):
        self.db = db
        self.storage = storage or StorageService()

    def list_recent(self, user_id: int, limit: Optional[int] = None) -> List[Generation]:
        """Most recent first, bounded by HISTORY_LIMIT."""
        limit = min(limit or settings.HISTORY_LIMIT, settings.HISTORY_LIMIT)
        return (
            self.db.query(Generation)
            .filter(Generation.user_id == user_id)
            .order_by(Generation.created_at.desc(), Generation.id.desc())
            .limit(limit)
            .all()
        )

    def delete(self, user_id: int, ids: List[int]) -> int:
        """
        Delete the given records and their cached files.

        A file that cannot be removed is logged and the row is deleted
        anyway. Returns the number of rows removed.
        """
        if not ids:
            raise InputValidationError("No IDs provided")

        generations = (
            self.db.query(Generation)
            .filter(Generation.user_id == user_id, Generation.id.in_(ids))
            .all()
        )

        for generation in generations:
            if not self.storage.remove_cached(generation.local_path):
                logger.warning(f"[History] Continuing delete of {generation.id} despite file error")

        for generation in generations:
            self.db.delete(generation)
        self.db.commit()

        logger.info(f"[History] Deleted {len(generations)} generation(s) for user {user_id}")
        return len(generations)

    def toggle_favorite(self, user_id: int, generation_id: int) -> Generation:
        generation = (
            self.db.query(Generation)
            .filter(Generation.user_id == user_id, Generation.id == generation_id)
            .first()
        )
        if generation is None:
            raise TaskNotFoundError("Generation not found")
        generation.is_favorite = not generation.is_favorite
        self.db.commit()
        return generation
