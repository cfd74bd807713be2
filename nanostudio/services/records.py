"""
Generation Records
Creation of history rows, pending -> terminal transitions, and the credit
debit policy tied to them.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.models.generation import Generation, GenerationStatus
from nanostudio.schemas.generate import GenerationResult, TaskState
from nanostudio.services.credits import CreditService

logger = logging.getLogger(__name__)

ON_SUCCESS = "on_success"
ON_ACCEPT = "on_accept"


class GenerationRecorder:
    """
    Persists generation attempts and applies the credit debit policy.

    With ``on_success`` a credit is spent exactly once, when a record first
    reaches ``completed``. With ``on_accept`` it is spent as soon as the
    provider has taken the work, whatever the outcome.
    """

    def __init__(self, db: Session, credits: Optional[CreditService] = None, debit_policy: Optional[str] = None):
        self.db = db
        self.credits = credits or CreditService(db)
        self.debit_policy = debit_policy or settings.CREDIT_DEBIT_POLICY

    def create(
        self,
        user_id: int,
        prompt: str,
        style: Optional[str],
        size: str,
        quality: str,
        engine: str,
        status: str,
        image_url: str = "",
        task_id: Optional[str] = None,
        reference_image_url: Optional[str] = None,
    ) -> Generation:
        generation = Generation(
            user_id=user_id,
            prompt=prompt,
            style=style,
            size=size,
            quality=quality,
            engine=engine,
            status=status,
            image_url=image_url,
            task_id=task_id,
            reference_image_url=reference_image_url,
        )
        self.db.add(generation)
        self.db.commit()
        self.db.refresh(generation)
        logger.info(f"[Records] Generation {generation.id} saved ({engine}, {status})")
        return generation

    def debit_for_acceptance(self, user_id: int) -> int:
        if self.debit_policy == ON_ACCEPT:
            return self.credits.debit(user_id)
        return self.credits.get_balance(user_id)

    def debit_for_success(self, user_id: int) -> int:
        if self.debit_policy == ON_SUCCESS:
            return self.credits.debit(user_id)
        return self.credits.get_balance(user_id)

    def resolve(self, task_id: str, result: GenerationResult) -> List[Generation]:
        """
        Move pending records of ``task_id`` to the result's terminal state.

        Only rows still pending are touched, so re-applying a terminal
        result is a no-op. Returns the rows that changed.
        """
        if not result.is_terminal:
            return []

        if result.status is TaskState.COMPLETED:
            values = {Generation.status: GenerationStatus.COMPLETED, Generation.image_url: result.image}
        else:
            values = {Generation.status: GenerationStatus.FAILED}

        pending = (
            self.db.query(Generation.id, Generation.user_id)
            .filter(Generation.task_id == task_id, Generation.status == GenerationStatus.PENDING)
            .all()
        )

        changed_ids = []
        for generation_id, user_id in pending:
            # Conditional update: concurrent polls cannot both win the transition
            changed = (
                self.db.query(Generation)
                .filter(Generation.id == generation_id, Generation.status == GenerationStatus.PENDING)
                .update(values, synchronize_session=False)
            )
            self.db.commit()
            if not changed:
                continue
            changed_ids.append(generation_id)
            logger.info(f"[Records] Generation {generation_id} -> {result.status.value}")
            if result.status is TaskState.COMPLETED:
                self.debit_for_success(user_id)

        if not changed_ids:
            return []
        self.db.expire_all()
        return self.db.query(Generation).filter(Generation.id.in_(changed_ids)).all()
