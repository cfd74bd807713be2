"""
Pending Generation Reconciler
Background sweep that polls queue tasks nobody is watching any more, so a
closed browser tab never leaves a generation pending forever.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from rq import Queue, Retry
from rq.job import Job
from sqlalchemy.orm import Session

from nanostudio.core.config import settings
from nanostudio.core.redis import Queues, get_redis
from nanostudio.models.generation import Generation, GenerationStatus
from nanostudio.services.task_poller import TaskPoller

logger = logging.getLogger(__name__)


async def reconcile_pending(db: Session, poller: TaskPoller, limit: Optional[int] = None) -> Dict[str, int]:
    """
    Poll every pending generation once, oldest first.

    A failure on one task is logged and the sweep moves on.

    Returns:
        Counts of checked, resolved, still pending and errored tasks
    """
    limit = limit or settings.RECONCILE_BATCH_SIZE
    rows = (
        db.query(Generation.task_id)
        .filter(Generation.status == GenerationStatus.PENDING, Generation.task_id.isnot(None))
        .order_by(Generation.created_at.asc(), Generation.id.asc())
        .limit(limit)
        .all()
    )
    task_ids = list(dict.fromkeys(row[0] for row in rows))

    stats = {"checked": 0, "resolved": 0, "pending": 0, "errors": 0}
    for task_id in task_ids:
        stats["checked"] += 1
        try:
            result = await poller.check_status(task_id)
        except Exception as e:
            logger.error(f"[Reconciler] Task {task_id} check failed: {e}")
            stats["errors"] += 1
            continue

        if result.is_terminal:
            stats["resolved"] += 1
        else:
            stats["pending"] += 1

    logger.info(
        f"[Reconciler] Checked {stats['checked']} task(s): "
        f"{stats['resolved']} resolved, {stats['pending']} pending, {stats['errors']} errors"
    )
    return stats


def run_reconciliation_task(limit: Optional[int] = None) -> Dict[str, int]:
    """RQ entry point. Builds its own session and provider set."""
    from nanostudio.api.deps import get_providers
    from nanostudio.core.database import SessionLocal

    logger.info("[Task] Starting pending-generation reconciliation")
    db = SessionLocal()
    try:
        poller = TaskPoller(db, get_providers())
        return asyncio.run(reconcile_pending(db, poller, limit))
    finally:
        db.close()


def enqueue_reconciliation(limit: Optional[int] = None, queue: Optional[Queue] = None) -> Job:
    """Push one reconciliation sweep onto the reconciliation queue."""
    queue = queue or Queue(
        name=Queues.RECONCILIATION,
        connection=get_redis(),
        default_timeout=settings.JOB_TIMEOUT_RECONCILE,
    )
    job = queue.enqueue(
        run_reconciliation_task,
        limit=limit,
        job_timeout=settings.JOB_TIMEOUT_RECONCILE,
        retry=Retry(max=2, interval=[10, 30]),
        meta={
            "type": "reconciliation",
            "created_at": datetime.utcnow().isoformat(),
        },
    )
    logger.info(f"Enqueued reconciliation job: {job.id}")
    return job
