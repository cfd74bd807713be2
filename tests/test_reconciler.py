from __future__ import annotations

import asyncio

from nanostudio.models import Generation, GenerationStatus
from nanostudio.schemas.generate import GenerationResult
from nanostudio.services.engines import Engine
from nanostudio.services.task_poller import TaskPoller
from nanostudio.workers.reconciler import reconcile_pending
from tests.conftest import add_pending, set_credits


def test_sweep_resolves_and_isolates_failures(db, providers):
    set_credits(db, 1, 5)
    done = add_pending(db, "kie-task")
    stuck = add_pending(db, "mj-task", engine=Engine.MIDJOURNEY)
    providers.kie.results = [GenerationResult.completed("https://cdn/out.png")]
    providers.midjourney.poll_error = RuntimeError("HTTP 502")
    poller = TaskPoller(db, providers, debit_policy="on_success", cache_images=False)

    stats = asyncio.run(reconcile_pending(db, poller))

    assert stats == {"checked": 2, "resolved": 1, "pending": 0, "errors": 1}
    db.refresh(done)
    db.refresh(stuck)
    assert done.status == GenerationStatus.COMPLETED
    assert stuck.status == GenerationStatus.PENDING


def test_terminal_rows_are_skipped(db, providers):
    generation = add_pending(db, "kie-task")
    generation.status = GenerationStatus.COMPLETED
    db.commit()
    poller = TaskPoller(db, providers, cache_images=False)

    stats = asyncio.run(reconcile_pending(db, poller))

    assert stats["checked"] == 0
    assert providers.kie.polls == []


def test_still_running_tasks_stay_pending(db, providers):
    add_pending(db, "kie-task")
    poller = TaskPoller(db, providers, cache_images=False)

    stats = asyncio.run(reconcile_pending(db, poller, limit=10))

    assert stats["pending"] == 1
    assert db.query(Generation).one().status == GenerationStatus.PENDING
