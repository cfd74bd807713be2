from __future__ import annotations

import asyncio

import pytest

from nanostudio.core.exceptions import InputValidationError
from nanostudio.models import Generation, GenerationStatus
from nanostudio.schemas.generate import GenerationResult, TaskState
from nanostudio.services.credits import CreditService
from nanostudio.services.engines import Engine
from nanostudio.services.task_poller import TaskPoller
from tests.conftest import add_pending, set_credits


def make_poller(db, providers, debit_policy="on_success"):
    return TaskPoller(db, providers, debit_policy=debit_policy, cache_images=False)


class TestTaskPoller:
    def test_record_completes_on_fourth_poll(self, db, providers):
        set_credits(db, 1, 5)
        generation = add_pending(db, "kie-task")
        providers.kie.results = [
            GenerationResult.pending("Running"),
            GenerationResult.pending("Running"),
            GenerationResult.pending("Running"),
            GenerationResult.completed("https://cdn/out.png"),
        ]
        poller = make_poller(db, providers)

        for _ in range(3):
            result = asyncio.run(poller.check_status("kie-task"))
            assert result.status is TaskState.PENDING
            db.refresh(generation)
            assert generation.status == GenerationStatus.PENDING

        result = asyncio.run(poller.check_status("kie-task"))

        assert result.status is TaskState.COMPLETED
        db.refresh(generation)
        assert generation.status == GenerationStatus.COMPLETED
        assert generation.image_url == "https://cdn/out.png"
        assert CreditService(db).get_balance(1) == 4

    def test_repeat_polls_after_terminal_change_nothing(self, db, providers):
        set_credits(db, 1, 5)
        generation = add_pending(db, "kie-task")
        providers.kie.results = [GenerationResult.completed("https://cdn/out.png")]
        poller = make_poller(db, providers)

        first = asyncio.run(poller.check_status("kie-task"))
        second = asyncio.run(poller.check_status("kie-task"))

        assert first == second
        db.refresh(generation)
        assert generation.status == GenerationStatus.COMPLETED
        assert CreditService(db).get_balance(1) == 4

    def test_terminal_record_is_never_rewritten(self, db, providers):
        generation = add_pending(db, "kie-task")
        generation.status = GenerationStatus.FAILED
        db.commit()
        providers.kie.results = [GenerationResult.completed("https://cdn/late.png")]

        asyncio.run(make_poller(db, providers).check_status("kie-task"))

        db.refresh(generation)
        assert generation.status == GenerationStatus.FAILED
        assert generation.image_url == ""

    def test_completed_record_ignores_late_failure(self, db, providers):
        set_credits(db, 1, 5)
        generation = add_pending(db, "kie-task")
        providers.kie.results = [GenerationResult.completed("https://cdn/out.png")]
        poller = make_poller(db, providers)
        asyncio.run(poller.check_status("kie-task"))

        providers.kie.results = [GenerationResult.failed("Late failure")]
        asyncio.run(poller.check_status("kie-task"))

        db.refresh(generation)
        assert generation.status == GenerationStatus.COMPLETED
        assert generation.image_url == "https://cdn/out.png"
        assert CreditService(db).get_balance(1) == 4

    def test_failure_marks_failed_without_debit(self, db, providers):
        set_credits(db, 1, 5)
        generation = add_pending(db, "kie-task")
        providers.kie.results = [GenerationResult.failed("Content policy")]

        result = asyncio.run(make_poller(db, providers).check_status("kie-task"))

        assert result.fail_reason == "Content policy"
        db.refresh(generation)
        assert generation.status == GenerationStatus.FAILED
        assert CreditService(db).get_balance(1) == 5

    def test_midjourney_tasks_poll_midjourney(self, db, providers):
        add_pending(db, "mj-task", engine=Engine.MIDJOURNEY)

        asyncio.run(make_poller(db, providers).check_status("mj-task"))

        assert providers.midjourney.polls == ["mj-task"]
        assert providers.kie.polls == []

    def test_unknown_task_uses_generic_queue(self, db, providers):
        result = asyncio.run(make_poller(db, providers).check_status("orphan"))

        assert result.status is TaskState.PENDING
        assert providers.kie.polls == ["orphan"]
        assert db.query(Generation).count() == 0

    def test_missing_task_id(self, db, providers):
        with pytest.raises(InputValidationError):
            asyncio.run(make_poller(db, providers).check_status(""))
