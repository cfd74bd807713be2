from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nanostudio.core.database import Base
from nanostudio.models import Credit, Generation, GenerationStatus
from nanostudio.schemas.generate import GenerateRequest, GenerationResult, Quality
from nanostudio.services.engines import Engine, ProviderSet, QueueImageProvider, SyncImageProvider

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgo="


async def instant_sleep(delay: float) -> None:
    await asyncio.sleep(0)


class RecordingSleep:
    """Sleep stand-in that remembers every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeSyncProvider(SyncImageProvider):
    engine = Engine.GEMINI

    def __init__(self, image: str = PNG_DATA_URI, error: Optional[Exception] = None):
        self.image = image
        self.error = error
        self.calls: List[GenerateRequest] = []
        self.enhanced: List[Quality] = []

    async def generate(self, request: GenerateRequest) -> GenerationResult:
        self.calls.append(request)
        if self.error:
            raise self.error
        return GenerationResult.completed(self.image)

    async def enhance(self, image: str, quality: Quality, aspect_ratio: str = "1:1") -> GenerationResult:
        self.enhanced.append(quality)
        return GenerationResult.completed(f"{image}#enhanced")


class FakeQueueProvider(QueueImageProvider):
    """
    Queue adapter double. ``results`` are returned in order by poll(); the
    last one repeats once the list is down to a single entry.
    """

    def __init__(
        self,
        engine: Engine,
        task_id: str = "task-1",
        results: Optional[List[GenerationResult]] = None,
        submit_error: Optional[Exception] = None,
        poll_error: Optional[Exception] = None,
        max_poll_attempts: int = 10,
    ):
        super().__init__(poll_interval=0, max_poll_attempts=max_poll_attempts, sleep=instant_sleep)
        self.engine = engine
        self.task_id = task_id
        self.results = list(results or [])
        self.submit_error = submit_error
        self.poll_error = poll_error
        self.submitted: list = []
        self.actions: list = []
        self.polls: List[str] = []

    async def submit_request(self, request: GenerateRequest, seed: Optional[int] = None) -> str:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((request, seed))
        return self.task_id

    async def submit(self, prompt: str, aspect_ratio: str = "1:1", resolution: str = "1K",
                     output_format: str = "png", image_input=None, seed=None) -> str:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((prompt, aspect_ratio, resolution))
        return self.task_id

    async def act(self, action, origin_task_id: str, index: int) -> str:
        self.actions.append((action, origin_task_id, index))
        return self.task_id

    async def poll(self, task_id: str) -> GenerationResult:
        self.polls.append(task_id)
        if self.poll_error:
            raise self.poll_error
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0] if self.results else GenerationResult.pending()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def providers() -> ProviderSet:
    return ProviderSet(
        gemini=FakeSyncProvider(),
        kie=FakeQueueProvider(Engine.KIE, task_id="kie-task"),
        midjourney=FakeQueueProvider(Engine.MIDJOURNEY, task_id="mj-task"),
    )


def set_credits(db, user_id: int, amount: int) -> None:
    credit = db.get(Credit, user_id)
    if credit is None:
        db.add(Credit(user_id=user_id, amount=amount))
    else:
        credit.amount = amount
    db.commit()


def add_pending(db, task_id: str, engine: Engine = Engine.KIE, user_id: int = 1, prompt: str = "a cat") -> Generation:
    generation = Generation(
        user_id=user_id,
        prompt=prompt,
        style="Nano Banana Pro",
        size="1024x1024",
        quality="BASE_1K",
        engine=engine.value,
        status=GenerationStatus.PENDING,
        task_id=task_id,
        image_url="",
    )
    db.add(generation)
    db.commit()
    db.refresh(generation)
    return generation
