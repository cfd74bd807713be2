"""
Client Submission Queue
Concurrency-limited dispatcher for generation requests with a shared
polling loop for queue-engine tasks.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, List, Optional, Set

from nanostudio.core.config import settings
from nanostudio.schemas.generate import GenerateRequest, GenerateResponse, GenerationResult, TaskState

logger = logging.getLogger(__name__)

Sender = Callable[[GenerateRequest], Awaitable[GenerateResponse]]
StatusPoller = Callable[[str], Awaitable[GenerationResult]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class FeedItem:
    """One entry of the client feed. Terminal states are final."""
    request: GenerateRequest
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: TaskState = TaskState.PENDING
    image: Optional[str] = None
    task_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskState.PENDING

    @property
    def awaiting_task(self) -> bool:
        return not self.is_terminal and self.task_id is not None


class ClientSubmissionQueue:
    """
    FIFO dispatcher with at most ``max_concurrent`` requests in flight.

    Items whose response is a pending task handle are handed to a single
    periodic poll loop. Each poll cycle checks every waiting item; one failed
    check does not stop the others. Must be used from a running event loop.
    """

    def __init__(
        self,
        send: Sender,
        poll_status: StatusPoller,
        max_concurrent: Optional[int] = None,
        poll_interval: Optional[float] = None,
        on_change: Optional[Callable[[FeedItem], None]] = None,
        on_refresh: Optional[Callable[[], None]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._send = send
        self._poll_status = poll_status
        self.max_concurrent = max_concurrent or settings.CLIENT_MAX_CONCURRENT
        self.poll_interval = settings.CLIENT_POLL_INTERVAL if poll_interval is None else poll_interval
        self._on_change = on_change
        self._on_refresh = on_refresh
        self._sleep = sleep

        self.items: List[FeedItem] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._queue: Deque[FeedItem] = deque()
        self._tasks: Set[asyncio.Task] = set()
        self._poll_task: Optional[asyncio.Task] = None
        self._settled = asyncio.Event()
        self._settled.set()

    def submit(self, request: GenerateRequest, batch_size: int = 1) -> List[FeedItem]:
        """Enqueue ``batch_size`` independent copies of ``request``."""
        items = [FeedItem(request=request.model_copy(deep=True)) for _ in range(max(1, batch_size))]
        self.items.extend(items)
        self._queue.extend(items)
        self._settled.clear()
        logger.info(f"[Queue] Enqueued {len(items)} item(s), {len(self._queue)} waiting")
        self._advance()
        return items

    def _advance(self):
        while self.in_flight < self.max_concurrent and self._queue:
            item = self._queue.popleft()
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            task = asyncio.get_running_loop().create_task(self._dispatch(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, item: FeedItem):
        try:
            response = await self._send(item.request)
        except Exception as e:
            logger.warning(f"[Queue] Item {item.id} failed: {e}")
            self._settle(item, TaskState.FAILED, error=str(e))
        else:
            self._apply_response(item, response)
        finally:
            self.in_flight -= 1
            self._advance()

    def _apply_response(self, item: FeedItem, response: GenerateResponse):
        if response.status is TaskState.COMPLETED and response.image:
            self._settle(item, TaskState.COMPLETED, image=response.image)
        elif response.status is TaskState.PENDING and response.task_id:
            item.task_id = response.task_id
            self._changed(item)
            self._ensure_polling()
        else:
            self._settle(item, TaskState.FAILED, error="Generation failed")

    def _ensure_polling(self):
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def _poll_loop(self):
        while any(item.awaiting_task for item in self.items):
            await self._sleep(self.poll_interval)
            await self.poll_once()

    async def poll_once(self):
        """Check every item waiting on a task handle once."""
        waiting = [item for item in self.items if item.awaiting_task]
        if not waiting:
            return
        results = await asyncio.gather(
            *(self._poll_status(item.task_id) for item in waiting), return_exceptions=True
        )
        for item, result in zip(waiting, results):
            if isinstance(result, Exception):
                logger.warning(f"[Queue] Poll for task {item.task_id} failed: {result}")
                continue
            if item.is_terminal:
                continue
            if result.status is TaskState.COMPLETED:
                self._settle(item, TaskState.COMPLETED, image=result.image)
            elif result.status is TaskState.FAILED:
                self._settle(item, TaskState.FAILED, error=result.fail_reason or "Generation failed")

    def _settle(self, item: FeedItem, status: TaskState, image: Optional[str] = None, error: Optional[str] = None):
        item.status = status
        item.image = image
        item.error = error
        self._changed(item)
        if self._on_refresh:
            self._on_refresh()
        if all(i.is_terminal for i in self.items):
            self._settled.set()

    def _changed(self, item: FeedItem):
        if self._on_change:
            self._on_change(item)

    async def drain(self):
        """Wait until every submitted item is terminal."""
        await self._settled.wait()
