"""In-process queue for bulk catalog writes.

Items are drained in fixed size batches. Every item of a batch is inserted
concurrently and failures are retried by putting the item back at the tail of
the queue. Once an item runs out of retries it is dropped and logged; the
caller that enqueued it has already been answered, so nothing is raised.

The queue is either IDLE or DRAINING. ``enqueue`` starts a drain only from
IDLE, and a drain only returns to IDLE after any follow-up timer is armed, so
two drains never run at the same time.
"""
import asyncio
import enum
import inspect
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Protocol

from common.logging import get_logger

logger = get_logger(__name__)


class Inserter(Protocol):
    def insert(self, payload: Any) -> Any:
        ...


class QueueState(enum.Enum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class QueueItem:
    payload: Any
    inserter: Inserter
    retries: int = 0
    enqueued_at: float = field(default_factory=time.time)


class BatchInsertQueue:
    def __init__(
        self,
        inserter: Inserter | None = None,
        batch_size: int = 10,
        max_retries: int = 3,
        batch_delay: float = 0.1,
        retry_interval: float = 5.0,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.inserter = inserter
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.batch_delay = batch_delay
        self.retry_interval = retry_interval

        self.state = QueueState.IDLE
        self.processed = 0
        self.dropped = 0
        self._items: deque[QueueItem] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._timer: asyncio.TimerHandle | None = None

    def __len__(self):
        return len(self._items)

    @property
    def processing(self) -> bool:
        return self.state is QueueState.DRAINING

    def enqueue(self, payload, inserter: Inserter | None = None):
        """Queue ``payload`` for insertion and start draining if idle. Never blocks."""
        inserter = inserter or self.inserter
        if inserter is None:
            raise ValueError("no inserter configured for this queue")
        self._items.append(QueueItem(payload=payload, inserter=inserter))
        self._start()

    def get_status(self) -> dict:
        return {
            "queue_length": len(self._items),
            "processing": self.processing,
            "batch_size": self.batch_size,
        }

    def clear(self):
        self._items.clear()

    async def close(self):
        """Cancel the pending retry timer and any running drain."""
        if self._timer:
            self._timer.cancel()
            self._timer = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.state = QueueState.IDLE

    def _start(self):
        if self.state is QueueState.DRAINING or not self._items:
            return
        loop = asyncio.get_running_loop()
        self.state = QueueState.DRAINING
        task = loop.create_task(self._drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self):
        try:
            while self._items:
                batch = [self._items.popleft() for _ in range(min(self.batch_size, len(self._items)))]
                logger.debug("Inserting batch of %d (%d left in queue)", len(batch), len(self._items))
                await asyncio.gather(*(self._attempt(item) for item in batch), return_exceptions=True)

                if self._items:
                    await self._throttle()
        except asyncio.CancelledError:
            self.state = QueueState.IDLE
            raise
        except Exception:
            logger.exception("Error processing insert queue")

        if self._items:
            self._timer = asyncio.get_running_loop().call_later(self.retry_interval, self._start)
        self.state = QueueState.IDLE

    async def _throttle(self):
        # pause between batches so bulk loads don't swamp the database
        if self.batch_delay:
            await asyncio.sleep(self.batch_delay)

    async def _attempt(self, item: QueueItem) -> bool:
        try:
            if inspect.iscoroutinefunction(item.inserter.insert):
                await item.inserter.insert(item.payload)
            else:
                await asyncio.to_thread(item.inserter.insert, item.payload)
        except Exception as exc:
            if item.retries < self.max_retries:
                item.retries += 1
                self._items.append(item)
                logger.warning("Insert failed, retry %d/%d queued: %s", item.retries, self.max_retries, exc)
            else:
                self.dropped += 1
                logger.error("Dropping queue item after %d retries (terminal failure): %s", self.max_retries, exc)
            return False
        self.processed += 1
        return True
