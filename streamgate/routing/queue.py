"""
streamgate - Request Queue

FIFO, rate-limited, single-flight dispatcher for outbound provider calls.

Guarantees:
- At most one task executes at a time per queue instance
- Tasks run in strict submission order (no priority)
- Consecutive dispatches are spaced at least `min_interval` apart,
  measured from dispatch start; the first dispatch never waits
- A task's failure reaches only its own future; the queue keeps draining

Concurrency invariant:
    `_processing` and `_last_dispatch` are mutated only inside `_process`,
    and a new worker is spawned only when no worker task is alive. asyncio
    runs one coroutine step at a time, so this flag gate is the whole
    mutual exclusion. If the queue is ever shared across threads it needs an
    explicit lock around `submit` and the worker spawn.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Optional

from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger("streamgate.queue")

DEFAULT_MIN_INTERVAL = 0.25

TaskFn = Callable[[], Awaitable[Any]]


@dataclass
class QueueTask:
    """A queued call. Owned by the queue until it has been executed."""
    run: TaskFn
    future: asyncio.Future
    timeout: Optional[float] = None
    enqueued_at: float = field(default_factory=time.monotonic)


class RequestQueue:
    """
    Single-worker FIFO queue with a minimum dispatch interval.

    Usage:
        queue = RequestQueue("api.cohere.com", min_interval=0.25)
        response = await queue.run(lambda: client.send(request, stream=True))
    """

    def __init__(
        self,
        name: str = "default",
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.name = name
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._tasks: Deque[QueueTask] = deque()
        self._processing = False
        self._last_dispatch: Optional[float] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def size(self) -> int:
        """Number of tasks waiting (excludes the one executing)."""
        return len(self._tasks)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last_dispatch

    def submit(self, run: TaskFn, timeout: Optional[float] = None) -> asyncio.Future:
        """
        Append a task and return a future for its result.

        Never raises; failures of `run` are delivered through the future.
        `timeout` bounds the task's execution once dispatched.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._tasks.append(QueueTask(run=run, future=future, timeout=timeout, enqueued_at=self._clock()))
        get_metrics().set_queue_depth(self.name, len(self._tasks))

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._process())
        return future

    async def run(self, run: TaskFn, timeout: Optional[float] = None) -> Any:
        """Submit a task and wait for its result."""
        return await self.submit(run, timeout=timeout)

    async def _process(self):
        if self._processing:
            return
        self._processing = True
        try:
            while self._tasks:
                task = self._tasks.popleft()
                get_metrics().set_queue_depth(self.name, len(self._tasks))

                if task.future.done():
                    logger.debug("Skipping cancelled queue task", queue=self.name)
                    continue

                await self._wait_for_slot()

                if task.future.done():
                    logger.debug("Skipping task cancelled during rate-limit wait", queue=self.name)
                    continue

                self._last_dispatch = self._clock()
                get_metrics().record_queue_wait(self.name, max(0.0, self._last_dispatch - task.enqueued_at))
                await self._execute(task)
        finally:
            self._processing = False

    async def _wait_for_slot(self):
        if self._last_dispatch is None:
            return
        elapsed = self._clock() - self._last_dispatch
        if elapsed < self.min_interval:
            await self._sleep(self.min_interval - elapsed)

    async def _execute(self, task: QueueTask):
        try:
            if task.timeout is not None:
                result = await asyncio.wait_for(task.run(), task.timeout)
            else:
                result = await task.run()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as e:
            if not task.future.done():
                task.future.set_exception(e)
            else:
                logger.debug(f"Dropping failure of abandoned task: {type(e).__name__}", queue=self.name)
            return

        if not task.future.done():
            task.future.set_result(result)
            return

        # Nobody is waiting any more; release unclaimed streaming responses.
        close = getattr(result, "aclose", None)
        if close is not None:
            await close()
