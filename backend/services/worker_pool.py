"""
Worker Pool

Bounded executor for batch and per-request asynchronous work.

Blocking units (anything that talks to the store) run on a thread pool of
`max_size` threads so the event loop is never blocked. Admission is bounded:
at most `max_size + queue_capacity` units may be submitted and unfinished at
once; beyond that `submit` raises WorkerPoolRejectedError (abort policy).
A single batch never has more than `core_size` units in flight, which leaves
headroom for other callers.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Optional, TypeVar
import logging

from config.settings import settings
from exceptions import WorkerPoolRejectedError

logger = logging.getLogger(__name__)

K = TypeVar('K', bound=Hashable)
R = TypeVar('R')


class CancellationToken:
    """Shared flag telling a batch to stop scheduling units that have not started."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError()


class BatchHandle:
    """
    Future-like handle for a scheduled batch.

    Await it for the result. cancel() stops the batch from scheduling any
    further units; units already running finish their store I/O.
    """

    def __init__(self, task: "asyncio.Task[Any]", token: CancellationToken):
        self.task = task
        self.token = token

    def cancel(self) -> bool:
        self.token.cancel()
        return self.task.cancel()

    def cancelled(self) -> bool:
        return self.task.cancelled()

    def done(self) -> bool:
        return self.task.done()

    def result(self) -> Any:
        return self.task.result()

    def __await__(self):
        return self.task.__await__()


class WorkerPool:
    """Manages the thread pool that executes per-key units of work"""

    def __init__(
        self,
        core_size: int = 5,
        max_size: int = 10,
        queue_capacity: int = 25,
        thread_name_prefix: str = "profile-worker"
    ):
        """
        Args:
            core_size: Max units of one batch in flight at a time
            max_size: Number of worker threads
            queue_capacity: Units allowed to wait for a free thread
            thread_name_prefix: Prefix for worker thread names
        """
        if core_size < 1 or max_size < core_size:
            raise ValueError(f"Invalid pool sizing: core={core_size}, max={max_size}")
        if queue_capacity < 0:
            raise ValueError(f"Invalid queue capacity: {queue_capacity}")

        self.core_size = core_size
        self.max_size = max_size
        self.queue_capacity = queue_capacity
        self.thread_name_prefix = thread_name_prefix

        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._inflight = 0
        self.running = False

    @property
    def capacity(self) -> int:
        return self.max_size + self.queue_capacity

    @property
    def inflight(self) -> int:
        with self._lock:
            return self._inflight

    def status(self) -> Dict[str, Any]:
        return {
            'running': self.running,
            'core_size': self.core_size,
            'max_size': self.max_size,
            'queue_capacity': self.queue_capacity,
            'inflight': self.inflight,
        }

    async def start(self):
        """Start the worker threads"""
        if self.running:
            logger.warning("WorkerPool already running")
            return
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_size,
            thread_name_prefix=self.thread_name_prefix
        )
        self.running = True
        logger.info(
            f"WorkerPool started (core={self.core_size}, max={self.max_size}, "
            f"queue={self.queue_capacity})"
        )

    async def stop(self):
        """Stop accepting work and wait for running units to finish"""
        if not self.running:
            return
        logger.info("Stopping WorkerPool...")
        self.running = False
        executor, self._executor = self._executor, None
        if executor is not None:
            # Queued units that have not started are dropped
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: executor.shutdown(wait=True, cancel_futures=True)
            )
        logger.info("WorkerPool stopped")

    def submit(self, fn: Callable[..., R], *args: Any) -> "asyncio.Future[R]":
        """
        Run a blocking callable on a worker thread.

        Returns:
            Awaitable future; cancelling it before the unit starts keeps it from running

        Raises:
            WorkerPoolRejectedError: If the pool is stopped or full
        """
        executor = self._executor
        if not self.running or executor is None:
            raise WorkerPoolRejectedError("Worker pool is not running")

        with self._lock:
            if self._inflight >= self.capacity:
                logger.warning(f"WorkerPool saturated ({self._inflight}/{self.capacity}), rejecting unit")
                raise WorkerPoolRejectedError(
                    f"Worker pool is at capacity ({self.capacity} units)", capacity=self.capacity
                )
            self._inflight += 1

        try:
            future = executor.submit(fn, *args)
        except RuntimeError as e:
            self._release()
            raise WorkerPoolRejectedError(f"Worker pool refused work: {e}") from e
        future.add_done_callback(lambda _: self._release())
        return asyncio.wrap_future(future)

    async def run(self, fn: Callable[..., R], *args: Any) -> R:
        """Submit one unit and wait for its result."""
        return await self.submit(fn, *args)

    async def fan_out(
        self,
        keys: Iterable[K],
        unit: Callable[[K], R],
        token: Optional[CancellationToken] = None
    ) -> Dict[K, Any]:
        """
        Run `unit(key)` for every distinct key and collect the outcomes.

        Different keys run concurrently in no particular order, at most
        core_size at a time. A unit that raises does not affect its siblings:
        its exception is returned as the value for its key.

        Returns:
            key -> unit result or the exception it raised

        Raises:
            WorkerPoolRejectedError: If the pool refuses a unit (whole batch fails)
            asyncio.CancelledError: If the token is cancelled
        """
        token = token or CancellationToken()
        ordered = list(dict.fromkeys(keys))
        gate = asyncio.Semaphore(self.core_size)

        async def run_one(key: K) -> R:
            async with gate:
                token.raise_if_cancelled()
                try:
                    future = self.submit(unit, key)
                except WorkerPoolRejectedError:
                    # Units still waiting for the gate must not start
                    token.cancel()
                    raise
                return await future

        tasks = [asyncio.ensure_future(run_one(key)) for key in ordered]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            token.cancel()
            raise

        for outcome in outcomes:
            if isinstance(outcome, WorkerPoolRejectedError):
                token.cancel()
                raise outcome
        token.raise_if_cancelled()
        return dict(zip(ordered, outcomes))

    def schedule(
        self,
        batch: Callable[[CancellationToken], Awaitable[R]]
    ) -> BatchHandle:
        """
        Start a batch coroutine as a task and return its handle.

        Args:
            batch: Called with the handle's token; returns the coroutine to run
        """
        if not self.running:
            raise WorkerPoolRejectedError("Worker pool is not running")
        token = CancellationToken()
        task = asyncio.ensure_future(batch(token))
        return BatchHandle(task, token)

    def _release(self) -> None:
        with self._lock:
            self._inflight -= 1


# Global singleton, started and stopped by the application lifespan
worker_pool = WorkerPool(
    core_size=settings.pool_core_size,
    max_size=settings.pool_max_size,
    queue_capacity=settings.pool_queue_capacity,
)
