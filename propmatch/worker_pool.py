"""
Bounded asyncio worker pool for photo matching.

The pool owns its queue and its workers. ``submit`` never blocks: once
``max_queue_size`` photos are waiting it raises ``QueueFullError`` and the
caller decides whether to retry later.
"""
import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from propmatch.config import MAX_CONCURRENT_WORKERS, MAX_QUEUE_SIZE, WORKER_TIMEOUT
from propmatch.exceptions import QueueFullError

Handler = Callable[[int], Awaitable[None]]
TimeoutHandler = Callable[[int, str], Awaitable[None]]


class PhotoWorkerPool:
    """
    Fixed number of workers draining a FIFO queue of photo ids.

    Args:
        handler: Coroutine run for each photo id, e.g. ``PhotoProcessor.process_photo``.
        on_timeout: Coroutine called with the photo id and a reason when a job
            exceeds ``timeout``, e.g. ``PhotoProcessor.mark_failed``.
        concurrency: Number of workers.
        max_queue_size: Maximum number of waiting photo ids.
        timeout: Seconds allowed per photo.
    """

    def __init__(
        self,
        handler: Handler,
        on_timeout: Optional[TimeoutHandler] = None,
        concurrency: int = MAX_CONCURRENT_WORKERS,
        max_queue_size: int = MAX_QUEUE_SIZE,
        timeout: float = WORKER_TIMEOUT,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        self.handler = handler
        self.on_timeout = on_timeout
        self.concurrency = concurrency
        self.max_queue_size = max_queue_size
        self.timeout = timeout
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self.active = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Create the queue and spawn the workers on the running loop."""
        if self._workers:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"photo-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.debug(f"Started {self.concurrency} photo workers (queue size {self.max_queue_size})")

    def submit(self, photo_id: int) -> None:
        """
        Enqueue a photo id.

        Raises:
            QueueFullError: When ``max_queue_size`` photos are already waiting.
            RuntimeError: When the pool has not been started.
        """
        if self._queue is None:
            raise RuntimeError("Worker pool is not started")
        try:
            self._queue.put_nowait(photo_id)
        except asyncio.QueueFull:
            raise QueueFullError(self.max_queue_size) from None

    async def join(self) -> None:
        """Wait until every submitted photo has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Wait for queued work, then stop the workers."""
        await self.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def __aenter__(self) -> "PhotoWorkerPool":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _run_one(self, photo_id: int) -> None:
        try:
            await asyncio.wait_for(self.handler(photo_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            reason = f"processing timed out after {self.timeout}s"
            logger.warning(f"⏱️ Photo {photo_id} {reason}")
            if self.on_timeout is not None:
                try:
                    await self.on_timeout(photo_id, reason)
                except Exception as e:
                    logger.exception(f"Timeout handler failed for photo {photo_id}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Worker failed on photo {photo_id}: {e}")

    async def _worker(self, index: int) -> None:
        while True:
            photo_id = await self._queue.get()
            self.active += 1
            try:
                await self._run_one(photo_id)
            finally:
                self.active -= 1
                self._queue.task_done()
