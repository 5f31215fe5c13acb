"""
In-process background task queue.

Scrape runs are submitted here by the API so the HTTP request can return a
job id straight away. A single worker drains the queue, so runs execute one
after another and never hit the same sites concurrently.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]

# Global queue instance
_task_queue: Optional['BackgroundTaskQueue'] = None


class BackgroundTaskQueue:
    """Sequential asyncio task queue with one worker"""

    def __init__(self):
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.completed = 0
        self.failed = 0
        # name -> queued or running count
        self._pending: Dict[str, int] = {}

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self):
        """Start the worker on the running event loop"""
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())
        logger.info("[tasks] Background task queue started")

    async def stop(self):
        """Cancel the worker; queued tasks that have not started are dropped"""
        if not self._worker:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        pending = self._queue.qsize() if self._queue else 0
        self._worker = None
        self._queue = None
        self._pending.clear()
        logger.info(f"[tasks] Background task queue stopped ({pending} pending tasks dropped)")

    def submit(self, name: str, factory: TaskFactory):
        """
        Queue a task and return immediately.

        Args:
            name: Label used in logs
            factory: Zero-argument callable returning the coroutine to run
        """
        if not self.running:
            self.start()
        self._queue.put_nowait((name, factory))
        self._pending[name] = self._pending.get(name, 0) + 1
        logger.info(f"[tasks] Queued {name} (queue size={self._queue.qsize()})")

    def has_pending(self, name: str) -> bool:
        """True while a task submitted under `name` is queued or running"""
        return self._pending.get(name, 0) > 0

    async def join(self):
        """Wait until every queued task has finished"""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self):
        while True:
            name, factory = await self._queue.get()
            try:
                logger.info(f"[tasks] Running {name}")
                await factory()
                self.completed += 1
                logger.info(f"[tasks] Finished {name}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.error(f"[tasks] Task {name} failed: {e}", exc_info=True)
            finally:
                self._release(name)
                self._queue.task_done()

    def _release(self, name: str):
        count = self._pending.get(name, 0) - 1
        if count > 0:
            self._pending[name] = count
        else:
            self._pending.pop(name, None)


def get_task_queue() -> BackgroundTaskQueue:
    """Get or create the global task queue"""
    global _task_queue
    if _task_queue is None:
        _task_queue = BackgroundTaskQueue()
    return _task_queue
