"""
Background Task Service
Detached fire-and-forget work (automated replies, e-mail notifications).
"""
import asyncio
import logging
import time
from typing import Awaitable, Dict, Optional

logger = logging.getLogger(__name__)


class BackgroundTaskService:
    """Runs coroutines outside the caller's flow.

    Failures are logged and never reach the code that spawned the task.
    Strong references are held until each task finishes so the event loop
    cannot garbage-collect them mid-flight.
    """

    def __init__(self) -> None:
        self.running_tasks: Dict[str, asyncio.Task] = {}
        self._counter = 0

    def spawn(self, name: str, coro: Awaitable) -> asyncio.Task:
        self._counter += 1
        task_id = f"{name}:{self._counter}"

        async def wrapper():
            start_time = time.time()
            try:
                result = await coro
            except asyncio.CancelledError:
                logger.info("Background task %s cancelled", task_id)
                raise
            except Exception as e:
                logger.error(
                    "Background task %s failed after %.2fs: %s",
                    task_id,
                    time.time() - start_time,
                    e,
                    exc_info=True,
                )
                return None
            logger.debug("Background task %s completed in %.2fs", task_id, time.time() - start_time)
            return result

        task = asyncio.create_task(wrapper(), name=task_id)
        self.running_tasks[task_id] = task
        task.add_done_callback(lambda t: self.running_tasks.pop(task_id, None))
        return task

    def get_running_tasks(self) -> Dict[str, asyncio.Task]:
        return self.running_tasks.copy()

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every task spawned so far, including ones they spawn."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            pending = [task for task in self.running_tasks.values() if not task.done()]
            if not pending:
                return
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return
            await asyncio.wait(pending, timeout=remaining)

    async def shutdown(self) -> None:
        """Cancel outstanding tasks; called on application exit."""
        tasks = list(self.running_tasks.values())
        if not tasks:
            return
        logger.info("Cancelling %s background task(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.running_tasks.clear()


_background_task_service: Optional[BackgroundTaskService] = None


def get_background_task_service() -> BackgroundTaskService:
    global _background_task_service
    if _background_task_service is None:
        _background_task_service = BackgroundTaskService()
    return _background_task_service
