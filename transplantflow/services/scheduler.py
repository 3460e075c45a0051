"""
Cancellable keyed scheduling for debounced writes.

``schedule(key, delay, action)`` replaces any task still waiting under the same
key. Once its delay has elapsed a task is no longer pending: a later schedule
for that key leaves the running action alone and simply queues after it.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


class DebounceScheduler:
    def __init__(self):
        self._pending: Dict[Hashable, asyncio.Task] = {}
        self._live: Dict[asyncio.Task, Hashable] = {}

    def schedule(self, key: Hashable, delay: float, action: Action) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._run(key, delay, action), name=f"debounce:{key}")
        self._pending[key] = task
        self._live[task] = key
        task.add_done_callback(self._on_done)
        return task

    async def _run(self, key: Hashable, delay: float, action: Action) -> Any:
        await asyncio.sleep(delay)
        if self._pending.get(key) is asyncio.current_task():
            del self._pending[key]
        return await action()

    def _on_done(self, task: asyncio.Task) -> None:
        key = self._live.pop(task, None)
        if self._pending.get(key) is task:
            del self._pending[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled task %s failed: %s", key, exc, exc_info=exc)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def cancel(self, key: Hashable) -> bool:
        task = self._pending.pop(key, None)
        if task is None:
            return False
        task.cancel()
        logger.debug("Cancelled pending task %s", key)
        return True

    def cancel_prefix(self, prefix: Tuple) -> int:
        """Cancel every pending task whose tuple key starts with ``prefix``."""
        keys = [k for k in self._pending if isinstance(k, tuple) and k[: len(prefix)] == prefix]
        for key in keys:
            self.cancel(key)
        if keys:
            logger.info("Cancelled %d pending task(s) under %s", len(keys), prefix)
        return len(keys)

    def cancel_all(self) -> int:
        return self.cancel_prefix(())

    async def join(self, prefix: Tuple = ()) -> None:
        """
        Wait until no task under ``prefix`` is pending or running, including
        tasks scheduled by the ones being waited on. Re-raises the first failure.
        """
        while True:
            tasks = [
                t for t, k in self._live.items()
                if isinstance(k, tuple) and k[: len(prefix)] == prefix
            ]
            if not tasks:
                return
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    raise result
