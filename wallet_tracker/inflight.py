from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class InflightRegistry:
    """
    Coalesces identical concurrent scans. The first caller for a key starts
    the work as a task; later callers await the same task until it settles,
    then the key is released so the next request scans fresh.

    A cancelled caller only detaches itself. When the last waiter for a key
    is cancelled the scan task is cancelled too, so an abandoned request
    stops issuing RPC calls.
    """

    def __init__(self) -> None:
        self._pending: Dict[Hashable, "asyncio.Task[Any]"] = {}
        self._waiters: Dict["asyncio.Task[Any]", int] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def waiters(self, key: Hashable) -> int:
        task = self._pending.get(key)
        return self._waiters.get(task, 0) if task is not None else 0

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        else:
            logger.debug("joining in-flight scan %s", key)
        self._waiters[task] = self._waiters.get(task, 0) + 1
        cancelled = False
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            left = self._waiters.get(task, 1) - 1
            if left > 0:
                self._waiters[task] = left
            else:
                self._waiters.pop(task, None)
                if cancelled and not task.done():
                    logger.debug("last waiter left; cancelling scan %s", key)
                    if self._pending.get(key) is task:
                        # a new request for this key must start fresh, not join a dying task
                        del self._pending[key]
                    task.cancel()

    def _release(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # mark retrieved so an unawaited failure does not warn at GC
            task.exception()


__all__ = ["InflightRegistry"]
