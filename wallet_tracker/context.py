from __future__ import annotations

import asyncio
import contextvars
from contextlib import contextmanager
from typing import Awaitable, Iterator, Optional, TypeVar

from wallet_tracker.errors import UpstreamError

T = TypeVar("T")

# Absolute event-loop time by which the current request must finish.
_DEADLINE: contextvars.ContextVar[Optional[float]] = contextvars.ContextVar("wallet_tracker_deadline", default=None)


@contextmanager
def request_deadline(seconds: Optional[float]) -> Iterator[Optional[float]]:
    """
    Bind a deadline ``seconds`` from now to the current context. Tasks created
    inside the block copy the context, so gathered RPC calls see it too.
    A nested deadline never extends an outer one.
    """
    if seconds is None:
        yield _DEADLINE.get()
        return
    loop = asyncio.get_running_loop()
    deadline = loop.time() + float(seconds)
    outer = _DEADLINE.get()
    if outer is not None:
        deadline = min(deadline, outer)
    token = _DEADLINE.set(deadline)
    try:
        yield deadline
    finally:
        _DEADLINE.reset(token)


def remaining() -> Optional[float]:
    deadline = _DEADLINE.get()
    if deadline is None:
        return None
    return deadline - asyncio.get_running_loop().time()


async def within_deadline(aw: Awaitable[T], *, label: str = "rpc call") -> T:
    """Await ``aw`` bounded by whatever deadline the current request carries."""
    left = remaining()
    if left is None:
        return await aw
    if left <= 0:
        if asyncio.iscoroutine(aw):
            aw.close()
        raise UpstreamError(f"deadline exceeded before {label}")
    try:
        return await asyncio.wait_for(aw, timeout=left)
    except asyncio.TimeoutError as exc:
        raise UpstreamError(f"deadline exceeded during {label}") from exc


__all__ = ["request_deadline", "remaining", "within_deadline"]
