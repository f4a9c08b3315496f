from __future__ import annotations

import asyncio
from typing import Any, Callable

from wallet_tracker.errors import ProbeFailure

PROBE_TIMEOUT_SEC = 4.0


async def probe_rpc(url: str, client_factory: Callable[[str], Any], *, timeout: float = PROBE_TIMEOUT_SEC) -> Any:
    """
    Build a client for ``url`` and ask it for the current block height.
    Returns the client when a numeric height arrives within ``timeout``;
    otherwise raises ProbeFailure. No retries: the selector moves on to the
    next candidate instead.
    """
    try:
        client = client_factory(url)
    except Exception as exc:
        raise ProbeFailure(url, f"client init failed: {exc}") from exc
    try:
        height = await asyncio.wait_for(client.block_number(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProbeFailure(url, f"timeout after {timeout:g}s") from exc
    except Exception as exc:
        raise ProbeFailure(url, f"{type(exc).__name__}: {exc}") from exc
    if isinstance(height, bool) or not isinstance(height, int):
        raise ProbeFailure(url, f"non-numeric block height: {height!r}")
    return client


__all__ = ["PROBE_TIMEOUT_SEC", "probe_rpc"]
