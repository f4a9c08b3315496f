from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from wallet_tracker.chains import normalize_chain
from wallet_tracker.errors import UpstreamError
from wallet_tracker.models import TokenMeta
from wallet_tracker.providers.selector import ActiveProviders

logger = logging.getLogger(__name__)

META_TTL_SEC = 6 * 60 * 60
META_CACHE_SIZE = 4096

FALLBACK_SYMBOL = "UNK"
FALLBACK_NAME = "Unknown Token"
FALLBACK_DECIMALS = 18


@dataclass(frozen=True)
class _Entry:
    meta: TokenMeta
    ts: float


def _text(value: Any, fallback: str) -> str:
    if isinstance(value, (bytes, bytearray)):
        # bytes32 symbol()/name() on some legacy tokens
        value = bytes(value).decode("utf-8", errors="ignore").strip("\x00").strip()
    text = str(value) if value is not None else ""
    return text or fallback


def _decimals(value: Any) -> int:
    try:
        dec = int(value)
    except (TypeError, ValueError):
        return FALLBACK_DECIMALS
    return dec if dec > 0 else FALLBACK_DECIMALS


class TokenMetaCache:
    """
    (chain, contract) -> symbol/name/decimals with a freshness window and an
    LRU capacity bound. Misses fetch the three fields concurrently through the
    chain's active provider; each field falls back on its own when the call
    fails, so a half-broken token still yields usable metadata. Concurrent
    misses on one key may fetch twice; the last write wins.
    """

    def __init__(
        self,
        providers: ActiveProviders,
        *,
        ttl_sec: float = META_TTL_SEC,
        capacity: int = META_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.providers = providers
        self.ttl_sec = float(ttl_sec)
        self.capacity = int(capacity)
        self.clock = clock
        self.fetches = 0
        self._entries: "OrderedDict[Tuple[str, str], _Entry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    @staticmethod
    def _key(chain: str, contract: str) -> Tuple[str, str]:
        return normalize_chain(chain), str(contract or "").strip().lower()

    def peek(self, chain: str, contract: str) -> Optional[TokenMeta]:
        """Fresh cached value or None; never touches the network."""
        key = self._key(chain, contract)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.ts >= self.ttl_sec:
            return None
        return entry.meta

    async def get_meta(self, chain: str, contract: str) -> TokenMeta:
        key = self._key(chain, contract)
        hit = self.peek(chain, contract)
        if hit is not None:
            self._entries.move_to_end(key)
            return hit

        provider = self.providers.get(chain)
        self.fetches += 1
        symbol, name, decimals = await asyncio.gather(
            self._field(provider.client, contract, "symbol", FALLBACK_SYMBOL),
            self._field(provider.client, contract, "name", FALLBACK_NAME),
            self._field(provider.client, contract, "decimals", FALLBACK_DECIMALS),
        )
        meta = TokenMeta(
            symbol=_text(symbol, FALLBACK_SYMBOL),
            name=_text(name, FALLBACK_NAME),
            decimals=_decimals(decimals),
        )
        self._store(key, meta)
        return meta

    async def _field(self, client: Any, contract: str, fn_name: str, fallback: Any) -> Any:
        try:
            return await client.erc20_call(contract, fn_name)
        except UpstreamError as exc:
            logger.debug("%s() failed for %s, using %r: %s", fn_name, contract, fallback, exc)
            return fallback

    def _store(self, key: Tuple[str, str], meta: TokenMeta) -> None:
        self._entries[key] = _Entry(meta=meta, ts=self.clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("evicted token meta %s", evicted)


__all__ = [
    "TokenMetaCache",
    "META_TTL_SEC",
    "META_CACHE_SIZE",
    "FALLBACK_SYMBOL",
    "FALLBACK_NAME",
    "FALLBACK_DECIMALS",
]
