from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, TypeVar

from web3 import Web3

from wallet_tracker.accumulator import BoundedAccumulator
from wallet_tracker.chains import ChainProfile, build_candidates
from wallet_tracker.config import TrackerConfig
from wallet_tracker.context import request_deadline
from wallet_tracker.errors import UpstreamError, ValidationError
from wallet_tracker.filters import FilterPipeline
from wallet_tracker.inflight import InflightRegistry
from wallet_tracker.logging_utils import log_message
from wallet_tracker.models import LogScanResult, NativeScanResult, ScannedRange
from wallet_tracker.providers.chain_client import ChainClient
from wallet_tracker.providers.probe import probe_rpc
from wallet_tracker.providers.selector import ActiveProviders, select_providers
from wallet_tracker.scanner import scan_approval_logs, scan_native, scan_transfer_logs
from wallet_tracker.token_meta import TokenMetaCache

T = TypeVar("T")


# --------------------------------------------------------------- validation
def require_address(value: Any, *, what: str = "address") -> str:
    """Validate ``value`` and return its EIP-55 form (bare 40-hex input gains the 0x prefix)."""
    if not isinstance(value, str) or not Web3.is_address(value):
        if what == "token":
            raise ValidationError("Query param 'token' is required and must be a valid ERC-20 contract address.")
        raise ValidationError(f"Invalid {what}: {value}")
    return Web3.to_checksum_address(value)


def bounded_count(value: Optional[int], *, default: int, cap: int, name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{name}' must be an integer")
    if value < 1:
        raise ValidationError(f"'{name}' must be >= 1")
    return min(value, cap)


def block_bound(value: Optional[int], *, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{name}' must be an integer block number")
    if value < 0:
        raise ValidationError(f"'{name}' must be >= 0")
    return value


def check_range(from_block: int, to_block: int) -> None:
    if from_block > to_block:
        raise ValidationError("'fromBlock' must be <= 'toBlock'")


class WalletTracker:
    """
    The chain-access core: owns the active providers, the metadata cache and
    the in-flight registry, and exposes the scan operations the shell calls.
    Every scan runs under the configured request deadline and identical
    concurrent scans share one execution.
    """

    def __init__(
        self,
        config: TrackerConfig,
        providers: ActiveProviders,
        *,
        meta_cache: Optional[TokenMetaCache] = None,
        inflight: Optional[InflightRegistry] = None,
    ) -> None:
        self.config = config
        self.providers = providers
        self.filters = FilterPipeline(config.filters)
        self.meta = meta_cache or TokenMetaCache(
            providers,
            ttl_sec=config.token_meta_ttl_sec,
            capacity=config.token_meta_cache_size,
        )
        self.inflight = inflight or InflightRegistry()

    @classmethod
    async def start(
        cls,
        config: TrackerConfig,
        *,
        client_factory: Optional[Callable[[str, ChainProfile], Any]] = None,
        probe: Callable[..., Awaitable[Any]] = probe_rpc,
        log: Callable[..., None] = log_message,
    ) -> "WalletTracker":
        """Probe every enabled chain once and return a tracker bound to the winners."""
        if client_factory is None:
            def client_factory(url: str, profile: ChainProfile) -> ChainClient:
                return ChainClient(url, poa=profile.poa, http_timeout=config.rpc_http_timeout_sec)

        candidates = build_candidates(config.rpc_overrides)
        providers = await select_providers(
            config.watch_chains,
            candidates,
            client_factory,
            probe=probe,
            probe_timeout=config.probe_timeout_sec,
            log=log,
        )
        return cls(config, providers)

    async def _run(self, key: Hashable, job: Callable[[], Awaitable[T]]) -> T:
        deadline = self.config.request_deadline_sec

        async def bounded() -> T:
            with request_deadline(deadline):
                return await job()

        return await self.inflight.run(key, bounded)

    # ------------------------------------------------------------------ scans
    async def scan_native(
        self,
        chain: str,
        address: str,
        *,
        blocks: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> NativeScanResult:
        address = require_address(address)
        provider = self.providers.get(chain)
        lim = self.config.limits
        window = bounded_count(blocks, default=lim.native_window_default, cap=lim.native_window_cap, name="blocks")
        cap = bounded_count(limit, default=lim.native_limit_default, cap=lim.native_limit_cap, name="limit")
        chain_l = provider.chain

        async def job() -> NativeScanResult:
            acc: BoundedAccumulator = BoundedAccumulator(cap)
            scanned = await scan_native(
                provider.client,
                chain=chain_l,
                address=address,
                window=window,
                filters=self.filters,
                acc=acc,
            )
            return NativeScanResult(chain=chain_l, address=address, scanned=scanned, items=acc.items)

        return await self._run(("native", chain_l, address.lower(), window, cap), job)

    async def scan_erc20_transfers(
        self,
        chain: str,
        address: str,
        token: str,
        *,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> LogScanResult:
        return await self._scan_logs("transfers", chain, address, token, from_block, to_block, limit)

    async def scan_erc20_approvals(
        self,
        chain: str,
        address: str,
        token: str,
        *,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> LogScanResult:
        return await self._scan_logs("approvals", chain, address, token, from_block, to_block, limit)

    async def _scan_logs(
        self,
        kind: str,
        chain: str,
        address: str,
        token: Any,
        from_block: Optional[int],
        to_block: Optional[int],
        limit: Optional[int],
    ) -> LogScanResult:
        address = require_address(address)
        provider = self.providers.get(chain)
        token = require_address(token, what="token")
        lo = block_bound(from_block, name="fromBlock")
        hi = block_bound(to_block, name="toBlock")
        if lo is not None and hi is not None:
            check_range(lo, hi)
        lim = self.config.limits
        cap = bounded_count(limit, default=lim.log_limit_default, cap=lim.log_limit_cap, name="limit")
        chain_l = provider.chain
        client = provider.client

        async def job() -> LogScanResult:
            meta = await self.meta.get_meta(chain_l, token)
            start, end = lo, hi
            if start is None or end is None:
                latest = await client.block_number()
                if start is None:
                    start = max(0, latest - lim.log_lookback_default)
                if end is None:
                    end = latest
            check_range(start, end)
            acc: BoundedAccumulator = BoundedAccumulator(cap, exact=lim.exact_limit)
            scan = scan_transfer_logs if kind == "transfers" else scan_approval_logs
            items = await scan(
                client,
                chain=chain_l,
                address=address,
                token=token,
                meta=meta,
                from_block=start,
                to_block=end,
                filters=self.filters,
                acc=acc,
                chunk_size=lim.log_chunk_blocks,
            )
            return LogScanResult(
                chain=chain_l,
                address=address,
                token=token,
                token_meta=meta,
                scanned=ScannedRange(from_block=start, to_block=end),
                items=items,
            )

        key = (kind, chain_l, address.lower(), token.lower(), lo, hi, cap)
        return await self._run(key, job)

    # -------------------------------------------------------------- snapshots
    async def networks(self) -> Dict[str, Dict[str, Any]]:
        """Live view of every active chain: tip height and the node's chain id."""

        async def one(provider) -> Dict[str, Any]:
            latest, chain_id = await asyncio.gather(
                provider.client.block_number(), provider.client.chain_id(), return_exceptions=True
            )
            for outcome in (latest, chain_id):
                if isinstance(outcome, UpstreamError):
                    return {"rpcOk": False, "error": str(outcome)}
                if isinstance(outcome, BaseException):
                    raise outcome
            return {
                "chainId": int(chain_id),
                "latestBlock": int(latest),
                "nativeSymbol": provider.profile.native_symbol,
                "blockTimeHint": provider.profile.block_hint,
                "rpcOk": True,
                "rpcUrl": provider.url,
            }

        providers = list(self.providers)
        with request_deadline(self.config.request_deadline_sec):
            rows = await asyncio.gather(*(one(p) for p in providers))
        return {p.chain: row for p, row in zip(providers, rows)}

    def health(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "chains": self.providers.chains,
            "rpc": self.providers.chosen_urls(),
            "probes": self.providers.ledger.snapshot(),
            "config": {
                "WATCH_CHAINS": list(self.config.watch_chains),
                **self.config.filters.as_dict(),
                "EXACT_LIMIT": self.config.limits.exact_limit,
            },
        }


__all__ = [
    "WalletTracker",
    "require_address",
    "bounded_count",
    "block_bound",
    "check_range",
]
