from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from wallet_tracker.chains import CHAIN_PROFILES, ChainProfile, normalize_chain
from wallet_tracker.errors import ProbeFailure, UnavailableChainError
from wallet_tracker.logging_utils import log_message
from wallet_tracker.providers.probe import PROBE_TIMEOUT_SEC, probe_rpc
from wallet_tracker.providers.rpc_health import RpcHealthLedger

LogSink = Callable[..., None]
Prober = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ActiveProvider:
    chain: str
    url: str
    client: Any
    profile: ChainProfile


class ActiveProviders:
    """Chain -> live provider map produced once at startup; read-only afterwards."""

    def __init__(self, providers: Mapping[str, ActiveProvider], ledger: Optional[RpcHealthLedger] = None) -> None:
        self._providers: Dict[str, ActiveProvider] = dict(providers)
        self.ledger = ledger or RpcHealthLedger()

    def __contains__(self, chain: object) -> bool:
        return normalize_chain(chain) in self._providers  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[ActiveProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def chains(self) -> List[str]:
        return list(self._providers)

    def get(self, chain: Optional[str]) -> ActiveProvider:
        key = normalize_chain(chain)
        provider = self._providers.get(key)
        if provider is None:
            available = ", ".join(self._providers) or "(none)"
            raise UnavailableChainError(f'Unsupported or unavailable chain "{chain}". Available: {available}')
        return provider

    def chosen_urls(self) -> Dict[str, str]:
        return {chain: p.url for chain, p in self._providers.items()}


class ProviderSelector:
    """
    Walks each enabled chain's candidate list in order and binds the first
    endpoint that answers the liveness probe. Chains are handled one after
    another and candidates strictly in sequence: the goal is the first
    reachable endpoint, not the fastest one.
    """

    def __init__(
        self,
        candidates: Mapping[str, List[str]],
        client_factory: Callable[[str, ChainProfile], Any],
        *,
        profiles: Optional[Mapping[str, ChainProfile]] = None,
        probe: Prober = probe_rpc,
        probe_timeout: float = PROBE_TIMEOUT_SEC,
        log: LogSink = log_message,
    ) -> None:
        self.candidates = {normalize_chain(k): list(v) for k, v in candidates.items()}
        self.client_factory = client_factory
        self.profiles = dict(CHAIN_PROFILES if profiles is None else profiles)
        self.probe = probe
        self.probe_timeout = float(probe_timeout)
        self.log = log
        self.ledger = RpcHealthLedger()

    async def select(self, enabled_chains: Iterable[str]) -> ActiveProviders:
        chosen: Dict[str, ActiveProvider] = {}
        for raw_chain in enabled_chains:
            chain = normalize_chain(raw_chain)
            if not chain or chain in chosen:
                continue
            profile = self.profiles.get(chain)
            if profile is None:
                self.log("rpc", f"[{chain}] unknown chain; skipping", severity="warning")
                continue
            urls = self.candidates.get(chain) or []
            if not urls:
                self.log("rpc", f"[{chain}] no RPC candidates; skipping", severity="warning")
                continue
            provider = await self._select_chain(chain, profile, urls)
            if provider is None:
                self.log("rpc", f"[{chain}] ERROR: could not initialize any RPC", severity="error")
                continue
            chosen[chain] = provider
        return ActiveProviders(chosen, ledger=self.ledger)

    async def _select_chain(self, chain: str, profile: ChainProfile, urls: List[str]) -> Optional[ActiveProvider]:
        def factory(url: str) -> Any:
            return self.client_factory(url, profile)

        for url in urls:
            started = time.perf_counter()
            try:
                client = await self.probe(url, factory, timeout=self.probe_timeout)
            except ProbeFailure as exc:
                self.ledger.record_failure(chain, url, exc.reason, time.perf_counter() - started)
                self.log("rpc", f"[{chain}] RPC failed probe: {url}", severity="warning", details={"reason": exc.reason})
                continue
            self.ledger.record_success(chain, url, time.perf_counter() - started)
            self.log("rpc", f"[{chain}] using RPC: {url}")
            return ActiveProvider(chain=chain, url=url, client=client, profile=profile)
        return None


async def select_providers(
    enabled_chains: Iterable[str],
    candidates: Mapping[str, List[str]],
    client_factory: Callable[[str, ChainProfile], Any],
    **kwargs: Any,
) -> ActiveProviders:
    return await ProviderSelector(candidates, client_factory, **kwargs).select(enabled_chains)


__all__ = ["ActiveProvider", "ActiveProviders", "ProviderSelector", "select_providers"]
