from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class ChainProfile:
    key: str
    chain_id: int
    native_symbol: str
    block_hint: str
    poa: bool = False


CHAIN_PROFILES: Dict[str, ChainProfile] = {
    "eth": ChainProfile(key="eth", chain_id=1, native_symbol="ETH", block_hint="≈12s", poa=False),
    "bsc": ChainProfile(key="bsc", chain_id=56, native_symbol="BNB", block_hint="≈3s", poa=True),
    "base": ChainProfile(key="base", chain_id=8453, native_symbol="ETH", block_hint="≈2s", poa=True),
}

# Tried in order after any configured override.
PUBLIC_RPCS: Dict[str, List[str]] = {
    "eth": [
        "https://rpc.ankr.com/eth",
        "https://cloudflare-eth.com",
        "https://1rpc.io/eth",
    ],
    "bsc": [
        "https://rpc.ankr.com/bsc",
        "https://bsc-dataseed.binance.org",
        "https://bsc-dataseed1.defibit.io",
    ],
    "base": [
        "https://mainnet.base.org",
        "https://base.llamarpc.com",
    ],
}

# Env var holding the optional override for each chain.
RPC_OVERRIDE_ENV: Dict[str, str] = {
    "eth": "ETH_RPC",
    "bsc": "BSC_RPC",
    "base": "BASE_RPC",
}


def normalize_chain(chain: Optional[str]) -> str:
    return str(chain or "").strip().lower()


def _dedupe(urls: Iterable[Optional[str]]) -> List[str]:
    out: List[str] = []
    seen = set()
    for url in urls:
        u = (url or "").strip()
        if not u or u in seen:
            continue
        seen.add(u)
        out.append(u)
    return out


def build_candidates(
    overrides: Optional[Mapping[str, str]] = None,
    *,
    public: Optional[Mapping[str, List[str]]] = None,
) -> Dict[str, List[str]]:
    """
    Return chain -> ordered candidate URLs. A configured override goes first,
    followed by the built-in public endpoints; blanks and repeats are dropped.
    """
    overrides = {normalize_chain(k): v for k, v in (overrides or {}).items()}
    public = PUBLIC_RPCS if public is None else public
    result: Dict[str, List[str]] = {}
    for chain in sorted(set(public) | set(overrides)):
        result[chain] = _dedupe([overrides.get(chain)] + list(public.get(chain, [])))
    return result


__all__ = [
    "ChainProfile",
    "CHAIN_PROFILES",
    "PUBLIC_RPCS",
    "RPC_OVERRIDE_ENV",
    "normalize_chain",
    "build_candidates",
]
