from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from wallet_tracker.chains import CHAIN_PROFILES, RPC_OVERRIDE_ENV, normalize_chain
from wallet_tracker.errors import ConfigError

_TRUE_SET = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class FilterConfig:
    """Anti-spam / dust thresholds shared by every scan in the process."""

    skip_zero_value: bool = True
    min_native_wei: int = 0
    min_erc20_raw: int = 0
    allow_all_tokens: bool = False
    token_whitelist: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    token_blacklist: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, object]:
        return {
            "SKIP_ZERO_VALUE": self.skip_zero_value,
            "MIN_NATIVE_WEI": str(self.min_native_wei),
            "MIN_ERC20_RAW": str(self.min_erc20_raw),
            "ALLOW_ALL_TOKENS": self.allow_all_tokens,
            "TOKEN_WHITELIST": {k: sorted(v) for k, v in self.token_whitelist.items() if v},
            "TOKEN_BLACKLIST": {k: sorted(v) for k, v in self.token_blacklist.items() if v},
        }


@dataclass(frozen=True)
class ScanLimits:
    native_window_default: int = 800
    native_window_cap: int = 5000
    native_limit_default: int = 200
    native_limit_cap: int = 1000
    log_lookback_default: int = 200_000
    log_limit_default: int = 500
    log_limit_cap: int = 2000
    log_chunk_blocks: int = 10_000
    exact_limit: bool = False


@dataclass(frozen=True)
class TrackerConfig:
    host: str = "0.0.0.0"
    port: int = 8787
    watch_chains: Tuple[str, ...] = ("eth", "base", "bsc")
    rpc_overrides: Mapping[str, str] = field(default_factory=dict)
    filters: FilterConfig = field(default_factory=FilterConfig)
    limits: ScanLimits = field(default_factory=ScanLimits)
    probe_timeout_sec: float = 4.0
    rpc_http_timeout_sec: float = 20.0
    request_deadline_sec: float = 60.0
    token_meta_ttl_sec: float = 6 * 60 * 60
    token_meta_cache_size: int = 4096
    cors_origins: Tuple[str, ...] = ("*",)
    environment: str = "development"
    log_level: str = "info"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> "TrackerConfig":
        """
        Build the config from environment variables. When ``environ`` is not
        given, a ``.env`` discovered from the working directory is loaded first
        (existing variables win).
        """
        if environ is None:
            if dotenv:
                path = find_dotenv(usecwd=True)
                if path:
                    load_dotenv(path, override=False)
            environ = os.environ
        env = environ

        watch = tuple(
            c for c in (normalize_chain(s) for s in env.get("WATCH_CHAINS", "eth,base,bsc").split(",")) if c
        )

        overrides: Dict[str, str] = {}
        for chain, var in RPC_OVERRIDE_ENV.items():
            url = (env.get(var) or "").strip()
            if url:
                overrides[chain] = url

        whitelist: Dict[str, FrozenSet[str]] = {}
        blacklist: Dict[str, FrozenSet[str]] = {}
        for chain in sorted(set(CHAIN_PROFILES) | set(watch)):
            whitelist[chain] = _address_set(env.get(f"TOKEN_WHITELIST_{chain.upper()}"))
            blacklist[chain] = _address_set(env.get(f"TOKEN_BLACKLIST_{chain.upper()}"))

        filters = FilterConfig(
            skip_zero_value=(env.get("SKIP_ZERO_VALUE") or "true").strip().lower() != "false",
            min_native_wei=_non_negative_int(env, "MIN_NATIVE_WEI", 0),
            min_erc20_raw=_non_negative_int(env, "MIN_ERC20_RAW", 0),
            allow_all_tokens=(env.get("ALLOW_ALL_TOKENS") or "false").strip().lower() == "true",
            token_whitelist=whitelist,
            token_blacklist=blacklist,
        )
        limits = ScanLimits(exact_limit=(env.get("EXACT_LIMIT") or "").strip().lower() in _TRUE_SET)

        cors = tuple(o.strip().rstrip("/") for o in (env.get("CORS_ORIGINS") or "*").split(",") if o.strip())

        return cls(
            host=(env.get("HOST") or "0.0.0.0").strip(),
            port=_non_negative_int(env, "PORT", 8787),
            watch_chains=watch,
            rpc_overrides=overrides,
            filters=filters,
            limits=limits,
            probe_timeout_sec=_positive_float(env, "RPC_PROBE_TIMEOUT_SEC", 4.0),
            rpc_http_timeout_sec=_positive_float(env, "RPC_HTTP_TIMEOUT_SEC", 20.0),
            request_deadline_sec=_positive_float(env, "REQUEST_DEADLINE_SEC", 60.0),
            token_meta_ttl_sec=_positive_float(env, "TOKEN_META_TTL_SEC", 6 * 60 * 60),
            token_meta_cache_size=max(1, _non_negative_int(env, "TOKEN_META_CACHE_SIZE", 4096)),
            cors_origins=cors,
            environment=(env.get("WALLET_TRACKER_ENV") or "development").strip().lower(),
            log_level=(env.get("LOG_LEVEL") or "info").strip().lower(),
        )


# ------------------------------------------------------------------ helpers
def _address_set(raw: Optional[str]) -> FrozenSet[str]:
    return frozenset(a.strip().lower() for a in (raw or "").split(",") if a.strip())


def _non_negative_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{key} must be >= 0, got {value}")
    return value


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be > 0, got {value}")
    return value


__all__ = ["FilterConfig", "ScanLimits", "TrackerConfig"]
