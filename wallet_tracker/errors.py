from __future__ import annotations

from typing import Optional


class WalletTrackerError(Exception):
    """Base class for everything the tracker raises on purpose."""


class ValidationError(WalletTrackerError):
    """The caller sent something malformed (address, token, block range, limit)."""


class UnavailableChainError(WalletTrackerError):
    """The chain is unknown, not enabled, or has no live RPC for this process."""


class UpstreamError(WalletTrackerError):
    """An RPC call failed or ran past the request deadline."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ProbeFailure(WalletTrackerError):
    """A candidate endpoint did not answer the liveness probe."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ConfigError(WalletTrackerError):
    """Startup configuration could not be parsed."""


def is_client_error(exc: BaseException) -> bool:
    """Caller faults (bad input) as opposed to environment faults (RPC, config)."""
    return isinstance(exc, ValidationError)


__all__ = [
    "WalletTrackerError",
    "ValidationError",
    "UnavailableChainError",
    "UpstreamError",
    "ProbeFailure",
    "ConfigError",
    "is_client_error",
]
