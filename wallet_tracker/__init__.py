from wallet_tracker.config import FilterConfig, ScanLimits, TrackerConfig
from wallet_tracker.errors import (
    ConfigError,
    ProbeFailure,
    UnavailableChainError,
    UpstreamError,
    ValidationError,
    WalletTrackerError,
)
from wallet_tracker.tracker import WalletTracker

__version__ = "0.1.0"

__all__ = [
    "FilterConfig",
    "ScanLimits",
    "TrackerConfig",
    "WalletTracker",
    "WalletTrackerError",
    "ValidationError",
    "UnavailableChainError",
    "UpstreamError",
    "ProbeFailure",
    "ConfigError",
]
