import os

import pytest

_TRACKER_ENV = (
    "WATCH_CHAINS",
    "ETH_RPC",
    "BSC_RPC",
    "BASE_RPC",
    "ALLOW_ALL_TOKENS",
    "SKIP_ZERO_VALUE",
    "MIN_NATIVE_WEI",
    "MIN_ERC20_RAW",
    "EXACT_LIMIT",
    "WALLET_TRACKER_ENV",
)


def pytest_configure():
    os.environ.setdefault("LOG_LEVEL", "warning")


@pytest.fixture(autouse=True)
def _clean_tracker_env(monkeypatch):
    for key in _TRACKER_ENV:
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith(("TOKEN_WHITELIST_", "TOKEN_BLACKLIST_")):
            monkeypatch.delenv(key, raising=False)
