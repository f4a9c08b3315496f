from __future__ import annotations

import asyncio
from typing import List

import pytest

from rpc_fakes import FakeChainClient
from wallet_tracker.chains import build_candidates
from wallet_tracker.config import TrackerConfig
from wallet_tracker.errors import ProbeFailure, UnavailableChainError, UpstreamError
from wallet_tracker.providers.probe import probe_rpc
from wallet_tracker.providers.selector import select_providers
from wallet_tracker.tracker import WalletTracker

URLS = ["https://dead.example", "https://slow.example", "https://live.example"]


def _factory(url: str, profile=None) -> FakeChainClient:
    if "dead" in url:
        return FakeChainClient(url, latest=UpstreamError("connection refused"))
    if "slow" in url:
        return FakeChainClient(url, latest=1, delay=1.0)
    if "garbage" in url:
        return FakeChainClient(url, latest="0x10")
    return FakeChainClient(url, latest=19_000_000)


class _LogSink:
    def __init__(self) -> None:
        self.lines: List[str] = []

    def __call__(self, source: str, message: str, **kwargs) -> None:
        self.lines.append(message)


def test_probe_returns_client_on_numeric_height() -> None:
    client = asyncio.run(probe_rpc("https://live.example", _factory, timeout=0.5))
    assert client.url == "https://live.example"


@pytest.mark.parametrize("url, reason", [
    ("https://dead.example", "connection refused"),
    ("https://slow.example", "timeout"),
    ("https://garbage.example", "non-numeric"),
])
def test_probe_failures_carry_reason(url: str, reason: str) -> None:
    with pytest.raises(ProbeFailure) as info:
        asyncio.run(probe_rpc(url, _factory, timeout=0.05))
    assert info.value.url == url
    assert reason in info.value.reason


def test_selector_binds_first_live_candidate() -> None:
    sink = _LogSink()
    providers = asyncio.run(
        select_providers(["eth"], {"eth": URLS}, _factory, probe_timeout=0.05, log=sink)
    )
    assert providers.chosen_urls() == {"eth": "https://live.example"}
    assert providers.ledger.failed_urls("eth") == URLS[:2]
    assert [a.ok for a in providers.ledger.attempts("eth")] == [False, False, True]
    assert sink.lines[-1] == "[eth] using RPC: https://live.example"
    assert sum("failed probe" in line for line in sink.lines) == 2


def test_selector_stops_at_first_success() -> None:
    seen: List[str] = []

    def factory(url: str, profile) -> FakeChainClient:
        seen.append(url)
        return FakeChainClient(url)

    asyncio.run(select_providers(["eth"], {"eth": ["https://a", "https://b"]}, factory, log=_LogSink()))
    assert seen == ["https://a"]


def test_chain_with_no_live_rpc_is_left_out() -> None:
    sink = _LogSink()
    candidates = {"eth": ["https://live.example"], "bsc": ["https://dead.example"]}
    providers = asyncio.run(
        select_providers(["eth", "bsc", "polygon"], candidates, _factory, probe_timeout=0.05, log=sink)
    )
    assert providers.chains == ["eth"]
    assert "[bsc] ERROR: could not initialize any RPC" in sink.lines
    assert "[polygon] unknown chain; skipping" in sink.lines
    with pytest.raises(UnavailableChainError) as info:
        providers.get("bsc")
    assert str(info.value) == 'Unsupported or unavailable chain "bsc". Available: eth'


def test_build_candidates_puts_override_first_and_dedupes() -> None:
    public = {"eth": ["https://a", "https://b"], "base": ["https://c"]}
    result = build_candidates({"ETH": "https://b", "base": "  "}, public=public)
    assert result["eth"] == ["https://b", "https://a"]
    assert result["base"] == ["https://c"]


def test_tracker_start_probes_override_first() -> None:
    config = TrackerConfig(watch_chains=("eth",), rpc_overrides={"eth": "https://live.example"})
    tracker = asyncio.run(WalletTracker.start(config, client_factory=_factory, log=_LogSink()))
    assert tracker.providers.chosen_urls() == {"eth": "https://live.example"}
    assert len(tracker.providers.ledger.attempts("eth")) == 1
