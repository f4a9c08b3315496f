from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Tuple

from aiohttp import test_utils

from rpc_fakes import OTHER, TOKEN, WALLET, FakeChainClient, block_with, make_tracker, native_tx, transfer_log
from wallet_tracker.config import TrackerConfig
from wallet_tracker.errors import UpstreamError
from wallet_tracker.server import create_app


def _get(tracker, path: str, headers: Optional[Dict[str, str]] = None, method: str = "GET") -> Tuple[int, Any, Dict[str, str]]:
    async def runner():
        async with test_utils.TestClient(test_utils.TestServer(create_app(tracker))) as client:
            resp = await client.request(method, path, headers=headers)
            body = await resp.json() if resp.content_type == "application/json" else None
            return resp.status, body, dict(resp.headers)

    return asyncio.run(runner())


def test_native_route_returns_scan() -> None:
    blocks = {100: block_with(100, native_tx(OTHER, WALLET, 10**18, block=100))}
    tracker = make_tracker(FakeChainClient(latest=100, blocks=blocks))
    status, body, _ = _get(tracker, f"/address/ETH/{WALLET}/native?blocks=3")
    assert status == 200
    assert body["chain"] == "eth"
    assert body["scanned"] == {"from": 98, "to": 100, "blocks": 3}
    assert body["items"][0]["valueFormatted"] == "1.0"


def test_erc20_route_returns_token_meta() -> None:
    client = FakeChainClient(logs=[transfer_log(OTHER, WALLET, 1_000_000, block=7)])
    status, body, _ = _get(make_tracker(client), f"/address/eth/{WALLET}/erc20?token={TOKEN}&fromBlock=0&toBlock=10")
    assert status == 200
    assert body["tokenMeta"] == {"symbol": "USDC", "name": "USD Coin", "decimals": 6}
    assert body["count"] == 1
    assert body["items"][0]["valueFormatted"] == "1.0"


def test_validation_errors_map_to_400() -> None:
    tracker = make_tracker(FakeChainClient())
    for path in (
        "/address/eth/0xnothex/native",
        f"/address/eth/{WALLET}/native?limit=abc",
        f"/address/eth/{WALLET}/erc20",
        f"/address/eth/{WALLET}/approvals?token={TOKEN}&fromBlock=9&toBlock=1",
        f"/address/polygon/{WALLET}/native",
    ):
        status, body, _ = _get(tracker, path)
        assert status == 400, path
        assert body["ok"] is False
        assert body["status"] == 400
        assert body["error"]


def test_unknown_chain_message_lists_available() -> None:
    _, body, _ = _get(make_tracker(FakeChainClient()), f"/address/polygon/{WALLET}/native")
    assert body["error"] == 'Unsupported or unavailable chain "polygon". Available: eth'


def test_upstream_failure_maps_to_502() -> None:
    tracker = make_tracker(FakeChainClient(latest=UpstreamError("rpc exploded")))
    status, body, _ = _get(tracker, f"/address/eth/{WALLET}/native")
    assert status == 502
    assert "rpc exploded" in body["error"]
    assert "stack" in body


def test_stack_hidden_in_production() -> None:
    config = TrackerConfig(watch_chains=("eth",), environment="production")
    tracker = make_tracker(FakeChainClient(latest=UpstreamError("rpc exploded")), config)
    _, body, _ = _get(tracker, f"/address/eth/{WALLET}/native")
    assert "stack" not in body


def test_health_and_networks() -> None:
    tracker = make_tracker(FakeChainClient(url="https://rpc.fake/eth", latest=123, chain_id=1))
    status, body, _ = _get(tracker, "/health")
    assert status == 200
    assert body["ok"] is True
    assert body["chains"] == ["eth"]
    assert body["rpc"] == {"eth": "https://rpc.fake/eth"}
    assert body["config"]["SKIP_ZERO_VALUE"] is True

    status, body, _ = _get(tracker, "/networks")
    assert status == 200
    assert body["eth"]["latestBlock"] == 123
    assert body["eth"]["chainId"] == 1
    assert body["eth"]["nativeSymbol"] == "ETH"
    assert body["eth"]["rpcOk"] is True


def test_networks_reports_failed_rpc_per_chain() -> None:
    tracker = make_tracker(FakeChainClient(latest=UpstreamError("timeout")))
    status, body, _ = _get(tracker, "/networks")
    assert status == 200
    assert body["eth"] == {"rpcOk": False, "error": "timeout"}


def test_cors_reflects_origin_and_answers_preflight() -> None:
    tracker = make_tracker(FakeChainClient())
    _, _, headers = _get(tracker, "/health", headers={"Origin": "https://app.example"})
    assert headers["Access-Control-Allow-Origin"] == "https://app.example"

    status, _, headers = _get(tracker, "/health", headers={"Origin": "https://app.example"}, method="OPTIONS")
    assert status == 204
    assert headers["Access-Control-Allow-Methods"] == "GET,OPTIONS"


def test_cors_allow_list_rejects_other_origins() -> None:
    config = TrackerConfig(watch_chains=("eth",), cors_origins=("https://ok.example",))
    tracker = make_tracker(FakeChainClient(), config)
    _, _, headers = _get(tracker, "/health", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in headers


def test_networks_reports_chain_id_failure_without_stray_errors() -> None:
    tracker = make_tracker(FakeChainClient(latest=5, chain_id=UpstreamError("no chain id")))
    status, body, _ = _get(tracker, "/networks")
    assert status == 200
    assert body["eth"] == {"rpcOk": False, "error": "no chain id"}
