from __future__ import annotations

import json

from rpc_fakes import OTHER, WALLET, FakeChainClient, block_with, make_tracker, native_tx
from wallet_tracker import cli
from wallet_tracker.errors import UpstreamError


def _patch_start(monkeypatch, client: FakeChainClient, seen: list) -> None:
    async def fake_start(config, **kwargs):
        seen.append(config.watch_chains)
        return make_tracker(client, config)

    monkeypatch.setattr(cli.WalletTracker, "start", staticmethod(fake_start))


def test_native_command_prints_json(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    blocks = {50: block_with(50, native_tx(WALLET, OTHER, 3, block=50))}
    seen: list = []
    _patch_start(monkeypatch, FakeChainClient(latest=50, blocks=blocks), seen)

    assert cli.main(["native", "eth", WALLET, "--blocks", "2"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["count"] == 1
    assert payload["items"][0]["isSender"] is True
    assert seen == [("eth",)]


def test_validation_error_exits_2(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    _patch_start(monkeypatch, FakeChainClient(), [])
    assert cli.main(["erc20", "eth", WALLET, "--token", "nope"]) == 2
    assert "'token' is required" in capsys.readouterr().err


def test_upstream_error_exits_1(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    _patch_start(monkeypatch, FakeChainClient(latest=UpstreamError("down")), [])
    assert cli.main(["native", "eth", WALLET]) == 1
    assert "UpstreamError" in capsys.readouterr().err


def test_bad_config_exits_2(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MIN_NATIVE_WEI", "lots")
    assert cli.main(["native", "eth", WALLET]) == 2
    assert "MIN_NATIVE_WEI" in capsys.readouterr().err
