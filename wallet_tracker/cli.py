from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from typing import Any, Dict, List, Optional

from aiohttp import web

from wallet_tracker.config import TrackerConfig
from wallet_tracker.errors import ConfigError, WalletTrackerError, is_client_error
from wallet_tracker.logging_utils import configure_logging
from wallet_tracker.server import create_app
from wallet_tracker.tracker import WalletTracker


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wallet-tracker", description="Multi-chain wallet activity scanner")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (default HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Port (default PORT or 8787)")

    for name, help_text in (
        ("native", "Scan recent blocks for native transfers"),
        ("erc20", "Scan ERC-20 Transfer logs for one token"),
        ("approvals", "Scan ERC-20 Approval logs for one token"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("chain")
        p.add_argument("address")
        p.add_argument("--limit", type=int)
        if name == "native":
            p.add_argument("--blocks", type=int, help="Look-back window in blocks")
        else:
            p.add_argument("--token", required=True, help="ERC-20 contract address")
            p.add_argument("--from-block", type=int)
            p.add_argument("--to-block", type=int)
    return parser


async def _serve_app(config: TrackerConfig, host: str, port: int) -> web.Application:
    tracker = await WalletTracker.start(config)
    app = create_app(tracker)

    async def banner(_app: web.Application) -> None:
        print(f"Server on http://{'localhost' if host in ('0.0.0.0', '') else host}:{port}", flush=True)

    app.on_startup.append(banner)
    return app


async def _one_shot(args: argparse.Namespace, config: TrackerConfig) -> Dict[str, Any]:
    chain = args.chain.lower()
    # only the requested chain needs a live provider
    scoped = dataclasses.replace(config, watch_chains=(chain,))
    tracker = await WalletTracker.start(scoped)
    if args.command == "native":
        result = await tracker.scan_native(chain, args.address, blocks=args.blocks, limit=args.limit)
    elif args.command == "erc20":
        result = await tracker.scan_erc20_transfers(
            chain, args.address, args.token, from_block=args.from_block, to_block=args.to_block, limit=args.limit
        )
    else:
        result = await tracker.scan_erc20_approvals(
            chain, args.address, args.token, from_block=args.from_block, to_block=args.to_block, limit=args.limit
        )
    return result.as_dict()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        config = TrackerConfig.from_env()
    except ConfigError as exc:
        print(f"[wallet-tracker] invalid configuration: {exc}", file=sys.stderr)
        return 2
    configure_logging(config.log_level)

    if args.command == "serve":
        host = args.host or config.host
        port = args.port if args.port is not None else config.port
        web.run_app(_serve_app(config, host, port), host=host, port=port, print=None)
        return 0

    try:
        payload = asyncio.run(_one_shot(args, config))
    except WalletTrackerError as exc:
        if is_client_error(exc):
            print(f"[wallet-tracker] {exc}", file=sys.stderr)
            return 2
        print(f"[wallet-tracker] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


__all__ = ["main"]
