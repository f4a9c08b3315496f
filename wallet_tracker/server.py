from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from aiohttp import web

from wallet_tracker.errors import UnavailableChainError, UpstreamError, ValidationError
from wallet_tracker.tracker import WalletTracker

logger = logging.getLogger(__name__)

TRACKER_KEY = web.AppKey("tracker", WalletTracker)


def _status_for(exc: BaseException) -> int:
    if isinstance(exc, (ValidationError, UnavailableChainError)):
        return 400
    if isinstance(exc, UpstreamError):
        return 502
    return 500


def _query_int(request: web.Request, name: str) -> Optional[int]:
    raw = request.query.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"Query param '{name}' must be an integer, got {raw!r}") from exc


def _tracker(request: web.Request) -> WalletTracker:
    return request.app[TRACKER_KEY]


# ------------------------------------------------------------------ handlers
async def health_handler(request: web.Request) -> web.Response:
    return web.json_response(_tracker(request).health())


async def networks_handler(request: web.Request) -> web.Response:
    return web.json_response(await _tracker(request).networks())


async def native_handler(request: web.Request) -> web.Response:
    chain = request.match_info["chain"]
    address = request.match_info["address"]
    result = await _tracker(request).scan_native(
        chain,
        address,
        blocks=_query_int(request, "blocks"),
        limit=_query_int(request, "limit"),
    )
    return web.json_response(result.as_dict())


async def erc20_handler(request: web.Request) -> web.Response:
    chain = request.match_info["chain"]
    address = request.match_info["address"]
    result = await _tracker(request).scan_erc20_transfers(
        chain,
        address,
        request.query.get("token", ""),
        from_block=_query_int(request, "fromBlock"),
        to_block=_query_int(request, "toBlock"),
        limit=_query_int(request, "limit"),
    )
    return web.json_response(result.as_dict())


async def approvals_handler(request: web.Request) -> web.Response:
    chain = request.match_info["chain"]
    address = request.match_info["address"]
    result = await _tracker(request).scan_erc20_approvals(
        chain,
        address,
        request.query.get("token", ""),
        from_block=_query_int(request, "fromBlock"),
        to_block=_query_int(request, "toBlock"),
        limit=_query_int(request, "limit"),
    )
    return web.json_response(result.as_dict())


# --------------------------------------------------------------- middleware
def _error_middleware(include_stack: bool):
    @web.middleware
    async def error_middleware(request: web.Request, handler):
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as exc:
            status = _status_for(exc)
            if status >= 500:
                logger.warning("%s %s failed: %s", request.method, request.path, exc)
            payload: Dict[str, Any] = {"ok": False, "status": status, "error": str(exc) or "Unknown error"}
            if include_stack:
                payload["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            return web.json_response(payload, status=status)

    return error_middleware


def _cors_middleware(allowed: tuple):
    def resolve(origin: Optional[str]) -> Optional[str]:
        if not origin:
            return None
        if "*" in allowed:
            # reflect the caller, like origin: true
            return origin
        if origin.rstrip("/") in allowed:
            return origin
        return None

    def decorate(headers, allow_origin: Optional[str]) -> None:
        if allow_origin:
            headers["Access-Control-Allow-Origin"] = allow_origin
            headers["Vary"] = "Origin"
            headers["Access-Control-Allow-Methods"] = "GET,OPTIONS"
            headers["Access-Control-Allow-Headers"] = "Content-Type,Authorization"

    @web.middleware
    async def cors_middleware(request: web.Request, handler):
        allow_origin = resolve(request.headers.get("Origin"))
        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response(status=204)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as ex:
                decorate(ex.headers, allow_origin)
                raise
        decorate(response.headers, allow_origin)
        return response

    return cors_middleware


def create_app(tracker: WalletTracker) -> web.Application:
    config = tracker.config
    middlewares = []
    if config.cors_origins:
        middlewares.append(_cors_middleware(tuple(config.cors_origins)))
    middlewares.append(_error_middleware(include_stack=not config.is_production))

    app = web.Application(middlewares=middlewares, client_max_size=1024 ** 2)
    app[TRACKER_KEY] = tracker
    app.router.add_get("/health", health_handler)
    app.router.add_get("/networks", networks_handler)
    app.router.add_get("/address/{chain}/{address}/native", native_handler)
    app.router.add_get("/address/{chain}/{address}/erc20", erc20_handler)
    app.router.add_get("/address/{chain}/{address}/approvals", approvals_handler)
    return app


__all__ = ["TRACKER_KEY", "create_app"]
