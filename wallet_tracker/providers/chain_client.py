from __future__ import annotations

import ssl
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar

import aiohttp
import certifi
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from wallet_tracker.context import within_deadline
from wallet_tracker.errors import UpstreamError

T = TypeVar("T")

ERC20_META_ABI = [
    {"constant": True, "inputs": [], "name": "symbol", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"constant": True, "inputs": [], "name": "name", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"constant": True, "inputs": [], "name": "decimals", "outputs": [{"name": "", "type": "uint8"}], "stateMutability": "view", "type": "function"},
]

_ERC20_VIEWS = {"symbol", "name", "decimals"}


class ChainClient:
    """
    The RPC handle the core talks to: an AsyncWeb3 instance over one URL,
    narrowed to the few calls the scanners and metadata cache need. Every call
    is bounded by the request deadline and failures surface as UpstreamError.
    """

    def __init__(self, url: str, *, poa: bool = False, http_timeout: float = 20.0) -> None:
        self.url = url
        ssl_ctx = ssl.create_default_context(cafile=certifi.where())
        provider = AsyncHTTPProvider(
            url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=http_timeout), "ssl": ssl_ctx},
        )
        self.w3 = AsyncWeb3(provider)
        if poa:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    def __repr__(self) -> str:
        return f"ChainClient({self.url!r})"

    async def _call(self, aw: Awaitable[T], label: str) -> T:
        try:
            return await within_deadline(aw, label=label)
        except UpstreamError as exc:
            if exc.url is None:
                exc.url = self.url
            raise
        except Exception as exc:
            raise UpstreamError(f"{label} failed on {self.url}: {type(exc).__name__}: {exc}", url=self.url) from exc

    # ------------------------------------------------------------------ reads
    async def block_number(self) -> int:
        return await self._call(self.w3.eth.block_number, "eth_blockNumber")

    async def chain_id(self) -> int:
        return int(await self._call(self.w3.eth.chain_id, "eth_chainId"))

    async def get_block(self, number: int, *, full_transactions: bool = True) -> Optional[Dict[str, Any]]:
        return await self._call(
            self.w3.eth.get_block(number, full_transactions=full_transactions),
            f"eth_getBlockByNumber({number})",
        )

    async def get_logs(
        self,
        *,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[Optional[str]],
    ) -> List[Dict[str, Any]]:
        params = {
            "address": Web3.to_checksum_address(address),
            "fromBlock": int(from_block),
            "toBlock": int(to_block),
            "topics": list(topics),
        }
        logs = await self._call(self.w3.eth.get_logs(params), f"eth_getLogs[{from_block}..{to_block}]")
        return list(logs or [])

    async def erc20_call(self, token: str, fn_name: str) -> Any:
        if fn_name not in _ERC20_VIEWS:
            raise ValueError(f"unsupported ERC-20 view: {fn_name}")
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_META_ABI)
        fn = getattr(contract.functions, fn_name)
        return await self._call(fn().call(), f"{fn_name}()")


__all__ = ["ChainClient", "ERC20_META_ABI"]
