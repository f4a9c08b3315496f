from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from wallet_tracker.chains import CHAIN_PROFILES
from wallet_tracker.config import TrackerConfig
from wallet_tracker.context import within_deadline
from wallet_tracker.decoders import APPROVAL_TOPIC, TRANSFER_TOPIC, address_topic
from wallet_tracker.providers.selector import ActiveProvider, ActiveProviders
from wallet_tracker.tracker import WalletTracker

WALLET = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
SPENDER = "0x3333333333333333333333333333333333333333"
TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


class FakeChainClient:
    """In-memory stand-in for ChainClient. Honors the request deadline like the real one."""

    def __init__(
        self,
        url: str = "https://rpc.fake/eth",
        *,
        latest: Any = 100,
        blocks: Optional[Dict[int, Dict[str, Any]]] = None,
        logs: Optional[List[Dict[str, Any]]] = None,
        meta: Optional[Dict[str, Any]] = None,
        chain_id: int = 1,
        delay: float = 0.0,
    ) -> None:
        self.url = url
        self.latest = latest
        self.blocks = blocks or {}
        self.logs = list(logs or [])
        self.meta = meta if meta is not None else {"symbol": "USDC", "name": "USD Coin", "decimals": 6}
        self._chain_id = chain_id
        self.delay = delay
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _io(self, label: str, value: Any) -> Any:
        async def work() -> Any:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await asyncio.sleep(self.delay)
            finally:
                self.in_flight -= 1
            if isinstance(value, BaseException):
                raise value
            return value

        return await within_deadline(work(), label=label)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def block_number(self) -> Any:
        self.calls.append(("eth_blockNumber",))
        return await self._io("eth_blockNumber", self.latest)

    async def chain_id(self) -> int:
        self.calls.append(("eth_chainId",))
        return await self._io("eth_chainId", self._chain_id)

    async def get_block(self, number: int, *, full_transactions: bool = True) -> Dict[str, Any]:
        self.calls.append(("eth_getBlockByNumber", number))
        block = self.blocks.get(number, {"number": number, "timestamp": 1_700_000_000 + number, "transactions": []})
        return await self._io("eth_getBlockByNumber", block)

    async def get_logs(
        self,
        *,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[Optional[str]],
    ) -> List[Dict[str, Any]]:
        self.calls.append(("eth_getLogs", from_block, to_block, tuple(topics)))
        matched = [
            log
            for log in self.logs
            if log["address"].lower() == address.lower()
            and from_block <= log["blockNumber"] <= to_block
            and _topics_match(log["topics"], topics)
        ]
        return await self._io("eth_getLogs", matched)

    async def erc20_call(self, token: str, fn_name: str) -> Any:
        self.calls.append(("erc20", fn_name))
        return await self._io(f"{fn_name}()", self.meta.get(fn_name))


def _topics_match(have: Sequence[str], want: Sequence[Optional[str]]) -> bool:
    for i, topic in enumerate(want):
        if topic is None:
            continue
        if i >= len(have) or have[i].lower() != topic.lower():
            return False
    return True


# ------------------------------------------------------------------ builders
def native_tx(sender: str, recipient: Optional[str], value: int, *, block: int, index: int = 0) -> Dict[str, Any]:
    return {
        "hash": "0x" + f"{block:04x}{index:04x}".rjust(64, "a"),
        "from": sender,
        "to": recipient,
        "value": value,
        "blockNumber": block,
        "transactionIndex": index,
    }


def block_with(number: int, *txs: Dict[str, Any]) -> Dict[str, Any]:
    return {"number": number, "timestamp": 1_700_000_000 + number, "transactions": list(txs)}


def transfer_log(
    sender: str,
    recipient: str,
    value: int,
    *,
    block: int,
    log_index: int = 0,
    token: str = TOKEN,
) -> Dict[str, Any]:
    return {
        "address": token,
        "topics": [TRANSFER_TOPIC, address_topic(sender), address_topic(recipient)],
        "data": "0x" + f"{value:064x}",
        "blockNumber": block,
        "logIndex": log_index,
        "transactionHash": "0x" + f"{block:06x}{log_index:04x}".rjust(64, "b"),
    }


def approval_log(owner: str, spender: str, value: int, *, block: int, log_index: int = 0, token: str = TOKEN) -> Dict[str, Any]:
    log = transfer_log(owner, spender, value, block=block, log_index=log_index, token=token)
    log["topics"][0] = APPROVAL_TOPIC
    return log


def make_tracker(client: FakeChainClient, config: Optional[TrackerConfig] = None, *, chain: str = "eth") -> WalletTracker:
    provider = ActiveProvider(chain=chain, url=client.url, client=client, profile=CHAIN_PROFILES[chain])
    return WalletTracker(config or TrackerConfig(watch_chains=(chain,)), ActiveProviders({chain: provider}))
