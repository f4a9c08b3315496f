from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TokenMeta:
    symbol: str
    name: str
    decimals: int

    def as_dict(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "name": self.name, "decimals": self.decimals}


@dataclass(frozen=True)
class ScannedRange:
    from_block: int
    to_block: int

    @property
    def blocks(self) -> int:
        return self.to_block - self.from_block + 1

    def as_dict(self) -> Dict[str, Any]:
        return {"fromBlock": self.from_block, "toBlock": self.to_block, "blocks": self.blocks}


@dataclass(frozen=True)
class NativeTransferRecord:
    chain: str
    tx_hash: str
    block_number: int
    timestamp: int
    tx_index: int
    from_addr: str
    to_addr: Optional[str]
    value_wei: int
    value_formatted: str
    is_sender: bool
    is_receiver: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "hash": self.tx_hash,
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "transactionIndex": self.tx_index,
            "from": self.from_addr,
            "to": self.to_addr,
            "valueWei": str(self.value_wei),
            "valueFormatted": self.value_formatted,
            "isSender": self.is_sender,
            "isReceiver": self.is_receiver,
        }


@dataclass(frozen=True)
class TokenTransferRecord:
    chain: str
    tx_hash: str
    block_number: int
    log_index: int
    contract: str
    token: TokenMeta
    from_addr: str
    to_addr: str
    value_raw: int
    value_formatted: str
    is_sender: bool
    is_receiver: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
            "logIndex": self.log_index,
            "contract": self.contract,
            "tokenSymbol": self.token.symbol,
            "tokenName": self.token.name,
            "tokenDecimals": self.token.decimals,
            "from": self.from_addr,
            "to": self.to_addr,
            "valueRaw": str(self.value_raw),
            "valueFormatted": self.value_formatted,
            "isSender": self.is_sender,
            "isReceiver": self.is_receiver,
        }


@dataclass(frozen=True)
class ApprovalRecord:
    chain: str
    tx_hash: str
    block_number: int
    log_index: int
    contract: str
    token: TokenMeta
    owner: str
    spender: str
    value_raw: int
    value_formatted: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
            "logIndex": self.log_index,
            "contract": self.contract,
            "tokenSymbol": self.token.symbol,
            "tokenName": self.token.name,
            "tokenDecimals": self.token.decimals,
            "owner": self.owner,
            "spender": self.spender,
            "valueRaw": str(self.value_raw),
            "valueFormatted": self.value_formatted,
        }


@dataclass
class NativeScanResult:
    chain: str
    address: str
    scanned: ScannedRange
    items: List[NativeTransferRecord] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "address": self.address,
            "scanned": {"from": self.scanned.from_block, "to": self.scanned.to_block, "blocks": self.scanned.blocks},
            "count": len(self.items),
            "items": [item.as_dict() for item in self.items],
        }


@dataclass
class LogScanResult:
    chain: str
    address: str
    token: str
    token_meta: TokenMeta
    scanned: ScannedRange
    items: List[Any] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "address": self.address,
            "token": self.token,
            "tokenMeta": self.token_meta.as_dict(),
            "scanned": {"fromBlock": self.scanned.from_block, "toBlock": self.scanned.to_block},
            "count": len(self.items),
            "items": [item.as_dict() for item in self.items],
        }


__all__ = [
    "TokenMeta",
    "ScannedRange",
    "NativeTransferRecord",
    "TokenTransferRecord",
    "ApprovalRecord",
    "NativeScanResult",
    "LogScanResult",
]
