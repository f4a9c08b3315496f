from __future__ import annotations

from typing import Any, Mapping, Optional

from web3 import Web3

from wallet_tracker.models import ApprovalRecord, NativeTransferRecord, TokenMeta, TokenTransferRecord

NATIVE_DECIMALS = 18

TRANSFER_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))
APPROVAL_TOPIC = Web3.to_hex(Web3.keccak(text="Approval(address,address,uint256)"))


# --------------------------------------------------------------- primitives
def to_hex(value: Any) -> str:
    if value is None:
        return "0x"
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(bytes(value))
    s = str(value).strip()
    return s if s.startswith("0x") else "0x" + s


def as_int(value: Any) -> int:
    """Quantity fields arrive as int, hex string, or raw bytes depending on the provider."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(bytes(value), "big") if value else 0
    s = str(value).strip().lower()
    if s.startswith("0x"):
        return int(s, 16) if len(s) > 2 else 0
    return int(s or "0")


def address_topic(address: str) -> str:
    """Left-pad a 20-byte address into a 32-byte topic."""
    body = address.lower()[2:] if address.lower().startswith("0x") else address.lower()
    return "0x" + body.rjust(64, "0")


def topic_to_address(topic: Any) -> str:
    """Take the low 20 bytes of a 32-byte topic."""
    body = to_hex(topic)[2:]
    if len(body) < 40:
        raise ValueError(f"topic too short for an address: {topic!r}")
    return Web3.to_checksum_address("0x" + body[-40:])


def data_to_int(data: Any) -> int:
    """Big-endian unsigned integer from a log's data payload; empty data is zero."""
    return as_int(data)


def format_units(raw: int, decimals: int) -> str:
    """
    Exact decimal rendering of ``raw / 10**decimals``. Always keeps at least
    one fractional digit: 0 -> "0.0", 10**18 @ 18 -> "1.0".
    """
    raw = int(raw)
    decimals = int(decimals)
    sign = "-" if raw < 0 else ""
    raw = abs(raw)
    if decimals <= 0:
        return f"{sign}{raw * (10 ** -decimals)}.0"
    whole, frac = divmod(raw, 10 ** decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def _lower(a: Optional[str]) -> str:
    return (a or "").lower()


# ------------------------------------------------------------------ records
def decode_native_tx(chain: str, tx: Mapping[str, Any], block: Mapping[str, Any], watched: str) -> NativeTransferRecord:
    who = _lower(watched)
    from_addr = tx.get("from") or ""
    to_addr = tx.get("to")
    value = as_int(tx.get("value"))
    block_number = tx.get("blockNumber")
    if block_number is None:
        block_number = block.get("number")
    return NativeTransferRecord(
        chain=chain,
        tx_hash=to_hex(tx.get("hash")),
        block_number=as_int(block_number),
        timestamp=as_int(block.get("timestamp")),
        tx_index=as_int(tx.get("transactionIndex")),
        from_addr=from_addr,
        to_addr=to_addr,
        value_wei=value,
        value_formatted=format_units(value, NATIVE_DECIMALS),
        is_sender=_lower(from_addr) == who,
        is_receiver=_lower(to_addr) == who,
    )


def _indexed_pair(log: Mapping[str, Any]) -> Optional[tuple]:
    topics = list(log.get("topics") or [])
    # ERC-721 shares the Transfer/Approval signature but indexes a 4th topic.
    if len(topics) != 3:
        return None
    return topic_to_address(topics[1]), topic_to_address(topics[2])


def decode_transfer_log(
    chain: str,
    log: Mapping[str, Any],
    token: str,
    meta: TokenMeta,
    watched: str,
) -> Optional[TokenTransferRecord]:
    pair = _indexed_pair(log)
    if pair is None:
        return None
    from_addr, to_addr = pair
    raw = data_to_int(log.get("data"))
    who = _lower(watched)
    return TokenTransferRecord(
        chain=chain,
        tx_hash=to_hex(log.get("transactionHash")),
        block_number=as_int(log.get("blockNumber")),
        log_index=as_int(log.get("logIndex")),
        contract=token,
        token=meta,
        from_addr=from_addr,
        to_addr=to_addr,
        value_raw=raw,
        value_formatted=format_units(raw, meta.decimals),
        is_sender=from_addr.lower() == who,
        is_receiver=to_addr.lower() == who,
    )


def decode_approval_log(
    chain: str,
    log: Mapping[str, Any],
    token: str,
    meta: TokenMeta,
) -> Optional[ApprovalRecord]:
    pair = _indexed_pair(log)
    if pair is None:
        return None
    owner, spender = pair
    raw = data_to_int(log.get("data"))
    return ApprovalRecord(
        chain=chain,
        tx_hash=to_hex(log.get("transactionHash")),
        block_number=as_int(log.get("blockNumber")),
        log_index=as_int(log.get("logIndex")),
        contract=token,
        token=meta,
        owner=owner,
        spender=spender,
        value_raw=raw,
        value_formatted=format_units(raw, meta.decimals),
    )


__all__ = [
    "NATIVE_DECIMALS",
    "TRANSFER_TOPIC",
    "APPROVAL_TOPIC",
    "to_hex",
    "as_int",
    "address_topic",
    "topic_to_address",
    "data_to_int",
    "format_units",
    "decode_native_tx",
    "decode_transfer_log",
    "decode_approval_log",
]
