from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Tuple

from wallet_tracker.accumulator import BoundedAccumulator
from wallet_tracker.decoders import (
    APPROVAL_TOPIC,
    TRANSFER_TOPIC,
    address_topic,
    as_int,
    decode_approval_log,
    decode_native_tx,
    decode_transfer_log,
)
from wallet_tracker.filters import FilterPipeline
from wallet_tracker.models import ApprovalRecord, NativeTransferRecord, ScannedRange, TokenMeta, TokenTransferRecord

logger = logging.getLogger(__name__)

LOG_CHUNK_BLOCKS = 10_000


def chunk_ranges(from_block: int, to_block: int, size: int = LOG_CHUNK_BLOCKS) -> List[Tuple[int, int]]:
    """
    Split the inclusive span [from_block, to_block] into contiguous inclusive
    sub-ranges of at most ``size`` blocks, oldest first.
    """
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    ranges: List[Tuple[int, int]] = []
    start = from_block
    while start <= to_block:
        end = min(start + size - 1, to_block)
        ranges.append((start, end))
        start = end + 1
    return ranges


def sort_newest_first(items: List[Any]) -> List[Any]:
    return sorted(items, key=lambda r: (r.block_number, r.log_index), reverse=True)


# ------------------------------------------------------------------ native
async def scan_native(
    client: Any,
    *,
    chain: str,
    address: str,
    window: int,
    filters: FilterPipeline,
    acc: BoundedAccumulator[NativeTransferRecord],
    latest: Optional[int] = None,
) -> ScannedRange:
    """
    Walk blocks from the tip down through ``window`` blocks, keeping every
    transaction the address sends or receives that passes the native filter.
    Stops as soon as the accumulator fills. Each block is a full-transaction
    fetch, so ``window`` is what bounds the RPC cost of a request.
    """
    if latest is None:
        latest = await client.block_number()
    start = max(0, latest - window + 1)
    who = address.lower()

    for number in range(latest, start - 1, -1):
        block = await client.get_block(number, full_transactions=True)
        txs = (block or {}).get("transactions") or []
        if not txs:
            continue
        for tx in txs:
            if not hasattr(tx, "get"):
                # hash-only entry; provider ignored full_transactions
                continue
            sender = (tx.get("from") or "").lower()
            recipient = (tx.get("to") or "").lower()
            if sender != who and recipient != who:
                continue
            if not filters.admit_native(as_int(tx.get("value"))):
                continue
            acc.add(decode_native_tx(chain, tx, block, address))
            if acc.is_full():
                break
        if acc.is_full():
            logger.debug("[%s] native scan hit limit at block %d", chain, number)
            break

    return ScannedRange(from_block=start, to_block=latest)


# --------------------------------------------------------------- event logs
async def scan_transfer_logs(
    client: Any,
    *,
    chain: str,
    address: str,
    token: str,
    meta: TokenMeta,
    from_block: int,
    to_block: int,
    filters: FilterPipeline,
    acc: BoundedAccumulator[TokenTransferRecord],
    chunk_size: int = LOG_CHUNK_BLOCKS,
) -> List[TokenTransferRecord]:
    """
    ERC-20 Transfer logs where the address is either side. Each sub-range runs
    a from-topic and a to-topic query concurrently; the accumulator is checked
    once per sub-range batch.
    """
    topic = address_topic(address)
    topics_from = [TRANSFER_TOPIC, topic, None]
    topics_to = [TRANSFER_TOPIC, None, topic]

    for lo, hi in chunk_ranges(from_block, to_block, chunk_size):
        logs_from, logs_to = await asyncio.gather(
            client.get_logs(address=token, from_block=lo, to_block=hi, topics=topics_from),
            client.get_logs(address=token, from_block=lo, to_block=hi, topics=topics_to),
        )
        batch: List[TokenTransferRecord] = []
        for log in list(logs_from) + list(logs_to):
            record = decode_transfer_log(chain, log, token, meta, address)
            if record is None:
                continue
            if not filters.admit_token(chain, token, record.value_raw):
                continue
            batch.append(record)
        acc.add_batch(batch)
        if acc.is_full():
            logger.debug("[%s] transfer scan hit limit in [%d, %d]", chain, lo, hi)
            break

    return sort_newest_first(acc.items)


async def scan_approval_logs(
    client: Any,
    *,
    chain: str,
    address: str,
    token: str,
    meta: TokenMeta,
    from_block: int,
    to_block: int,
    filters: FilterPipeline,
    acc: BoundedAccumulator[ApprovalRecord],
    chunk_size: int = LOG_CHUNK_BLOCKS,
) -> List[ApprovalRecord]:
    """ERC-20 Approval logs with the address as owner, one query per sub-range."""
    topics_owner = [APPROVAL_TOPIC, address_topic(address), None]

    for lo, hi in chunk_ranges(from_block, to_block, chunk_size):
        logs = await client.get_logs(address=token, from_block=lo, to_block=hi, topics=topics_owner)
        batch: List[ApprovalRecord] = []
        for log in logs:
            record = decode_approval_log(chain, log, token, meta)
            if record is None:
                continue
            if not filters.admit_token(chain, token, record.value_raw):
                continue
            batch.append(record)
        acc.add_batch(batch)
        if acc.is_full():
            logger.debug("[%s] approval scan hit limit in [%d, %d]", chain, lo, hi)
            break

    return sort_newest_first(acc.items)


__all__ = [
    "LOG_CHUNK_BLOCKS",
    "chunk_ranges",
    "sort_newest_first",
    "scan_native",
    "scan_transfer_logs",
    "scan_approval_logs",
]
