"""
Memo history replay.

Entity accounts collect every transaction that touched them.
``getSignaturesForAddress`` already reports each transaction's memo, so
history is rebuilt from one signature listing without fetching the
transactions themselves. Memos that do not decode are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..codex.memo import DecodedMemo, decode_memo
from ..pneuma.rpc import RpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoEntry:
    signature: str
    slot: int
    block_time: Optional[int]
    memo: DecodedMemo

    @property
    def timestamp(self) -> int:
        return self.block_time or 0


@dataclass(frozen=True)
class MemoPage:
    """
    One page of decoded memos.

    Attributes:
        entries: Decoded memos that passed the filter
        has_more: True if the listing was full, so older entries may exist
        cursor: Oldest signature seen; pass as ``before`` for the next page
    """

    entries: tuple[MemoEntry, ...]
    has_more: bool
    cursor: Optional[str] = None


async def read_memos(
    rpc: RpcClient,
    address: str,
    limit: int = 20,
    before: Optional[str] = None,
    accept: Optional[Callable[[DecodedMemo], bool]] = None,
    newest_first: bool = True,
    decode: Callable[[str], Optional[DecodedMemo]] = decode_memo,
) -> MemoPage:
    """
    Decode the memos of the last ``limit`` transactions touching ``address``.

    Args:
        rpc: Transport
        address: Account whose history to read
        limit: Signatures to list (1-1000)
        before: Pagination cursor
        accept: Optional filter on the decoded memo
        newest_first: Sort order by block time
        decode: Memo decoder; enveloped records by default

    Returns:
        MemoPage
    """
    signatures = await rpc.get_signatures_for_address(address, limit=limit, before=before)
    entries = []
    for info in signatures:
        if info.err is not None or not info.memo:
            continue
        decoded = decode(info.memo)
        if decoded is None:
            continue
        if accept is not None and not accept(decoded):
            continue
        entries.append(MemoEntry(info.signature, info.slot, info.block_time, decoded))

    entries.sort(key=lambda e: e.timestamp, reverse=newest_first)
    logger.info("Decoded %d memos from %d signatures for %s", len(entries), len(signatures), address)
    return MemoPage(
        entries=tuple(entries),
        has_more=len(signatures) == limit,
        cursor=signatures[-1].signature if signatures else None,
    )
