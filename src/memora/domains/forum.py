"""
memo-forum: numbered posts; replies are burns or mints carrying a message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from borsh_construct import CStruct, U64
from solders.pubkey import Pubkey

from ..anamnesis.history import MemoPage, read_memos
from ..anamnesis.stats import fetch_range
from ..codex.accounts import Post, parse_post
from ..codex.memo import encode_memo
from ..codex.records import PostBurn, PostCreation, PostMint
from ..config import DEFAULT_CONCURRENCY, ProgramIds
from ..pneuma.rpc import RpcClient
from ..sigil.derive import GLOBAL_COUNTER_SEED, POST_SEED, entity_address, global_counter_address
from .base import (
    BurnRule,
    Operation,
    OperationDescriptor,
    build_operation,
    burn_accounts,
    mint_accounts,
    read_counter,
    require_owned,
    tokens,
)

logger = logging.getLogger(__name__)

MIN_POST_BURN = tokens(1)

CREATE_POST = OperationDescriptor(
    "create_post",
    args=CStruct("post_id" / U64, "burn_amount" / U64),
    burn_rule=BurnRule(MIN_POST_BURN),
)
BURN_FOR_POST = OperationDescriptor(
    "burn_for_post",
    args=CStruct("post_id" / U64, "amount" / U64),
    burn_rule=BurnRule(MIN_POST_BURN),
)
MINT_FOR_POST = OperationDescriptor("mint_for_post", args=CStruct("post_id" / U64))


@dataclass(frozen=True)
class ForumStatistics:
    total_posts: int
    valid_posts: int
    total_replies: int
    total_burned: int
    posts: tuple[Post, ...]


def post_address(programs: ProgramIds, post_id: int) -> Pubkey:
    return entity_address(programs.forum, POST_SEED, post_id)


def build_create_post(
    programs: ProgramIds,
    user: Pubkey,
    post_id: int,
    title: str,
    content: str,
    burn_amount: int,
    image: str = "",
) -> Operation:
    """
    Build a ``create_post`` operation.

    Args:
        programs: Program ids of the target network
        user: Creator and fee payer
        post_id: Next id from the forum's global counter (see ``next_post_id``)
        title: 1-128 bytes
        content: 1-512 bytes
        burn_amount: Base units, whole tokens, at least 1 token
        image: Up to 256 bytes

    Returns:
        Operation whose result is the new post id
    """
    CREATE_POST.burn_rule.check(burn_amount)
    record = PostCreation(creator=str(user), post_id=post_id, title=title, content=content, image=image)
    memo = encode_memo(record, burn_amount)
    counter = global_counter_address(programs.forum, GLOBAL_COUNTER_SEED)
    accounts = burn_accounts(programs, user, [counter, post_address(programs, post_id)], creates=True)
    return build_operation(
        CREATE_POST, programs.forum, user, accounts,
        memo=memo, memo_signers=[user], result=post_id, post_id=post_id, burn_amount=burn_amount,
    )


def build_burn_for_post(
    programs: ProgramIds,
    user: Pubkey,
    post_id: int,
    amount: int,
    message: str = "",
) -> Operation:
    """Reply to a post by burning ``amount`` base units (message up to 512 bytes)."""
    BURN_FOR_POST.burn_rule.check(amount, "amount")
    memo = encode_memo(PostBurn(user=str(user), post_id=post_id, message=message), amount)
    accounts = burn_accounts(programs, user, [post_address(programs, post_id)])
    return build_operation(
        BURN_FOR_POST, programs.forum, user, accounts,
        memo=memo, memo_signers=[user], result=post_id, post_id=post_id, amount=amount,
    )


def build_mint_for_post(programs: ProgramIds, user: Pubkey, post_id: int, message: str = "") -> Operation:
    """Reply to a post by minting (message up to 512 bytes)."""
    memo = encode_memo(PostMint(user=str(user), post_id=post_id, message=message), 0)
    accounts = mint_accounts(programs, user, post_address(programs, post_id))
    return build_operation(
        MINT_FOR_POST, programs.forum, user, accounts,
        memo=memo, memo_signers=[user], result=post_id, post_id=post_id,
    )


# ============ Reads ============


async def next_post_id(rpc: RpcClient, programs: ProgramIds) -> int:
    return await read_counter(rpc, programs.forum, GLOBAL_COUNTER_SEED, "forum global counter")


async def fetch_post(rpc: RpcClient, programs: ProgramIds, post_id: int) -> Post:
    data = await require_owned(rpc, post_address(programs, post_id), programs.forum, f"post {post_id}")
    return parse_post(data)


async def forum_statistics(
    rpc: RpcClient,
    programs: ProgramIds,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> ForumStatistics:
    """Fetch every post and aggregate; unreadable posts are skipped."""
    total = await next_post_id(rpc, programs)
    result = await fetch_range(total, lambda i: fetch_post(rpc, programs, i), concurrency, what="post")
    return ForumStatistics(
        total_posts=result.total,
        valid_posts=result.valid,
        total_replies=sum(p.reply_count for p in result.items),
        total_burned=sum(p.burned_amount for p in result.items),
        posts=result.items,
    )


async def post_replies(
    rpc: RpcClient,
    programs: ProgramIds,
    post_id: int,
    limit: int = 20,
    before: Optional[str] = None,
) -> MemoPage:
    """Burn and mint replies to a post, newest first."""
    address = post_address(programs, post_id)
    await require_owned(rpc, address, programs.forum, f"post {post_id}")

    def accept(memo) -> bool:
        record = memo.record
        return isinstance(record, (PostBurn, PostMint)) and record.matches(post_id=post_id)

    return await read_memos(rpc, str(address), limit=limit, before=before, accept=accept)
