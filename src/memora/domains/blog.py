"""
memo-blog: numbered blogs with burn and mint memos.

Blog ids come from the program's global blog counter; a new blog takes the
counter's current value. Burning for a blog posts a message and counts
toward its burned total; minting for a blog posts a message and mints the
current reward to the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from borsh_construct import CStruct, U64
from solders.pubkey import Pubkey

from ..anamnesis.history import MemoPage, read_memos
from ..anamnesis.stats import fetch_range
from ..codex.accounts import Blog, parse_blog
from ..codex.memo import encode_memo
from ..codex.records import BlogBurn, BlogCreation, BlogMint, BlogUpdate
from ..config import DEFAULT_CONCURRENCY, ProgramIds
from ..errors import InvalidParameterError
from ..pneuma.rpc import RpcClient
from ..sigil.derive import BLOG_SEED, GLOBAL_BLOG_COUNTER_SEED, entity_address, global_counter_address
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

MIN_BLOG_BURN = tokens(1)

_ID_AND_AMOUNT = CStruct("blog_id" / U64, "burn_amount" / U64)

CREATE_BLOG = OperationDescriptor("create_blog", args=_ID_AND_AMOUNT, burn_rule=BurnRule(MIN_BLOG_BURN))
UPDATE_BLOG = OperationDescriptor("update_blog", args=_ID_AND_AMOUNT, burn_rule=BurnRule(MIN_BLOG_BURN))
BURN_FOR_BLOG = OperationDescriptor(
    "burn_for_blog",
    args=CStruct("blog_id" / U64, "amount" / U64),
    burn_rule=BurnRule(MIN_BLOG_BURN),
)
MINT_FOR_BLOG = OperationDescriptor("mint_for_blog", args=CStruct("blog_id" / U64))


@dataclass(frozen=True)
class BlogStatistics:
    total_blogs: int
    valid_blogs: int
    total_memos: int
    total_burned: int
    total_minted: int
    blogs: tuple[Blog, ...]


def blog_address(programs: ProgramIds, blog_id: int) -> Pubkey:
    return entity_address(programs.blog, BLOG_SEED, blog_id)


def build_create_blog(
    programs: ProgramIds,
    user: Pubkey,
    blog_id: int,
    name: str,
    burn_amount: int,
    description: str = "",
    image: str = "",
) -> Operation:
    """
    Build a ``create_blog`` operation.

    Args:
        programs: Program ids of the target network
        user: Creator and fee payer
        blog_id: Next id from the global blog counter (see ``next_blog_id``)
        name: 1-64 bytes
        burn_amount: Base units, whole tokens, at least 1 token
        description: Up to 256 bytes
        image: Up to 256 bytes

    Returns:
        Operation whose result is the new blog id
    """
    CREATE_BLOG.burn_rule.check(burn_amount)
    memo = encode_memo(BlogCreation(blog_id=blog_id, name=name, description=description, image=image), burn_amount)
    counter = global_counter_address(programs.blog, GLOBAL_BLOG_COUNTER_SEED)
    accounts = burn_accounts(programs, user, [counter, blog_address(programs, blog_id)], creates=True)
    return build_operation(
        CREATE_BLOG, programs.blog, user, accounts,
        memo=memo, memo_signers=[user], result=blog_id, blog_id=blog_id, burn_amount=burn_amount,
    )


def build_update_blog(
    programs: ProgramIds,
    user: Pubkey,
    blog_id: int,
    burn_amount: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    image: Optional[str] = None,
) -> Operation:
    """Build an ``update_blog`` operation; ``None`` fields stay unchanged."""
    UPDATE_BLOG.burn_rule.check(burn_amount)
    if name is None and description is None and image is None:
        raise InvalidParameterError("blog", "nothing to update")
    record = BlogUpdate(blog_id=blog_id, name=name, description=description, image=image)
    memo = encode_memo(record, burn_amount)
    accounts = burn_accounts(programs, user, [blog_address(programs, blog_id)])
    return build_operation(
        UPDATE_BLOG, programs.blog, user, accounts,
        memo=memo, memo_signers=[user], result=blog_id, blog_id=blog_id, burn_amount=burn_amount,
    )


def build_burn_for_blog(
    programs: ProgramIds,
    user: Pubkey,
    blog_id: int,
    amount: int,
    message: str = "",
) -> Operation:
    """Burn ``amount`` base units for a blog, with an optional message (up to 696 bytes)."""
    BURN_FOR_BLOG.burn_rule.check(amount, "amount")
    memo = encode_memo(BlogBurn(blog_id=blog_id, burner=str(user), message=message), amount)
    accounts = burn_accounts(programs, user, [blog_address(programs, blog_id)])
    return build_operation(
        BURN_FOR_BLOG, programs.blog, user, accounts,
        memo=memo, memo_signers=[user], result=blog_id, blog_id=blog_id, amount=amount,
    )


def build_mint_for_blog(programs: ProgramIds, user: Pubkey, blog_id: int, message: str = "") -> Operation:
    """Mint for a blog, with an optional message (up to 696 bytes)."""
    memo = encode_memo(BlogMint(blog_id=blog_id, minter=str(user), message=message), 0)
    accounts = mint_accounts(programs, user, blog_address(programs, blog_id))
    return build_operation(
        MINT_FOR_BLOG, programs.blog, user, accounts,
        memo=memo, memo_signers=[user], result=blog_id, blog_id=blog_id,
    )


# ============ Reads ============


async def next_blog_id(rpc: RpcClient, programs: ProgramIds) -> int:
    """Total blogs created so far, which is also the id of the next one."""
    return await read_counter(rpc, programs.blog, GLOBAL_BLOG_COUNTER_SEED, "global blog counter")


async def fetch_blog(rpc: RpcClient, programs: ProgramIds, blog_id: int) -> Blog:
    data = await require_owned(rpc, blog_address(programs, blog_id), programs.blog, f"blog {blog_id}")
    return parse_blog(data)


async def fetch_blogs_range(
    rpc: RpcClient,
    programs: ProgramIds,
    start_id: int,
    end_id: int,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[Blog]:
    """Existing blogs with ``start_id <= id < end_id``; missing ids are skipped."""
    if start_id >= end_id:
        raise InvalidParameterError("range", f"start_id {start_id} must be below end_id {end_id}")
    result = await fetch_range(end_id, lambda i: fetch_blog(rpc, programs, i), concurrency, start=start_id, what="blog")
    return list(result.items)


async def blog_statistics(
    rpc: RpcClient,
    programs: ProgramIds,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> BlogStatistics:
    """Fetch every blog and aggregate; unreadable blogs are skipped."""
    total = await next_blog_id(rpc, programs)
    result = await fetch_range(total, lambda i: fetch_blog(rpc, programs, i), concurrency, what="blog")
    return BlogStatistics(
        total_blogs=result.total,
        valid_blogs=result.valid,
        total_memos=sum(b.memo_count for b in result.items),
        total_burned=sum(b.burned_amount for b in result.items),
        total_minted=sum(b.minted_amount for b in result.items),
        blogs=result.items,
    )


async def blog_messages(
    rpc: RpcClient,
    programs: ProgramIds,
    blog_id: int,
    limit: int = 20,
    before: Optional[str] = None,
) -> MemoPage:
    """Burn and mint messages posted to a blog, newest first."""
    address = blog_address(programs, blog_id)
    await require_owned(rpc, address, programs.blog, f"blog {blog_id}")

    def accept(memo) -> bool:
        record = memo.record
        return (
            isinstance(record, (BlogBurn, BlogMint))
            and record.matches(blog_id=blog_id)
            and bool(record.message.strip())
        )

    return await read_memos(rpc, str(address), limit=limit, before=before, accept=accept)
