"""
memo-chat: numbered chat groups whose messages mint.

Sending a message mints the current reward to the sender and counts toward
the group's memo total. The memo is the bare ``ChatMessage`` record, signed
by the sender; the sender's token account is created in the same
transaction when missing, between the memo and the program instruction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from borsh_construct import CStruct, U64
from solders.pubkey import Pubkey

from ..anamnesis.history import MemoPage, read_memos
from ..anamnesis.stats import fetch_range
from ..codex.accounts import ChatGroup, parse_chat_group
from ..codex.memo import decode_bare_memo, encode_bare_memo
from ..codex.records import ChatMessage
from ..config import DEFAULT_CONCURRENCY, SYSVAR_INSTRUCTIONS, ProgramIds
from ..errors import InvalidParameterError
from ..pneuma.budget import CHAT_POLICY
from ..pneuma.rpc import MAX_SIGNATURE_LIMIT, RpcClient
from ..pneuma.tx import create_idempotent_ata_instruction
from ..sigil.derive import (
    CHAT_GROUP_SEED,
    GLOBAL_COUNTER_SEED,
    associated_token_address,
    entity_address,
    mint_authority_address,
    to_pubkey,
)
from .base import Operation, OperationDescriptor, build_operation, read_counter, readonly, require_owned, writable
from .mint import token_account_exists

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 50

SEND_MEMO_TO_GROUP = OperationDescriptor(
    "send_memo_to_group",
    args=CStruct("group_id" / U64),
    policy=CHAT_POLICY,
)


@dataclass(frozen=True)
class ChatStatistics:
    total_groups: int
    valid_groups: int
    total_memos: int
    total_burned: int
    groups: tuple[ChatGroup, ...]


def chat_group_address(programs: ProgramIds, group_id: int) -> Pubkey:
    return entity_address(programs.chat, CHAT_GROUP_SEED, group_id, "group_id")


def build_send_message(
    programs: ProgramIds,
    user: Pubkey,
    group_id: int,
    message: str,
    receiver: Optional[str] = None,
    reply_to: Optional[str] = None,
    create_token_account: bool = False,
) -> Operation:
    """
    Build a ``send_memo_to_group`` operation.

    Args:
        programs: Program ids of the target network
        user: Sender and fee payer
        group_id: Target chat group
        message: 1-512 bytes
        receiver: Optional address the message is addressed to
        reply_to: Optional signature of the message being answered
        create_token_account: Insert an idempotent ATA creation after the memo

    Returns:
        Operation whose result is the group id

    Raises:
        InvalidParameterError: If the message or the encoded memo is out of range
        InvalidAddressError: If ``receiver`` is not a valid address
    """
    if receiver is not None:
        receiver = str(to_pubkey(receiver, "receiver"))
    record = ChatMessage(
        group_id=group_id, sender=str(user), message=message, receiver=receiver, reply_to_sig=reply_to
    )
    memo = encode_bare_memo(record)
    group = chat_group_address(programs, group_id)
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    prefix = []
    if create_token_account:
        prefix.append(
            create_idempotent_ata_instruction(user, user, programs.token_mint, token_account, programs.token_2022)
        )
    accounts = [
        writable(user, signer=True),
        writable(group),
        writable(programs.token_mint),
        writable(mint_authority_address(programs.mint)),
        writable(token_account),
        readonly(programs.token_2022),
        readonly(programs.mint),
        readonly(SYSVAR_INSTRUCTIONS),
    ]
    return build_operation(
        SEND_MEMO_TO_GROUP, programs.chat, user, accounts,
        memo=memo, memo_signers=[user], prefix=prefix, result=group_id, group_id=group_id,
    )


async def prepare_send_message(
    rpc: RpcClient,
    programs: ProgramIds,
    user: Pubkey,
    group_id: int,
    message: str,
    receiver: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> Operation:
    """``build_send_message``, creating the token account if the ledger has none."""
    operation = build_send_message(programs, user, group_id, message, receiver, reply_to)
    if await token_account_exists(rpc, programs, user):
        return operation
    logger.info("Token account for %s does not exist; it will be created", user)
    return build_send_message(
        programs, user, group_id, message, receiver, reply_to, create_token_account=True
    )


# ============ Reads ============


async def next_group_id(rpc: RpcClient, programs: ProgramIds) -> int:
    return await read_counter(rpc, programs.chat, GLOBAL_COUNTER_SEED, "chat global counter")


async def fetch_chat_group(rpc: RpcClient, programs: ProgramIds, group_id: int) -> ChatGroup:
    data = await require_owned(
        rpc, chat_group_address(programs, group_id), programs.chat, f"chat group {group_id}"
    )
    return parse_chat_group(data)


async def fetch_chat_groups_range(
    rpc: RpcClient,
    programs: ProgramIds,
    start_id: int,
    end_id: int,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[ChatGroup]:
    """Existing groups with ``start_id <= id < end_id``; missing ids are skipped."""
    if start_id >= end_id:
        raise InvalidParameterError("range", f"start_id {start_id} must be below end_id {end_id}")
    result = await fetch_range(
        end_id, lambda i: fetch_chat_group(rpc, programs, i), concurrency, start=start_id, what="chat group"
    )
    return list(result.items)


async def chat_statistics(
    rpc: RpcClient,
    programs: ProgramIds,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> ChatStatistics:
    """Fetch every chat group and aggregate; unreadable groups are skipped."""
    total = await next_group_id(rpc, programs)
    result = await fetch_range(total, lambda i: fetch_chat_group(rpc, programs, i), concurrency, what="chat group")
    return ChatStatistics(
        total_groups=result.total,
        valid_groups=result.valid,
        total_memos=sum(g.memo_count for g in result.items),
        total_burned=sum(g.burned_amount for g in result.items),
        groups=result.items,
    )


async def chat_messages(
    rpc: RpcClient,
    programs: ProgramIds,
    group_id: int,
    limit: int = DEFAULT_MESSAGE_LIMIT,
    before: Optional[str] = None,
) -> MemoPage:
    """Messages sent to a group, oldest first. ``limit`` is capped at 1000."""
    address = chat_group_address(programs, group_id)
    await require_owned(rpc, address, programs.chat, f"chat group {group_id}")

    def accept(memo) -> bool:
        record = memo.record
        return (
            isinstance(record, ChatMessage)
            and record.matches(group_id=group_id)
            and bool(record.message.strip())
        )

    return await read_memos(
        rpc,
        str(address),
        limit=min(limit, MAX_SIGNATURE_LIMIT),
        before=before,
        accept=accept,
        newest_first=False,
        decode=decode_bare_memo,
    )
