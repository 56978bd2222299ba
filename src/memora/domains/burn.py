"""
memo-burn: plain token burns with a message, and per-user burn statistics.

Every burn routed through memo-burn (including the social programs' burns)
updates the user's ``user_global_burn_stats`` account, which must be
initialized once before the first burn.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from borsh_construct import CStruct, U64
from solders.pubkey import Pubkey

from ..codex.accounts import USER_BURN_STATS_SIZE, UserBurnStats, parse_user_burn_stats
from ..codex.memo import encode_envelope
from ..config import SYSTEM_PROGRAM, SYSVAR_INSTRUCTIONS, ProgramIds
from ..errors import DecodeError
from ..pneuma.budget import BURN_POLICY
from ..pneuma.rpc import RpcClient
from ..sigil.derive import associated_token_address, to_pubkey, user_burn_stats_address
from .base import BurnRule, Operation, OperationDescriptor, build_operation, fetch_owned, readonly, tokens, writable

logger = logging.getLogger(__name__)

MIN_BURN = tokens(1)
MAX_BURN = tokens(1_000_000_000_000)

PROCESS_BURN = OperationDescriptor(
    "process_burn",
    args=CStruct("amount" / U64),
    burn_rule=BurnRule(MIN_BURN, MAX_BURN),
    policy=BURN_POLICY,
)
INITIALIZE_BURN_STATS = OperationDescriptor("initialize_user_global_burn_stats", policy=BURN_POLICY)


def build_burn(programs: ProgramIds, user: Pubkey, amount: int, message: str) -> Operation:
    """
    Build a ``process_burn`` operation.

    Args:
        programs: Program ids of the target network
        user: Burner and fee payer
        amount: Base units, whole tokens, 1 to 10^12 tokens
        message: UTF-8 message carried as the memo payload, 39-587 bytes
            (the encoded memo must be at least 69 characters)

    Returns:
        Operation
    """
    PROCESS_BURN.burn_rule.check(amount, "amount")
    memo = encode_envelope(message.encode("utf-8"), amount, PROCESS_BURN.memo_range)
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    accounts = [
        writable(user, signer=True),
        writable(programs.token_mint),
        writable(token_account),
        writable(user_burn_stats_address(programs.burn, user)),
        readonly(programs.token_2022),
        readonly(SYSVAR_INSTRUCTIONS),
    ]
    return build_operation(
        PROCESS_BURN, programs.burn, user, accounts,
        memo=memo, memo_signers=[user], amount=amount,
    )


def build_initialize_burn_stats(programs: ProgramIds, user: Pubkey) -> Operation:
    """Create the user's burn statistics account."""
    stats = user_burn_stats_address(programs.burn, user)
    accounts = [writable(user, signer=True), writable(stats), readonly(SYSTEM_PROGRAM)]
    return build_operation(INITIALIZE_BURN_STATS, programs.burn, user, accounts, result=str(stats))


async def fetch_burn_stats(
    rpc: RpcClient,
    programs: ProgramIds,
    user: Union[str, Pubkey],
) -> Optional[UserBurnStats]:
    """The user's burn statistics, or None if not initialized."""
    owner = to_pubkey(user, "user")
    data = await fetch_owned(rpc, user_burn_stats_address(programs.burn, owner), programs.burn, "burn stats")
    if data is None:
        return None
    return parse_user_burn_stats(data)


async def top_burners(rpc: RpcClient, programs: ProgramIds, limit: int = 10) -> list[UserBurnStats]:
    """Users with the largest total burn, descending."""
    accounts = await rpc.get_program_accounts(str(programs.burn), data_size=USER_BURN_STATS_SIZE)
    burners = []
    for address, info in accounts:
        try:
            stats = parse_user_burn_stats(info.data)
        except DecodeError as exc:
            logger.warning("Skipping burn stats account %s: %s", address, exc)
            continue
        if stats.total_burned > 0:
            burners.append(stats)
    burners.sort(key=lambda s: s.total_burned, reverse=True)
    logger.info("Found %d burners", len(burners))
    return burners[:limit]
