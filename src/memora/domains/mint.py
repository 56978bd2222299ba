"""
memo-mint: mint the current reward to the user against a text memo.

The reward shrinks as total supply grows, tier by tier. The user's
Token-2022 account is created in the same transaction when missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from solders.pubkey import Pubkey

from ..codex.memo import U64_MAX, validate_memo_length
from ..config import SYSVAR_INSTRUCTIONS, ProgramIds
from ..pneuma.budget import MINT_POLICY
from ..pneuma.rpc import RpcClient
from ..pneuma.tx import create_idempotent_ata_instruction
from ..sigil.derive import associated_token_address, mint_authority_address
from .base import Operation, OperationDescriptor, build_operation, readonly, writable

logger = logging.getLogger(__name__)

PROCESS_MINT = OperationDescriptor("process_mint", policy=MINT_POLICY)


@dataclass(frozen=True)
class SupplyTier:
    """Reward per mint while ``minimum <= supply < maximum`` (all in base units)."""

    minimum: int
    maximum: int
    reward: int
    label: str


SUPPLY_TIERS: tuple[SupplyTier, ...] = (
    SupplyTier(0, 100_000_000_000_000, 1_000_000, "0-100M"),
    SupplyTier(100_000_000_000_000, 1_000_000_000_000_000, 100_000, "100M-1B"),
    SupplyTier(1_000_000_000_000_000, 10_000_000_000_000_000, 10_000, "1B-10B"),
    SupplyTier(10_000_000_000_000_000, 100_000_000_000_000_000, 1_000, "10B-100B"),
    SupplyTier(100_000_000_000_000_000, 1_000_000_000_000_000_000, 100, "100B-1T"),
    SupplyTier(1_000_000_000_000_000_000, U64_MAX, 1, "1T+"),
)


def supply_tier(supply: int) -> SupplyTier:
    for tier in SUPPLY_TIERS:
        if tier.minimum <= supply < tier.maximum:
            return tier
    return SUPPLY_TIERS[-1]


def build_mint(
    programs: ProgramIds,
    user: Pubkey,
    memo: str,
    create_token_account: bool = False,
) -> Operation:
    """
    Build a ``process_mint`` operation.

    Args:
        programs: Program ids of the target network
        user: Recipient and fee payer
        memo: Plain memo text, 69-800 bytes
        create_token_account: Prepend an idempotent ATA creation

    Returns:
        Operation whose result is the user's token account
    """
    validate_memo_length(memo)
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    prefix = []
    if create_token_account:
        prefix.append(
            create_idempotent_ata_instruction(user, user, programs.token_mint, token_account, programs.token_2022)
        )
    accounts = [
        writable(user, signer=True),
        writable(programs.token_mint),
        readonly(mint_authority_address(programs.mint)),
        writable(token_account),
        readonly(programs.token_2022),
        readonly(SYSVAR_INSTRUCTIONS),
    ]
    return build_operation(
        PROCESS_MINT, programs.mint, user, accounts,
        memo=memo, memo_signers=[user], prefix=prefix, result=str(token_account),
    )


async def token_account_exists(rpc: RpcClient, programs: ProgramIds, user: Pubkey) -> bool:
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    return await rpc.get_account_info(str(token_account)) is not None


async def prepare_mint(rpc: RpcClient, programs: ProgramIds, user: Pubkey, memo: str) -> Operation:
    """``build_mint``, creating the token account if the ledger has none."""
    validate_memo_length(memo)
    missing = not await token_account_exists(rpc, programs, user)
    if missing:
        logger.info("Token account for %s does not exist; it will be created", user)
    return build_mint(programs, user, memo, create_token_account=missing)


async def current_reward(rpc: RpcClient, programs: ProgramIds) -> tuple[int, SupplyTier]:
    """Current supply and the tier it falls in."""
    supply = await rpc.get_token_supply(str(programs.token_mint))
    return supply, supply_tier(supply)
