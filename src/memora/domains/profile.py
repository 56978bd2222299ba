"""
memo-profile: one profile account per user.

Creating or updating a profile burns at least 420 tokens; the burn and the
profile fields travel in the memo, and the program checks them against the
instruction arguments.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from borsh_construct import CStruct, Option, String, U8, U64
from construct import If, this
from solders.pubkey import Pubkey

from ..anamnesis.stats import fetch_bounded
from ..codex.accounts import Profile, parse_profile
from ..codex.memo import encode_memo
from ..codex.records import ProfileCreation, ProfileUpdate
from ..config import DEFAULT_CONCURRENCY, SYSTEM_PROGRAM, SYSVAR_INSTRUCTIONS, ProgramIds
from ..errors import InvalidParameterError
from ..pneuma.rpc import RpcClient
from ..sigil.derive import associated_token_address, profile_address, to_pubkey
from .base import BurnRule, Operation, OperationDescriptor, build_operation, fetch_owned, readonly, tokens, writable

logger = logging.getLogger(__name__)

MIN_PROFILE_BURN = tokens(420)

CREATE_PROFILE = OperationDescriptor(
    "create_profile",
    args=CStruct("burn_amount" / U64),
    burn_rule=BurnRule(MIN_PROFILE_BURN),
)

UPDATE_PROFILE = OperationDescriptor(
    "update_profile",
    args=CStruct(
        "burn_amount" / U64,
        "username" / Option(String),
        "image" / Option(String),
        # Option<Option<String>>: outer flag, then the inner option
        "about_me_present" / U8,
        "about_me" / If(this.about_me_present == 1, Option(String)),
    ),
    burn_rule=BurnRule(MIN_PROFILE_BURN),
)

DELETE_PROFILE = OperationDescriptor("delete_profile")


def build_create_profile(
    programs: ProgramIds,
    user: Pubkey,
    username: str,
    burn_amount: int,
    image: str = "",
    about_me: Optional[str] = None,
) -> Operation:
    """
    Build a ``create_profile`` operation.

    Args:
        programs: Program ids of the target network
        user: Profile owner and fee payer
        username: 1-32 bytes
        burn_amount: Base units, at least 420 tokens
        image: Image URL or pixel data, up to 256 bytes
        about_me: Up to 128 bytes; empty means none

    Returns:
        Operation whose result is the profile address
    """
    CREATE_PROFILE.burn_rule.check(burn_amount)
    record = ProfileCreation(
        user_pubkey=str(user),
        username=username,
        image=image,
        about_me=about_me or None,
    )
    memo = encode_memo(record, burn_amount)

    profile = profile_address(programs.profile, user)
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    accounts = [
        writable(user, signer=True),
        writable(profile),
        writable(programs.token_mint),
        writable(token_account),
        readonly(programs.token_2022),
        readonly(programs.burn),
        readonly(SYSTEM_PROGRAM),
        readonly(SYSVAR_INSTRUCTIONS),
    ]
    return build_operation(
        CREATE_PROFILE,
        programs.profile,
        user,
        accounts,
        memo=memo,
        result=str(profile),
        burn_amount=burn_amount,
    )


def build_update_profile(
    programs: ProgramIds,
    user: Pubkey,
    burn_amount: int,
    username: Optional[str] = None,
    image: Optional[str] = None,
    about_me: Optional[str] = None,
) -> Operation:
    """
    Build an ``update_profile`` operation.

    ``None`` leaves a field unchanged; ``about_me=""`` clears it.
    """
    UPDATE_PROFILE.burn_rule.check(burn_amount)
    if username is None and image is None and about_me is None:
        raise InvalidParameterError("profile", "nothing to update")
    record = ProfileUpdate(user_pubkey=str(user), username=username, image=image, about_me=about_me)
    memo = encode_memo(record, burn_amount)

    profile = profile_address(programs.profile, user)
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    accounts = [
        writable(user, signer=True),
        writable(programs.token_mint),
        writable(token_account),
        writable(profile),
        readonly(programs.token_2022),
        readonly(SYSVAR_INSTRUCTIONS),
        readonly(programs.burn),
    ]
    return build_operation(
        UPDATE_PROFILE,
        programs.profile,
        user,
        accounts,
        memo=memo,
        result=str(profile),
        burn_amount=burn_amount,
        username=username,
        image=image,
        about_me_present=0 if about_me is None else 1,
        about_me=about_me or None,
    )


def build_delete_profile(programs: ProgramIds, user: Pubkey) -> Operation:
    """Close the user's profile account (no memo, no burn)."""
    profile = profile_address(programs.profile, user)
    accounts = [writable(user, signer=True), writable(profile)]
    return build_operation(DELETE_PROFILE, programs.profile, user, accounts, result=str(profile))


async def fetch_profile(rpc: RpcClient, programs: ProgramIds, user: Union[str, Pubkey]) -> Optional[Profile]:
    """The user's profile, or None if they have none."""
    owner = to_pubkey(user, "user")
    data = await fetch_owned(rpc, profile_address(programs.profile, owner), programs.profile, "profile")
    if data is None:
        return None
    return parse_profile(data)


async def fetch_profiles(
    rpc: RpcClient,
    programs: ProgramIds,
    users: Sequence[str],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[tuple[str, Optional[Profile]]]:
    """
    Look up many profiles at once.

    A user whose profile is missing or unreadable maps to None; the
    failure is logged and the rest of the batch is unaffected.
    """
    outcomes = await fetch_bounded(users, lambda u: fetch_profile(rpc, programs, u), concurrency)
    results = []
    for user, profile, error in outcomes:
        if error is not None:
            logger.warning("Profile lookup failed for %s: %s", user, error)
        results.append((user, profile))
    return results


def display_name(user: str, profile: Optional[Profile]) -> str:
    """Username if the user has a profile, else the shortened address."""
    if profile is not None and profile.username:
        return profile.username
    if len(user) > 8:
        return f"{user[:4]}...{user[-4:]}"
    return user
