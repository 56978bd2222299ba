"""
Derived addresses and instruction discriminators.

Program-derived addresses are recomputed on every use and never stored.
Seed order and encoding must match the on-chain programs exactly: tags are
ASCII byte strings, numeric ids are u64 little-endian, user keys are the
raw 32 pubkey bytes.
"""

from __future__ import annotations

import hashlib
from typing import Optional, Sequence, Union

from solders.pubkey import Pubkey

from ..codex.records import check_u64
from ..config import ASSOCIATED_TOKEN_PROGRAM, TOKEN_2022_PROGRAM
from ..errors import InvalidAddressError

# Seed tags
PROFILE_SEED = b"profile"
GLOBAL_COUNTER_SEED = b"global_counter"
GLOBAL_BLOG_COUNTER_SEED = b"global_blog_counter"
BLOG_SEED = b"blog"
POST_SEED = b"post"
PROJECT_SEED = b"project"
BURN_LEADERBOARD_SEED = b"burn_leaderboard"
USER_GLOBAL_BURN_STATS_SEED = b"user_global_burn_stats"
MINT_AUTHORITY_SEED = b"mint_authority"
CHAT_GROUP_SEED = b"chat_group"


def discriminator(operation_name: str) -> bytes:
    """8-byte instruction selector: ``sha256("global:" + name)[:8]``."""
    return hashlib.sha256(f"global:{operation_name}".encode("utf-8")).digest()[:8]


def to_pubkey(value: Union[str, Pubkey], what: str = "address") -> Pubkey:
    """Parse a base58 address, raising ``InvalidAddressError`` on bad input."""
    if isinstance(value, Pubkey):
        return value
    try:
        return Pubkey.from_string(value.strip())
    except (ValueError, AttributeError) as exc:
        raise InvalidAddressError(f"Invalid {what} '{value}': {exc}") from exc


def derive_address(program_id: Pubkey, seeds: Sequence[bytes]) -> tuple[Pubkey, int]:
    """
    Derive a program address.

    Args:
        program_id: Owning program
        seeds: Seed byte strings, in program order

    Returns:
        Tuple of (address, bump)
    """
    return Pubkey.find_program_address(list(seeds), program_id)


def u64_seed(value: int, field: str = "id") -> bytes:
    check_u64(field, value)
    return value.to_bytes(8, "little", signed=False)


# ---------------------------------------------------------------------------
# Named derivations
# ---------------------------------------------------------------------------

def profile_address(program_id: Pubkey, user: Pubkey) -> Pubkey:
    return derive_address(program_id, [PROFILE_SEED, bytes(user)])[0]


def global_counter_address(program_id: Pubkey, seed: bytes = GLOBAL_COUNTER_SEED) -> Pubkey:
    return derive_address(program_id, [seed])[0]


def entity_address(program_id: Pubkey, tag: bytes, entity_id: int, field: Optional[str] = None) -> Pubkey:
    """
    Address of a numbered entity (blog, post, project, chat group).

    Raises:
        InvalidParameterError: If ``entity_id`` is not a u64; ``field``
            (default ``<tag>_id``) names it in the error
    """
    seed = u64_seed(entity_id, field or f"{tag.decode('ascii')}_id")
    return derive_address(program_id, [tag, seed])[0]


def burn_leaderboard_address(program_id: Pubkey) -> Pubkey:
    return derive_address(program_id, [BURN_LEADERBOARD_SEED])[0]


def user_burn_stats_address(burn_program_id: Pubkey, user: Pubkey) -> Pubkey:
    return derive_address(burn_program_id, [USER_GLOBAL_BURN_STATS_SEED, bytes(user)])[0]


def mint_authority_address(mint_program_id: Pubkey) -> Pubkey:
    return derive_address(mint_program_id, [MINT_AUTHORITY_SEED])[0]


def associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program: Pubkey = TOKEN_2022_PROGRAM,
) -> Pubkey:
    """Associated token account of ``owner`` for ``mint`` under ``token_program``."""
    return derive_address(
        ASSOCIATED_TOKEN_PROGRAM, [bytes(owner), bytes(token_program), bytes(mint)]
    )[0]
