"""
Compute budget estimation.

Simulate-then-finalize:

1. assemble the operation with the placeholder limit (and the configured
   price, so the simulated instruction list matches the final one);
2. ``simulateTransaction``;
3. read ``unitsConsumed``, or fall back to a table keyed by memo size;
4. final limit = ``max(ceil(units * multiplier), floor)``, clamped to the
   policy ceiling (memo-chat caps at 400,000) and the platform maximum.

The estimate is not re-checked against ledger changes between simulation
and submission; the multiplier and floor absorb that drift.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..errors import TransactionFailedError
from .rpc import RpcClient
from .tx import MAX_COMPUTE_UNIT_LIMIT, assemble

logger = logging.getLogger(__name__)

# (max memo bytes, units) buckets, ascending
FallbackTable = tuple[tuple[int, int], ...]

SOCIAL_FALLBACK: FallbackTable = (
    (100, 100_000),
    (200, 150_000),
    (300, 200_000),
    (400, 250_000),
    (500, 300_000),
    (600, 350_000),
    (700, 400_000),
)
SOCIAL_FALLBACK_DEFAULT = 400_000

MINT_FALLBACK: FallbackTable = (
    (100, 120_000),
    (200, 160_000),
    (300, 200_000),
    (400, 250_000),
    (500, 300_000),
    (600, 350_000),
    (700, 400_000),
)
MINT_FALLBACK_DEFAULT = 450_000

BURN_FALLBACK_DEFAULT = 400_000

CHAT_MIN_UNITS = 120_000
CHAT_MAX_UNITS = 400_000

TRANSFER_FALLBACK_DEFAULT = 200_000


@dataclass(frozen=True)
class BudgetPolicy:
    """Per-domain estimation constants."""

    multiplier: float = 1.1
    floor: int = 1000
    fallback: FallbackTable = SOCIAL_FALLBACK
    fallback_default: int = SOCIAL_FALLBACK_DEFAULT
    ceiling: int = MAX_COMPUTE_UNIT_LIMIT

    def with_multiplier(self, multiplier: Optional[float]) -> "BudgetPolicy":
        """Same policy with a settings override applied (None keeps the default)."""
        if multiplier is None:
            return self
        return replace(self, multiplier=multiplier)


SOCIAL_POLICY = BudgetPolicy()
BURN_POLICY = BudgetPolicy(multiplier=1.0, floor=300_000, fallback=(), fallback_default=BURN_FALLBACK_DEFAULT)
MINT_POLICY = BudgetPolicy(multiplier=1.0, floor=1000, fallback=MINT_FALLBACK, fallback_default=MINT_FALLBACK_DEFAULT)
CHAT_POLICY = BudgetPolicy(
    multiplier=1.2, floor=CHAT_MIN_UNITS, fallback=(), fallback_default=CHAT_MIN_UNITS, ceiling=CHAT_MAX_UNITS
)
TRANSFER_POLICY = BudgetPolicy(fallback=(), fallback_default=TRANSFER_FALLBACK_DEFAULT)


def final_unit_limit(units: int, multiplier: float, floor: int, ceiling: int = MAX_COMPUTE_UNIT_LIMIT) -> int:
    """``max(ceil(units * multiplier), floor)`` clamped to ``ceiling`` and the platform maximum."""
    limit = max(math.ceil(units * multiplier), floor)
    return min(limit, ceiling, MAX_COMPUTE_UNIT_LIMIT)


def fallback_units(memo_size: int, table: FallbackTable, default: int) -> int:
    """Units for a memo of ``memo_size`` bytes when simulation reports none."""
    for max_size, units in table:
        if memo_size <= max_size:
            return units
    return default


@dataclass(frozen=True)
class Estimate:
    simulated_units: Optional[int]
    unit_limit: int
    used_fallback: bool = False


async def estimate(
    rpc: RpcClient,
    base: Sequence[Instruction],
    payer: Pubkey,
    policy: BudgetPolicy,
    memo_size: int = 0,
    unit_price: Optional[int] = None,
) -> Estimate:
    """
    Simulate ``base`` and derive the final compute unit limit.

    Args:
        rpc: Transport
        base: Memo and program instructions, in final order
        payer: Fee payer
        policy: Multiplier, floor and fallback table
        memo_size: Memo text length, for the fallback table
        unit_price: Price to include so the simulated list matches the final one

    Returns:
        Estimate with the final limit

    Raises:
        TransactionFailedError: If the simulation reports an error
    """
    blockhash = await rpc.get_latest_blockhash()
    sim_tx = assemble(base, payer, blockhash.blockhash, MAX_COMPUTE_UNIT_LIMIT, unit_price)
    result = await rpc.simulate_transaction(sim_tx)

    if result.err is not None:
        detail = result.error_message or str(result.err)
        raise TransactionFailedError("Simulation failed", detail=detail, logs=result.logs)

    if result.units_consumed is None:
        units = fallback_units(memo_size, policy.fallback, policy.fallback_default)
        logger.warning(
            "Simulation reported no unitsConsumed; using fallback of %d units for a %d-byte memo",
            units,
            memo_size,
        )
        limit = final_unit_limit(units, policy.multiplier, policy.floor, policy.ceiling)
        return Estimate(None, limit, used_fallback=True)

    limit = final_unit_limit(result.units_consumed, policy.multiplier, policy.floor, policy.ceiling)
    logger.info("Simulation consumed %d compute units; limit set to %d", result.units_consumed, limit)
    return Estimate(result.units_consumed, limit)
