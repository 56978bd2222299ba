"""
Transaction pipeline.

One generic path for every operation: estimate against a simulation, then
assemble the final unsigned transaction on a freshly fetched blockhash, then
hand it to the signer and submit it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from solders.hash import Hash
from solders.transaction import Transaction

from ..config import Settings
from .budget import Estimate, estimate
from .rpc import RpcClient
from .tx import assemble, instruction_program_ids

if TYPE_CHECKING:
    from ..domains.base import Operation
    from ..sigil.signer import Signer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuiltTransaction:
    transaction: Transaction
    blockhash: Hash
    estimate: Estimate


@dataclass(frozen=True)
class Submission:
    signature: str
    unit_limit: int
    result: Any = None


class TransactionPipeline:
    """
    Simulate-then-finalize over an ``RpcClient``.

    Args:
        rpc: Transport
        settings: Multiplier and price overrides (defaults to ``rpc.settings``)
    """

    def __init__(self, rpc: RpcClient, settings: Optional[Settings] = None):
        self.rpc = rpc
        self.settings = settings or rpc.settings

    async def build(self, operation: "Operation") -> BuiltTransaction:
        """Build the final unsigned transaction for ``operation``."""
        price = self.settings.compute_unit_price_micro_lamports()
        policy = operation.policy.with_multiplier(self.settings.compute_unit_multiplier())

        result = await estimate(
            self.rpc,
            operation.instructions,
            operation.payer,
            policy,
            memo_size=operation.memo_size,
            unit_price=price,
        )

        blockhash = await self.rpc.get_latest_blockhash()
        tx = assemble(operation.instructions, operation.payer, blockhash.blockhash, result.unit_limit, price)
        logger.info("Built %s: %d instructions, limit %d", operation.name, len(tx.message.instructions), result.unit_limit)
        logger.debug("Instruction programs: %s", ", ".join(str(p) for p in instruction_program_ids(tx)))
        return BuiltTransaction(transaction=tx, blockhash=blockhash.blockhash, estimate=result)

    async def submit(self, operation: "Operation", signer: "Signer") -> Submission:
        """Build, sign and send ``operation``; returns the signature."""
        built = await self.build(operation)
        signed = signer.sign(built.transaction, built.blockhash)
        signature = await self.rpc.send_transaction(signed)
        logger.info("Submitted %s: %s", operation.name, signature)
        return Submission(signature=signature, unit_limit=built.estimate.unit_limit, result=operation.result)
