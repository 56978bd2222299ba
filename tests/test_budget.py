"""Tests for compute budget estimation and transaction assembly."""

from __future__ import annotations

import asyncio
import base64
import math

import pytest
from solders.compute_budget import ID as COMPUTE_BUDGET_PROGRAM
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import Transaction

from memora.config import MEMO_PROGRAM, TESTNET
from memora.errors import TransactionFailedError
from memora.pneuma.budget import (
    BURN_POLICY,
    CHAT_POLICY,
    MINT_FALLBACK,
    MINT_POLICY,
    SOCIAL_FALLBACK,
    SOCIAL_POLICY,
    BudgetPolicy,
    estimate,
    fallback_units,
    final_unit_limit,
)
from memora.pneuma.tx import (
    MAX_COMPUTE_UNIT_LIMIT,
    assemble,
    instruction_program_ids,
    memo_instruction,
)


class TestFinalLimit:
    @pytest.mark.parametrize("multiplier", [1.0, 1.1, 1.25, 2.0])
    def test_monotonic_in_units(self, multiplier: float) -> None:
        limits = [final_unit_limit(u, multiplier, 1000) for u in range(0, 2_000_000, 37_500)]
        assert limits == sorted(limits)

    @pytest.mark.parametrize("units", [0, 1, 999, 150_000, 299_999])
    def test_never_below_floor(self, units: int) -> None:
        assert final_unit_limit(units, 1.0, 300_000) >= 300_000

    def test_ceiling_of_product(self) -> None:
        assert final_unit_limit(150_000, 1.1, 1000) == math.ceil(150_000 * 1.1)
        assert final_unit_limit(12_345, 1.0, 1000) == 12_345

    def test_clamped_to_platform_maximum(self) -> None:
        assert final_unit_limit(1_350_000, 1.1, 1000) == MAX_COMPUTE_UNIT_LIMIT

    def test_policy_ceiling(self) -> None:
        assert final_unit_limit(500_000, 1.2, 120_000, ceiling=400_000) == 400_000
        assert final_unit_limit(1_000, 1.2, 120_000, ceiling=400_000) == 120_000

    def test_override_replaces_multiplier(self) -> None:
        assert SOCIAL_POLICY.with_multiplier(None) is SOCIAL_POLICY
        policy = SOCIAL_POLICY.with_multiplier(1.5)
        assert policy.multiplier == 1.5
        assert policy.floor == SOCIAL_POLICY.floor
        assert policy.fallback == SOCIAL_POLICY.fallback


class TestFallback:
    def test_social_buckets(self) -> None:
        assert fallback_units(88, SOCIAL_FALLBACK, 400_000) == 100_000
        assert fallback_units(100, SOCIAL_FALLBACK, 400_000) == 100_000
        assert fallback_units(101, SOCIAL_FALLBACK, 400_000) == 150_000
        assert fallback_units(800, SOCIAL_FALLBACK, 400_000) == 400_000

    def test_mint_default_beyond_table(self) -> None:
        assert fallback_units(750, MINT_FALLBACK, MINT_POLICY.fallback_default) == 450_000

    def test_burn_has_flat_default(self) -> None:
        assert fallback_units(100, BURN_POLICY.fallback, BURN_POLICY.fallback_default) == 400_000


class TestAssemble:
    def test_order_memo_program_limit_price(self) -> None:
        payer = Keypair().pubkey()
        program_ix = memo_instruction("second", [payer])
        tx = assemble([memo_instruction("first"), program_ix], payer, Hash.default(), 200_000, 5)
        ids = instruction_program_ids(tx)
        assert ids[:2] == [MEMO_PROGRAM, MEMO_PROGRAM]
        assert ids[2:] == [COMPUTE_BUDGET_PROGRAM, COMPUTE_BUDGET_PROGRAM]

    def test_no_price_instruction_without_price(self) -> None:
        payer = Keypair().pubkey()
        tx = assemble([memo_instruction("m")], payer, Hash.default(), 200_000)
        assert instruction_program_ids(tx) == [MEMO_PROGRAM, COMPUTE_BUDGET_PROGRAM]


class TestEstimate:
    def _run(self, node, units, err=None, logs=None, policy: BudgetPolicy = SOCIAL_POLICY, memo_size=120):
        seen: list[Transaction] = []

        def simulate(params: list) -> dict:
            seen.append(Transaction.from_bytes(base64.b64decode(params[0])))
            return {"context": {"slot": 1}, "value": {"err": err, "logs": logs or [], "unitsConsumed": units}}

        node.handlers["simulateTransaction"] = simulate
        payer = Keypair().pubkey()

        async def go():
            async with node.client() as rpc:
                return await estimate(rpc, [memo_instruction("m" * memo_size)], payer, policy, memo_size=memo_size)

        return asyncio.run(go()), seen

    def test_uses_simulated_units(self, node) -> None:
        result, seen = self._run(node, 150_000)
        assert result.simulated_units == 150_000
        assert result.unit_limit == math.ceil(150_000 * 1.1)
        assert not result.used_fallback
        assert len(seen) == 1

    def test_simulates_with_placeholder_limit(self, node) -> None:
        _, seen = self._run(node, 150_000)
        ids = instruction_program_ids(seen[0])
        assert ids == [MEMO_PROGRAM, COMPUTE_BUDGET_PROGRAM]

    def test_missing_units_uses_fallback(self, node) -> None:
        result, _ = self._run(node, None, memo_size=150)
        assert result.used_fallback
        assert result.simulated_units is None
        assert result.unit_limit == math.ceil(150_000 * 1.1)

    def test_burn_floor_applies(self, node) -> None:
        result, _ = self._run(node, 40_000, policy=BURN_POLICY)
        assert result.unit_limit == 300_000

    @pytest.mark.parametrize(
        "units, expected",
        [(50_000, 120_000), (200_000, 240_000), (340_000, 400_000), (None, 144_000)],
    )
    def test_chat_limit_between_floor_and_ceiling(self, node, units, expected: int) -> None:
        result, _ = self._run(node, units, policy=CHAT_POLICY)
        assert result.unit_limit == expected

    def test_simulation_error_raises_with_program_message(self, node) -> None:
        logs = [
            "Program log: Instruction: CreateProfile",
            "Program log: AnchorError occurred. Error Code: BurnAmountTooSmall. "
            "Error Number: 6001. Error Message: Burn amount too small.",
        ]
        with pytest.raises(TransactionFailedError) as exc_info:
            self._run(node, 5_000, err={"InstructionError": [1, {"Custom": 6001}]}, logs=logs)
        assert exc_info.value.detail == "Burn amount too small"
        assert exc_info.value.logs == logs
        assert "Simulation failed" in str(exc_info.value)
