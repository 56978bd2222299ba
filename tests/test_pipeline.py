"""Tests for the simulate-then-finalize pipeline."""

from __future__ import annotations

import asyncio
import base64
import logging
import math

import pytest
from solders.compute_budget import ID as COMPUTE_BUDGET_PROGRAM
from solders.transaction import Transaction

from memora.codex.memo import decode_memo
from memora.config import MEMO_PROGRAM, TESTNET, Settings
from memora.domains.mint import build_mint
from memora.domains.profile import build_create_profile
from memora.errors import ProtocolError, TransactionFailedError
from memora.pneuma.pipeline import TransactionPipeline
from memora.pneuma.tx import instruction_program_ids
from memora.sigil.signer import KeypairSigner

ASSOCIATED_TOKEN_PROGRAM = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"


def capture(node, units=150_000):
    """Record the simulated and submitted transactions."""
    simulated: list[Transaction] = []
    sent: list[Transaction] = []

    def simulate(params: list) -> dict:
        simulated.append(Transaction.from_bytes(base64.b64decode(params[0])))
        return {"context": {"slot": 1}, "value": {"err": None, "logs": [], "unitsConsumed": units}}

    def send(params: list) -> str:
        tx = Transaction.from_bytes(base64.b64decode(params[0]))
        sent.append(tx)
        return str(tx.signatures[0])

    node.handlers["simulateTransaction"] = simulate
    node.handlers["sendTransaction"] = send
    return simulated, sent


class TestCreateProfile:
    def test_alice_submitted(self, node, programs, keypair) -> None:
        simulated, sent = capture(node)
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)

        async def go():
            async with node.client() as rpc:
                return await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        submission = asyncio.run(go())

        assert len(simulated) == 1 and len(sent) == 1
        assert submission.unit_limit == math.ceil(150_000 * 1.1)
        assert submission.result == op.result
        assert submission.signature == str(sent[0].signatures[0])
        sent[0].verify()

        memo_text = bytes(sent[0].message.instructions[0].data).decode("utf-8")
        decoded = decode_memo(memo_text)
        assert decoded.burn_amount == 420_000_000
        assert decoded.record.username == "alice"
        assert decoded.record.user_pubkey == str(keypair.pubkey())

    def test_order_identical_in_both_passes(self, node, programs, keypair) -> None:
        simulated, sent = capture(node)
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)
        settings = Settings(network=TESTNET, compute_unit_price=5_000)

        async def go():
            async with node.client(settings) as rpc:
                await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        asyncio.run(go())

        expected = [MEMO_PROGRAM, programs.profile, COMPUTE_BUDGET_PROGRAM, COMPUTE_BUDGET_PROGRAM]
        assert instruction_program_ids(simulated[0]) == expected
        assert instruction_program_ids(sent[0]) == expected

    def test_debug_log_lists_programs(self, node, programs, keypair, caplog) -> None:
        capture(node)
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)
        caplog.set_level(logging.DEBUG, logger="memora.pneuma.pipeline")

        async def go():
            async with node.client() as rpc:
                await TransactionPipeline(rpc).build(op)

        asyncio.run(go())
        assert f"Instruction programs: {MEMO_PROGRAM}, {programs.profile}" in caplog.text

    def test_blockhash_fetched_for_each_pass(self, node, programs, keypair) -> None:
        capture(node)
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)

        async def go():
            async with node.client() as rpc:
                await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        asyncio.run(go())
        assert node.methods() == [
            "getLatestBlockhash",
            "simulateTransaction",
            "getLatestBlockhash",
            "sendTransaction",
        ]

    def test_settings_multiplier_overrides_domain(self, node, programs, keypair) -> None:
        capture(node, units=200_000)
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)
        settings = Settings(network=TESTNET, compute_unit_buffer_percentage=50)

        async def go():
            async with node.client(settings) as rpc:
                return await TransactionPipeline(rpc).build(op)

        built = asyncio.run(go())
        assert built.estimate.unit_limit == 300_000

    def test_simulation_failure_stops_submission(self, node, programs, keypair) -> None:
        node.handlers["simulateTransaction"] = {
            "context": {"slot": 1},
            "value": {
                "err": {"InstructionError": [1, {"Custom": 6000}]},
                "logs": ["Program log: Error Message: Profile already exists."],
                "unitsConsumed": 20_000,
            },
        }
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)

        async def go():
            async with node.client() as rpc:
                await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        with pytest.raises(TransactionFailedError, match="Profile already exists"):
            asyncio.run(go())
        assert "sendTransaction" not in node.methods()

    def test_send_rejection_propagates(self, node, programs, keypair) -> None:
        capture(node)
        node.fail("sendTransaction", -32002, "Transaction simulation failed", {"logs": []})
        op = build_create_profile(programs, keypair.pubkey(), "alice", 420_000_000)

        async def go():
            async with node.client() as rpc:
                await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        with pytest.raises(ProtocolError):
            asyncio.run(go())


class TestMint:
    def test_token_account_created_between_memo_and_mint(self, node, programs, keypair) -> None:
        simulated, sent = capture(node, units=None)
        memo = "minting a little memo token to celebrate the first day of this new client"
        op = build_mint(programs, keypair.pubkey(), memo, create_token_account=True)

        async def go():
            async with node.client() as rpc:
                return await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        submission = asyncio.run(go())
        ids = [str(p) for p in instruction_program_ids(sent[0])]
        assert ids[:3] == [str(MEMO_PROGRAM), ASSOCIATED_TOKEN_PROGRAM, str(programs.mint)]
        assert ids[3:] == [str(COMPUTE_BUDGET_PROGRAM)]
        # no unitsConsumed: a 73-byte memo falls in the first mint bucket
        assert submission.unit_limit == 120_000
