"""Tests for native and memo-token transfers."""

from __future__ import annotations

import asyncio
import base64
import math
import struct

import pytest
from solders.keypair import Keypair
from solders.transaction import Transaction

from memora.config import ASSOCIATED_TOKEN_PROGRAM, SYSTEM_PROGRAM
from memora.domains.transfer import (
    build_native_transfer,
    build_token_transfer,
    parse_amount,
    prepare_token_transfer,
)
from memora.errors import InvalidAddressError, InvalidParameterError
from memora.pneuma.pipeline import TransactionPipeline
from memora.sigil.derive import associated_token_address
from memora.sigil.signer import KeypairSigner


def run(coro):
    return asyncio.run(coro)


class TestParseAmount:
    @pytest.mark.parametrize(
        "text, decimals, expected",
        [
            ("1.5", 6, 1_500_000),
            ("0.000001", 6, 1),
            ("1.50000000", 6, 1_500_000),
            ("2", 9, 2_000_000_000),
            ("1e3", 6, 1_000_000_000),
        ],
    )
    def test_base_units(self, text: str, decimals: int, expected: int) -> None:
        assert parse_amount(text, decimals) == expected

    @pytest.mark.parametrize("text", ["0", "-1", "abc", "", "NaN", "Infinity", "0.0000001"])
    def test_rejected(self, text: str) -> None:
        with pytest.raises(InvalidParameterError) as exc_info:
            parse_amount(text, 6)
        assert exc_info.value.field == "amount"

    def test_u64_overflow(self) -> None:
        assert parse_amount("18446744073709.551615", 6) == 2 ** 64 - 1
        with pytest.raises(InvalidParameterError) as exc_info:
            parse_amount("18446744073709.551616", 6)
        assert exc_info.value.limit == 2 ** 64 - 1


class TestNativeTransfer:
    def test_system_transfer(self, keypair) -> None:
        user = keypair.pubkey()
        recipient = Keypair().pubkey()
        op = build_native_transfer(user, str(recipient), 2_500)

        (ix,) = op.instructions
        assert ix.program_id == SYSTEM_PROGRAM
        assert bytes(ix.data) == struct.pack("<IQ", 2, 2_500)
        assert [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts] == [
            (user, True, True),
            (recipient, False, True),
        ]
        assert op.memo_size == 0
        assert op.result == str(recipient)

    def test_bad_recipient(self, keypair) -> None:
        with pytest.raises(InvalidAddressError, match="recipient"):
            build_native_transfer(keypair.pubkey(), "not-base58!", 1)

    def test_zero_amount(self, keypair) -> None:
        with pytest.raises(InvalidParameterError, match="greater than zero"):
            build_native_transfer(keypair.pubkey(), Keypair().pubkey(), 0)

    def test_submitted_without_memo(self, node, keypair) -> None:
        sent: list[Transaction] = []
        node.handlers["simulateTransaction"] = {
            "context": {"slot": 1},
            "value": {"err": None, "logs": [], "unitsConsumed": None},
        }

        def send(params: list) -> str:
            tx = Transaction.from_bytes(base64.b64decode(params[0]))
            sent.append(tx)
            return str(tx.signatures[0])

        node.handlers["sendTransaction"] = send
        op = build_native_transfer(keypair.pubkey(), Keypair().pubkey(), 1_000)

        async def go():
            async with node.client() as rpc:
                return await TransactionPipeline(rpc).submit(op, KeypairSigner(keypair))

        submission = run(go())
        assert submission.unit_limit == math.ceil(200_000 * 1.1)
        keys = sent[0].message.account_keys
        assert keys[sent[0].message.instructions[0].program_id_index] == SYSTEM_PROGRAM


class TestTokenTransfer:
    def test_transfer_checked(self, programs, keypair) -> None:
        user = keypair.pubkey()
        recipient = Keypair().pubkey()
        op = build_token_transfer(programs, user, recipient, 1_500_000)

        (ix,) = op.instructions
        destination = associated_token_address(recipient, programs.token_mint)
        assert ix.program_id == programs.token_2022
        assert bytes(ix.data) == b"\x0c" + struct.pack("<Q", 1_500_000) + b"\x06"
        assert [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts] == [
            (associated_token_address(user, programs.token_mint), False, True),
            (programs.token_mint, False, False),
            (destination, False, True),
            (user, True, False),
        ]
        assert op.result == str(destination)

    def test_recipient_account_created_first(self, programs, keypair) -> None:
        recipient = Keypair().pubkey()
        op = build_token_transfer(programs, keypair.pubkey(), recipient, 1, create_recipient_account=True)
        create, _ = op.instructions
        assert create.program_id == ASSOCIATED_TOKEN_PROGRAM
        assert create.accounts[0].pubkey == keypair.pubkey()
        assert create.accounts[1].pubkey == associated_token_address(recipient, programs.token_mint)
        assert create.accounts[2].pubkey == recipient

    def test_prepare_checks_recipient_account(self, node, programs, keypair) -> None:
        recipient = Keypair().pubkey()

        async def go():
            async with node.client() as rpc:
                return await prepare_token_transfer(rpc, programs, keypair.pubkey(), str(recipient), 5)

        assert len(run(go()).instructions) == 2
        destination = associated_token_address(recipient, programs.token_mint)
        node.put_account(destination, b"\x00" * 165, programs.token_2022)
        assert len(run(go()).instructions) == 1

    def test_bad_recipient_before_reading(self, node, programs, keypair) -> None:
        async def go():
            async with node.client() as rpc:
                await prepare_token_transfer(rpc, programs, keypair.pubkey(), "nope", 5)

        with pytest.raises(InvalidAddressError):
            run(go())
        assert node.requests == []
