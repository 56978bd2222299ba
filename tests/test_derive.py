"""Tests for derived addresses and discriminators."""

from __future__ import annotations

import hashlib

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from memora.config import MAINNET, TESTNET
from memora.errors import InvalidAddressError, InvalidParameterError
from memora.sigil.derive import (
    BLOG_SEED,
    GLOBAL_BLOG_COUNTER_SEED,
    GLOBAL_COUNTER_SEED,
    POST_SEED,
    associated_token_address,
    derive_address,
    discriminator,
    entity_address,
    global_counter_address,
    profile_address,
    to_pubkey,
    u64_seed,
    user_burn_stats_address,
)


class TestDiscriminator:
    def test_matches_anchor_rule(self) -> None:
        expected = hashlib.sha256(b"global:create_profile").digest()[:8]
        assert discriminator("create_profile") == expected
        assert len(discriminator("burn_for_blog")) == 8

    def test_stable_and_distinct(self) -> None:
        names = ["create_blog", "update_blog", "burn_for_blog", "mint_for_blog", "process_burn"]
        values = [discriminator(n) for n in names]
        assert values == [discriminator(n) for n in names]
        assert len(set(values)) == len(values)


class TestDerivation:
    def test_deterministic(self) -> None:
        user = Keypair().pubkey()
        program = TESTNET.programs.profile
        assert profile_address(program, user) == profile_address(program, user)

    def test_matches_find_program_address(self) -> None:
        user = Keypair().pubkey()
        program = TESTNET.programs.profile
        expected, _ = Pubkey.find_program_address([b"profile", bytes(user)], program)
        assert profile_address(program, user) == expected

    def test_bump_returned(self) -> None:
        address, bump = derive_address(TESTNET.programs.blog, [GLOBAL_BLOG_COUNTER_SEED])
        assert 0 <= bump <= 255
        assert address == global_counter_address(TESTNET.programs.blog, GLOBAL_BLOG_COUNTER_SEED)

    def test_entity_id_is_u64_le(self) -> None:
        assert u64_seed(1) == b"\x01" + b"\x00" * 7
        expected, _ = Pubkey.find_program_address([BLOG_SEED, u64_seed(258)], TESTNET.programs.blog)
        assert entity_address(TESTNET.programs.blog, BLOG_SEED, 258) == expected

    def test_entity_id_bounds(self) -> None:
        assert u64_seed(2 ** 64 - 1) == b"\xff" * 8
        for bad in (-1, 2 ** 64):
            with pytest.raises(InvalidParameterError) as exc_info:
                entity_address(TESTNET.programs.blog, BLOG_SEED, bad)
            assert exc_info.value.field == "blog_id"

    def test_entity_id_must_be_integer(self) -> None:
        with pytest.raises(InvalidParameterError, match="integer"):
            u64_seed("7", "post_id")
        with pytest.raises(InvalidParameterError):
            u64_seed(True)

    def test_inputs_change_address(self) -> None:
        forum = TESTNET.programs.forum
        assert entity_address(forum, POST_SEED, 1) != entity_address(forum, POST_SEED, 2)
        assert global_counter_address(forum, GLOBAL_COUNTER_SEED) != global_counter_address(
            MAINNET.programs.forum, GLOBAL_COUNTER_SEED
        )

    def test_burn_stats_under_burn_program(self) -> None:
        user = Keypair().pubkey()
        expected, _ = Pubkey.find_program_address(
            [b"user_global_burn_stats", bytes(user)], TESTNET.programs.burn
        )
        assert user_burn_stats_address(TESTNET.programs.burn, user) == expected

    def test_associated_token_address_seeds(self) -> None:
        owner = Keypair().pubkey()
        mint = TESTNET.programs.token_mint
        ata_program = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
        expected, _ = Pubkey.find_program_address(
            [bytes(owner), bytes(TESTNET.programs.token_2022), bytes(mint)], ata_program
        )
        assert associated_token_address(owner, mint) == expected


class TestToPubkey:
    def test_accepts_string_and_pubkey(self) -> None:
        key = Keypair().pubkey()
        assert to_pubkey(str(key)) == key
        assert to_pubkey(f"  {key}  ") == key
        assert to_pubkey(key) is key

    @pytest.mark.parametrize("value", ["", "not-a-key", "0" * 44])
    def test_rejects_garbage(self, value: str) -> None:
        with pytest.raises(InvalidAddressError):
            to_pubkey(value, "user")
