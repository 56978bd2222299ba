"""Tests for chat group messages and readers."""

from __future__ import annotations

import asyncio
import base64
import struct

import pytest
from solders.keypair import Keypair

from memora.codex.memo import decode_bare_memo, encode_bare_memo, encode_memo
from memora.codex.records import BlogBurn, ChatMessage
from memora.config import ASSOCIATED_TOKEN_PROGRAM, MEMO_PROGRAM, SYSVAR_INSTRUCTIONS
from memora.domains.chat import (
    build_send_message,
    chat_group_address,
    chat_messages,
    chat_statistics,
    fetch_chat_groups_range,
    next_group_id,
    prepare_send_message,
)
from memora.errors import AccountNotFoundError, InvalidAddressError, InvalidParameterError
from memora.sigil.derive import (
    associated_token_address,
    derive_address,
    discriminator,
    global_counter_address,
    mint_authority_address,
)

from layouts import account_discriminator, chat_group_bytes


def run(coro):
    return asyncio.run(coro)


def listing(signature: str, block_time: int, memo, err=None) -> dict:
    return {"signature": signature, "slot": block_time, "blockTime": block_time, "err": err, "memo": memo}


class TestSendMessage:
    def test_accounts_and_data(self, programs, keypair) -> None:
        user = keypair.pubkey()
        op = build_send_message(programs, user, 7, "gm everyone")
        memo_ix, program_ix = op.instructions

        assert program_ix.program_id == programs.chat
        assert bytes(program_ix.data) == discriminator("send_memo_to_group") + struct.pack("<Q", 7)
        assert op.result == 7
        assert op.policy.ceiling == 400_000
        assert [(m.pubkey, m.is_signer, m.is_writable) for m in program_ix.accounts] == [
            (user, True, True),
            (derive_address(programs.chat, [b"chat_group", struct.pack("<Q", 7)])[0], False, True),
            (programs.token_mint, False, True),
            (mint_authority_address(programs.mint), False, True),
            (associated_token_address(user, programs.token_mint), False, True),
            (programs.token_2022, False, False),
            (programs.mint, False, False),
            (SYSVAR_INSTRUCTIONS, False, False),
        ]

    def test_memo_is_bare_record_signed_by_sender(self, programs, keypair) -> None:
        user = keypair.pubkey()
        op = build_send_message(programs, user, 7, "gm", reply_to="5reply")
        memo_ix = op.instructions[0]
        assert memo_ix.program_id == MEMO_PROGRAM
        assert [(m.pubkey, m.is_signer) for m in memo_ix.accounts] == [(user, True)]

        text = bytes(memo_ix.data).decode()
        record = ChatMessage(group_id=7, sender=str(user), message="gm", reply_to_sig="5reply")
        assert base64.b64decode(text) == record.to_payload()
        assert decode_bare_memo(text).record == record

    def test_token_account_created_after_memo(self, programs, keypair) -> None:
        op = build_send_message(programs, keypair.pubkey(), 1, "hello", create_token_account=True)
        assert [ix.program_id for ix in op.instructions] == [MEMO_PROGRAM, ASSOCIATED_TOKEN_PROGRAM, programs.chat]

    def test_receiver_must_be_an_address(self, programs, keypair) -> None:
        receiver = str(Keypair().pubkey())
        op = build_send_message(programs, keypair.pubkey(), 1, "hi", receiver=f" {receiver} ")
        assert decode_bare_memo(bytes(op.instructions[0].data).decode()).record.receiver == receiver
        with pytest.raises(InvalidAddressError):
            build_send_message(programs, keypair.pubkey(), 1, "hi", receiver="not-an-address")

    def test_message_limits(self, programs, keypair) -> None:
        with pytest.raises(InvalidParameterError) as exc_info:
            build_send_message(programs, keypair.pubkey(), 1, "")
        assert exc_info.value.field == "message"
        with pytest.raises(InvalidParameterError) as exc_info:
            build_send_message(programs, keypair.pubkey(), 1, "m" * 513)
        assert exc_info.value.limit == 512

    def test_group_id_bounds(self, programs, keypair) -> None:
        with pytest.raises(InvalidParameterError) as exc_info:
            build_send_message(programs, keypair.pubkey(), -1, "hi")
        assert exc_info.value.field == "group_id"
        with pytest.raises(InvalidParameterError) as exc_info:
            chat_group_address(programs, 2 ** 64)
        assert exc_info.value.field == "group_id"

    def test_prepare_checks_token_account(self, node, programs, keypair) -> None:
        user = keypair.pubkey()

        async def go():
            async with node.client() as rpc:
                return await prepare_send_message(rpc, programs, user, 2, "hello")

        assert len(run(go()).instructions) == 3
        node.put_account(associated_token_address(user, programs.token_mint), b"\x00" * 165, programs.token_2022)
        assert len(run(go()).instructions) == 2

    def test_prepare_validates_before_reading(self, node, programs, keypair) -> None:
        async def go():
            async with node.client() as rpc:
                await prepare_send_message(rpc, programs, keypair.pubkey(), 2, "")

        with pytest.raises(InvalidParameterError):
            run(go())
        assert node.requests == []


class TestChatReads:
    def test_statistics(self, node, programs) -> None:
        counter = global_counter_address(programs.chat)
        node.put_account(counter, account_discriminator("GlobalCounter") + struct.pack("<Q", 3), programs.chat)
        for group_id, memos, burned in [(0, 4, 1), (2, 6, 2)]:
            data = chat_group_bytes(bytes(Keypair().pubkey()), group_id, memos, burned)
            node.put_account(chat_group_address(programs, group_id), data, programs.chat)

        async def go():
            async with node.client() as rpc:
                return await next_group_id(rpc, programs), await chat_statistics(rpc, programs, concurrency=2)

        total, stats = run(go())
        assert total == 3
        assert (stats.total_groups, stats.valid_groups) == (3, 2)
        assert stats.total_memos == 10
        assert stats.total_burned == 3
        assert [g.group_id for g in stats.groups] == [0, 2]

    def test_range_requires_order(self, node, programs) -> None:
        async def go():
            async with node.client() as rpc:
                await fetch_chat_groups_range(rpc, programs, 5, 2)

        with pytest.raises(InvalidParameterError):
            run(go())
        assert node.requests == []

    def test_messages_filtered_oldest_first(self, node, programs, keypair) -> None:
        user = str(keypair.pubkey())
        group = chat_group_bytes(bytes(keypair.pubkey()), 4)
        node.put_account(chat_group_address(programs, 4), group, programs.chat)
        later = encode_bare_memo(ChatMessage(group_id=4, sender=user, message="second"))
        earlier = encode_bare_memo(ChatMessage(group_id=4, sender=user, message="first"))
        elsewhere = encode_bare_memo(ChatMessage(group_id=5, sender=user, message="wrong room"))
        blank = encode_bare_memo(ChatMessage(group_id=4, sender=user, message="  "))
        enveloped = encode_memo(BlogBurn(blog_id=4, burner=user, message="a blog burn"), 1_000_000)
        node.handlers["getSignaturesForAddress"] = [
            listing("s6", 600, f"[{len(later)}] {later}"),
            listing("s5", 500, later, err={"InstructionError": [2, "x"]}),
            listing("s4", 400, elsewhere),
            listing("s3", 300, blank),
            listing("s2", 200, enveloped),
            listing("s1", 100, earlier),
        ]

        async def go():
            async with node.client() as rpc:
                return await chat_messages(rpc, programs, 4, limit=6)

        page = run(go())
        assert [e.signature for e in page.entries] == ["s1", "s6"]
        assert [e.memo.record.message for e in page.entries] == ["first", "second"]
        assert all(e.memo.burn_amount == 0 for e in page.entries)
        assert page.has_more
        assert page.cursor == "s1"

    def test_message_limit_capped(self, node, programs, keypair) -> None:
        group = chat_group_bytes(bytes(keypair.pubkey()), 1)
        node.put_account(chat_group_address(programs, 1), group, programs.chat)
        node.handlers["getSignaturesForAddress"] = []

        async def go():
            async with node.client() as rpc:
                return await chat_messages(rpc, programs, 1, limit=5_000)

        page = run(go())
        assert page.entries == ()
        assert not page.has_more
        assert node.requests[-1]["params"][1]["limit"] == 1000

    def test_missing_group(self, node, programs) -> None:
        async def go():
            async with node.client() as rpc:
                await chat_messages(rpc, programs, 9)

        with pytest.raises(AccountNotFoundError, match="chat group 9"):
            run(go())
