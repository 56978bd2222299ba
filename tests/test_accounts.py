"""Tests for the account data parsers."""

from __future__ import annotations

import struct

import pytest
from solders.keypair import Keypair

from memora.codex.accounts import (
    USER_BURN_STATS_SIZE,
    parse_blog,
    parse_chat_group,
    parse_global_counter,
    parse_leaderboard,
    parse_post,
    parse_profile,
    parse_project,
    parse_user_burn_stats,
)
from memora.errors import DecodeError, TruncatedError

from layouts import account_discriminator, chat_group_bytes


def borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def profile_bytes(user: bytes, username: str = "alice", about_me=None) -> bytes:
    about = b"\x00" if about_me is None else b"\x01" + borsh_string(about_me)
    return (
        account_discriminator("Profile")
        + user
        + borsh_string(username)
        + borsh_string("")
        + struct.pack("<qq", 1_700_000_000, 1_700_000_100)
        + about
        + b"\xfe"
    )


def blog_bytes(creator: bytes, blog_id: int = 4) -> bytes:
    return (
        account_discriminator("Blog")
        + struct.pack("<Q", blog_id)
        + creator
        + struct.pack("<qq", 1_700_000_000, 1_700_000_050)
        + borsh_string("Field notes")
        + borsh_string("weekly")
        + borsh_string("")
        + struct.pack("<QQQq", 12, 30_000_000, 5_000_000, 1_700_000_900)
        + b"\xff"
    )


def post_bytes(creator: bytes) -> bytes:
    return (
        account_discriminator("Post")
        + struct.pack("<Q", 2)
        + creator
        + struct.pack("<qq", 1, 2)
        + borsh_string("gm")
        + borsh_string("first post")
        + borsh_string("")
        + struct.pack("<QQq", 3, 3_000_000, 5)
        + b"\x01"
    )


def project_bytes(creator: bytes) -> bytes:
    return (
        account_discriminator("Project")
        + struct.pack("<Q", 9)
        + creator
        + struct.pack("<qq", 1, 2)
        + borsh_string("Memora")
        + borsh_string("client")
        + borsh_string("")
        + borsh_string("https://x1.xyz")
        + struct.pack("<I", 2)
        + borsh_string("tools")
        + borsh_string("cli")
        + struct.pack("<QQq", 4, 84_138_000_000, 7)
        + b"\x02"
    )


def stats_bytes(user: bytes, total: int = 10_000_000) -> bytes:
    return (
        account_discriminator("UserGlobalBurnStats")
        + user
        + struct.pack("<QQq", total, 3, 1_700_000_000)
        + b"\xfd"
    )


def leaderboard_bytes(entries: list[tuple[int, int]]) -> bytes:
    body = struct.pack("<I", len(entries))
    for entity_id, burned in entries:
        body += struct.pack("<QQ", entity_id, burned)
    return account_discriminator("BurnLeaderboard") + body


@pytest.fixture()
def user() -> bytes:
    return bytes(Keypair().pubkey())


class TestProfile:
    def test_alice_layout(self, user: bytes) -> None:
        profile = parse_profile(profile_bytes(user))
        assert profile.username == "alice"
        assert profile.image == ""
        assert profile.created_at == 1_700_000_000
        assert profile.last_updated == 1_700_000_100
        assert profile.about_me is None
        assert profile.bump == 0xFE

    def test_about_me_present(self, user: bytes) -> None:
        assert parse_profile(profile_bytes(user, about_me="hi there")).about_me == "hi there"

    def test_every_prefix_is_truncated(self, user: bytes) -> None:
        data = profile_bytes(user, about_me="hi")
        for size in range(len(data)):
            with pytest.raises(TruncatedError):
                parse_profile(data[:size])

    def test_bad_option_flag(self, user: bytes) -> None:
        data = bytearray(profile_bytes(user))
        data[-2] = 7
        with pytest.raises(DecodeError, match="option flag"):
            parse_profile(bytes(data))

    def test_invalid_utf8(self, user: bytes) -> None:
        data = profile_bytes(user, username="ab")
        offset = 8 + 32 + 4
        corrupt = data[:offset] + b"\xff\xfe" + data[offset + 2:]
        with pytest.raises(DecodeError):
            parse_profile(corrupt)

    def test_huge_length_prefix_does_not_overread(self, user: bytes) -> None:
        data = account_discriminator("Profile") + user + struct.pack("<I", 2 ** 32 - 1) + b"abc"
        with pytest.raises(TruncatedError) as exc_info:
            parse_profile(data)
        assert exc_info.value.field == "username"
        assert exc_info.value.available == 3


class TestEntities:
    def test_blog(self, user: bytes) -> None:
        blog = parse_blog(blog_bytes(user))
        assert blog.blog_id == 4
        assert blog.name == "Field notes"
        assert blog.memo_count == 12
        assert blog.burned_amount == 30_000_000
        assert blog.minted_amount == 5_000_000
        assert blog.bump == 0xFF

    def test_post(self, user: bytes) -> None:
        post = parse_post(post_bytes(user))
        assert (post.post_id, post.title, post.reply_count) == (2, "gm", 3)

    def test_project_tags(self, user: bytes) -> None:
        project = parse_project(project_bytes(user))
        assert project.tags == ("tools", "cli")
        assert project.website == "https://x1.xyz"
        assert project.burned_amount == 84_138_000_000

    def test_chat_group(self, user: bytes) -> None:
        group = parse_chat_group(chat_group_bytes(user))
        assert (group.group_id, group.name, group.tags) == (3, "group 3", ("gm", "x1"))
        assert group.memo_count == 9
        assert group.burned_amount == 42_000_000
        assert group.min_memo_interval == 60
        assert group.last_memo_time == 1_700_000_500
        assert group.bump == 0xFD

    @pytest.mark.parametrize("builder", [blog_bytes, post_bytes, project_bytes, stats_bytes, chat_group_bytes])
    def test_every_prefix_is_truncated(self, builder, user: bytes) -> None:
        data = builder(user)
        parser = {
            blog_bytes: parse_blog,
            post_bytes: parse_post,
            project_bytes: parse_project,
            stats_bytes: parse_user_burn_stats,
            chat_group_bytes: parse_chat_group,
        }[builder]
        parser(data)
        for size in range(len(data)):
            with pytest.raises(TruncatedError):
                parser(data[:size])

    def test_burn_stats_size(self, user: bytes) -> None:
        data = stats_bytes(user)
        assert len(data) == USER_BURN_STATS_SIZE
        stats = parse_user_burn_stats(data)
        assert stats.total_burned == 10_000_000
        assert stats.burn_count == 3

    def test_global_counter(self) -> None:
        assert parse_global_counter(account_discriminator("GlobalCounter") + struct.pack("<Q", 17)) == 17
        with pytest.raises(TruncatedError):
            parse_global_counter(account_discriminator("GlobalCounter") + b"\x01")


class TestLeaderboard:
    def test_ranks_in_stored_order(self) -> None:
        board = parse_leaderboard(leaderboard_bytes([(5, 900), (2, 500), (8, 100)]))
        assert [e.entity_id for e in board.entries] == [5, 2, 8]
        assert board.rank_of(2) == 2
        assert board.rank_of(99) is None
        assert board.total_burned == 1500

    def test_declared_count_longer_than_data(self) -> None:
        data = leaderboard_bytes([(1, 10), (2, 20)])
        data = data[:8] + struct.pack("<I", 3) + data[12:]
        with pytest.raises(TruncatedError):
            parse_leaderboard(data)

    def test_empty(self) -> None:
        board = parse_leaderboard(leaderboard_bytes([]))
        assert board.entries == ()
        assert board.total_burned == 0
