"""
Account data parsers.

On-chain accounts are Anchor accounts: an 8-byte discriminator followed by
the Borsh fields in declaration order. ``ByteReader`` walks them left to
right and raises ``TruncatedError`` at the first field that does not fit,
so a short or corrupt account can never be read out of bounds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey

from ..errors import DecodeError, TruncatedError

DISCRIMINATOR_SIZE = 8

# discriminator + user + total_burned + burn_count + last_burn_time + bump
USER_BURN_STATS_SIZE = 8 + 32 + 8 + 8 + 8 + 1


class ByteReader:
    """Little-endian cursor over account bytes."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take(self, size: int, field: str) -> bytes:
        if size < 0 or self.remaining < size:
            raise TruncatedError(field, self._offset, size, max(self.remaining, 0))
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def skip_discriminator(self) -> bytes:
        return self.take(DISCRIMINATOR_SIZE, "discriminator")

    def u8(self, field: str) -> int:
        return self.take(1, field)[0]

    def u32(self, field: str) -> int:
        return int.from_bytes(self.take(4, field), "little")

    def u64(self, field: str) -> int:
        return int.from_bytes(self.take(8, field), "little")

    def i64(self, field: str) -> int:
        return int.from_bytes(self.take(8, field), "little", signed=True)

    def pubkey(self, field: str) -> str:
        return str(Pubkey.from_bytes(self.take(32, field)))

    def string(self, field: str) -> str:
        length = self.u32(f"{field} length")
        raw = self.take(length, field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid UTF-8 in {field}: {exc}") from exc

    def option_string(self, field: str) -> Optional[str]:
        flag = self.u8(f"{field} flag")
        if flag == 0:
            return None
        if flag != 1:
            raise DecodeError(f"Invalid option flag {flag} for {field}")
        return self.string(field)

    def string_vec(self, field: str) -> list[str]:
        count = self.u32(f"{field} count")
        return [self.string(f"{field}[{i}]") for i in range(count)]


# ============ Entities ============


@dataclass(frozen=True)
class Profile:
    user: str
    username: str
    image: str
    created_at: int
    last_updated: int
    about_me: Optional[str]
    bump: int


@dataclass(frozen=True)
class Blog:
    blog_id: int
    creator: str
    created_at: int
    last_updated: int
    name: str
    description: str
    image: str
    memo_count: int
    burned_amount: int
    minted_amount: int
    last_memo_time: int
    bump: int


@dataclass(frozen=True)
class Post:
    post_id: int
    creator: str
    created_at: int
    last_updated: int
    title: str
    content: str
    image: str
    reply_count: int
    burned_amount: int
    last_reply_time: int
    bump: int


@dataclass(frozen=True)
class Project:
    project_id: int
    creator: str
    created_at: int
    last_updated: int
    name: str
    description: str
    image: str
    website: str
    tags: tuple[str, ...]
    memo_count: int
    burned_amount: int
    last_memo_time: int
    bump: int


@dataclass(frozen=True)
class ChatGroup:
    group_id: int
    creator: str
    created_at: int
    name: str
    description: str
    image: str
    tags: tuple[str, ...]
    memo_count: int
    burned_amount: int
    min_memo_interval: int
    last_memo_time: int
    bump: int


@dataclass(frozen=True)
class UserBurnStats:
    user: str
    total_burned: int
    burn_count: int
    last_burn_time: int
    bump: int


@dataclass(frozen=True)
class LeaderboardEntry:
    entity_id: int
    burned_amount: int
    rank: int


@dataclass(frozen=True)
class Leaderboard:
    entries: tuple[LeaderboardEntry, ...]
    total_burned: int

    def rank_of(self, entity_id: int) -> Optional[int]:
        for entry in self.entries:
            if entry.entity_id == entity_id:
                return entry.rank
        return None


# ============ Parsers ============


def parse_global_counter(data: bytes) -> int:
    """Total entity count stored in a global counter account."""
    reader = ByteReader(data)
    reader.skip_discriminator()
    return reader.u64("total")


def parse_profile(data: bytes) -> Profile:
    r = ByteReader(data)
    r.skip_discriminator()
    return Profile(
        user=r.pubkey("user"),
        username=r.string("username"),
        image=r.string("image"),
        created_at=r.i64("created_at"),
        last_updated=r.i64("last_updated"),
        about_me=r.option_string("about_me"),
        bump=r.u8("bump"),
    )


def parse_blog(data: bytes) -> Blog:
    r = ByteReader(data)
    r.skip_discriminator()
    return Blog(
        blog_id=r.u64("blog_id"),
        creator=r.pubkey("creator"),
        created_at=r.i64("created_at"),
        last_updated=r.i64("last_updated"),
        name=r.string("name"),
        description=r.string("description"),
        image=r.string("image"),
        memo_count=r.u64("memo_count"),
        burned_amount=r.u64("burned_amount"),
        minted_amount=r.u64("minted_amount"),
        last_memo_time=r.i64("last_memo_time"),
        bump=r.u8("bump"),
    )


def parse_post(data: bytes) -> Post:
    r = ByteReader(data)
    r.skip_discriminator()
    return Post(
        post_id=r.u64("post_id"),
        creator=r.pubkey("creator"),
        created_at=r.i64("created_at"),
        last_updated=r.i64("last_updated"),
        title=r.string("title"),
        content=r.string("content"),
        image=r.string("image"),
        reply_count=r.u64("reply_count"),
        burned_amount=r.u64("burned_amount"),
        last_reply_time=r.i64("last_reply_time"),
        bump=r.u8("bump"),
    )


def parse_project(data: bytes) -> Project:
    r = ByteReader(data)
    r.skip_discriminator()
    return Project(
        project_id=r.u64("project_id"),
        creator=r.pubkey("creator"),
        created_at=r.i64("created_at"),
        last_updated=r.i64("last_updated"),
        name=r.string("name"),
        description=r.string("description"),
        image=r.string("image"),
        website=r.string("website"),
        tags=tuple(r.string_vec("tags")),
        memo_count=r.u64("memo_count"),
        burned_amount=r.u64("burned_amount"),
        last_memo_time=r.i64("last_memo_time"),
        bump=r.u8("bump"),
    )


def parse_user_burn_stats(data: bytes) -> UserBurnStats:
    r = ByteReader(data)
    r.skip_discriminator()
    return UserBurnStats(
        user=r.pubkey("user"),
        total_burned=r.u64("total_burned"),
        burn_count=r.u64("burn_count"),
        last_burn_time=r.i64("last_burn_time"),
        bump=r.u8("bump"),
    )


def parse_leaderboard(data: bytes) -> Leaderboard:
    """Burn leaderboard: ``Vec<(id: u64, burned: u64)>``, ranked in stored order."""
    r = ByteReader(data)
    r.skip_discriminator()
    count = r.u32("entries count")
    entries = []
    total = 0
    for i in range(count):
        entity_id = r.u64(f"entries[{i}].id")
        burned = r.u64(f"entries[{i}].burned_amount")
        total += burned
        entries.append(LeaderboardEntry(entity_id=entity_id, burned_amount=burned, rank=i + 1))
    return Leaderboard(entries=tuple(entries), total_burned=total)


def parse_chat_group(data: bytes) -> ChatGroup:
    r = ByteReader(data)
    r.skip_discriminator()
    return ChatGroup(
        group_id=r.u64("group_id"),
        creator=r.pubkey("creator"),
        created_at=r.i64("created_at"),
        name=r.string("name"),
        description=r.string("description"),
        image=r.string("image"),
        tags=tuple(r.string_vec("tags")),
        memo_count=r.u64("memo_count"),
        burned_amount=r.u64("burned_amount"),
        min_memo_interval=r.i64("min_memo_interval"),
        last_memo_time=r.i64("last_memo_time"),
        bump=r.u8("bump"),
    )
