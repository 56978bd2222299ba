"""Byte builders for account fixtures."""

from __future__ import annotations

import hashlib
import struct


def account_discriminator(account_name: str) -> bytes:
    """Anchor account tag: ``sha256("account:" + name)[:8]``."""
    return hashlib.sha256(f"account:{account_name}".encode("utf-8")).digest()[:8]


def borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def chat_group_bytes(creator: bytes, group_id: int = 3, memos: int = 9, burned: int = 42_000_000) -> bytes:
    return (
        account_discriminator("ChatGroup")
        + struct.pack("<Q", group_id)
        + creator
        + struct.pack("<q", 1_700_000_000)
        + borsh_string(f"group {group_id}")
        + borsh_string("a quiet room")
        + borsh_string("")
        + struct.pack("<I", 2)
        + borsh_string("gm")
        + borsh_string("x1")
        + struct.pack("<QQqq", memos, burned, 60, 1_700_000_500)
        + b"\xfd"
    )
