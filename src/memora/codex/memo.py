"""
BurnMemo envelope codec.

Wire format of the memo instruction data::

    base64( borsh( BurnMemo { version: u8 = 1, burn_amount: u64, payload: Vec<u8> } ) )

``payload`` is a serialized ``MemoRecord`` for the social programs, or the
raw UTF-8 message for a plain burn. memo-chat takes the record itself,
base64 encoded, with no envelope around it. The base64 text must fall inside the
target program's length range, which is checked from the payload size
before anything is encoded.

Decoding is used on ledger history written by anyone, so it never raises:
malformed input yields ``None``.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from borsh_construct import Bytes, CStruct, U8, U64
from construct import ConstructError

from ..errors import InvalidParameterError
from .records import U64_MAX, MemoRecord, parse_record

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1

# version (1) + burn_amount (8) + payload length prefix (4)
ENVELOPE_OVERHEAD = 13

MIN_MEMO_LENGTH = 69
MAX_MEMO_LENGTH = 800
MAX_PAYLOAD_LENGTH = MAX_MEMO_LENGTH - ENVELOPE_OVERHEAD  # 787

BURN_MEMO_LAYOUT = CStruct(
    "version" / U8,
    "burn_amount" / U64,
    "payload" / Bytes,
)


@dataclass(frozen=True)
class MemoRange:
    """Inclusive bounds on the base64 memo text accepted by a program."""

    min_length: int = MIN_MEMO_LENGTH
    max_length: int = MAX_MEMO_LENGTH
    max_payload: int = MAX_PAYLOAD_LENGTH


# memo-mint, memo-burn, memo-chat and the social programs
PROGRAM_MEMO_RANGE = MemoRange()


@dataclass(frozen=True)
class BurnEnvelope:
    version: int
    burn_amount: int
    payload: bytes


@dataclass(frozen=True)
class DecodedMemo:
    """A memo read back from the ledger."""

    burn_amount: int
    category: str
    operation: str
    record: MemoRecord
    fields: dict[str, Any] = field(default_factory=dict)


def encoded_length(payload_size: int) -> int:
    """Length of the base64 memo text for a payload of ``payload_size`` bytes."""
    raw = ENVELOPE_OVERHEAD + payload_size
    return 4 * ((raw + 2) // 3)


def validate_memo_length(text: str, memo_range: MemoRange = PROGRAM_MEMO_RANGE) -> None:
    """Check an already-encoded memo text against the program's range."""
    size = len(text.encode("utf-8"))
    _check_range(size, memo_range)


def _check_range(size: int, memo_range: MemoRange) -> None:
    if size < memo_range.min_length:
        raise InvalidParameterError(
            "memo",
            f"too short: {size} bytes (min: {memo_range.min_length})",
            limit=memo_range.min_length,
        )
    if size > memo_range.max_length:
        raise InvalidParameterError(
            "memo",
            f"too long: {size} bytes (max: {memo_range.max_length})",
            limit=memo_range.max_length,
        )


def check_payload_size(payload_size: int, memo_range: MemoRange = PROGRAM_MEMO_RANGE) -> int:
    """
    Verify a payload will produce an in-range memo.

    Returns:
        The memo text length the payload will encode to
    """
    if payload_size > memo_range.max_payload:
        raise InvalidParameterError(
            "payload",
            f"too long: {payload_size} bytes (max: {memo_range.max_payload})",
            limit=memo_range.max_payload,
        )
    size = encoded_length(payload_size)
    _check_range(size, memo_range)
    return size


def encode_envelope(
    payload: bytes,
    burn_amount: int,
    memo_range: MemoRange = PROGRAM_MEMO_RANGE,
) -> str:
    """
    Wrap a payload in a ``BurnMemo`` and base64 encode it.

    Args:
        payload: Serialized record or raw message bytes
        burn_amount: Amount in token base units; must equal the burned amount
        memo_range: Length bounds of the target program

    Returns:
        Memo text for the memo instruction
    """
    if not 0 <= burn_amount <= U64_MAX:
        raise InvalidParameterError("burn_amount", f"out of u64 range: {burn_amount}")
    check_payload_size(len(payload), memo_range)
    raw = BURN_MEMO_LAYOUT.build(
        {"version": ENVELOPE_VERSION, "burn_amount": burn_amount, "payload": payload}
    )
    return base64.b64encode(raw).decode("ascii")


def encode_memo(
    record: MemoRecord,
    burn_amount: int,
    memo_range: MemoRange = PROGRAM_MEMO_RANGE,
) -> str:
    """Validate ``record``, serialize it and wrap it in the envelope."""
    payload = record.to_payload()
    return encode_envelope(payload, burn_amount, memo_range)


def encode_bare_memo(record: MemoRecord, memo_range: MemoRange = PROGRAM_MEMO_RANGE) -> str:
    """Validate ``record`` and base64 it without an envelope (memo-chat messages)."""
    text = base64.b64encode(record.to_payload()).decode("ascii")
    validate_memo_length(text, memo_range)
    return text


def strip_length_prefix(memo: str) -> str:
    """
    Drop the ``[len] `` prefix the node adds to memos in signature listings.

    ``"[88] AQDh9QUAAAAA..."`` becomes ``"AQDh9QUAAAAA..."``.
    """
    memo = memo.strip()
    if memo.startswith("["):
        end = memo.find("] ")
        if end != -1:
            return memo[end + 2:]
    return memo


def decode_envelope(text: str) -> Optional[BurnEnvelope]:
    """Decode memo text into its envelope, or None if it is not one."""
    try:
        raw = base64.b64decode(strip_length_prefix(text), validate=True)
        stream = io.BytesIO(raw)
        parsed = BURN_MEMO_LAYOUT.parse_stream(stream)
        if stream.read(1):
            return None
    except (binascii.Error, ConstructError, ValueError, TypeError):
        return None
    if parsed["version"] != ENVELOPE_VERSION:
        return None
    return BurnEnvelope(
        version=parsed["version"],
        burn_amount=parsed["burn_amount"],
        payload=bytes(parsed["payload"]),
    )


def decode_memo(text: str) -> Optional[DecodedMemo]:
    """
    Decode memo text into its record.

    Returns:
        The decoded memo, or None for anything unrecognised
    """
    envelope = decode_envelope(text)
    if envelope is None:
        return None
    record = parse_record(envelope.payload)
    if record is None:
        logger.debug("Memo payload is not a known record (%d bytes)", len(envelope.payload))
        return None
    return DecodedMemo(
        burn_amount=envelope.burn_amount,
        category=record.CATEGORY,
        operation=record.OPERATION,
        record=record,
        fields=record.fields(),
    )


def decode_bare_memo(text: str) -> Optional[DecodedMemo]:
    """Decode an envelope-less record memo; ``burn_amount`` is always 0."""
    try:
        payload = base64.b64decode(strip_length_prefix(text), validate=True)
    except (binascii.Error, ValueError):
        return None
    record = parse_record(payload)
    if record is None:
        return None
    return DecodedMemo(
        burn_amount=0,
        category=record.CATEGORY,
        operation=record.OPERATION,
        record=record,
        fields=record.fields(),
    )


def decode_message(text: str) -> Optional[tuple[int, str]]:
    """Decode a plain burn memo into ``(burn_amount, message)``."""
    envelope = decode_envelope(text)
    if envelope is None:
        return None
    try:
        return envelope.burn_amount, envelope.payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
