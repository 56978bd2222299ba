"""
Error taxonomy for Memora.

Every failure raised by the transport, the transaction pipeline or the
account parsers is one of the classes below. Each carries an ``exit_code``
so the CLI can map it straight to a process status.

Validation errors (``InvalidParameterError``, ``InvalidAddressError``) are
raised before any network call. Transport and protocol errors propagate
unchanged: nothing in this package retries on its own.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

# Anchor programs log "... Error Message: <text>." on failure
ERROR_MESSAGE_MARKER = "Error Message: "


class MemoraError(RuntimeError):
    exit_code: int = 1


class ConnectionFailedError(MemoraError):
    """Transport or network failure (including non-2xx HTTP status)."""

    exit_code = 2


class InvalidAddressError(MemoraError):
    exit_code = 3


class InvalidParameterError(MemoraError):
    """Caller input violates a documented constraint.

    Attributes:
        field: Name of the offending field
        limit: The violated limit, when there is one
    """

    exit_code = 4

    def __init__(self, field: str, message: str, limit: Optional[int] = None):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.limit = limit


class TransactionFailedError(MemoraError):
    """The remote rejected a transaction (simulation or submission)."""

    exit_code = 5

    def __init__(self, message: str, detail: Optional[str] = None, logs: Optional[list[str]] = None):
        super().__init__(f"{message}: {detail}" if detail else message)
        self.detail = detail
        self.logs = logs or []


class ProtocolError(MemoraError):
    """The node answered with a JSON-RPC ``error`` object."""

    exit_code = 6

    def __init__(self, code: int, message: str, detail: Optional[str] = None, data: Any = None):
        text = f"RPC error {code}: {message}"
        if detail:
            text += f" ({detail})"
        super().__init__(text)
        self.code = code
        self.message = message
        self.detail = detail
        self.data = data


class DecodeError(MemoraError):
    """Unexpected response shape, or bytes that cannot be decoded."""

    exit_code = 7


class TruncatedError(DecodeError):
    def __init__(self, field: str, offset: int, needed: int, available: int):
        super().__init__(
            f"Data too short for {field}: need {needed} bytes at offset {offset}, "
            f"{available} available"
        )
        self.field = field
        self.offset = offset
        self.needed = needed
        self.available = available


class AccountNotFoundError(MemoraError):
    exit_code = 8


class RequestTimeoutError(MemoraError):
    exit_code = 9


class RequestCancelledError(MemoraError):
    exit_code = 10


def extract_error_message(logs: Optional[Iterable[str]]) -> Optional[str]:
    """
    Find the human-readable program error in simulation logs.

    Args:
        logs: Log lines from a simulation or a failed preflight

    Returns:
        Text following the first ``Error Message:`` marker, or None
    """
    if not logs:
        return None
    for line in logs:
        if not isinstance(line, str):
            continue
        idx = line.find(ERROR_MESSAGE_MARKER)
        if idx == -1:
            continue
        text = line[idx + len(ERROR_MESSAGE_MARKER):].strip().rstrip(".")
        if text:
            return text
    return None
