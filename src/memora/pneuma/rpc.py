"""
JSON-RPC client for X1 / SVM nodes.

Async transport built on httpx. Every public method decodes the node's
answer once, into the typed records below, so callers never walk raw JSON.

No retries are performed here. Submission retry is delegated to the node
through ``maxRetries``.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import random
import secrets
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

import httpx
from solders.hash import Hash
from solders.transaction import Transaction

from ..config import Settings
from ..errors import (
    ConnectionFailedError,
    DecodeError,
    InvalidParameterError,
    ProtocolError,
    RequestCancelledError,
    RequestTimeoutError,
    extract_error_message,
)
from ..sigil.derive import to_pubkey

logger = logging.getLogger(__name__)

COMMITMENT = "confirmed"

SIMULATE_OPTIONS = {
    "encoding": "base64",
    "commitment": COMMITMENT,
    "replaceRecentBlockhash": True,
    "sigVerify": False,
}

SEND_OPTIONS = {
    "encoding": "base64",
    "preflightCommitment": COMMITMENT,
    "skipPreflight": False,
    "maxRetries": 3,
}

MAX_SIGNATURE_LIMIT = 1000


# ---------------------------------------------------------------------------
# Endpoint selection and request ids
# ---------------------------------------------------------------------------

def _random_index(n: int) -> int:
    """Uniform index in ``[0, n)``; degrades to weaker sources rather than failing."""
    try:
        return secrets.randbelow(n)
    except (NotImplementedError, OSError):
        pass
    try:
        return random.randrange(n)
    except (NotImplementedError, OSError):
        return int(time.time() * 1000) % n


def select_endpoint(endpoints: Sequence[str], override: Optional[str] = None) -> str:
    """
    Pick the endpoint a client will use for its whole lifetime.

    Args:
        endpoints: Configured endpoint list
        override: User-supplied URL; wins when non-blank

    Returns:
        Endpoint URL
    """
    if override and override.strip():
        return override.strip()
    if not endpoints:
        raise InvalidParameterError("rpc_endpoints", "no RPC endpoint configured")
    if len(endpoints) == 1:
        return endpoints[0]
    return endpoints[_random_index(len(endpoints))]


def generate_request_id() -> int:
    """Random 63-bit JSON-RPC id, with a timestamp-based fallback."""
    try:
        return int.from_bytes(secrets.token_bytes(8), "little") & 0x7FFF_FFFF_FFFF_FFFF
    except (NotImplementedError, OSError):
        ms = int(time.time() * 1000)
        return (ms % 10_000_000_000) * 10_000 + random.randrange(10_000)


def encode_transaction(tx: Transaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


# ---------------------------------------------------------------------------
# Typed responses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Blockhash:
    blockhash: Hash
    last_valid_block_height: int


@dataclass(frozen=True)
class NodeVersion:
    solana_core: str
    feature_set: Optional[int] = None


@dataclass(frozen=True)
class AccountInfo:
    lamports: int
    owner: str
    data: bytes
    executable: bool = False
    space: Optional[int] = None


@dataclass(frozen=True)
class SignatureInfo:
    signature: str
    slot: int
    block_time: Optional[int] = None
    err: Any = None
    memo: Optional[str] = None
    confirmation_status: Optional[str] = None


@dataclass(frozen=True)
class SignatureStatus:
    slot: int
    confirmations: Optional[int]
    err: Any
    confirmation_status: Optional[str]


@dataclass(frozen=True)
class SimulationResult:
    err: Any = None
    logs: list[str] = field(default_factory=list)
    units_consumed: Optional[int] = None

    @property
    def error_message(self) -> Optional[str]:
        return extract_error_message(self.logs)


@dataclass(frozen=True)
class TransactionDetails:
    slot: int
    block_time: Optional[int]
    err: Any
    fee: int
    logs: list[str] = field(default_factory=list)


@contextmanager
def _decoding(what: str) -> Iterator[None]:
    """Turn shape errors in a response into ``DecodeError``."""
    try:
        yield
    except (KeyError, TypeError, ValueError, IndexError) as exc:
        raise DecodeError(f"Unexpected {what} response: {exc!r}") from exc


def _parse_account(value: dict[str, Any]) -> AccountInfo:
    data = value["data"]
    if isinstance(data, list):
        raw, encoding = data[0], data[1]
        if encoding != "base64":
            raise ValueError(f"unsupported account encoding '{encoding}'")
        decoded = base64.b64decode(raw)
    else:
        raise ValueError("account data is not base64-encoded")
    return AccountInfo(
        lamports=int(value["lamports"]),
        owner=str(value["owner"]),
        data=decoded,
        executable=bool(value.get("executable", False)),
        space=value.get("space"),
    )


def _protocol_error(error: Any) -> ProtocolError:
    if not isinstance(error, dict):
        return ProtocolError(-1, str(error))
    data = error.get("data")
    logs = data.get("logs") if isinstance(data, dict) else None
    return ProtocolError(
        code=int(error.get("code", -1)),
        message=str(error.get("message", "")),
        detail=extract_error_message(logs),
        data=data,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class RpcClient:
    """
    Async JSON-RPC client bound to one endpoint.

    The endpoint is chosen once, at construction. Use as an async context
    manager, or call ``aclose()`` when done.

    Args:
        settings: Network and override settings
        transport: Optional httpx transport (tests inject ``httpx.MockTransport``)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or Settings()
        self.endpoint = select_endpoint(
            self.settings.network.rpc_endpoints,
            self.settings.custom_rpc_endpoint(),
        )
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout),
            transport=transport,
        )
        self._inflight: set[asyncio.Task] = set()
        self._cancelled: set[asyncio.Task] = set()
        self._closed = False
        logger.debug("RPC endpoint: %s", self.endpoint)

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._closed = True
        await self._client.aclose()

    def cancel_pending(self) -> int:
        """
        Cancel every in-flight request.

        Cancelled calls raise ``RequestCancelledError``.

        Returns:
            Number of requests cancelled
        """
        count = 0
        for task in list(self._inflight):
            if not task.done():
                self._cancelled.add(task)
                task.cancel()
                count += 1
        return count

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "getLatestBlockhash")
            params: RPC parameters

        Returns:
            Result field from the RPC response

        Raises:
            ConnectionFailedError: Network failure or non-success HTTP status
            RequestTimeoutError: No answer within the configured timeout
            RequestCancelledError: Cancelled through ``cancel_pending``
            ProtocolError: The node returned an ``error`` object
            DecodeError: The body is not a JSON-RPC response
        """
        if self._closed:
            raise RequestCancelledError(f"{method}: client is closed")

        request_id = generate_request_id()
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC %s (id=%d)", method, request_id)

        task = asyncio.ensure_future(self._client.post(self.endpoint, json=payload))
        self._inflight.add(task)
        try:
            response = await task
        except asyncio.CancelledError:
            if task in self._cancelled:
                raise RequestCancelledError(f"{method} request cancelled") from None
            raise
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(
                f"{method} timed out after {self.settings.timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectionFailedError(f"{method} request to {self.endpoint} failed: {exc}") from exc
        finally:
            self._inflight.discard(task)
            self._cancelled.discard(task)

        if not response.is_success:
            raise ConnectionFailedError(
                f"{method}: HTTP {response.status_code} from {self.endpoint}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"{method}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise DecodeError(f"{method}: response is not a JSON-RPC object")
        if data.get("id") is not None and data.get("id") != request_id:
            raise DecodeError(f"{method}: response id {data.get('id')} != request id {request_id}")

        if data.get("error") is not None:
            raise _protocol_error(data["error"])
        if "result" not in data:
            raise DecodeError(f"{method}: response has neither result nor error")
        return data["result"]

    # ---------------------------------------------------------------------
    # Typed methods
    # ---------------------------------------------------------------------

    async def get_latest_blockhash(self) -> Blockhash:
        result = await self.call("getLatestBlockhash", [{"commitment": COMMITMENT}])
        with _decoding("getLatestBlockhash"):
            value = result["value"]
            return Blockhash(
                blockhash=Hash.from_string(value["blockhash"]),
                last_valid_block_height=int(value.get("lastValidBlockHeight", 0)),
            )

    async def get_balance(self, address: str) -> int:
        """Native balance in lamports."""
        pubkey = to_pubkey(address)
        result = await self.call("getBalance", [str(pubkey), {"commitment": COMMITMENT}])
        with _decoding("getBalance"):
            return int(result["value"])

    async def get_version(self) -> NodeVersion:
        result = await self.call("getVersion")
        with _decoding("getVersion"):
            return NodeVersion(
                solana_core=str(result["solana-core"]),
                feature_set=result.get("feature-set"),
            )

    async def get_account_info(self, address: str, encoding: str = "base64") -> Optional[AccountInfo]:
        """
        Fetch an account.

        Returns:
            The account, or None if it does not exist
        """
        pubkey = to_pubkey(address)
        result = await self.call(
            "getAccountInfo",
            [str(pubkey), {"encoding": encoding, "commitment": COMMITMENT}],
        )
        with _decoding("getAccountInfo"):
            value = result["value"]
            if value is None:
                return None
            return _parse_account(value)

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 20,
        before: Optional[str] = None,
    ) -> list[SignatureInfo]:
        """Newest-first signature history of ``address``."""
        if not 1 <= limit <= MAX_SIGNATURE_LIMIT:
            raise InvalidParameterError(
                "limit", f"must be between 1 and {MAX_SIGNATURE_LIMIT}", limit=MAX_SIGNATURE_LIMIT
            )
        pubkey = to_pubkey(address)
        options: dict[str, Any] = {"limit": limit, "commitment": COMMITMENT}
        if before:
            options["before"] = before
        result = await self.call("getSignaturesForAddress", [str(pubkey), options])
        with _decoding("getSignaturesForAddress"):
            return [
                SignatureInfo(
                    signature=str(item["signature"]),
                    slot=int(item.get("slot", 0)),
                    block_time=item.get("blockTime"),
                    err=item.get("err"),
                    memo=item.get("memo"),
                    confirmation_status=item.get("confirmationStatus"),
                )
                for item in result
            ]

    async def simulate_transaction(self, tx: Transaction) -> SimulationResult:
        result = await self.call("simulateTransaction", [encode_transaction(tx), dict(SIMULATE_OPTIONS)])
        with _decoding("simulateTransaction"):
            value = result["value"]
            units = value.get("unitsConsumed")
            return SimulationResult(
                err=value.get("err"),
                logs=list(value.get("logs") or []),
                units_consumed=int(units) if units is not None else None,
            )

    async def send_transaction(self, tx: Transaction) -> str:
        """Submit a signed transaction; returns its signature."""
        result = await self.call("sendTransaction", [encode_transaction(tx), dict(SEND_OPTIONS)])
        if not isinstance(result, str):
            raise DecodeError(f"sendTransaction: expected a signature, got {result!r}")
        return result

    async def get_signature_statuses(self, signatures: Sequence[str]) -> list[Optional[SignatureStatus]]:
        result = await self.call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": True}],
        )
        with _decoding("getSignatureStatuses"):
            statuses: list[Optional[SignatureStatus]] = []
            for item in result["value"]:
                if item is None:
                    statuses.append(None)
                    continue
                statuses.append(
                    SignatureStatus(
                        slot=int(item["slot"]),
                        confirmations=item.get("confirmations"),
                        err=item.get("err"),
                        confirmation_status=item.get("confirmationStatus"),
                    )
                )
            return statuses

    async def get_transaction(self, signature: str) -> Optional[TransactionDetails]:
        result = await self.call(
            "getTransaction",
            [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}],
        )
        if result is None:
            return None
        with _decoding("getTransaction"):
            meta = result.get("meta") or {}
            return TransactionDetails(
                slot=int(result["slot"]),
                block_time=result.get("blockTime"),
                err=meta.get("err"),
                fee=int(meta.get("fee", 0)),
                logs=list(meta.get("logMessages") or []),
            )

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Sum of ``owner``'s token accounts for ``mint``, in base units."""
        owner_key = to_pubkey(owner, "owner")
        mint_key = to_pubkey(mint, "mint")
        result = await self.call(
            "getTokenAccountsByOwner",
            [str(owner_key), {"mint": str(mint_key)}, {"encoding": "jsonParsed", "commitment": COMMITMENT}],
        )
        with _decoding("getTokenAccountsByOwner"):
            return sum(
                int(item["account"]["data"]["parsed"]["info"]["tokenAmount"]["amount"])
                for item in result["value"]
            )

    async def get_token_supply(self, mint: str) -> int:
        mint_key = to_pubkey(mint, "mint")
        result = await self.call("getTokenSupply", [str(mint_key), {"commitment": COMMITMENT}])
        with _decoding("getTokenSupply"):
            return int(result["value"]["amount"])

    async def get_program_accounts(
        self,
        program_id: str,
        data_size: Optional[int] = None,
    ) -> list[tuple[str, AccountInfo]]:
        program = to_pubkey(program_id, "program id")
        options: dict[str, Any] = {"encoding": "base64", "commitment": COMMITMENT}
        if data_size is not None:
            options["filters"] = [{"dataSize": data_size}]
        result = await self.call("getProgramAccounts", [str(program), options])
        with _decoding("getProgramAccounts"):
            return [(str(item["pubkey"]), _parse_account(item["account"])) for item in result]
