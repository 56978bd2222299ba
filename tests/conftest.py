"""Shared fixtures: an in-process JSON-RPC node behind ``httpx.MockTransport``."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair

from memora.config import TESTNET, Settings
from memora.pneuma.rpc import RpcClient

Handler = Union[Any, Callable[[list], Any]]

BLOCKHASH = str(Hash.default())


class FakeNode:
    """
    Routes JSON-RPC methods to canned results and records every request.

    A handler is either a plain result or a callable receiving the request
    params. Raising ``RpcFault`` from a callable produces an ``error`` object.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {
            "getLatestBlockhash": {
                "context": {"slot": 1},
                "value": {"blockhash": BLOCKHASH, "lastValidBlockHeight": 100},
            },
        }
        self.accounts: dict[str, dict] = {}
        self.requests: list[dict] = []
        self.handlers["getAccountInfo"] = self._account_info

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        handler = self.handlers.get(body["method"])
        if handler is None:
            error = {"code": -32601, "message": "Method not found"}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": error})
        try:
            result = handler(body["params"]) if callable(handler) else handler
        except RpcFault as fault:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": fault.error})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def _account_info(self, params: list) -> dict:
        return {"context": {"slot": 1}, "value": self.accounts.get(params[0])}

    def put_account(self, address: object, data: bytes, owner: object) -> None:
        self.accounts[str(address)] = self.account(data, owner)

    @staticmethod
    def account(data: bytes, owner: object) -> dict:
        return {
            "lamports": 1_000_000,
            "owner": str(owner),
            "data": [base64.b64encode(data).decode("ascii"), "base64"],
            "executable": False,
            "space": len(data),
        }

    def fail(self, method: str, code: int, message: str, data: Any = None) -> None:
        def handler(params: list) -> Any:
            raise RpcFault(code, message, data)

        self.handlers[method] = handler

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    def client(self, settings: Optional[Settings] = None) -> RpcClient:
        return RpcClient(settings or Settings(network=TESTNET), transport=httpx.MockTransport(self))


class RpcFault(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.error = {"code": code, "message": message}
        if data is not None:
            self.error["data"] = data


@pytest.fixture()
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture()
def programs():
    return TESTNET.programs


@pytest.fixture()
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the user's ~/.memora/.env and MEMORA_* variables out of tests."""
    for name in (
        "MEMORA_NETWORK",
        "MEMORA_RPC_URL",
        "MEMORA_CU_BUFFER_PCT",
        "MEMORA_CU_PRICE",
        "MEMORA_RPC_TIMEOUT",
        "MEMORA_CONCURRENCY",
        "MEMORA_KEYPAIR",
        "PRIVATE_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("memora.config.MEMORA_ENV", tmp_path / "missing.env")
    monkeypatch.setattr("memora.sigil.signer.MEMORA_ENV", tmp_path / "missing.env")
