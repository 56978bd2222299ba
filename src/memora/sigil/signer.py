"""
Signing collaborators.

The transaction pipeline never touches key material: it hands an unsigned
transaction and its blockhash to a ``Signer`` and gets a signed transaction
back. ``KeypairSigner`` is the local implementation used by the CLI.

Keys are read from the environment (optionally seeded from
``~/.memora/.env``):

- ``MEMORA_KEYPAIR``: path to a JSON keypair file (64-byte array)
- ``PRIVATE_KEY``: base58-encoded 64-byte secret key
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Protocol

from dotenv import load_dotenv
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..config import MEMORA_ENV
from ..errors import InvalidParameterError


class Signer(Protocol):
    def public_key(self) -> Pubkey:
        ...

    def sign(self, transaction: Transaction, blockhash: Hash) -> Transaction:
        ...


class KeypairSigner:
    """Signs with an in-memory solders ``Keypair``."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, transaction: Transaction, blockhash: Hash) -> Transaction:
        transaction.sign([self._keypair], blockhash)
        return transaction


def load_keypair(env_path: Optional[Path] = None) -> Keypair:
    """
    Load the signing keypair from the environment.

    Args:
        env_path: Path to .env file (default: ~/.memora/.env)

    Returns:
        solders Keypair

    Raises:
        InvalidParameterError: If no key is configured or it cannot be parsed
    """
    env_path = env_path or MEMORA_ENV
    if env_path.exists():
        load_dotenv(env_path, override=False)

    keypair_path = os.environ.get("MEMORA_KEYPAIR")
    if keypair_path:
        path = Path(keypair_path).expanduser()
        try:
            return Keypair.from_json(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise InvalidParameterError("MEMORA_KEYPAIR", f"cannot read {path}: {exc}") from exc
        except ValueError as exc:
            raise InvalidParameterError("MEMORA_KEYPAIR", f"invalid keypair file: {exc}") from exc

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise InvalidParameterError(
            "PRIVATE_KEY",
            f"no signing key found. Set MEMORA_KEYPAIR or PRIVATE_KEY in {env_path}",
        )
    try:
        return Keypair.from_base58_string(private_key.strip())
    except ValueError as exc:
        raise InvalidParameterError("PRIVATE_KEY", f"invalid base58 secret key: {exc}") from exc


def load_signer(env_path: Optional[Path] = None) -> KeypairSigner:
    return KeypairSigner(load_keypair(env_path))
