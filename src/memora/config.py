"""
Network and user configuration.

``NetworkConfig`` pins the RPC endpoints and the program ids deployed on a
given X1 network. ``Settings`` carries the user's overrides (custom RPC,
compute-unit buffer and price). Both are immutable and passed explicitly to
the transport and the transaction pipeline; nothing here is global.

Settings are read from the environment, optionally seeded from
``~/.memora/.env``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from solders.pubkey import Pubkey

from .errors import InvalidParameterError


# Default config directory
MEMORA_DIR = Path.home() / ".memora"
MEMORA_ENV = MEMORA_DIR / ".env"

TOKEN_DECIMALS = 6
UNITS_PER_TOKEN = 10 ** TOKEN_DECIMALS

NATIVE_DECIMALS = 9
LAMPORTS_PER_NATIVE = 10 ** NATIVE_DECIMALS

DEFAULT_TIMEOUT = 30.0
DEFAULT_CONCURRENCY = 8

# System programs shared by every network
SYSTEM_PROGRAM = Pubkey.from_string("11111111111111111111111111111111")
SYSVAR_INSTRUCTIONS = Pubkey.from_string("Sysvar1nstructions1111111111111111111111111")
MEMO_PROGRAM = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
TOKEN_2022_PROGRAM = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
ASSOCIATED_TOKEN_PROGRAM = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")


@dataclass(frozen=True)
class ProgramIds:
    mint: Pubkey
    burn: Pubkey
    chat: Pubkey
    profile: Pubkey
    project: Pubkey
    blog: Pubkey
    forum: Pubkey
    token_mint: Pubkey
    token_2022: Pubkey = TOKEN_2022_PROGRAM

    @classmethod
    def from_strings(cls, **ids: str) -> "ProgramIds":
        return cls(**{name: Pubkey.from_string(value) for name, value in ids.items()})


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    rpc_endpoints: tuple[str, ...]
    programs: ProgramIds


_MAINNET_PROGRAMS = ProgramIds.from_strings(
    mint="8iq6zqaEVcfaym2u8t939PAN5jmfPVc6Z333RuxKTTZX",
    burn="2sb3gz5Cmr2g1ia5si2rmCZqPACxgaZXEmiS5k6Htcvh",
    chat="Hni4qE8GGW5uwBWzUEkpPBDRwXvKCWhM96teieAReRyd",
    profile="2BY8vPpQRFFwAqK3HqU5qL3qsGMH3VnX9Gv9bud3vzH8",
    project="6Vavot6ybhWBG3rjNXnLfNRPVTz7Garf6E4EZk3byp3a",
    blog="3EKdp88FgyPC41bxRDzFAtCDUMV2g9SVt5UiytE8wdzM",
    forum="6gzhG5BveTkJfTi466toX4qmN3BtU9qp1Grnk61GvmXD",
    token_mint="memoX1sJsBY6od7CfQ58XooRALwnocAZen4L7mW1ick",
)

TESTNET = NetworkConfig(
    name="testnet",
    rpc_endpoints=("https://rpc.testnet.x1.xyz",),
    programs=ProgramIds.from_strings(
        mint="A31a17bhgQyRQygeZa1SybytjbCdjMpu6oPr9M3iQWzy",
        burn="FEjJ9KKJETocmaStfsFteFrktPchDLAVNTMeTvndoxaP",
        chat="54ky4LNnRsbYioDSBKNrc5hG8HoDyZ6yhf8TuncxTBRF",
        profile="BwQTxuShrwJR15U6Utdfmfr4kZ18VT6FA1fcp58sT8US",
        project="ENVapgjzzMjbRhLJ279yNsSgaQtDYYVgWq98j54yYnyx",
        blog="HPvqPUneCLwb8YYoYTrWmy6o7viRKsnLTgxwkg7CCpfB",
        forum="9kwS5nSidmoHq84TyNzqFrtD29odp4sdRxm97tCbdpbS",
        token_mint="HLCoc7wNDavNMfWWw2Bwd7U7A24cesuhBSNkxZgvZm1",
    ),
)

# Testnet RPC with mainnet program ids, for final verification
PROD_STAGING = NetworkConfig(
    name="prod-staging",
    rpc_endpoints=("https://rpc.testnet.x1.xyz",),
    programs=_MAINNET_PROGRAMS,
)

MAINNET = NetworkConfig(
    name="mainnet",
    rpc_endpoints=("https://rpc.mainnet.x1.xyz",),
    programs=_MAINNET_PROGRAMS,
)

NETWORKS: dict[str, NetworkConfig] = {
    n.name: n for n in (TESTNET, PROD_STAGING, MAINNET)
}


def get_network(name: str) -> NetworkConfig:
    """Look up a network preset by name (``testnet``, ``prod-staging``, ``mainnet``)."""
    try:
        return NETWORKS[name.strip().lower()]
    except KeyError:
        raise InvalidParameterError(
            "network", f"unknown network '{name}' (expected one of: {', '.join(NETWORKS)})"
        ) from None


@dataclass(frozen=True)
class Settings:
    """
    User-level overrides consumed read-only by the client.

    Attributes:
        network: Network preset
        custom_rpc_url: Replaces the network's endpoint list when set
        compute_unit_buffer_percentage: Safety buffer override (0-100);
            None keeps each operation's own multiplier
        compute_unit_price: Priority fee in micro-lamports per unit; 0 disables
        timeout: Per-request timeout in seconds
        concurrency: Maximum parallel requests for bulk reads
    """

    network: NetworkConfig = TESTNET
    custom_rpc_url: Optional[str] = None
    compute_unit_buffer_percentage: Optional[int] = None
    compute_unit_price: int = 0
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY

    def custom_rpc_endpoint(self) -> Optional[str]:
        if self.custom_rpc_url is None:
            return None
        trimmed = self.custom_rpc_url.strip()
        return trimmed or None

    def compute_unit_multiplier(self) -> Optional[float]:
        """Multiplier implied by the buffer override: ``1 + min(pct, 100) / 100``."""
        pct = self.compute_unit_buffer_percentage
        if pct is None:
            return None
        if pct <= 0:
            return 1.0
        return 1.0 + min(pct, 100) / 100.0

    def compute_unit_price_micro_lamports(self) -> Optional[int]:
        return self.compute_unit_price if self.compute_unit_price > 0 else None

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        ``env_path`` (default ``~/.memora/.env``) is loaded first without
        overriding variables that are already set.

        Recognised variables: ``MEMORA_NETWORK``, ``MEMORA_RPC_URL``,
        ``MEMORA_CU_BUFFER_PCT``, ``MEMORA_CU_PRICE``, ``MEMORA_RPC_TIMEOUT``,
        ``MEMORA_CONCURRENCY``.
        """
        env_path = env_path or MEMORA_ENV
        if env_path.exists():
            load_dotenv(env_path, override=False)

        buffer_pct = os.environ.get("MEMORA_CU_BUFFER_PCT")
        return cls(
            network=get_network(os.environ.get("MEMORA_NETWORK", TESTNET.name)),
            custom_rpc_url=os.environ.get("MEMORA_RPC_URL") or None,
            compute_unit_buffer_percentage=(
                _env_int("MEMORA_CU_BUFFER_PCT", buffer_pct) if buffer_pct else None
            ),
            compute_unit_price=_env_int(
                "MEMORA_CU_PRICE", os.environ.get("MEMORA_CU_PRICE", "0")
            ),
            timeout=_env_float("MEMORA_RPC_TIMEOUT", os.environ.get("MEMORA_RPC_TIMEOUT", str(DEFAULT_TIMEOUT))),
            concurrency=max(
                1,
                _env_int(
                    "MEMORA_CONCURRENCY",
                    os.environ.get("MEMORA_CONCURRENCY", str(DEFAULT_CONCURRENCY)),
                ),
            ),
        )


def _env_int(name: str, value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise InvalidParameterError(name, f"expected an integer, got '{value}'") from None
    if parsed < 0:
        raise InvalidParameterError(name, "must not be negative")
    return parsed


def _env_float(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise InvalidParameterError(name, f"expected a number, got '{value}'") from None
    if parsed <= 0:
        raise InvalidParameterError(name, "must be positive")
    return parsed
