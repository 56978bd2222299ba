__all__ = [
    # Configuration
    "NetworkConfig",
    "ProgramIds",
    "Settings",
    "get_network",
    # Errors
    "MemoraError",
    "AccountNotFoundError",
    "ConnectionFailedError",
    "DecodeError",
    "InvalidAddressError",
    "InvalidParameterError",
    "ProtocolError",
    "RequestCancelledError",
    "RequestTimeoutError",
    "TransactionFailedError",
    "TruncatedError",
    # Transport and pipeline
    "RpcClient",
    "TransactionPipeline",
    "Submission",
    # Signing
    "KeypairSigner",
    "Signer",
    "load_signer",
    # Memo codec
    "decode_memo",
    "encode_memo",
    "parse_record",
    # Operations
    "Operation",
    "tokens",
]

from .config import NetworkConfig, ProgramIds, Settings, get_network
from .errors import (
    AccountNotFoundError,
    ConnectionFailedError,
    DecodeError,
    InvalidAddressError,
    InvalidParameterError,
    MemoraError,
    ProtocolError,
    RequestCancelledError,
    RequestTimeoutError,
    TransactionFailedError,
    TruncatedError,
)
from .pneuma.rpc import RpcClient
from .pneuma.pipeline import Submission, TransactionPipeline
from .sigil.signer import KeypairSigner, Signer, load_signer
from .codex.memo import decode_memo, encode_memo
from .codex.records import parse_record
from .domains.base import Operation, tokens
