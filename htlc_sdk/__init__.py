"""
HTLC SDK - Bitcoin Hash Time-Locked Contracts

A Python SDK for locking bitcoin into P2WSH HTLC outputs and redeeming them
by secret reveal or after a relative (CSV) timeout.

Usage (funder):
    from htlc_sdk import HtlcWallet, EnvKeyProvider, NetworkConfig, generate_secret

    wallet = HtlcWallet(EnvKeyProvider(), config=NetworkConfig.from_env())
    secret, secret_hash = generate_secret()

    swap = wallet.deploy(counterparty_pubkey, secret_hash, 144, 100_000)
    print(f"HTLC funded at {swap.outpoint} ({swap.address})")

    # ... 144 blocks later, if the counterparty never claimed
    wallet.refund(swap)

Usage (recipient):
    txid = wallet.redeem_with_secret(
        funding_txid, 0, wallet.address, secret,
        lock_time_blocks=144, amount_sats=100_000,
        counterparty_pubkey=funder_pubkey,
    )

Low-level building blocks (script compilation, funding and redemption
builders, the script verifier) live in `htlc_sdk.core`.
"""

from .wallet import HtlcWallet
from .config import NetworkConfig
from .models import (
    UTXO,
    FundingTransaction,
    RedemptionTransaction,
    SwapDescriptor,
    Swap,
    SwapState,
    HtlcVariant,
    SpendPath,
)

# Key providers
from .providers import (
    KeyProvider,
    EnvKeyProvider,
    MemoryKeyProvider,
    FileKeyProvider,
)

# Node clients
from .infra import NodeClient, EsploraAPI, BitcoinRPC

# Helpers
from .core import (
    compile_hashlock_script,
    compile_pubkey_hash_hashlock_script,
    derive_p2wsh_address,
    public_key_hash_from_address,
    hash_secret,
    generate_secret,
    verify_preimage,
)

# Error types
from .errors import (
    HTLCError,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    InvalidKeyError,
    SignatureError,
    InvalidSignatureError,
    ScriptError,
    InvalidScriptParamsError,
    InvalidSecretError,
    ScriptVerificationError,
    TransactionError,
    InsufficientFundsError,
    NoUtxosFoundError,
    UnsupportedInputError,
    OutputIndexError,
    BroadcastError,
    TransactionNotFoundError,
    NetworkError,
    NotConnectedError,
    APIError,
    RPCError,
    SwapError,
    SwapNotFoundError,
    SwapStateError,
)

# Event hooks
from .events import EventEmitter, EventType, Event, create_logging_hook

# Logging
from .logging import StructuredLogger, LogLevel, create_file_logger, create_audit_logger

__version__ = "0.1.0"
__all__ = [
    # Core
    "HtlcWallet",
    "NetworkConfig",
    "UTXO",
    "FundingTransaction",
    "RedemptionTransaction",
    "SwapDescriptor",
    "Swap",
    "SwapState",
    "HtlcVariant",
    "SpendPath",

    # Key Providers
    "KeyProvider",
    "EnvKeyProvider",
    "MemoryKeyProvider",
    "FileKeyProvider",

    # Node Clients
    "NodeClient",
    "EsploraAPI",
    "BitcoinRPC",

    # Helpers
    "compile_hashlock_script",
    "compile_pubkey_hash_hashlock_script",
    "derive_p2wsh_address",
    "public_key_hash_from_address",
    "hash_secret",
    "generate_secret",
    "verify_preimage",

    # Errors
    "HTLCError",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "InvalidKeyError",
    "SignatureError",
    "InvalidSignatureError",
    "ScriptError",
    "InvalidScriptParamsError",
    "InvalidSecretError",
    "ScriptVerificationError",
    "TransactionError",
    "InsufficientFundsError",
    "NoUtxosFoundError",
    "UnsupportedInputError",
    "OutputIndexError",
    "BroadcastError",
    "TransactionNotFoundError",
    "NetworkError",
    "NotConnectedError",
    "APIError",
    "RPCError",
    "SwapError",
    "SwapNotFoundError",
    "SwapStateError",

    # Events
    "EventEmitter",
    "EventType",
    "Event",
    "create_logging_hook",

    # Logging
    "StructuredLogger",
    "LogLevel",
    "create_file_logger",
    "create_audit_logger",
]
