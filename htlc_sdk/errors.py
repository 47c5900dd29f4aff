"""
HTLC SDK - Error Types

Specific exception classes for better error handling and debugging.
"""

from typing import Optional


class HTLCError(Exception):
    """Base exception for all HTLC SDK errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(HTLCError):
    """Error in SDK configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""
    pass


# =============================================================================
# Key and Signature Errors
# =============================================================================

class InvalidKeyError(HTLCError):
    """Key format is invalid."""
    pass


class SignatureError(HTLCError):
    """Error during signature creation or verification."""
    pass


class InvalidSignatureError(SignatureError):
    """Signature is not a canonical DER encoding."""

    def __init__(self, message: str = "Non-canonical DER signature", signature: Optional[bytes] = None):
        super().__init__(message, {"signature": signature.hex() if signature else None})
        self.signature = signature


# =============================================================================
# Script Errors
# =============================================================================

class ScriptError(HTLCError):
    """Error related to HTLC scripts."""
    pass


class InvalidScriptParamsError(ScriptError):
    """Script parameters are out of range or malformed."""
    pass


class InvalidSecretError(ScriptError):
    """Secret preimage does not hash to the expected secret hash."""

    def __init__(self, expected_hash: str, actual_hash: str):
        super().__init__(
            "Secret does not match secret hash",
            {"expected": expected_hash, "actual": actual_hash}
        )
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash


class ScriptVerificationError(ScriptError):
    """Witness failed to satisfy the script under the local interpreter."""

    def __init__(self, reason: str, input_index: int = 0):
        super().__init__(f"Script verification failed: {reason}", {"input_index": input_index})
        self.reason = reason
        self.input_index = input_index


# =============================================================================
# Transaction Errors
# =============================================================================

class TransactionError(HTLCError):
    """Error during transaction construction or broadcast."""
    pass


class InsufficientFundsError(TransactionError):
    """Not enough funds to complete the operation."""

    def __init__(self, required: int, available: int, message: Optional[str] = None):
        msg = message or f"Insufficient funds: required {required} sats, available {available} sats"
        super().__init__(msg, {"required": required, "available": available})
        self.required = required
        self.available = available


class NoUtxosFoundError(TransactionError):
    """No spendable UTXOs for the address."""

    def __init__(self, address: Optional[str] = None):
        super().__init__("No UTXOs found for the address", {"address": address})
        self.address = address


class UnsupportedInputError(TransactionError):
    """Funding input is locked by a script type the SDK cannot sign."""

    def __init__(self, outpoint: str, script_type: Optional[str]):
        super().__init__(
            f"Unsupported input script type: {script_type}",
            {"outpoint": outpoint, "script_type": script_type}
        )
        self.outpoint = outpoint
        self.script_type = script_type


class OutputIndexError(TransactionError):
    """HTLC output ended up somewhere other than its fixed index."""
    pass


class BroadcastError(TransactionError):
    """Error broadcasting transaction to the network."""

    def __init__(self, message: str, tx_hex: Optional[str] = None):
        super().__init__(message, {"tx_hex_length": len(tx_hex) if tx_hex else 0})
        self.tx_hex = tx_hex


class TransactionNotFoundError(TransactionError):
    """Transaction not found on blockchain."""

    def __init__(self, txid: str):
        super().__init__(f"Transaction not found: {txid}", {"txid": txid})
        self.txid = txid


# =============================================================================
# Network Errors
# =============================================================================

class NetworkError(HTLCError):
    """Error communicating with the blockchain network."""
    pass


class NotConnectedError(NetworkError):
    """Cannot reach the node."""
    pass


class APIError(NetworkError):
    """Error from a REST blockchain API."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message, {"status_code": status_code, "endpoint": endpoint})
        self.status_code = status_code
        self.endpoint = endpoint


class RPCError(NetworkError):
    """Error returned by a JSON-RPC node."""

    def __init__(self, message: str, code: Optional[int] = None, method: Optional[str] = None):
        super().__init__(message, {"code": code, "method": method})
        self.code = code
        self.method = method


# =============================================================================
# Swap Errors
# =============================================================================

class SwapError(HTLCError):
    """Error related to swap lifecycle."""
    pass


class SwapNotFoundError(SwapError):
    """Swap is not known to this wallet."""

    def __init__(self, outpoint: str):
        super().__init__(f"Swap not found: {outpoint}", {"outpoint": outpoint})
        self.outpoint = outpoint


class SwapStateError(SwapError):
    """Requested transition is not allowed from the current swap state."""

    def __init__(self, outpoint: str, current: str, requested: str):
        super().__init__(
            f"Cannot move swap {outpoint} from {current} to {requested}",
            {"outpoint": outpoint, "current": current, "requested": requested}
        )
        self.outpoint = outpoint
        self.current = current
        self.requested = requested
