"""
HTLC SDK - Key Providers

Abstract interface for key management with multiple backend implementations.
Wallets receive a provider at construction instead of reading key files
themselves; the SDK core only ever asks a provider to sign a digest.
"""

import os
import secrets
from abc import ABC, abstractmethod
from typing import Optional

from embit import ec, hashes
from embit.script import Script, p2pkh, p2wpkh

from .core.address import resolve_network
from .errors import InvalidKeyError, MissingConfigError


def _load_private_key(value: str) -> ec.PrivateKey:
    """Parse a private key given as 64 hex characters or WIF."""
    value = value.strip()
    if not value:
        raise InvalidKeyError("Private key is empty")
    try:
        if len(value) == 64:
            return ec.PrivateKey(bytes.fromhex(value))
        return ec.PrivateKey.from_wif(value)
    except (ValueError, ec.ECError) as e:
        raise InvalidKeyError(f"Invalid private key: {e}")


class KeyProvider(ABC):
    """
    Abstract base class for key providers.

    Implementations handle key storage and ECDSA signing without exposing
    private keys to the SDK core.
    """

    @property
    @abstractmethod
    def public_key_bytes(self) -> bytes:
        """33-byte compressed SEC public key."""
        pass

    @abstractmethod
    def sign(self, message_hash: bytes) -> bytes:
        """
        Sign a 32-byte digest with ECDSA.

        Args:
            message_hash: Sighash to sign.

        Returns:
            Low-S DER signature without the sighash-type byte.
        """
        pass

    @property
    def public_key(self) -> str:
        """Compressed public key as hex."""
        return self.public_key_bytes.hex()

    @property
    def public_key_hash(self) -> bytes:
        """HASH160 of the compressed public key."""
        return hashes.hash160(self.public_key_bytes)

    def script_pubkey(self, kind: str = "p2pkh") -> Script:
        pub = ec.PublicKey.parse(self.public_key_bytes)
        if kind == "p2pkh":
            return p2pkh(pub)
        elif kind == "p2wpkh":
            return p2wpkh(pub)
        raise ValueError(f"Unknown address kind: {kind}")

    def address(self, network: str = "regtest", kind: str = "p2pkh") -> str:
        """Single-key address for this provider's key."""
        return self.script_pubkey(kind).address(resolve_network(network))

    def verify(self, message_hash: bytes, der_signature: bytes) -> bool:
        """Verify a DER signature against this provider's public key."""
        try:
            pub = ec.PublicKey.parse(self.public_key_bytes)
            return pub.verify(ec.Signature.parse(der_signature), message_hash)
        except (ValueError, ec.ECError):
            return False


class _LocalKeyProvider(KeyProvider):
    """Provider holding an embit private key in process memory."""

    def __init__(self, private_key: ec.PrivateKey):
        self._private_key = private_key
        self._public_key_bytes = private_key.get_public_key().sec()

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key_bytes

    def sign(self, message_hash: bytes) -> bytes:
        if len(message_hash) != 32:
            raise ValueError(f"Message hash must be 32 bytes, got {len(message_hash)}")
        return self._private_key.sign(message_hash).serialize()

    def __repr__(self) -> str:
        """Safe representation that doesn't leak private key."""
        return f"{type(self).__name__}(public_key={self.public_key[:16]}...)"

    def __str__(self) -> str:
        return self.__repr__()

    def __getstate__(self):
        """Prevent pickling to avoid accidental key serialization."""
        raise TypeError(f"{type(self).__name__} cannot be pickled (contains secret material)")

    def __reduce__(self):
        raise TypeError(f"{type(self).__name__} cannot be pickled (contains secret material)")


class MemoryKeyProvider(_LocalKeyProvider):
    """
    Key provider with key in memory.

    WARNING: Only use for testing or when key is already in memory.
    For production, prefer EnvKeyProvider.

    Example:
        provider = MemoryKeyProvider("cVxQKBCYKDNfev1Q7uS994tb...")
        der = provider.sign(sighash)
    """

    def __init__(self, private_key: str, network: str = "regtest"):
        """
        Initialize with private key.

        Args:
            private_key: 64-character hex private key or WIF.
            network: Default network for export_wif.
        """
        resolve_network(network)
        super().__init__(_load_private_key(private_key))
        self.network = network

    @classmethod
    def generate(cls, network: str = "regtest") -> "MemoryKeyProvider":
        """Create a provider for a fresh random key on `network`."""
        while True:
            candidate = secrets.token_bytes(32)
            try:
                return cls(candidate.hex(), network=network)
            except InvalidKeyError:
                # Out-of-range scalar, astronomically unlikely
                continue

    def export_wif(self, network: Optional[str] = None) -> str:
        """Export the key as WIF, for handing to wallet storage."""
        return self._private_key.wif(resolve_network(network or self.network))


class EnvKeyProvider(_LocalKeyProvider):
    """
    Key provider that reads private key from environment variable.

    Example:
        export HTLC_PRIVATE_KEY="cVxQ..."

        provider = EnvKeyProvider("HTLC_PRIVATE_KEY")
    """

    def __init__(self, env_var: str = "HTLC_PRIVATE_KEY"):
        """
        Initialize from environment variable.

        Raises:
            MissingConfigError: If environment variable is not set.
        """
        value: Optional[str] = os.environ.get(env_var)
        if not value:
            raise MissingConfigError(
                f"Environment variable {env_var} not set. "
                f"Set it with: export {env_var}=<your-private-key-hex-or-wif>"
            )
        super().__init__(_load_private_key(value))


class FileKeyProvider(_LocalKeyProvider):
    """
    Key provider that reads from a file.

    WARNING: Only for development. Never store unencrypted keys in files
    in production environments.

    The file should contain only the hex or WIF private key.
    """

    def __init__(self, key_file_path: str):
        with open(key_file_path, 'r') as f:
            value = f.read()
        super().__init__(_load_private_key(value))
