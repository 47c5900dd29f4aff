"""
HTLC SDK - Configuration Management

Handles loading and managing SDK configuration.
Configuration holds network and fee settings only; private keys come from
a KeyProvider.
"""

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from .constants import (
    DEFAULT_API_URLS,
    DEFAULT_RPC_URL,
    DUST_THRESHOLD_SATS,
    EMBIT_NETWORKS,
    FUNDING_FEE_SATS,
    REDEEM_FEE_SATS,
)
from .errors import InvalidConfigError, MissingConfigError
from .infra import NodeClient, EsploraAPI, BitcoinRPC

BACKENDS = ("esplora", "rpc")


@dataclass
class NetworkConfig:
    """
    Network, node and fee configuration (PUBLIC).

    This configuration contains no private keys and is safe
    to commit to version control or share publicly.

    Fees are fixed amounts rather than rates; see DESIGN.md.
    """
    network: str = "regtest"
    backend: str = "rpc"
    api_base_url: Optional[str] = None
    rpc_url: str = DEFAULT_RPC_URL
    rpc_user: Optional[str] = None
    rpc_password: Optional[str] = None
    funding_fee_sats: int = FUNDING_FEE_SATS
    redeem_fee_sats: int = REDEEM_FEE_SATS
    dust_threshold_sats: int = DUST_THRESHOLD_SATS
    verify_before_broadcast: bool = True
    timeout: int = 30

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            InvalidConfigError: If a field is out of range.
        """
        if self.network not in EMBIT_NETWORKS:
            raise InvalidConfigError(f"Unknown network: {self.network}", {"network": self.network})
        if self.backend not in BACKENDS:
            raise InvalidConfigError(f"Unknown backend: {self.backend}", {"backend": self.backend})
        for name in ("funding_fee_sats", "redeem_fee_sats", "dust_threshold_sats"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidConfigError(f"{name} must be a non-negative integer", {name: value})
        if self.timeout <= 0:
            raise InvalidConfigError("timeout must be positive", {"timeout": self.timeout})

    @property
    def api_url(self) -> str:
        """Esplora base URL, defaulting per network."""
        return self.api_base_url or DEFAULT_API_URLS[EMBIT_NETWORKS[self.network]]

    @classmethod
    def from_file(cls, path: str) -> "NetworkConfig":
        """
        Load network configuration from JSON file.

        Example network_config.json:
        {
            "network": "regtest",
            "backend": "rpc",
            "rpc_url": "http://localhost:18443",
            "rpc_user": "bitcoin",
            "funding_fee_sats": 1000
        }
        """
        config_path = Path(path)
        if not config_path.exists():
            raise MissingConfigError(f"Config file not found: {path}", {"path": path})

        with open(config_path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise InvalidConfigError(f"Invalid JSON in {path}: {e}")

        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise InvalidConfigError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "HTLC_") -> "NetworkConfig":
        """
        Load configuration from environment variables.

        Recognized: HTLC_NETWORK, HTLC_BACKEND, HTLC_API_URL, HTLC_RPC_URL,
        HTLC_RPC_USER, HTLC_RPC_PASSWORD, HTLC_FUNDING_FEE_SATS,
        HTLC_REDEEM_FEE_SATS, HTLC_DUST_THRESHOLD_SATS, HTLC_TIMEOUT,
        HTLC_VERIFY_BEFORE_BROADCAST.
        """
        env = os.environ
        kwargs = {}
        for field_name, env_name in (
            ("network", "NETWORK"),
            ("backend", "BACKEND"),
            ("api_base_url", "API_URL"),
            ("rpc_url", "RPC_URL"),
            ("rpc_user", "RPC_USER"),
            ("rpc_password", "RPC_PASSWORD"),
        ):
            if prefix + env_name in env:
                kwargs[field_name] = env[prefix + env_name]
        for field_name, env_name in (
            ("funding_fee_sats", "FUNDING_FEE_SATS"),
            ("redeem_fee_sats", "REDEEM_FEE_SATS"),
            ("dust_threshold_sats", "DUST_THRESHOLD_SATS"),
            ("timeout", "TIMEOUT"),
        ):
            if prefix + env_name in env:
                try:
                    kwargs[field_name] = int(env[prefix + env_name])
                except ValueError:
                    raise InvalidConfigError(f"{prefix + env_name} must be an integer")
        if prefix + "VERIFY_BEFORE_BROADCAST" in env:
            kwargs["verify_before_broadcast"] = env[prefix + "VERIFY_BEFORE_BROADCAST"].lower() in ("1", "true", "yes")
        return cls(**kwargs)

    def to_dict(self) -> dict:
        """Public settings; the RPC password is masked."""
        data = asdict(self)
        if data.get("rpc_password"):
            data["rpc_password"] = "***"
        return data

    def save(self, path: str) -> None:
        """Save config to JSON file (without the RPC password)."""
        data = asdict(self)
        data.pop("rpc_password", None)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def create_node_client(self) -> NodeClient:
        """Build the configured Node Client."""
        if self.backend == "esplora":
            return EsploraAPI(base_url=self.api_url, network=self.network, timeout=self.timeout)
        return BitcoinRPC(
            url=self.rpc_url,
            user=self.rpc_user,
            password=self.rpc_password,
            timeout=self.timeout
        )
