"""
Configuration management for NFT Flipper.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from nft_flipper.errors import ConfigMissing


GLOBAL_CONFIG_DIR = Path.home() / ".nft_flipper"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"

DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs/"
DEFAULT_PINNING_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"


@dataclass
class Endpoints:
    """Upstream endpoints and credentials."""

    rpc_url: str = ""
    ipfs_gateway: str = DEFAULT_IPFS_GATEWAY
    contract_address: str = ""
    pinata_jwt: str = ""
    pinning_url: str = DEFAULT_PINNING_URL

    @classmethod
    def from_dict(cls, data: dict) -> "Endpoints":
        return cls(
            rpc_url=data.get("rpc_url", ""),
            ipfs_gateway=data.get("ipfs_gateway", DEFAULT_IPFS_GATEWAY),
            contract_address=data.get("contract_address", ""),
            pinata_jwt=data.get("pinata_jwt", ""),
            pinning_url=data.get("pinning_url", DEFAULT_PINNING_URL),
        )

    @classmethod
    def from_env(cls) -> "Endpoints":
        """Load endpoints from environment variables (unset values stay empty)."""
        return cls(
            rpc_url=os.getenv("RPC", ""),
            ipfs_gateway=os.getenv("IPFS", ""),
            contract_address=os.getenv("CONTRACT", ""),
            pinata_jwt=os.getenv("PINATA_JWT", ""),
            pinning_url=os.getenv("PINNING_URL", ""),
        )

    def merge_env(self) -> "Endpoints":
        """Merge with environment variables (env takes precedence)."""
        env = Endpoints.from_env()
        return Endpoints(
            rpc_url=env.rpc_url or self.rpc_url,
            ipfs_gateway=env.ipfs_gateway or self.ipfs_gateway,
            contract_address=env.contract_address or self.contract_address,
            pinata_jwt=env.pinata_jwt or self.pinata_jwt,
            pinning_url=env.pinning_url or self.pinning_url,
        )

    def to_dict(self) -> dict:
        return {
            "rpc_url": self.rpc_url,
            "ipfs_gateway": self.ipfs_gateway,
            "contract_address": self.contract_address,
            "pinata_jwt": self.pinata_jwt,
            "pinning_url": self.pinning_url,
        }


@dataclass
class Defaults:
    """Default settings."""

    output_dir: str = "output"
    request_timeout: float = 30.0
    retry_attempts: int = 3  # 1 disables transport retries
    skip_failed: bool = False
    reference_scheme: str = "ipfs://"

    @classmethod
    def from_dict(cls, data: dict) -> "Defaults":
        return cls(
            output_dir=data.get("output_dir", "output"),
            request_timeout=float(data.get("request_timeout", 30.0)),
            retry_attempts=max(1, int(data.get("retry_attempts", 3))),
            skip_failed=bool(data.get("skip_failed", False)),
            reference_scheme=data.get("reference_scheme", "ipfs://"),
        )

    def to_dict(self) -> dict:
        return {
            "output_dir": self.output_dir,
            "request_timeout": self.request_timeout,
            "retry_attempts": self.retry_attempts,
            "skip_failed": self.skip_failed,
            "reference_scheme": self.reference_scheme,
        }


@dataclass
class Config:
    """Complete configuration."""

    endpoints: Endpoints = field(default_factory=Endpoints)
    defaults: Defaults = field(default_factory=Defaults)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from file and environment."""
        config_path = config_path or GLOBAL_CONFIG_FILE

        # Start with defaults
        config = cls()

        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
                config.endpoints = Endpoints.from_dict(data.get("endpoints", {}))
                config.defaults = Defaults.from_dict(data.get("defaults", {}))

        # Environment variables take precedence
        config.endpoints = config.endpoints.merge_env()

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        config_path = config_path or GLOBAL_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "endpoints": self.endpoints.to_dict(),
            "defaults": self.defaults.to_dict(),
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.endpoints.rpc_url:
            issues.append("RPC endpoint not configured (RPC)")
        if not self.endpoints.ipfs_gateway:
            issues.append("IPFS gateway not configured (IPFS)")
        if not self.endpoints.contract_address:
            issues.append("Contract address not configured (CONTRACT)")

        return issues

    def require(self) -> "Config":
        """Raise ConfigMissing unless every required value is set."""
        issues = self.validate()
        if issues:
            raise ConfigMissing(issues)
        return self

    @property
    def has_pinning(self) -> bool:
        return bool(self.endpoints.pinata_jwt)

    @property
    def output_root(self) -> Path:
        return Path(self.defaults.output_dir)
