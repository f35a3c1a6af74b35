"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``BTCPORTAL_``, nested via ``__``)
2. YAML config file (``BTCPORTAL_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from btc_portal.portal.derivation import MasterKeySet

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class Network(enum.StrEnum):
    """Bitcoin network the portal derives addresses for."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"

    @property
    def hrp(self) -> str:
        """Bech32 human-readable part for segwit addresses on this network."""
        return _NETWORK_HRP[self]


_NETWORK_HRP = {
    Network.MAINNET: "bc",
    Network.TESTNET: "tb",
    Network.REGTEST: "bcrt",
}


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_SERVER__",
        case_sensitive=False,
    )

    host: str = "127.0.0.1"
    port: int = 9000


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./btc_portal.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class BitcoindConfig(BaseSettings):
    """Bitcoin Core JSON-RPC settings."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_BITCOIND__",
        case_sensitive=False,
    )

    url: str = "http://127.0.0.1:8332"
    user: str = ""
    password: str = ""
    timeout: float = 30.0


class PortalConfig(BaseSettings):
    """Shielding portal parameters: multisig keys, network, history window."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_PORTAL__",
        case_sensitive=False,
    )

    network: Network = Network.TESTNET
    master_pubkeys: list[str] = Field(
        default_factory=list,
        description="Hex-encoded compressed master public keys, in script order",
    )
    num_sigs_required: int = 0
    btc_token_id: str = ""
    min_conf: int = 0
    max_conf: int = 99999999
    fetch_timeout: float = 10.0
    max_workers: int = 16

    @field_validator("master_pubkeys")
    @classmethod
    def _check_hex(cls, value: list[str]) -> list[str]:
        for key in value:
            bytes.fromhex(key)
        return value

    def master_key_set(self) -> MasterKeySet:
        """Build the immutable master key set used for address derivation."""
        from btc_portal.portal.derivation import MasterKeySet

        return MasterKeySet(
            keys=tuple(bytes.fromhex(k) for k in self.master_pubkeys),
            threshold=self.num_sigs_required,
        )


class FeeConfig(BaseSettings):
    """Bitcoin fee oracle settings."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_FEE__",
        case_sensitive=False,
    )

    url: str = ""
    timeout: float = 10.0


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``BTCPORTAL_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="BTCPORTAL_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    bitcoind: BitcoindConfig = Field(default_factory=BitcoindConfig)
    portal: PortalConfig = Field(default_factory=PortalConfig)
    fee: FeeConfig = Field(default_factory=FeeConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
