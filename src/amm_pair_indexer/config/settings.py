"""Configuration management for the pair indexer."""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, cast

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
PROFILE_ENV_VAR = "INDEXER_PROFILE"
DEFAULT_PROFILE = "base"

# Base mainnet deployment of the V2 factory and its reference tokens.
WETH_ADDRESS = "0x4200000000000000000000000000000000000006"
USDC_ADDRESS = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
USDBC_ADDRESS = "0xd9aaec86b65d86f6a7b5b1b0c42ffa531710b6ca"
DAI_ADDRESS = "0x50c5725949a6f0c72e6c4a641f24049a917db0cb"
WETH_USDC_PAIR_ADDRESS = "0x88a43bbdf9d098eec7bceda4e2494615dfd9bb9c"
FACTORY_ADDRESS = "0x8909dc15e40173ff4699343b6eb8132c65e18ec6"


class StorageBackend(str, Enum):
    """Supported entity store backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


def _resolve_config_path() -> Path:
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _select_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return {}
    base_section = cast(Dict[str, Any], data.get("default", {}))
    requested = os.getenv(PROFILE_ENV_VAR)
    if not requested:
        profile_section = base_section.get("profile")
        if isinstance(profile_section, dict):
            requested = cast(str, profile_section.get("active", DEFAULT_PROFILE))
        elif isinstance(profile_section, str):
            requested = profile_section
    requested = (requested or DEFAULT_PROFILE).lower()

    if requested != "default" and requested in data:
        merged = _deep_merge(base_section, cast(Dict[str, Any], data[requested]))
        profile = dict(merged.get("profile") or {})
        profile["active"] = requested
        merged["profile"] = profile
        return merged
    if base_section:
        return base_section
    return data


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        return {}, path
    merged = dict(_select_profile(payload))
    profile_section = merged.get("profile")
    if isinstance(profile_section, dict):
        profile_section = dict(profile_section)
        profile_section.setdefault("config_file", str(path))
        merged["profile"] = profile_section
    else:
        merged["profile"] = {"config_file": str(path)}
    return merged, path


def _normalize_address(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("address must be a string")
    cleaned = value.strip().lower()
    if not cleaned.startswith("0x") or len(cleaned) != 42:
        raise ValueError(f"invalid address: {value!r}")
    return cleaned


class ProfileConfig(BaseModel):
    """Which deployment profile is active."""

    active: str = Field(default=DEFAULT_PROFILE)
    config_file: Optional[Path] = None


class ChainConfig(BaseModel):
    """Fixed addresses and thresholds driving price discovery."""

    chain_id: int = Field(default=8453, ge=1)
    base_asset_address: str = Field(default=WETH_ADDRESS)
    stablecoin_addresses: List[str] = Field(
        default_factory=lambda: [USDC_ADDRESS, USDBC_ADDRESS, DAI_ADDRESS]
    )
    canonical_pair_address: str = Field(default=WETH_USDC_PAIR_ADDRESS)
    factory_address: str = Field(default=FACTORY_ADDRESS)
    minimum_liquidity_threshold_eth: Decimal = Field(default=Decimal("0.01"), ge=0)
    # Declared for parity with the deployed indexer; no handler consults it.
    minimum_usd_threshold_new_pairs: Decimal = Field(default=Decimal("50"), ge=0)

    @field_validator("base_asset_address", "canonical_pair_address", "factory_address", mode="before")
    @classmethod
    def _lower_address(cls, value: Any) -> str:
        return _normalize_address(value)

    @field_validator("stablecoin_addresses", mode="before")
    @classmethod
    def _lower_stablecoins(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [item for item in value.split(",") if item.strip()]
        seen: set[str] = set()
        unique: List[str] = []
        for item in value:
            address = _normalize_address(item)
            if address not in seen:
                unique.append(address)
                seen.add(address)
        return unique

    def is_stablecoin(self, address: str) -> bool:
        return address in self.stablecoin_addresses

    def is_whitelisted(self, address: str) -> bool:
        return address == self.base_asset_address or self.is_stablecoin(address)


class RPCConfig(BaseModel):
    """JSON-RPC endpoint used for historical contract reads."""

    primary_url: AnyHttpUrl = Field(default="https://mainnet.base.org")
    request_timeout: float = Field(default=12.0, ge=1.0, le=60.0)
    max_retry_attempts: int = Field(default=3, ge=1, le=10)
    metadata_cache_size: int = Field(default=4_096, ge=0)

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _parse_request_timeout(cls, value: Any) -> Any:
        if isinstance(value, str):
            return float(value)
        return value


class StorageConfig(BaseModel):
    """Entity store configuration."""

    backend: StorageBackend = Field(default=StorageBackend.SQLITE)
    database_path: Path = Field(default=Path("./indexer.sqlite3"))


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    structured: bool = True


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    profile: ProfileConfig = Field(default_factory=ProfileConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, _ = _load_toml_config()
            return payload

        # Runtime environment wins over the static config file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Create a cached application configuration object."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "ChainConfig",
    "MonitoringConfig",
    "ProfileConfig",
    "RPCConfig",
    "StorageBackend",
    "StorageConfig",
    "get_app_config",
]
