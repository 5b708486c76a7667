"""Configuration management for the copy-trading bot."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, cast

from pydantic import AliasChoices, AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.constants import DEFAULT_TOKEN_DECIMALS, SOL_MINT

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
MODE_ENV_VAR = "BOT_MODE"
HELIUS_HTTP_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_WS_TEMPLATE = "wss://mainnet.helius-rpc.com/?api-key={key}"


class ConfigurationError(RuntimeError):
    """Raised when required startup configuration is missing or malformed."""


class AppMode(str, Enum):
    """Supported runtime modes."""

    DRY_RUN = "dry_run"
    LIVE = "live"


class IncreasePolicy(str, Enum):
    """How the bot reacts when the tracked wallet adds to an existing position."""

    OBSERVE = "observe"
    MIRROR_FRACTION = "mirror_fraction"


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
    """Merge the ``[default]`` table with the table named by ``BOT_MODE``."""

    if not data:
        return {}
    base_section = cast(Dict[str, Any], data.get("default", {}))
    requested = (os.getenv(MODE_ENV_VAR) or "").lower()
    if not requested:
        mode_section = base_section.get("mode")
        if isinstance(mode_section, dict):
            requested = str(mode_section.get("active", AppMode.LIVE.value))
        elif isinstance(mode_section, str):
            requested = mode_section
    if requested and requested != "default" and isinstance(data.get(requested), dict):
        return _deep_merge(base_section, cast(Dict[str, Any], data[requested]))
    return base_section or data


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    merged = _select_profile(payload)
    mode_section = merged.get("mode")
    if isinstance(mode_section, dict):
        merged["mode"] = {**mode_section, "config_file": str(path)}
    else:
        merged["mode"] = {"config_file": str(path)}
    return merged, path


class ModeConfig(BaseModel):
    """Runtime mode toggles."""

    active: AppMode = Field(default=AppMode.LIVE)
    config_file: Optional[Path] = None


class RPCConfig(BaseModel):
    """Solana RPC and websocket endpoints."""

    http_url: AnyHttpUrl = Field(default="https://api.mainnet-beta.solana.com")
    ws_url: str = Field(default="wss://api.mainnet-beta.solana.com")
    commitment: str = Field(default="processed")
    request_timeout: float = Field(default=10.0, ge=1.0, le=60.0)

    @field_validator("ws_url")
    @classmethod
    def _validate_ws_url(cls, value: str) -> str:
        if not value.startswith(("ws://", "wss://")):
            raise ValueError("ws_url must use the ws:// or wss:// scheme")
        return value


class TrackingConfig(BaseModel):
    """Parameters for observing the tracked wallet."""

    wallet: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("wallet", "wallet_to_track"),
    )
    min_check_interval_ms: int = Field(default=50, ge=0)
    dust_threshold: float = Field(default=0.001, ge=0.0)
    activity_queue_size: int = Field(default=1024, ge=1)
    seen_signature_capacity: int = Field(default=10_000, ge=1)
    seen_signature_ttl_seconds: int = Field(default=3_600, ge=1)
    guard_failed_snapshots: bool = True

    @field_validator("wallet", mode="before")
    @classmethod
    def _strip_wallet(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class TradingConfig(BaseModel):
    """Sizing and policy for mirrored trades."""

    trade_amount_sol: float = Field(default=0.001, gt=0.0)
    base_mint: str = Field(default=SOL_MINT)
    token_decimals: int = Field(default=DEFAULT_TOKEN_DECIMALS, ge=0, le=18)
    slippage_bps: int = Field(default=100, ge=1, le=5_000)
    priority_fee_lamports: int = Field(default=25_000, ge=0)
    increase_policy: IncreasePolicy = Field(default=IncreasePolicy.OBSERVE)
    mirror_fraction: float = Field(default=0.25, gt=0.0, le=1.0)

    @property
    def trade_amount_lamports(self) -> int:
        return int(round(self.trade_amount_sol * 1_000_000_000))


class JupiterConfig(BaseModel):
    """Endpoints for the Jupiter swap aggregator."""

    quote_url: AnyHttpUrl = Field(default="https://api.jup.ag/swap/v1/quote")
    swap_url: AnyHttpUrl = Field(default="https://api.jup.ag/swap/v1/swap")
    http_timeout: float = Field(default=10.0, ge=1.0, le=45.0)
    max_quote_attempts: int = Field(default=3, ge=1)
    default_venue: str = Field(default="Jupiter Aggregator")


class WalletConfig(BaseModel):
    """Bot signer configuration."""

    private_key: Optional[str] = None
    keypair_path: Optional[Path] = None


class MonitoringConfig(BaseModel):
    """Logging and notification configuration."""

    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")
    discord_webhook_wallet_tracking: Optional[AnyHttpUrl] = None
    discord_webhook_bot_transaction: Optional[AnyHttpUrl] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    notification_timeout: float = Field(default=5.0, ge=0.5, le=30.0)
    explorer_tx_url: str = Field(default="https://solscan.io/tx/")


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    mode: ModeConfig = Field(default_factory=ModeConfig)
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    jupiter: JupiterConfig = Field(default_factory=JupiterConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
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

        # Runtime environment variables win over the static config file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _apply_legacy_env(self) -> "AppConfig":
        helius_key = (os.getenv("HELIUS_API_KEY") or "").strip()
        helius_url = os.getenv("HELIUS_RPC_URL")
        if helius_url:
            self.rpc.http_url = helius_url
        elif helius_key:
            self.rpc.http_url = HELIUS_HTTP_TEMPLATE.format(key=helius_key)
        helius_ws = os.getenv("HELIUS_RPC_WS_URL")
        if helius_ws:
            self.rpc.ws_url = helius_ws
        elif helius_key:
            self.rpc.ws_url = HELIUS_WS_TEMPLATE.format(key=helius_key)
        if not self.tracking.wallet:
            tracked = (os.getenv("WALLET_TO_TRACK") or "").strip()
            self.tracking.wallet = tracked or None
        if not self.wallet.private_key and os.getenv("PRIVATE_KEY"):
            self.wallet.private_key = os.getenv("PRIVATE_KEY")
        trade_amount = os.getenv("TRADE_AMOUNT_SOL")
        if trade_amount:
            self.trading.trade_amount_sol = float(trade_amount)
        for field_name, env_name in (
            ("discord_webhook_wallet_tracking", "DISCORD_WEBHOOK_WALLET_TRACKING"),
            ("discord_webhook_bot_transaction", "DISCORD_WEBHOOK_BOT_TRANSACTION"),
            ("telegram_bot_token", "TELEGRAM_BOT_TOKEN"),
            ("telegram_chat_id", "TELEGRAM_CHAT_ID"),
        ):
            value = os.getenv(env_name)
            if value and getattr(self.monitoring, field_name) is None:
                setattr(self.monitoring, field_name, value)
        return self

    def require_tracked_wallet(self) -> str:
        """Return the tracked wallet address or fail startup."""

        if not self.tracking.wallet:
            raise ConfigurationError(
                "No tracked wallet configured; set TRACKING__WALLET or WALLET_TO_TRACK"
            )
        return self.tracking.wallet


def env_path() -> Path:
    """Return the default path for the `.env` file."""

    return Path.cwd() / ".env"


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Create a cached application configuration object."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "AppMode",
    "ConfigurationError",
    "IncreasePolicy",
    "JupiterConfig",
    "ModeConfig",
    "MonitoringConfig",
    "RPCConfig",
    "TrackingConfig",
    "TradingConfig",
    "WalletConfig",
    "env_path",
    "get_app_config",
]
