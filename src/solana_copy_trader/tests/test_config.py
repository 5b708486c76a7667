from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from solana_copy_trader.config import settings

_ENV_VARS = (
    "APP_CONFIG_FILE",
    "BOT_MODE",
    "HELIUS_API_KEY",
    "HELIUS_RPC_URL",
    "HELIUS_RPC_WS_URL",
    "WALLET_TO_TRACK",
    "PRIVATE_KEY",
    "TRADE_AMOUNT_SOL",
    "DISCORD_WEBHOOK_WALLET_TRACKING",
    "DISCORD_WEBHOOK_BOT_TRANSACTION",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "TRACKING__WALLET",
    "TRADING__SLIPPAGE_BPS",
    "TRADING__INCREASE_POLICY",
    "RPC__HTTP_URL",
    "RPC__WS_URL",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep any developer `.env` out of the picture.
    monkeypatch.chdir(tmp_path)
    settings.get_app_config.cache_clear()
    yield tmp_path
    settings.get_app_config.cache_clear()


def test_defaults(clean_env: Path) -> None:
    cfg = settings.AppConfig()

    assert cfg.mode.active == settings.AppMode.LIVE
    assert cfg.mode.config_file is None
    assert cfg.rpc.commitment == "processed"
    assert cfg.tracking.min_check_interval_ms == 50
    assert cfg.tracking.dust_threshold == 0.001
    assert cfg.trading.trade_amount_lamports == 1_000_000
    assert cfg.trading.slippage_bps == 100
    assert cfg.trading.increase_policy == settings.IncreasePolicy.OBSERVE
    assert cfg.jupiter.default_venue == "Jupiter Aggregator"


def test_profiles_and_env_overrides(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = clean_env / "app.toml"
    config_path.write_text(
        """
[default.mode]
active = "dry_run"

[default.trading]
trade_amount_sol = 0.01
slippage_bps = 150

[default.tracking]
wallet = "DefaultWallet111"

[live.mode]
active = "live"

[live.trading]
trade_amount_sol = 0.05
increase_policy = "mirror_fraction"
"""
    )
    monkeypatch.setenv("APP_CONFIG_FILE", str(config_path))
    monkeypatch.setenv("BOT_MODE", "live")
    monkeypatch.setenv("TRADING__SLIPPAGE_BPS", "250")

    cfg = settings.get_app_config()

    assert cfg.mode.active == settings.AppMode.LIVE
    assert cfg.mode.config_file == config_path
    assert cfg.trading.trade_amount_sol == 0.05
    assert cfg.trading.slippage_bps == 250
    assert cfg.trading.increase_policy == settings.IncreasePolicy.MIRROR_FRACTION
    assert cfg.require_tracked_wallet() == "DefaultWallet111"


def test_default_profile_when_mode_unset(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = clean_env / "app.toml"
    config_path.write_text(
        """
[default.mode]
active = "dry_run"

[default.trading]
trade_amount_sol = 0.01
"""
    )
    monkeypatch.setenv("APP_CONFIG_FILE", str(config_path))

    cfg = settings.AppConfig()

    assert cfg.mode.active == settings.AppMode.DRY_RUN
    assert cfg.trading.trade_amount_sol == 0.01


def test_legacy_environment_names(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HELIUS_API_KEY", "abc123")
    monkeypatch.setenv("WALLET_TO_TRACK", "  TrackedWallet111  ")
    monkeypatch.setenv("PRIVATE_KEY", "[1,2,3]")
    monkeypatch.setenv("TRADE_AMOUNT_SOL", "0.002")
    monkeypatch.setenv("DISCORD_WEBHOOK_BOT_TRANSACTION", "https://discord.test/webhooks/bot")

    cfg = settings.AppConfig()

    assert "abc123" in str(cfg.rpc.http_url)
    assert cfg.rpc.ws_url.startswith("wss://") and "abc123" in cfg.rpc.ws_url
    assert cfg.tracking.wallet == "TrackedWallet111"
    assert cfg.wallet.private_key == "[1,2,3]"
    assert cfg.trading.trade_amount_lamports == 2_000_000
    assert "discord.test" in str(cfg.monitoring.discord_webhook_bot_transaction)


def test_explicit_helius_url_wins_over_key(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HELIUS_API_KEY", "abc123")
    monkeypatch.setenv("HELIUS_RPC_URL", "https://rpc.example.test/")

    cfg = settings.AppConfig()

    assert str(cfg.rpc.http_url).startswith("https://rpc.example.test")


def test_missing_tracked_wallet_is_a_configuration_error(clean_env: Path) -> None:
    cfg = settings.AppConfig()

    with pytest.raises(settings.ConfigurationError):
        cfg.require_tracked_wallet()


def test_rejects_non_websocket_url(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RPC__WS_URL", "https://not-a-socket")

    with pytest.raises(ValidationError):
        settings.AppConfig()
