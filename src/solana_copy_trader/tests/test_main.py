from solana_copy_trader import main as entrypoint
from solana_copy_trader.config.settings import AppConfig, TrackingConfig, WalletConfig


def test_missing_tracked_wallet_exits_non_zero(monkeypatch):
    monkeypatch.setattr(entrypoint, "get_app_config", lambda: AppConfig.model_construct())
    monkeypatch.setattr(entrypoint, "bootstrap_observability", lambda config: None)

    assert entrypoint.main([]) == 2


def test_missing_bot_key_exits_non_zero(monkeypatch):
    config = AppConfig.model_construct(
        tracking=TrackingConfig(wallet="11111111111111111111111111111111"),
        wallet=WalletConfig(),
    )
    monkeypatch.setattr(entrypoint, "get_app_config", lambda: config)
    monkeypatch.setattr(entrypoint, "bootstrap_observability", lambda config: None)

    assert entrypoint.main(["--dry-run", "--log-level", "DEBUG"]) == 2
