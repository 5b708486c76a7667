"""Monitoring package exports and helpers."""

from __future__ import annotations

from typing import Optional

from ..config.settings import AppConfig, get_app_config
from .logger import configure_logging
from .metrics import METRICS
from .notifier import DiscordNotifier


def bootstrap_observability(config: Optional[AppConfig] = None) -> Optional[DiscordNotifier]:
    """Configure logging and return a notifier when any channel is configured."""

    app_config = config or get_app_config()
    configure_logging(app_config.monitoring)
    notifier = DiscordNotifier(app_config.monitoring)
    return notifier if notifier.enabled else None


__all__ = ["bootstrap_observability", "DiscordNotifier", "METRICS"]
