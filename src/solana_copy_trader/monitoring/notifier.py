"""Discord and Telegram delivery of trade notifications."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..config.settings import MonitoringConfig, get_app_config
from ..tracking.models import (
    Audience,
    BuyDetails,
    DecreaseDetails,
    ExitDetails,
    IncreaseDetails,
    Notification,
    TransitionKind,
)
from ..utils.constants import LAMPORTS_PER_SOL
from .logger import get_logger

GREEN = 65280
RED = 16711680
BLUE = 3447003
ORANGE = 16753920

BOT_USERNAME = "Solana Trade Bot"
SOLANA_LOGO = "https://cryptologos.cc/logos/solana-sol-logo.png?v=023"
TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"

_TITLES: Dict[Tuple[TransitionKind, Audience], str] = {
    (TransitionKind.NEW_POSITION, Audience.TRACKED): "Trade Completed (Buy)",
    (TransitionKind.INCREASE, Audience.TRACKED): "Trade Completed (Increase Alert)",
    (TransitionKind.PARTIAL_DECREASE, Audience.TRACKED): "Decrease Alert (Tracked Wallet Partial Sell)",
    (TransitionKind.FULL_EXIT, Audience.TRACKED): "Trade Completed (Tracked Wallet Sell)",
    (TransitionKind.NEW_POSITION, Audience.BOT): "Trade Completed (Bot Buy)",
    (TransitionKind.INCREASE, Audience.BOT): "Trade Completed (Bot Buy)",
    (TransitionKind.PARTIAL_DECREASE, Audience.BOT): "Decrease Alert (Bot Partial Sell)",
    (TransitionKind.FULL_EXIT, Audience.BOT): "Trade Completed (Bot Sell)",
}

_COLORS: Dict[TransitionKind, int] = {
    TransitionKind.NEW_POSITION: GREEN,
    TransitionKind.INCREASE: BLUE,
    TransitionKind.PARTIAL_DECREASE: ORANGE,
    TransitionKind.FULL_EXIT: RED,
}


def _field(name: str, value: str) -> Dict[str, Any]:
    return {"name": name, "value": value, "inline": False}


def _code(value: str) -> str:
    return f"```{value}```"


def _amount(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.6f}"


class DiscordNotifier:
    """Posts embeds to the wallet-tracking and bot-transaction webhooks.

    Tracked-wallet notifications go to ``discord_webhook_wallet_tracking``,
    bot trades to ``discord_webhook_bot_transaction``. When a Telegram bot
    token and chat id are configured a short text message is sent as well.
    Delivery failures are logged and never raised.
    """

    def __init__(
        self,
        config: Optional[MonitoringConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().monitoring
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    @property
    def enabled(self) -> bool:
        cfg = self._config
        return bool(
            cfg.discord_webhook_wallet_tracking
            or cfg.discord_webhook_bot_transaction
            or (cfg.telegram_bot_token and cfg.telegram_chat_id)
        )

    async def notify(self, notification: Notification) -> None:
        await asyncio.to_thread(self.deliver, notification)

    def deliver(self, notification: Notification) -> None:
        url = self._webhook_for(notification.audience)
        if url:
            self._post(str(url), self.build_embed(notification))
        else:
            self._logger.debug(
                "No Discord webhook for %s notifications; skipping", notification.audience.value
            )
        if self._config.telegram_bot_token and self._config.telegram_chat_id:
            self._post(
                TELEGRAM_API.format(token=self._config.telegram_bot_token),
                {
                    "chat_id": self._config.telegram_chat_id,
                    "text": self.build_telegram_text(notification),
                    "parse_mode": "Markdown",
                },
            )

    def build_embed(self, notification: Notification) -> Dict[str, Any]:
        kind = notification.kind
        audience = notification.audience
        title = _TITLES[(kind, audience)]
        wallet_label = "Bot Wallet" if audience == Audience.BOT else "Wallet Address"
        fields: List[Dict[str, Any]] = [
            _field(wallet_label, _code(notification.wallet_address)),
            _field("Token Address", _code(notification.mint)),
        ]
        fields.extend(self._detail_fields(notification))
        if kind != TransitionKind.PARTIAL_DECREASE or audience == Audience.BOT:
            fields.append(_field("DEX Used", notification.venue or "Jupiter Aggregator"))
        if audience == Audience.BOT:
            fields.append(_field("Transaction", self._explorer_link(notification.signature)))
        elif notification.signature:
            fields.append(_field("Source Transaction", self._explorer_link(notification.signature)))
        description = "A bot trade was executed!" if audience == Audience.BOT else "A trade was executed!"
        return {
            "username": BOT_USERNAME,
            "avatar_url": SOLANA_LOGO,
            "embeds": [
                {
                    "title": title,
                    "description": description,
                    "color": _COLORS[kind],
                    "fields": fields,
                    "timestamp": notification.created_at.isoformat(),
                    "footer": {
                        "text": f"Latency: {round(notification.latency_ms)}ms • Executed via Jupiter API"
                    },
                    "thumbnail": {"url": SOLANA_LOGO},
                }
            ],
        }

    def build_telegram_text(self, notification: Notification) -> str:
        headline = {
            TransitionKind.NEW_POSITION: "*BUY ALERT*",
            TransitionKind.INCREASE: "*Balance Increased*",
            TransitionKind.PARTIAL_DECREASE: "*Balance Decreased*",
            TransitionKind.FULL_EXIT: "*SELL ALERT*",
        }[notification.kind]
        lines = [
            headline,
            f"*Wallet:* `{notification.wallet_address}`",
            f"*Token:* `{notification.mint}`",
        ]
        for field in self._detail_fields(notification):
            lines.append(f"*{field['name']}:* `{field['value']}`")
        return "\n".join(lines)

    def _detail_fields(self, notification: Notification) -> List[Dict[str, Any]]:
        details = notification.details
        if isinstance(details, BuyDetails):
            return [
                _field("Trade Value", f"{details.trade_lamports / LAMPORTS_PER_SOL:.6f} SOL"),
                _field("Tokens Bought", _amount(details.tokens_bought)),
            ]
        if isinstance(details, IncreaseDetails):
            return [
                _field("New Wallet Balance", _amount(details.new_balance)),
                _field("Increase %", f"{details.increase_percent:.2f}%"),
            ]
        if isinstance(details, DecreaseDetails):
            return [
                _field("SOL Returned", _amount(details.sol_returned)),
                _field("Decrease %", f"{details.decrease_percent:.2f}%"),
            ]
        if isinstance(details, ExitDetails):
            return [
                _field("SOL Returned", _amount(details.sol_returned)),
                _field("Updated Balance", _amount(details.updated_balance)),
            ]
        return []

    def _explorer_link(self, signature: Optional[str]) -> str:
        if not signature:
            return "N/A"
        return f"[View on Solscan]({self._config.explorer_tx_url}{signature})"

    def _webhook_for(self, audience: Audience) -> Optional[Any]:
        if audience == Audience.BOT:
            return self._config.discord_webhook_bot_transaction
        return self._config.discord_webhook_wallet_tracking

    def _post(self, url: str, payload: Dict[str, Any]) -> None:
        try:
            response = self._session.post(url, json=payload, timeout=self._config.notification_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            self._logger.warning("Failed to deliver notification: %s", exc)


__all__ = ["DiscordNotifier"]
