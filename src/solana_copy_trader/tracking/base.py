"""Protocols for the external collaborators of the tracking engine."""

from __future__ import annotations

from typing import Callable, Dict, Protocol

from .models import ActivityNotice, Notification, TradeOutcome

ActivityHandler = Callable[[ActivityNotice], None]


class ChainClient(Protocol):
    """Read access to wallet balances and the wallet activity feed."""

    def get_token_balances(self, wallet_address: str) -> Dict[str, float]:
        """Return ``mint -> ui_amount`` for every non-zero token account."""

    async def subscribe(self, wallet_address: str, handler: ActivityHandler) -> None:
        """Deliver activity notices to ``handler`` until cancelled (at-least-once)."""


class SwapExecutor(Protocol):
    """Quote-and-swap service used to mirror trades into the bot wallet."""

    def buy(self, input_asset: str, output_asset: str, amount: int) -> TradeOutcome:
        """Spend ``amount`` smallest units of ``input_asset`` on ``output_asset``."""

    def sell(self, input_asset: str, output_asset: str, percent: float) -> TradeOutcome:
        """Sell ``percent`` of the bot's ``input_asset`` holding for ``output_asset``."""


class Notifier(Protocol):
    """Fire-and-forget delivery of human readable alerts."""

    async def notify(self, notification: Notification) -> None:
        """Deliver ``notification``; failures must not propagate."""


__all__ = ["ActivityHandler", "ChainClient", "Notifier", "SwapExecutor"]
