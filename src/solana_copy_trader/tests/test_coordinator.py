import asyncio
from typing import List

import pytest

from solana_copy_trader.monitoring.metrics import MetricsSink
from solana_copy_trader.tracking.coordinator import ExecutionCoordinator
from solana_copy_trader.tracking.correlator import SignatureCorrelator
from solana_copy_trader.tracking.ledger import PositionLedger
from solana_copy_trader.tracking.models import (
    Audience,
    BuyDetails,
    DecreaseDetails,
    Direction,
    ExitDetails,
    Notification,
    SwapCommand,
    TradeOutcome,
    TransitionEvent,
    TransitionKind,
)
from solana_copy_trader.utils.constants import SOL_MINT, utc_now


class ScriptedExecutor:
    def __init__(self, outcome: TradeOutcome | None = None, error: Exception | None = None) -> None:
        self.outcome = outcome or TradeOutcome(success=True, out_amount=250.0, signature="bot-sig", dex="Raydium")
        self.error = error
        self.calls: List[tuple] = []

    def buy(self, input_asset: str, output_asset: str, amount: int) -> TradeOutcome:
        self.calls.append(("buy", input_asset, output_asset, amount))
        if self.error is not None:
            raise self.error
        return self.outcome

    def sell(self, input_asset: str, output_asset: str, percent: float) -> TradeOutcome:
        self.calls.append(("sell", input_asset, output_asset, percent))
        if self.error is not None:
            raise self.error
        return self.outcome


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[Notification] = []

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)
        if self.fail:
            raise RuntimeError("webhook down")


def _event(kind: TransitionKind, old: float, new: float) -> TransitionEvent:
    return TransitionEvent(mint="TKN", kind=kind, old_balance=old, new_balance=new, observed_at=utc_now())


def _buy(event: TransitionEvent, amount: int = 1_000_000) -> SwapCommand:
    return SwapCommand(Direction.BUY, SOL_MINT, event.mint, float(amount), event)


def _sell(event: TransitionEvent, percent: float) -> SwapCommand:
    return SwapCommand(Direction.SELL, event.mint, SOL_MINT, percent, event)


def _coordinator(executor, ledger, metrics, notifier=None, correlator=None) -> ExecutionCoordinator:
    return ExecutionCoordinator(
        executor,
        ledger,
        metrics,
        tracked_wallet="tracked",
        bot_wallet="bot",
        notifier=notifier,
        correlator=correlator,
    )


def _run(coordinator: ExecutionCoordinator, decisions):
    async def runner():
        outcomes = await coordinator.run_pass(decisions)
        await coordinator.flush()
        return outcomes

    return asyncio.run(runner())


def test_first_buy_sets_ledger_to_out_amount():
    ledger = PositionLedger()
    metrics = MetricsSink()
    executor = ScriptedExecutor()
    event = _event(TransitionKind.NEW_POSITION, 0.0, 50.0)

    outcomes = _run(_coordinator(executor, ledger, metrics), [(event, _buy(event))])

    assert executor.calls == [("buy", SOL_MINT, "TKN", 1_000_000)]
    assert outcomes[0] is not None and outcomes[0].success
    assert outcomes[0].latency_ms >= 0
    assert ledger.held("TKN") == 250.0
    snap = metrics.snapshot()
    assert snap.total_trades == 1
    assert snap.successful_trades == 1


def test_additional_buy_accumulates():
    ledger = PositionLedger({"TKN": 100.0})
    event = _event(TransitionKind.INCREASE, 10.0, 20.0)

    _run(_coordinator(ScriptedExecutor(), ledger, MetricsSink()), [(event, _buy(event, 250_000))])

    assert ledger.held("TKN") == 350.0


def test_full_sell_zeroes_ledger():
    ledger = PositionLedger({"TKN": 100.0})
    event = _event(TransitionKind.FULL_EXIT, 30.0, 0.0)
    executor = ScriptedExecutor(TradeOutcome(success=True, out_amount=0.4, signature="s"))

    _run(_coordinator(executor, ledger, MetricsSink()), [(event, _sell(event, 100.0))])

    assert ledger.held("TKN") == 0.0


def test_partial_sell_reduces_by_percent():
    ledger = PositionLedger({"TKN": 100.0})
    event = _event(TransitionKind.PARTIAL_DECREASE, 50.0, 30.0)
    executor = ScriptedExecutor(TradeOutcome(success=True, out_amount=0.2, signature="s"))

    _run(_coordinator(executor, ledger, MetricsSink()), [(event, _sell(event, 40.0))])

    assert ledger.held("TKN") == pytest.approx(60.0)


def test_failed_sell_leaves_ledger_and_counts_trade():
    ledger = PositionLedger({"TKN": 100.0})
    metrics = MetricsSink()
    event = _event(TransitionKind.FULL_EXIT, 30.0, 0.0)

    outcomes = _run(
        _coordinator(ScriptedExecutor(TradeOutcome.failed()), ledger, metrics),
        [(event, _sell(event, 100.0))],
    )

    assert outcomes[0] is not None and not outcomes[0].success
    assert ledger.held("TKN") == 100.0
    snap = metrics.snapshot()
    assert snap.total_trades == 1
    assert snap.successful_trades == 0


def test_executor_exception_is_a_failed_trade():
    ledger = PositionLedger({"TKN": 100.0})
    metrics = MetricsSink()
    event = _event(TransitionKind.PARTIAL_DECREASE, 50.0, 30.0)

    outcomes = _run(
        _coordinator(ScriptedExecutor(error=RuntimeError("rpc down")), ledger, metrics),
        [(event, _sell(event, 40.0))],
    )

    assert outcomes[0] is not None and not outcomes[0].success
    assert ledger.held("TKN") == 100.0
    assert metrics.snapshot().total_trades == 1


def test_event_without_command_records_no_trade():
    metrics = MetricsSink()
    executor = ScriptedExecutor()
    event = _event(TransitionKind.INCREASE, 10.0, 20.0)

    outcomes = _run(_coordinator(executor, PositionLedger(), metrics), [(event, None)])

    assert outcomes == [None]
    assert executor.calls == []
    assert metrics.snapshot().total_trades == 0


def test_notifications_for_successful_buy():
    notifier = RecordingNotifier()
    correlator = SignatureCorrelator()
    correlator.record("TKN", "tracked-sig")
    event = _event(TransitionKind.NEW_POSITION, 0.0, 50.0)

    _run(
        _coordinator(ScriptedExecutor(), PositionLedger(), MetricsSink(), notifier, correlator),
        [(event, _buy(event))],
    )

    by_audience = {notification.audience: notification for notification in notifier.sent}
    assert set(by_audience) == {Audience.TRACKED, Audience.BOT}
    bot = by_audience[Audience.BOT]
    assert bot.signature == "bot-sig"
    assert bot.venue == "Raydium"
    assert bot.details == BuyDetails(tokens_bought=250.0, trade_lamports=1_000_000)
    tracked = by_audience[Audience.TRACKED]
    assert tracked.signature == "tracked-sig"
    assert tracked.wallet_address == "tracked"
    assert tracked.details == BuyDetails(tokens_bought=50.0, trade_lamports=1_000_000)


def test_failed_trade_only_notifies_tracked_wallet():
    notifier = RecordingNotifier()
    event = _event(TransitionKind.PARTIAL_DECREASE, 50.0, 30.0)

    _run(
        _coordinator(ScriptedExecutor(TradeOutcome.failed()), PositionLedger({"TKN": 1.0}), MetricsSink(), notifier),
        [(event, _sell(event, 40.0))],
    )

    assert [notification.audience for notification in notifier.sent] == [Audience.TRACKED]
    details = notifier.sent[0].details
    assert isinstance(details, DecreaseDetails)
    assert details.sol_returned is None
    assert details.decrease_percent == pytest.approx(40.0)


def test_decrease_without_position_sends_no_alert():
    notifier = RecordingNotifier()
    event = _event(TransitionKind.PARTIAL_DECREASE, 50.0, 30.0)

    outcomes = _run(
        _coordinator(ScriptedExecutor(), PositionLedger(), MetricsSink(), notifier),
        [(event, None)],
    )

    assert outcomes == [None]
    assert notifier.sent == []


def test_increase_without_command_still_alerts_tracked_wallet():
    notifier = RecordingNotifier()
    event = _event(TransitionKind.INCREASE, 10.0, 20.0)

    _run(_coordinator(ScriptedExecutor(), PositionLedger(), MetricsSink(), notifier), [(event, None)])

    assert [notification.audience for notification in notifier.sent] == [Audience.TRACKED]


def test_full_exit_releases_mint_lock():
    ledger = PositionLedger({"TKN": 10.0})
    before = ledger.lock_for("TKN")
    event = _event(TransitionKind.FULL_EXIT, 30.0, 0.0)

    _run(_coordinator(ScriptedExecutor(), ledger, MetricsSink()), [(event, _sell(event, 100.0))])

    assert ledger.held("TKN") == 0.0
    assert ledger.lock_for("TKN") is not before


def test_bot_exit_notification_reports_sol_returned():
    notifier = RecordingNotifier()
    event = _event(TransitionKind.FULL_EXIT, 30.0, 0.0)
    executor = ScriptedExecutor(TradeOutcome(success=True, out_amount=0.75, signature="exit-sig"))

    _run(
        _coordinator(executor, PositionLedger({"TKN": 10.0}), MetricsSink(), notifier),
        [(event, _sell(event, 100.0))],
    )

    bot = next(n for n in notifier.sent if n.audience == Audience.BOT)
    assert bot.details == ExitDetails(sol_returned=0.75, updated_balance=0.0)


def test_notifier_failure_does_not_affect_state():
    ledger = PositionLedger()
    metrics = MetricsSink()
    notifier = RecordingNotifier(fail=True)
    event = _event(TransitionKind.NEW_POSITION, 0.0, 50.0)

    outcomes = _run(_coordinator(ScriptedExecutor(), ledger, metrics, notifier), [(event, _buy(event))])

    assert outcomes[0] is not None and outcomes[0].success
    assert ledger.held("TKN") == 250.0
    assert metrics.snapshot().successful_trades == 1
    assert len(notifier.sent) == 2


def test_pass_handles_mints_independently():
    ledger = PositionLedger({"AAA": 10.0})
    metrics = MetricsSink()
    exit_event = TransitionEvent("AAA", TransitionKind.FULL_EXIT, 5.0, 0.0, utc_now())
    buy_event = TransitionEvent("BBB", TransitionKind.NEW_POSITION, 0.0, 9.0, utc_now())
    executor = ScriptedExecutor(TradeOutcome(success=True, out_amount=3.0, signature="s"))

    _run(
        _coordinator(executor, ledger, metrics),
        [(exit_event, _sell(exit_event, 100.0)), (buy_event, _buy(buy_event))],
    )

    assert ledger.held("AAA") == 0.0
    assert ledger.held("BBB") == 3.0
    assert metrics.snapshot().total_trades == 2
