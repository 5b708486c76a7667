from solana_copy_trader.tracking.classifier import DiffClassifier
from solana_copy_trader.tracking.models import BalanceSnapshot, TransitionKind
from solana_copy_trader.utils.constants import utc_now

WALLET = "Tracked1111111111111111111111111111111111111"


def _snap(balances, *, fetch_failed: bool = False) -> BalanceSnapshot:
    return BalanceSnapshot(
        wallet_address=WALLET,
        captured_at=utc_now(),
        balances=balances,
        fetch_failed=fetch_failed,
    )


def _holds(*mints):
    held = set(mints)
    return lambda mint: mint in held


def test_new_position_when_bot_holds_nothing():
    events = DiffClassifier().classify(_snap({}), _snap({"TKN": 50.0}), _holds())

    assert len(events) == 1
    event = events[0]
    assert event.kind == TransitionKind.NEW_POSITION
    assert event.mint == "TKN"
    assert event.increase_amount == 50.0


def test_new_balance_on_held_mint_is_an_increase():
    events = DiffClassifier().classify(_snap({}), _snap({"TKN": 50.0}), _holds("TKN"))

    assert [event.kind for event in events] == [TransitionKind.INCREASE]


def test_increase_of_existing_balance():
    events = DiffClassifier().classify(_snap({"TKN": 10.0}), _snap({"TKN": 15.0}), _holds())

    assert [event.kind for event in events] == [TransitionKind.INCREASE]
    assert events[0].increase_percent == 50.0


def test_partial_decrease_reports_percent():
    events = DiffClassifier().classify(_snap({"TKN": 50.0}), _snap({"TKN": 30.0}), _holds("TKN"))

    assert [event.kind for event in events] == [TransitionKind.PARTIAL_DECREASE]
    assert round(events[0].decrease_percent, 2) == 40.00


def test_partial_decrease_is_reported_without_bot_position():
    events = DiffClassifier().classify(_snap({"TKN": 50.0}), _snap({"TKN": 30.0}), _holds())

    assert [event.kind for event in events] == [TransitionKind.PARTIAL_DECREASE]


def test_token_disappearing_is_full_exit():
    events = DiffClassifier().classify(_snap({"TKN": 30.0}), _snap({}), _holds("TKN"))

    assert [event.kind for event in events] == [TransitionKind.FULL_EXIT]
    assert events[0].decrease_percent == 100.0


def test_balance_falling_to_dust_is_full_exit():
    events = DiffClassifier().classify(
        _snap({"TKN": 30.0}), _snap({"TKN": 0.0009}), _holds("TKN")
    )

    assert [event.kind for event in events] == [TransitionKind.FULL_EXIT]


def test_dust_balance_vanishing_produces_no_event():
    events = DiffClassifier().classify(_snap({"TKN": 0.0005}), _snap({}), _holds())

    assert events == []


def test_exit_without_bot_position_produces_no_event():
    events = DiffClassifier().classify(_snap({"TKN": 30.0}), _snap({}), _holds())

    assert events == []


def test_unchanged_balances_produce_no_events():
    old = _snap({"TKN": 30.0, "OTHER": 1.5})
    new = _snap({"TKN": 30.0, "OTHER": 1.5})

    assert DiffClassifier().classify(old, new, _holds("TKN")) == []


def test_one_event_per_changed_mint_in_sorted_order():
    old = _snap({"AAA": 10.0, "BBB": 20.0, "CCC": 5.0})
    new = _snap({"AAA": 12.0, "BBB": 20.0, "CCC": 1.0, "DDD": 7.0})

    events = DiffClassifier().classify(old, new, _holds("CCC"))

    assert [(event.mint, event.kind) for event in events] == [
        ("AAA", TransitionKind.INCREASE),
        ("CCC", TransitionKind.PARTIAL_DECREASE),
        ("DDD", TransitionKind.NEW_POSITION),
    ]
    for event in events:
        if event.kind == TransitionKind.PARTIAL_DECREASE:
            assert 0 < event.decrease_percent < 100


def test_classification_is_repeatable():
    classifier = DiffClassifier()
    old = _snap({"AAA": 10.0, "BBB": 4.0})
    new = _snap({"AAA": 3.0, "CCC": 9.0})
    holds = _holds("BBB")

    first = [(e.mint, e.kind, e.old_balance, e.new_balance) for e in classifier.classify(old, new, holds)]
    second = [(e.mint, e.kind, e.old_balance, e.new_balance) for e in classifier.classify(old, new, holds)]

    assert first == second


def test_failed_fetch_yields_no_events_when_guarded():
    failed = BalanceSnapshot.empty(WALLET, fetch_failed=True)

    assert DiffClassifier().classify(_snap({"TKN": 30.0}), failed, _holds("TKN")) == []


def test_failed_fetch_is_classified_when_guard_disabled():
    failed = BalanceSnapshot.empty(WALLET, fetch_failed=True)
    classifier = DiffClassifier(guard_failed_snapshots=False)

    events = classifier.classify(_snap({"TKN": 30.0}), failed, _holds("TKN"))

    assert [event.kind for event in events] == [TransitionKind.FULL_EXIT]


def test_custom_dust_threshold():
    classifier = DiffClassifier(dust_threshold=1.0)

    kind = classifier.classify_pair(30.0, 0.5, True)

    assert kind == TransitionKind.FULL_EXIT
    assert classifier.dust_threshold == 1.0
