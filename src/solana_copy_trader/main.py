"""Entrypoint for the Solana copy-trading bot."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from .config.settings import AppConfig, AppMode, ConfigurationError, get_app_config
from .execution.chain_client import SolanaChainClient
from .execution.jupiter import JupiterSwapExecutor
from .execution.wallet import load_wallet
from .monitoring import bootstrap_observability
from .monitoring.logger import get_logger
from .monitoring.metrics import METRICS
from .tracking import (
    DiffClassifier,
    ExecutionCoordinator,
    SnapshotSource,
    TrackerState,
    TradeDecisionPolicy,
    WalletTracker,
)

logger = get_logger(__name__)


def build_tracker(config: AppConfig) -> WalletTracker:
    """Wire the tracking engine to its Solana, Jupiter, and Discord adapters."""

    notifier = bootstrap_observability(config)
    tracked_wallet = config.require_tracked_wallet()
    wallet = load_wallet(config.wallet)
    chain = SolanaChainClient(config.rpc)
    state = TrackerState.initial(tracked_wallet, wallet.address)
    source = SnapshotSource.from_config(chain, config.tracking, metrics=METRICS)
    classifier = DiffClassifier(
        config.tracking.dust_threshold,
        guard_failed_snapshots=config.tracking.guard_failed_snapshots,
    )
    policy = TradeDecisionPolicy.from_config(state.ledger, config.trading)
    executor = JupiterSwapExecutor(chain, wallet, config, metrics=METRICS)
    coordinator = ExecutionCoordinator(
        executor,
        state.ledger,
        METRICS,
        tracked_wallet=tracked_wallet,
        bot_wallet=wallet.address,
        notifier=notifier,
        correlator=state.correlator,
        default_venue=config.jupiter.default_venue,
    )
    logger.info(
        "Configured | mode=%s bot=%s trade_sol=%.6f increase_policy=%s",
        config.mode.active.value,
        wallet.address,
        config.trading.trade_amount_sol,
        config.trading.increase_policy.value,
    )
    return WalletTracker(state, source, classifier, policy, coordinator, METRICS)


async def run_async(config: AppConfig) -> None:
    tracker = build_tracker(config)
    await tracker.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Mirror a tracked Solana wallet's trades")
    parser.add_argument("--log-level", default=None, help="Override monitoring.log_level")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Quote swaps without signing or submitting them.",
    )
    args = parser.parse_args(argv)
    try:
        config = get_app_config().model_copy(deep=True)
        if args.log_level:
            config.monitoring.log_level = args.log_level
        if args.dry_run:
            config.mode.active = AppMode.DRY_RUN
        asyncio.run(run_async(config))
    except (ConfigurationError, ValidationError) as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
