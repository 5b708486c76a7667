"""Print the current token balances of a wallet, or diff two reads of it."""

from __future__ import annotations

import argparse
import time

from solana_copy_trader.config.settings import get_app_config
from solana_copy_trader.execution.chain_client import SolanaChainClient
from solana_copy_trader.tracking.classifier import DiffClassifier
from solana_copy_trader.tracking.snapshot_source import SnapshotSource


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect a wallet the way the tracker sees it.")
    parser.add_argument("wallet", nargs="?", help="Wallet address (defaults to the tracked wallet)")
    parser.add_argument(
        "--watch",
        type=float,
        default=None,
        help="Seconds to wait before a second read; prints the classified transitions.",
    )
    args = parser.parse_args()

    config = get_app_config()
    wallet = args.wallet or config.require_tracked_wallet()
    source = SnapshotSource(SolanaChainClient(config.rpc))
    first = source.poll(wallet)
    if first.fetch_failed:
        raise SystemExit(f"Unable to read balances for {wallet}")
    for mint, amount in sorted(first.balances.items()):
        print(f"{mint}  {amount:.6f}")
    if args.watch is None:
        return

    time.sleep(max(args.watch, 0.0))
    second = source.poll(wallet)
    classifier = DiffClassifier(config.tracking.dust_threshold)
    # Treat every mint held at the first read as mirrored so exits are reported.
    for event in classifier.classify(first, second, lambda mint: mint in first):
        print(f"{event.kind.value:<17} {event.mint}  {event.old_balance:.6f} -> {event.new_balance:.6f}")


if __name__ == "__main__":
    main()
