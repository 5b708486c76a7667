"""Shared constants for Solana wallet tracking."""

from datetime import datetime, timezone

# Utility function to get timezone-aware UTC datetime
def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)

LAMPORTS_PER_SOL = 1_000_000_000

SOL_MINT = "So11111111111111111111111111111111111111112"

# SPL token program owning the tracked token accounts.
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Pump-style launches mint with 6 decimals.
DEFAULT_TOKEN_DECIMALS = 6


def to_ui_amount(raw_amount: float, decimals: int) -> float:
    """Convert a smallest-unit amount to human units."""
    return float(raw_amount) / (10 ** decimals)


__all__ = [
    "utc_now",
    "LAMPORTS_PER_SOL",
    "SOL_MINT",
    "TOKEN_PROGRAM_ID",
    "DEFAULT_TOKEN_DECIMALS",
    "to_ui_amount",
]
