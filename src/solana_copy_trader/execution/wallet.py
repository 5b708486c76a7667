"""Loading the bot wallet's signing keypair."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..config.settings import ConfigurationError, WalletConfig, get_app_config


@dataclass(slots=True)
class Wallet:
    """Wrapper around a Solana keypair."""

    keypair: Keypair

    @property
    def public_key(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())


def _decode_secret(raw: str) -> bytes:
    text = raw.strip()
    if text.startswith("["):
        # Byte-array form as written by `solana-keygen`.
        values = json.loads(text)
        if not isinstance(values, list):
            raise ValueError("Private key JSON must be an array of integers")
        return bytes(values)
    return base58.b58decode(text)


def load_wallet(config: Optional[WalletConfig] = None) -> Wallet:
    cfg = config or get_app_config().wallet
    try:
        secret_key: Optional[bytes] = None
        if cfg.private_key:
            secret_key = _decode_secret(cfg.private_key)
        elif cfg.keypair_path:
            path = Path(cfg.keypair_path).expanduser()
            secret_key = _decode_secret(path.read_text(encoding="utf-8"))
        if secret_key is None:
            raise ConfigurationError(
                "No bot wallet configured; set WALLET__PRIVATE_KEY, PRIVATE_KEY or WALLET__KEYPAIR_PATH"
            )
        return Wallet(keypair=Keypair.from_bytes(secret_key))
    except ConfigurationError:
        raise
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Unable to load bot wallet: {exc}") from exc


__all__ = ["Wallet", "load_wallet"]
