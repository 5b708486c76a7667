"""Swap execution through the Jupiter aggregator API."""

from __future__ import annotations

import base64
from typing import Any, Dict, Optional

import requests
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config.settings import AppConfig, AppMode, get_app_config
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS, MetricsSink
from ..tracking.models import TradeOutcome
from ..utils.constants import SOL_MINT, to_ui_amount
from .chain_client import SolanaChainClient
from .wallet import Wallet


class SwapError(RuntimeError):
    """Raised when Jupiter cannot produce a usable quote or swap transaction."""


def venue_from_quote(quote: Dict[str, Any], default: str) -> str:
    """Return the label of the first route hop, or ``default``."""

    for hop in quote.get("routePlan") or []:
        label = (hop.get("swapInfo") or {}).get("label")
        if label:
            return str(label)
    return default


class JupiterSwapExecutor:
    """Quote, build, sign, and submit swaps for the bot wallet.

    ``out_amount`` on the returned :class:`TradeOutcome` is expressed in UI
    units of the output asset: token units for buys, SOL for sells. In
    ``dry_run`` mode only the quote is requested and nothing is signed or sent.
    """

    def __init__(
        self,
        chain: SolanaChainClient,
        wallet: Wallet,
        config: Optional[AppConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        app_config = config or get_app_config()
        self._chain = chain
        self._wallet = wallet
        self._jupiter = app_config.jupiter
        self._trading = app_config.trading
        self._dry_run = app_config.mode.active == AppMode.DRY_RUN
        self._session = session or requests.Session()
        self._metrics = metrics or METRICS
        self._logger = get_logger(__name__)
        self._quote_retry = Retrying(
            stop=stop_after_attempt(self._jupiter.max_quote_attempts),
            wait=wait_exponential(multiplier=0.2, max=2),
            retry=retry_if_exception_type((requests.RequestException, SwapError)),
            reraise=True,
        )

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def buy(self, input_asset: str, output_asset: str, amount: int) -> TradeOutcome:
        self._logger.info("Buying %s with %d units of %s", output_asset, amount, input_asset)
        return self._swap(input_asset, output_asset, int(amount))

    def sell(self, input_asset: str, output_asset: str, percent: float) -> TradeOutcome:
        try:
            balance = self._chain.get_raw_token_balance(self._wallet.address, input_asset)
        except (SolanaRpcException, RPCException, ValueError) as exc:
            self._logger.warning("Balance lookup for %s failed: %s", input_asset, exc)
            return TradeOutcome.failed()
        self._metrics.record_api_call()
        if balance <= 0:
            self._logger.warning("No bot balance for %s; nothing to sell", input_asset)
            return TradeOutcome.failed()
        amount = balance if percent >= 100 else int(balance * percent // 100)
        if amount <= 0:
            self._logger.warning("Sell amount for %.2f%% of %s rounds to zero", percent, input_asset)
            return TradeOutcome.failed()
        self._logger.info(
            "Selling %d of %d units of %s (%.2f%%)", amount, balance, input_asset, percent
        )
        return self._swap(input_asset, output_asset, amount)

    def quote(self, input_asset: str, output_asset: str, amount: int) -> Dict[str, Any]:
        """Fetch a quote, retrying transport errors and empty quotes."""

        return self._quote_retry(self._request_quote, input_asset, output_asset, amount)

    def _request_quote(self, input_asset: str, output_asset: str, amount: int) -> Dict[str, Any]:
        self._metrics.record_api_call()
        response = self._session.get(
            str(self._jupiter.quote_url),
            params={
                "inputMint": input_asset,
                "outputMint": output_asset,
                "amount": amount,
                "slippageBps": self._trading.slippage_bps,
            },
            timeout=self._jupiter.http_timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not payload or str(payload.get("outAmount", "0")) in {"", "0"}:
            raise SwapError(f"No valid quote for {input_asset} -> {output_asset}")
        return payload

    def _build_transaction(self, quote: Dict[str, Any]) -> VersionedTransaction:
        self._metrics.record_api_call()
        response = self._session.post(
            str(self._jupiter.swap_url),
            json={
                "quoteResponse": quote,
                "userPublicKey": self._wallet.address,
                "dynamicComputeUnitLimit": True,
                "dynamicSlippage": False,
                "prioritizationFeeLamports": {
                    "priorityLevelWithMaxLamports": {
                        "maxLamports": self._trading.priority_fee_lamports,
                        "priorityLevel": "veryHigh",
                    }
                },
            },
            timeout=self._jupiter.http_timeout,
        )
        response.raise_for_status()
        encoded = response.json().get("swapTransaction")
        if not encoded:
            raise SwapError("Swap transaction missing from Jupiter response")
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        return VersionedTransaction(unsigned.message, [self._wallet.keypair])

    def _submit(self, transaction: VersionedTransaction) -> Signature:
        client = self._chain.client
        self._metrics.record_api_call()
        response = client.send_raw_transaction(
            bytes(transaction),
            opts=TxOpts(skip_preflight=True, max_retries=5),
        )
        signature = response.value
        self._metrics.record_api_call()
        client.confirm_transaction(signature, commitment=self._chain.commitment)
        return signature

    def _output_decimals(self, mint: str) -> int:
        if mint == SOL_MINT:
            return 9
        try:
            return self._chain.get_mint_decimals(mint)
        except (SolanaRpcException, RPCException, ValueError) as exc:
            self._logger.debug("Decimals lookup for %s failed (%s); using default", mint, exc)
            return self._trading.token_decimals

    def _swap(self, input_asset: str, output_asset: str, amount: int) -> TradeOutcome:
        try:
            quote = self.quote(input_asset, output_asset, amount)
            venue = venue_from_quote(quote, self._jupiter.default_venue)
            out_amount = to_ui_amount(int(quote["outAmount"]), self._output_decimals(output_asset))
            if self._dry_run:
                self._logger.info(
                    "Dry run: skipping submission | %s -> %s out=%.6f via %s",
                    input_asset,
                    output_asset,
                    out_amount,
                    venue,
                )
                return TradeOutcome(success=True, out_amount=out_amount, dex=venue)
            transaction = self._build_transaction(quote)
            signature = self._submit(transaction)
        except (requests.RequestException, SwapError, SolanaRpcException, RPCException, ValueError, KeyError) as exc:
            self._logger.warning("Swap %s -> %s failed: %s", input_asset, output_asset, exc)
            return TradeOutcome.failed()
        self._logger.info("Swap confirmed | sig=%s via %s", signature, venue)
        return TradeOutcome(success=True, out_amount=out_amount, signature=str(signature), dex=venue)


__all__ = ["JupiterSwapExecutor", "SwapError", "venue_from_quote"]
