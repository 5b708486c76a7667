"""Solana RPC access for wallet balances and the wallet activity feed."""

from __future__ import annotations

from typing import Any, Dict, Optional

from cachetools import LRUCache
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.types import TokenAccountOpts
from solana.rpc.websocket_api import connect
from solders.pubkey import Pubkey
from solders.rpc.config import RpcTransactionLogsFilterMentions
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_fixed
from websockets.exceptions import ConnectionClosed

from ..config.settings import RPCConfig, get_app_config
from ..monitoring.logger import get_logger
from ..tracking.base import ActivityHandler
from ..tracking.models import ActivityNotice
from ..utils.constants import TOKEN_PROGRAM_ID

_logger = get_logger(__name__)


def balances_from_parsed_accounts(response: Any) -> Dict[str, float]:
    """Sum ``uiAmountString`` per mint from a jsonParsed token-accounts response."""

    balances: Dict[str, float] = {}
    for keyed in getattr(response, "value", None) or []:
        parsed = keyed.account.data.parsed
        info = parsed.get("info", {}) if isinstance(parsed, dict) else {}
        mint = info.get("mint")
        token_amount = info.get("tokenAmount") or {}
        raw = token_amount.get("uiAmountString")
        if raw is None:
            raw = token_amount.get("uiAmount")
        if not mint or raw is None:
            continue
        amount = float(raw)
        if amount > 0:
            balances[mint] = balances.get(mint, 0.0) + amount
    return balances


def notice_from_logs_message(message: Any) -> Optional[ActivityNotice]:
    """Convert a websocket logs notification into an :class:`ActivityNotice`."""

    result = getattr(message, "result", None)
    value = getattr(result, "value", None)
    context = getattr(result, "context", None)
    if value is None or context is None or not hasattr(value, "signature"):
        return None
    return ActivityNotice(signature=str(value.signature), slot=int(context.slot), err=value.err)


class SolanaChainClient:
    """Reads SPL token balances over HTTP RPC and wallet logs over websocket."""

    def __init__(self, config: Optional[RPCConfig] = None, *, client: Optional[Client] = None) -> None:
        self._config = config or get_app_config().rpc
        self._commitment = Commitment(self._config.commitment)
        self._client = client or Client(
            str(self._config.http_url),
            commitment=self._commitment,
            timeout=self._config.request_timeout,
        )
        self._token_program = Pubkey.from_string(TOKEN_PROGRAM_ID)
        self._decimals: LRUCache[str, int] = LRUCache(maxsize=1024)

    @property
    def client(self) -> Client:
        return self._client

    @property
    def commitment(self) -> Commitment:
        return self._commitment

    @retry(stop=stop_after_attempt(2), wait=wait_fixed(0.05), reraise=True)
    def get_token_balances(self, wallet_address: str) -> Dict[str, float]:
        response = self._client.get_token_accounts_by_owner_json_parsed(
            Pubkey.from_string(wallet_address),
            TokenAccountOpts(program_id=self._token_program),
        )
        return balances_from_parsed_accounts(response)

    def get_raw_token_balance(self, wallet_address: str, mint: str) -> int:
        """Return the smallest-unit balance of ``mint`` held by ``wallet_address``."""

        response = self._client.get_token_accounts_by_owner_json_parsed(
            Pubkey.from_string(wallet_address),
            TokenAccountOpts(mint=Pubkey.from_string(mint)),
        )
        total = 0
        for keyed in response.value or []:
            parsed = keyed.account.data.parsed
            amount = parsed.get("info", {}).get("tokenAmount", {}).get("amount", "0")
            total += int(amount)
        return total

    def get_mint_decimals(self, mint: str) -> int:
        cached = self._decimals.get(mint)
        if cached is not None:
            return cached
        response = self._client.get_token_supply(Pubkey.from_string(mint))
        decimals = int(response.value.decimals)
        self._decimals[mint] = decimals
        return decimals

    @retry(
        retry=retry_if_exception_type((OSError, ConnectionError, ConnectionClosed, TimeoutError)),
        wait=wait_exponential(multiplier=0.5, max=10),
        before_sleep=lambda state: _logger.warning(
            "Log subscription dropped (attempt %d); reconnecting", state.attempt_number
        ),
    )
    async def subscribe(self, wallet_address: str, handler: ActivityHandler) -> None:
        mentions = RpcTransactionLogsFilterMentions(Pubkey.from_string(wallet_address))
        async with connect(self._config.ws_url) as websocket:
            await websocket.logs_subscribe(mentions, commitment=self._commitment)
            _logger.info("Subscribed to logs for %s", wallet_address)
            async for messages in websocket:
                for message in messages:
                    notice = notice_from_logs_message(message)
                    if notice is not None:
                        handler(notice)
        raise ConnectionError("Log subscription closed by server")


__all__ = ["SolanaChainClient", "balances_from_parsed_accounts", "notice_from_logs_message"]
