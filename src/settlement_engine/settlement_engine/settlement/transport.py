"""Transports that actually submit a payout to the chain.

The core works in display units (USDT as Decimal). Conversion to the token's
smallest unit happens here, once, right before the request leaves.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Optional, Protocol

import requests

from ..core.constants import DEFAULT_SETTLEMENT_TIMEOUT_SECONDS, DEFAULT_TOKEN_DECIMALS
from ..core.exceptions import ConfigurationError, SettlementFailure
from .model import TransportReceipt

logger = logging.getLogger(__name__)


def to_token_units(amount: Decimal, decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """Display units -> integer token units (truncating below one unit)."""
    scaled = (Decimal(amount) * (Decimal(10) ** int(decimals))).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return int(scaled)


class SettlementTransport(Protocol):
    def submit(self, *, idempotency_key: str, amount: Decimal, recipient: str) -> TransportReceipt:
        """Submit one payout. Raise SettlementFailure when it did not go through."""

        raise NotImplementedError


class HttpSettlementTransport:
    """Posts payouts to the settlement relay that signs and sends the contract call.

    The relay deduplicates on the `Idempotency-Key` header, so re-posting after a
    timeout never produces a second on-chain transfer.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: Optional[str] = None,
        token_decimals: int = DEFAULT_TOKEN_DECIMALS,
        timeout: float = DEFAULT_SETTLEMENT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ConfigurationError("SETTLEMENT_GATEWAY_URL is not configured")
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._token_decimals = int(token_decimals)
        self._timeout = timeout
        self._session = session or requests.Session()

    def _headers(self, idempotency_key: str) -> dict:
        headers = {"Idempotency-Key": idempotency_key, "Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    def submit(self, *, idempotency_key: str, amount: Decimal, recipient: str) -> TransportReceipt:
        payload = {
            "idempotencyKey": idempotency_key,
            "recipient": recipient,
            "amount": str(to_token_units(amount, self._token_decimals)),
            "decimals": self._token_decimals,
        }
        try:
            resp = self._session.post(
                f"{self._base_url}/settlements",
                json=payload,
                headers=self._headers(idempotency_key),
                timeout=self._timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            logger.error("Settlement relay call failed for key %s: %s", idempotency_key, e)
            raise SettlementFailure(f"Settlement relay unreachable: {e}", idempotency_key=idempotency_key) from e
        except ValueError as e:
            raise SettlementFailure("Settlement relay returned a non-JSON body", idempotency_key=idempotency_key) from e

        if body.get("status") == "failed":
            raise SettlementFailure(body.get("error") or "Settlement rejected by relay", idempotency_key=idempotency_key)

        tx_hash = body.get("transactionHash")
        if not tx_hash:
            raise SettlementFailure("Settlement relay returned no transactionHash", idempotency_key=idempotency_key)

        block = body.get("blockNumber")
        return TransportReceipt(transaction_reference=str(tx_hash), block_number=int(block) if block is not None else None)
