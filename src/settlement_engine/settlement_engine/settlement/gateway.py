from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from ..core.enums import PaymentStatus
from ..core.exceptions import InvalidArgument, SettlementFailure
from .model import SettlementRecord
from .references import normalize_transaction_reference
from .repository import SettlementRepository
from .transport import SettlementTransport

logger = logging.getLogger(__name__)


class SettlementGateway:
    """At-most-once settlement per idempotency key.

    Flow:
    1. A pending or completed ledger row for the key is returned as-is (no resubmit).
    2. Otherwise the key is reserved with a conditional write; losing the race
       returns the winner's row.
    3. The transport is called; the row ends `completed` with a valid reference
       or `failed` with the error, and SettlementFailure is raised for the latter.
    """

    def __init__(self, ledger: SettlementRepository, transport: SettlementTransport):
        self._ledger = ledger
        self._transport = transport

    def get(self, idempotency_key: str) -> Optional[SettlementRecord]:
        return self._ledger.get(idempotency_key)

    def settle(self, idempotency_key: str, amount: Decimal, recipient: str) -> SettlementRecord:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidArgument(f"Settlement amount must be positive, got {amount}")
        if not recipient:
            raise InvalidArgument("Settlement recipient is required")

        existing = self._ledger.get(idempotency_key)
        if existing and existing.status in (PaymentStatus.PENDING, PaymentStatus.COMPLETED):
            logger.info("Settlement %s already %s, not resubmitting", idempotency_key, existing.status.value)
            return existing

        if not self._ledger.reserve(idempotency_key=idempotency_key, amount=amount, recipient=recipient):
            current = self._ledger.get(idempotency_key)
            logger.info("Settlement %s reserved by another caller", idempotency_key)
            if current is None:
                raise SettlementFailure("Settlement ledger lost the reservation", idempotency_key=idempotency_key)
            return current

        logger.info("Submitting settlement %s: %s to %s", idempotency_key, amount, recipient)
        try:
            receipt = self._transport.submit(idempotency_key=idempotency_key, amount=amount, recipient=recipient)
        except SettlementFailure as e:
            self._ledger.mark_failed(idempotency_key=idempotency_key, error=str(e))
            raise
        except Exception as e:
            self._ledger.mark_failed(idempotency_key=idempotency_key, error=str(e) or type(e).__name__)
            raise SettlementFailure(f"Settlement transport error: {e}", idempotency_key=idempotency_key) from e

        reference = normalize_transaction_reference(receipt.transaction_reference)
        if reference is None:
            message = "Transport returned a malformed transaction reference"
            logger.error("%s for %s: %r", message, idempotency_key, receipt.transaction_reference)
            self._ledger.mark_failed(idempotency_key=idempotency_key, error=message)
            raise SettlementFailure(message, idempotency_key=idempotency_key)

        self._ledger.mark_completed(idempotency_key=idempotency_key, transaction_reference=reference)
        logger.info("Settlement %s completed: %s", idempotency_key, reference)
        return self._ledger.get(idempotency_key) or SettlementRecord(
            idempotency_key=idempotency_key,
            amount=amount,
            recipient=recipient,
            status=PaymentStatus.COMPLETED,
            transaction_reference=reference,
        )
