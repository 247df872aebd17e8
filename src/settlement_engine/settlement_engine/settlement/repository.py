from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol

from .model import SettlementRecord


class SettlementRepository(Protocol):
    """Durable idempotency ledger: one row per idempotency key."""

    def get(self, idempotency_key: str) -> Optional[SettlementRecord]:
        raise NotImplementedError

    def reserve(self, *, idempotency_key: str, amount: Decimal, recipient: str) -> bool:
        """Insert a `pending` row, or flip a `failed` row back to `pending`.

        Returns False when the key is already pending or completed (someone
        else owns the submission). Must be a single conditional write.
        """

        raise NotImplementedError

    def mark_completed(self, *, idempotency_key: str, transaction_reference: str) -> bool:
        """Only applies to a `pending` row whose reference is still unset."""

        raise NotImplementedError

    def mark_failed(self, *, idempotency_key: str, error: str) -> bool:
        """Only applies to a `pending` row."""

        raise NotImplementedError
