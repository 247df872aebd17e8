from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import PaymentStatus


@dataclass(frozen=True)
class SettlementRecord:
    """Normalized result of one settlement, keyed by idempotency key.

    `amount` is always in display units (USDT); token-unit conversion happens
    only inside the transport.
    """

    idempotency_key: str
    amount: Decimal
    recipient: str
    status: PaymentStatus
    transaction_reference: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.COMPLETED and self.transaction_reference is not None


@dataclass(frozen=True)
class TransportReceipt:
    """What a transport hands back after a submission."""

    transaction_reference: str
    block_number: Optional[int] = None
