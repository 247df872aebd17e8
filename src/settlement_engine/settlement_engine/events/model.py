from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Optional


@dataclass(frozen=True)
class DomainEvent:
    """Notification for observers: entity id, resulting status, money delta."""

    name: ClassVar[str] = "domainEvent"

    entity_id: str
    status: str
    amount_delta: Decimal
    occurred_at: datetime
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "event": self.name,
            "entity_id": self.entity_id,
            "status": self.status,
            "amount_delta": str(self.amount_delta),
            "occurred_at": self.occurred_at.isoformat(),
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class TaskApproved(DomainEvent):
    name: ClassVar[str] = "taskApproved"

    payment_status: Optional[str] = None


@dataclass(frozen=True)
class TaskRejected(DomainEvent):
    name: ClassVar[str] = "taskRejected"


@dataclass(frozen=True)
class AttendanceAdjudicated(DomainEvent):
    name: ClassVar[str] = "attendanceAdjudicated"

    payment_status: Optional[str] = None
