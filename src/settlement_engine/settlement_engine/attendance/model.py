from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import AdjudicationStatus, AttendanceStatus, LeaveType, PaymentStatus
from ..settlement.references import normalize_transaction_reference


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one employee's attendance for one calendar day."""

    record_id: str
    employee_id: str
    work_date: date
    check_in: Optional[datetime]
    check_out: Optional[datetime]
    status: AttendanceStatus
    total_hours: Decimal = Decimal("0")
    wage: Decimal = Decimal("0")
    leave_type: Optional[LeaveType] = None
    missed_checkout_reported: bool = False
    adjudication_status: AdjudicationStatus = AdjudicationStatus.NOT_APPLICABLE
    declared_hours: Optional[Decimal] = None
    confirmed_hours: Optional[Decimal] = None
    admin_note: Optional[str] = None
    evidence_urls: tuple[str, ...] = ()
    missed_checkout_description: Optional[str] = None
    adjudicated_by: Optional[str] = None
    adjudicated_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.NONE
    payment_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.check_in is not None and self.check_out is None

    @property
    def settlement_reference(self) -> Optional[str]:
        return normalize_transaction_reference(self.payment_reference)


@dataclass(frozen=True)
class DayStatus:
    """Read-model for one employee-day. Leave wins over the hours-based status."""

    employee_id: str
    work_date: date
    status: AttendanceStatus
    leave_type: Optional[LeaveType] = None
    record: Optional[AttendanceRecord] = None

    @property
    def label(self) -> str:
        return self.leave_type.value if self.leave_type else self.status.value


@dataclass(frozen=True)
class AttendanceFilter:
    employee_id: Optional[str] = None
    status: Optional[AttendanceStatus] = None
    adjudication_status: Optional[AdjudicationStatus] = None
    payment_status: Optional[PaymentStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def cache_key(self) -> tuple:
        return (
            self.employee_id,
            self.status,
            self.adjudication_status,
            self.payment_status,
            self.date_from,
            self.date_to,
        )
