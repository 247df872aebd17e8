from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import AdjudicationStatus, LeaveType, PaymentStatus
from .model import AttendanceFilter, AttendanceRecord


class AttendanceRepository(Protocol):
    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(self, record: AttendanceRecord) -> bool:
        """False when (employee, day) already has a record."""

        raise NotImplementedError

    def list_records(self, record_filter: AttendanceFilter, *, limit: int, offset: int = 0) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_open_for_day(self, work_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_pending_adjudication(self, *, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def set_leave(self, *, record_id: str, leave_type: Optional[LeaveType]) -> bool:
        raise NotImplementedError

    def close_checkout(
        self,
        *,
        record_id: str,
        check_out: datetime,
        hours: Decimal,
        wage: Decimal,
        payment_status: PaymentStatus,
    ) -> bool:
        """Only while open and not under missed-checkout review."""

        raise NotImplementedError

    def report_missed_checkout(
        self,
        *,
        record_id: str,
        declared_hours: Decimal,
        description: Optional[str],
        evidence_urls: Sequence[str],
    ) -> bool:
        """NotApplicable -> PendingApproval, only while there is no checkout."""

        raise NotImplementedError

    def decide_missed_checkout(
        self,
        *,
        record_id: str,
        status: AdjudicationStatus,
        hours: Decimal,
        wage: Decimal,
        confirmed_hours: Optional[Decimal],
        leave_type: Optional[LeaveType],
        admin_note: Optional[str],
        admin_id: Optional[str],
        decided_at: datetime,
        payment_status: PaymentStatus,
    ) -> bool:
        """PendingApproval -> Approved/Rejected; one decision per record."""

        raise NotImplementedError

    def record_payment(
        self,
        *,
        record_id: str,
        expected: PaymentStatus,
        status: PaymentStatus,
        reference: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError
