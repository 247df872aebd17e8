from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Union

from ..common.validators import require_non_empty
from ..core.enums import AdjudicationStatus, AttendanceStatus, LeaveType, PaymentStatus
from ..core.exceptions import InvalidArgument, InvalidTransition, NotFound
from ..payroll.calculator.base import WageCalculator
from ..payroll.calculator.hourly_calculator import HourlyWageCalculator
from .model import AttendanceRecord, DayStatus
from .payments import AttendancePayments
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        records: AttendanceRepository,
        payments: AttendancePayments,
        *,
        calculator: Optional[WageCalculator] = None,
    ):
        self._records = records
        self._payments = payments
        self._calculator = calculator or HourlyWageCalculator()

    def _require(self, record_id: str) -> AttendanceRecord:
        record = self._records.get(record_id)
        if not record:
            raise NotFound(f"Attendance record {record_id} does not exist")
        return record

    def check_in(self, employee_id: str, day: Optional[date] = None, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or datetime.now()
        employee_id = require_non_empty(employee_id, "employee_id")
        day = day or now.date()

        existing = self._records.get_for_employee_and_date(employee_id, day)
        if existing:
            if existing.check_in is None and existing.leave_type:
                raise InvalidArgument(f"{day.isoformat()} is recorded as {existing.leave_type.value} leave")
            raise InvalidArgument(f"Already checked in on {day.isoformat()}")

        record = AttendanceRecord(
            record_id=str(uuid.uuid4()),
            employee_id=employee_id,
            work_date=day,
            check_in=now,
            check_out=None,
            status=AttendanceStatus.SUSPENDED,
            created_at=now,
            updated_at=now,
        )
        if not self._records.create(record):
            raise InvalidArgument(f"Already checked in on {day.isoformat()}")
        logger.info("Check-in %s for %s on %s", record.record_id, employee_id, day.isoformat())
        return record

    def check_out(self, record_id: str, *, now: datetime | None = None) -> AttendanceRecord:
        now = now or datetime.now()
        record = self._require(record_id)
        if not record.is_open:
            raise InvalidTransition(f"Record {record_id} is not open for checkout")
        if record.missed_checkout_reported:
            raise InvalidTransition(f"Record {record_id} is under missed-checkout review")
        if now <= record.check_in:
            raise InvalidArgument("Checkout must be after check-in")

        hours = self._calculator.worked_hours(record.check_in, now)
        wage = self._calculator.wage(hours)
        payment_status = PaymentStatus.PENDING if wage > 0 else PaymentStatus.NONE
        if not self._records.close_checkout(
            record_id=record_id, check_out=now, hours=hours, wage=wage, payment_status=payment_status
        ):
            raise InvalidTransition(f"Record {record_id} changed before checkout")
        logger.info("Checkout %s: %s h, wage %s", record_id, hours, wage)

        if payment_status == PaymentStatus.PENDING:
            return self._payments.settle(record_id)
        return self._require(record_id)

    def close_day(self, day: date, *, now: datetime | None = None) -> list[AttendanceRecord]:
        """List the records of a past day still missing their checkout.

        Check-in already stores those records as Suspended, so nothing is
        written here; they stay Suspended until a missed checkout is decided.
        """

        now = now or datetime.now()
        if day >= now.date():
            raise InvalidArgument("Only past days can be closed")
        suspended = list(self._records.list_open_for_day(day))
        if suspended:
            logger.info("Closed %s: %d record(s) left without checkout", day.isoformat(), len(suspended))
        return suspended

    def record_leave(
        self,
        employee_id: str,
        day: date,
        leave_type: Union[LeaveType, str, None],
        *,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        now = now or datetime.now()
        employee_id = require_non_empty(employee_id, "employee_id")
        try:
            leave = LeaveType(leave_type) if leave_type else None
        except ValueError:
            raise InvalidArgument(f"Unknown leave type: {leave_type!r}")

        existing = self._records.get_for_employee_and_date(employee_id, day)
        if existing:
            # A rejected missed checkout pins the day to unpaid leave.
            if existing.adjudication_status == AdjudicationStatus.REJECTED:
                raise InvalidTransition(f"{day.isoformat()} is unpaid leave after a rejected missed checkout")
            if not self._records.set_leave(record_id=existing.record_id, leave_type=leave):
                current = self._require(existing.record_id)
                if current.adjudication_status == AdjudicationStatus.REJECTED:
                    raise InvalidTransition(f"{day.isoformat()} is unpaid leave after a rejected missed checkout")
                return current
            return self._require(existing.record_id)

        record = AttendanceRecord(
            record_id=str(uuid.uuid4()),
            employee_id=employee_id,
            work_date=day,
            check_in=None,
            check_out=None,
            status=AttendanceStatus.NO_CHECK_IN,
            leave_type=leave,
            created_at=now,
            updated_at=now,
        )
        if not self._records.create(record):
            raise InvalidArgument(f"{employee_id} already has a record on {day.isoformat()}")
        return record

    def day_status(self, employee_id: str, day: date) -> DayStatus:
        record = self._records.get_for_employee_and_date(employee_id, day)
        if not record:
            return DayStatus(employee_id=employee_id, work_date=day, status=AttendanceStatus.NO_CHECK_IN)
        return DayStatus(
            employee_id=employee_id,
            work_date=day,
            status=record.status,
            leave_type=record.leave_type,
            record=record,
        )

    def retry_payment(self, record_id: str) -> AttendanceRecord:
        return self._payments.retry(record_id)
