"""Missed-checkout adjudication.

An employee who forgot to check out files a report with the hours they
worked. An admin decides once:
- approve: half-rate wage on the confirmed (else declared) hours, then paid;
- reject: the day becomes unpaid leave with no wage.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from ..attendance.model import AttendanceRecord
from ..attendance.payments import AttendancePayments
from ..attendance.repository import AttendanceRepository
from ..common.validators import clean_url_list, optional_hours, require_hours
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import AdjudicationAction, AdjudicationStatus, LeaveType, PaymentStatus
from ..core.exceptions import InvalidArgument, InvalidTransition, NotFound
from ..events.model import AttendanceAdjudicated
from ..events.publisher import EventPublisher
from ..payroll.calculator.base import WageCalculator
from ..payroll.calculator.hourly_calculator import HourlyWageCalculator

logger = logging.getLogger(__name__)


class MissedCheckoutService:
    def __init__(
        self,
        records: AttendanceRepository,
        payments: AttendancePayments,
        events: EventPublisher,
        *,
        calculator: Optional[WageCalculator] = None,
    ):
        self._records = records
        self._payments = payments
        self._events = events
        self._calculator = calculator or HourlyWageCalculator()

    def _require(self, record_id: str) -> AttendanceRecord:
        record = self._records.get(record_id)
        if not record:
            raise NotFound(f"Attendance record {record_id} does not exist")
        return record

    def report(
        self,
        record_id: str,
        declared_hours: Any,
        description: Optional[str] = None,
        evidence_urls: Sequence[str] = (),
    ) -> AttendanceRecord:
        hours = require_hours(declared_hours, "declared_hours")
        urls = clean_url_list(evidence_urls, "evidence_urls")

        record = self._require(record_id)
        if record.check_in is None or record.check_out is not None:
            raise InvalidTransition("Missed checkout can only be reported for a day without checkout")
        if record.adjudication_status != AdjudicationStatus.NOT_APPLICABLE:
            raise InvalidTransition(f"Missed checkout already {record.adjudication_status.value}")

        if not self._records.report_missed_checkout(
            record_id=record_id,
            declared_hours=hours,
            description=(description or "").strip() or None,
            evidence_urls=urls,
        ):
            raise InvalidTransition(f"Record {record_id} changed before the report was filed")
        logger.info("Missed checkout reported for %s: %s h declared", record_id, hours)
        return self._require(record_id)

    def decide(
        self,
        record_id: str,
        action: Union[AdjudicationAction, str],
        admin_note: Optional[str] = None,
        confirmed_hours: Any = None,
        *,
        admin_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> AttendanceRecord:
        now = now or datetime.now()
        try:
            action = AdjudicationAction(action)
        except ValueError:
            raise InvalidArgument(f"Unknown action: {action!r}")
        confirmed = optional_hours(confirmed_hours, "confirmed_hours")

        record = self._require(record_id)
        if record.adjudication_status != AdjudicationStatus.PENDING_APPROVAL:
            raise InvalidTransition(
                f"Record {record_id} is not awaiting a decision ({record.adjudication_status.value})"
            )

        if action == AdjudicationAction.APPROVE:
            hours = confirmed if confirmed is not None else (record.declared_hours or Decimal("0"))
            wage = self._calculator.missed_checkout_wage(hours)
            status = AdjudicationStatus.APPROVED
            leave = None
            payment_status = PaymentStatus.PENDING if wage > 0 else PaymentStatus.NONE
        else:
            hours = Decimal("0")
            wage = Decimal("0")
            status = AdjudicationStatus.REJECTED
            leave = LeaveType.UNPAID
            payment_status = PaymentStatus.NONE

        if not self._records.decide_missed_checkout(
            record_id=record_id,
            status=status,
            hours=hours,
            wage=wage,
            confirmed_hours=confirmed,
            leave_type=leave,
            admin_note=(admin_note or "").strip() or None,
            admin_id=admin_id,
            decided_at=now,
            payment_status=payment_status,
        ):
            current = self._require(record_id)
            raise InvalidTransition(f"Record {record_id} was already decided ({current.adjudication_status.value})")
        logger.info("Missed checkout %s %s: %s h, wage %s", record_id, status.value, hours, wage)

        if payment_status == PaymentStatus.PENDING:
            record = self._payments.settle(record_id)
        else:
            record = self._require(record_id)

        self._events.publish(
            AttendanceAdjudicated(
                entity_id=record_id,
                status=status.value,
                amount_delta=wage,
                occurred_at=now,
                details={"hours": str(hours), "leave_type": leave.value if leave else None},
                payment_status=record.payment_status.value,
            )
        )
        return record

    def list_pending(self, *, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[AttendanceRecord]:
        return self._records.list_pending_adjudication(limit=int(limit))
