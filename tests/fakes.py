"""In-memory stand-ins for the repository protocols and the settlement transport."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from src.settlement_engine.settlement_engine.attendance.model import AttendanceRecord
from src.settlement_engine.settlement_engine.core.enums import (
    AdjudicationStatus,
    AttendanceStatus,
    PaymentStatus,
    TaskStatus,
)
from src.settlement_engine.settlement_engine.core.exceptions import SettlementFailure, UpstreamUnavailable
from src.settlement_engine.settlement_engine.settlement.model import SettlementRecord, TransportReceipt
from src.settlement_engine.settlement_engine.tasks.model import TaskStats
from src.settlement_engine.settlement_engine.tasks.transitions import CLAIMABLE

VALID_REF = "0x" + "ab" * 32


class FakeTaskRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self.tasks = {}
        self.unavailable = False

    def _check(self):
        if self.unavailable:
            raise UpstreamUnavailable("db down")

    def get(self, task_id):
        self._check()
        return self.tasks.get(task_id)

    def create(self, task):
        self.tasks[task.task_id] = task

    def list_tasks(self, task_filter, *, limit, offset=0):
        self._check()
        out = [
            t
            for t in self.tasks.values()
            if (task_filter.status is None or t.status == task_filter.status)
            and (task_filter.assignee_id is None or t.assignee_id == task_filter.assignee_id)
            and (task_filter.department_id is None or t.department_id == task_filter.department_id)
            and (not task_filter.unclaimed_only or t.assignee_id is None)
        ]
        return out[offset : offset + limit]

    def list_pending_review_before(self, cutoff):
        return [
            t
            for t in self.tasks.values()
            if t.status == TaskStatus.PENDING_REVIEW and t.submitted_at and t.submitted_at <= cutoff
        ]

    def stats(self):
        self._check()
        by_status = {}
        for t in self.tasks.values():
            by_status[t.status.value] = by_status.get(t.status.value, 0) + 1
        paid = [t for t in self.tasks.values() if t.payment_status == PaymentStatus.COMPLETED]
        return TaskStats(
            by_status=by_status,
            total_rewarded=sum((t.reward_amount for t in paid), Decimal("0")),
            failed_payments=sum(1 for t in self.tasks.values() if t.payment_status == PaymentStatus.FAILED),
        )

    def update_status(self, *, task_id, expected, status, progress=None, accepted_at=None):
        with self._lock:
            t = self.tasks.get(task_id)
            if not t or t.status not in list(expected):
                return False
            self.tasks[task_id] = replace(
                t,
                status=status,
                progress=t.progress if progress is None else progress,
                accepted_at=t.accepted_at or accepted_at,
            )
            return True

    def claim(self, *, task_id, employee_id, accepted_at):
        with self._lock:
            t = self.tasks.get(task_id)
            if not t or t.assignee_id is not None or t.status not in CLAIMABLE:
                return False
            self.tasks[task_id] = replace(
                t, assignee_id=employee_id, status=TaskStatus.IN_PROGRESS, accepted_at=accepted_at
            )
            return True

    def update_progress(self, *, task_id, progress, attachments, submitted_at=None, status=TaskStatus.IN_PROGRESS):
        with self._lock:
            t = self.tasks.get(task_id)
            if not t or t.status != TaskStatus.IN_PROGRESS:
                return False
            self.tasks[task_id] = replace(
                t,
                progress=progress,
                status=status,
                attachments=t.attachments + tuple(attachments),
                submitted_at=submitted_at or t.submitted_at,
            )
            return True

    def mark_completed(self, *, task_id, reward, penalty, completed_at):
        with self._lock:
            t = self.tasks.get(task_id)
            if not t or t.status != TaskStatus.PENDING_REVIEW:
                return False
            self.tasks[task_id] = replace(
                t,
                status=TaskStatus.COMPLETED,
                progress=100,
                reward_amount=reward,
                penalty_amount=penalty,
                completed_at=completed_at,
                payment_status=PaymentStatus.PENDING,
                payment_error=None,
            )
            return True

    def record_payment(self, *, task_id, expected, status, reference=None, error=None):
        with self._lock:
            t = self.tasks.get(task_id)
            if not t or t.payment_status != expected:
                return False
            self.tasks[task_id] = replace(
                t,
                payment_status=status,
                payment_reference=t.payment_reference or reference,
                payment_error=error,
            )
            return True

    def add_review_note(self, *, task_id, note):
        with self._lock:
            t = self.tasks[task_id]
            self.tasks[task_id] = replace(t, review_notes=t.review_notes + (note,))


class FakeAttendanceRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self.records: dict[str, AttendanceRecord] = {}
        self.unavailable = False

    def _check(self):
        if self.unavailable:
            raise UpstreamUnavailable("db down")

    def get(self, record_id):
        return self.records.get(record_id)

    def get_for_employee_and_date(self, employee_id, work_date):
        for r in self.records.values():
            if r.employee_id == employee_id and r.work_date == work_date:
                return r
        return None

    def create(self, record):
        with self._lock:
            if self.get_for_employee_and_date(record.employee_id, record.work_date):
                return False
            self.records[record.record_id] = record
            return True

    def list_records(self, record_filter, *, limit, offset=0):
        self._check()
        out = [
            r
            for r in self.records.values()
            if (record_filter.employee_id is None or r.employee_id == record_filter.employee_id)
            and (record_filter.date_from is None or r.work_date >= record_filter.date_from)
            and (record_filter.date_to is None or r.work_date <= record_filter.date_to)
        ]
        return out[offset : offset + limit]

    def list_open_for_day(self, work_date):
        return [r for r in self.records.values() if r.work_date == work_date and r.is_open]

    def list_pending_adjudication(self, *, limit):
        return [
            r for r in self.records.values() if r.adjudication_status == AdjudicationStatus.PENDING_APPROVAL
        ][:limit]

    def set_leave(self, *, record_id, leave_type):
        r = self.records.get(record_id)
        if not r or r.adjudication_status == AdjudicationStatus.REJECTED:
            return False
        self.records[record_id] = replace(r, leave_type=leave_type)
        return True

    def close_checkout(self, *, record_id, check_out, hours, wage, payment_status):
        with self._lock:
            r = self.records.get(record_id)
            if (
                not r
                or not r.is_open
                or r.adjudication_status != AdjudicationStatus.NOT_APPLICABLE
            ):
                return False
            self.records[record_id] = replace(
                r,
                check_out=check_out,
                total_hours=hours,
                wage=wage,
                status=AttendanceStatus.COMPLETED,
                payment_status=payment_status,
            )
            return True

    def report_missed_checkout(self, *, record_id, declared_hours, description, evidence_urls):
        with self._lock:
            r = self.records.get(record_id)
            if not r or r.check_out is not None or r.adjudication_status != AdjudicationStatus.NOT_APPLICABLE:
                return False
            self.records[record_id] = replace(
                r,
                missed_checkout_reported=True,
                adjudication_status=AdjudicationStatus.PENDING_APPROVAL,
                declared_hours=declared_hours,
                missed_checkout_description=description,
                evidence_urls=tuple(evidence_urls),
            )
            return True

    def decide_missed_checkout(
        self,
        *,
        record_id,
        status,
        hours,
        wage,
        confirmed_hours,
        leave_type,
        admin_note,
        admin_id,
        decided_at,
        payment_status,
    ):
        with self._lock:
            r = self.records.get(record_id)
            if not r or r.adjudication_status != AdjudicationStatus.PENDING_APPROVAL:
                return False
            self.records[record_id] = replace(
                r,
                adjudication_status=status,
                total_hours=hours,
                wage=wage,
                confirmed_hours=confirmed_hours,
                leave_type=leave_type or r.leave_type,
                admin_note=admin_note,
                adjudicated_by=admin_id,
                adjudicated_at=decided_at,
                payment_status=payment_status,
            )
            return True

    def record_payment(self, *, record_id, expected, status, reference=None, error=None):
        with self._lock:
            r = self.records.get(record_id)
            if not r or r.payment_status != expected:
                return False
            self.records[record_id] = replace(
                r,
                payment_status=status,
                payment_reference=r.payment_reference or reference,
                payment_error=error,
            )
            return True


class FakeSettlementLedger:
    def __init__(self):
        self._lock = threading.Lock()
        self.rows: dict[str, SettlementRecord] = {}

    def get(self, idempotency_key):
        return self.rows.get(idempotency_key)

    def reserve(self, *, idempotency_key, amount, recipient):
        with self._lock:
            row = self.rows.get(idempotency_key)
            if row is None:
                self.rows[idempotency_key] = SettlementRecord(
                    idempotency_key=idempotency_key,
                    amount=amount,
                    recipient=recipient,
                    status=PaymentStatus.PENDING,
                    attempts=1,
                )
                return True
            if row.status != PaymentStatus.FAILED:
                return False
            self.rows[idempotency_key] = replace(
                row, status=PaymentStatus.PENDING, amount=amount, recipient=recipient, error=None, attempts=row.attempts + 1
            )
            return True

    def mark_completed(self, *, idempotency_key, transaction_reference):
        with self._lock:
            row = self.rows.get(idempotency_key)
            if not row or row.status != PaymentStatus.PENDING or row.transaction_reference:
                return False
            self.rows[idempotency_key] = replace(
                row, status=PaymentStatus.COMPLETED, transaction_reference=transaction_reference, error=None
            )
            return True

    def mark_failed(self, *, idempotency_key, error):
        with self._lock:
            row = self.rows.get(idempotency_key)
            if not row or row.status != PaymentStatus.PENDING:
                return False
            self.rows[idempotency_key] = replace(row, status=PaymentStatus.FAILED, error=error)
            return True


class FakeLockRepo:
    def __init__(self):
        self._lock = threading.Lock()
        self.held: dict[tuple, str] = {}

    def acquire(self, *, entity_type, entity_id, owner, ttl_seconds):
        with self._lock:
            key = (entity_type, entity_id)
            if key in self.held:
                return False
            self.held[key] = owner
            return True

    def release(self, *, entity_type, entity_id, owner):
        with self._lock:
            key = (entity_type, entity_id)
            if self.held.get(key) != owner:
                return False
            del self.held[key]
            return True


class FakeTransport:
    """Counts submissions. `gate` (threading.Event) blocks submit until set."""

    def __init__(self, reference: Optional[str] = VALID_REF, *, error: Optional[Exception] = None, gate=None):
        self.reference = reference
        self.error = error
        self.gate = gate
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def submit(self, *, idempotency_key, amount, recipient):
        with self._lock:
            self.calls.append({"key": idempotency_key, "amount": amount, "recipient": recipient})
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return TransportReceipt(transaction_reference=self.reference)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


def failing_transport(message: str = "relay rejected") -> FakeTransport:
    return FakeTransport(error=SettlementFailure(message))


def at(*args) -> datetime:
    return datetime(*args)
