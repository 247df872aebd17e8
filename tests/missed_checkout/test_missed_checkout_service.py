from __future__ import annotations

import threading
from datetime import date, datetime
from decimal import Decimal

import pytest

from src.settlement_engine.settlement_engine.attendance.payments import AttendancePayments
from src.settlement_engine.settlement_engine.attendance.service import AttendanceService
from src.settlement_engine.settlement_engine.core.enums import AdjudicationStatus, LeaveType, PaymentStatus
from src.settlement_engine.settlement_engine.core.exceptions import InvalidArgument, InvalidTransition
from src.settlement_engine.settlement_engine.locking.service import EntityLocks
from src.settlement_engine.settlement_engine.missed_checkout.service import MissedCheckoutService
from src.settlement_engine.settlement_engine.settlement.gateway import SettlementGateway
from tests.fakes import (
    VALID_REF,
    FakeAttendanceRepo,
    FakeLockRepo,
    FakeSettlementLedger,
    FakeTransport,
    RecordingPublisher,
)


class Harness:
    def __init__(self):
        self.repo = FakeAttendanceRepo()
        self.transport = FakeTransport()
        self.events = RecordingPublisher()
        payments = AttendancePayments(
            self.repo, SettlementGateway(FakeSettlementLedger(), self.transport), EntityLocks(FakeLockRepo())
        )
        self.attendance = AttendanceService(self.repo, payments)
        self.missed = MissedCheckoutService(self.repo, payments, self.events)

    def reported(self, declared="8"):
        record = self.attendance.check_in("emp-1", now=datetime(2025, 3, 3, 8, 0))
        self.missed.report(record.record_id, declared, "Forgot to tap out", ["https://files/badge.jpg"])
        return record.record_id


@pytest.fixture
def h():
    return Harness()


def test_report_moves_to_pending_approval(h):
    record_id = h.reported()
    record = h.repo.get(record_id)

    assert record.missed_checkout_reported
    assert record.adjudication_status == AdjudicationStatus.PENDING_APPROVAL
    assert record.declared_hours == Decimal("8")
    assert record.evidence_urls == ("https://files/badge.jpg",)
    assert [r.record_id for r in h.missed.list_pending()] == [record_id]


def test_report_rejects_negative_hours(h):
    record = h.attendance.check_in("emp-1", now=datetime(2025, 3, 3, 8, 0))
    with pytest.raises(InvalidArgument):
        h.missed.report(record.record_id, "-1")
    assert h.repo.get(record.record_id).adjudication_status == AdjudicationStatus.NOT_APPLICABLE


def test_report_after_checkout_is_invalid(h):
    record = h.attendance.check_in("emp-1", now=datetime(2025, 3, 3, 8, 0))
    h.attendance.check_out(record.record_id, now=datetime(2025, 3, 3, 17, 0))
    with pytest.raises(InvalidTransition):
        h.missed.report(record.record_id, "8")


def test_checkout_blocked_while_under_review(h):
    record_id = h.reported()
    with pytest.raises(InvalidTransition):
        h.attendance.check_out(record_id, now=datetime(2025, 3, 3, 17, 0))


def test_approve_with_confirmed_hours_pays_half_rate(h):
    record_id = h.reported(declared="9")

    record = h.missed.decide(record_id, "approve", "Badge log confirms", "10", admin_id="adm-1")

    assert record.adjudication_status == AdjudicationStatus.APPROVED
    assert record.wage == Decimal("10")
    assert record.total_hours == Decimal("10")
    assert record.confirmed_hours == Decimal("10")
    assert record.payment_status == PaymentStatus.COMPLETED
    assert record.payment_reference == VALID_REF
    assert record.adjudicated_by == "adm-1"

    event = h.events.events[-1]
    assert event.name == "attendanceAdjudicated"
    assert event.amount_delta == Decimal("10")
    assert event.status == "Approved"


def test_approve_without_confirmation_uses_declared_hours(h):
    record_id = h.reported(declared="6")
    record = h.missed.decide(record_id, "approve")
    assert record.wage == Decimal("6")


def test_reject_makes_day_unpaid_leave(h):
    record_id = h.reported()

    record = h.missed.decide(record_id, "reject", "No evidence")

    assert record.adjudication_status == AdjudicationStatus.REJECTED
    assert record.wage == Decimal("0")
    assert record.leave_type == LeaveType.UNPAID
    assert record.payment_status == PaymentStatus.NONE
    assert h.transport.calls == []
    assert h.events.events[-1].amount_delta == Decimal("0")


def test_rejected_day_stays_unpaid_leave(h):
    record_id = h.reported()
    h.missed.decide(record_id, "reject", "No evidence")

    for leave in ("annual", None):
        with pytest.raises(InvalidTransition):
            h.attendance.record_leave("emp-1", date(2025, 3, 3), leave)

    record = h.repo.get(record_id)
    assert record.leave_type == LeaveType.UNPAID
    assert record.wage == Decimal("0")
    assert h.repo.set_leave(record_id=record_id, leave_type=LeaveType.ANNUAL) is False


def test_report_rejects_non_string_evidence(h):
    record = h.attendance.check_in("emp-1", now=datetime(2025, 3, 3, 8, 0))

    for evidence in ([42], "https://files/badge.jpg", {"url": "x"}):
        with pytest.raises(InvalidArgument):
            h.missed.report(record.record_id, "8", "Forgot", evidence)

    assert h.repo.get(record.record_id).adjudication_status == AdjudicationStatus.NOT_APPLICABLE


def test_report_evidence_is_optional_and_trimmed(h):
    first = h.attendance.check_in("emp-1", now=datetime(2025, 3, 3, 8, 0))
    second = h.attendance.check_in("emp-2", now=datetime(2025, 3, 3, 8, 0))

    bare = h.missed.report(first.record_id, "8", "Forgot", [])
    trimmed = h.missed.report(second.record_id, "8", "Forgot", [" ", "https://files/a.jpg "])

    assert bare.evidence_urls == ()
    assert bare.adjudication_status == AdjudicationStatus.PENDING_APPROVAL
    assert trimmed.evidence_urls == ("https://files/a.jpg",)


def test_negative_confirmed_hours_rejected_before_mutation(h):
    record_id = h.reported()

    with pytest.raises(InvalidArgument):
        h.missed.decide(record_id, "approve", confirmed_hours="-2")

    assert h.repo.get(record_id).adjudication_status == AdjudicationStatus.PENDING_APPROVAL
    assert h.events.events == []


def test_unknown_action_is_invalid_argument(h):
    record_id = h.reported()
    with pytest.raises(InvalidArgument):
        h.missed.decide(record_id, "escalate")


def test_decision_is_terminal(h):
    record_id = h.reported()
    h.missed.decide(record_id, "reject")
    with pytest.raises(InvalidTransition):
        h.missed.decide(record_id, "approve", confirmed_hours="8")


def test_two_admins_deciding_at_once_one_wins(h):
    record_id = h.reported()
    barrier = threading.Barrier(2)
    outcomes = []

    def decide(action):
        barrier.wait()
        try:
            h.missed.decide(record_id, action)
            outcomes.append("ok")
        except InvalidTransition:
            outcomes.append("lost")

    threads = [threading.Thread(target=decide, args=(a,)) for a in ("approve", "reject")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["lost", "ok"]
    assert len(h.events.events) == 1
