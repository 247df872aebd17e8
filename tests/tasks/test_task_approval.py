from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.settlement_engine.settlement_engine.core.enums import Difficulty, EntityType, PaymentStatus, TaskStatus
from src.settlement_engine.settlement_engine.core.exceptions import (
    AlreadyProcessing,
    InvalidTransition,
    SettlementFailure,
    UpstreamUnavailable,
)
from src.settlement_engine.settlement_engine.locking.service import EntityLocks
from src.settlement_engine.settlement_engine.settlement.gateway import SettlementGateway
from src.settlement_engine.settlement_engine.settlement.references import idempotency_key
from src.settlement_engine.settlement_engine.tasks.service import TaskService
from tests.fakes import (
    VALID_REF,
    FakeLockRepo,
    FakeSettlementLedger,
    FakeTaskRepo,
    FakeTransport,
    RecordingPublisher,
)

FILE = {"file_name": "done.png", "file_uri": "s3://bucket/done.png"}
DEADLINE = datetime(2024, 6, 1, 17, 0)


class Harness:
    def __init__(self, transport=None):
        self.repo = FakeTaskRepo()
        self.ledger = FakeSettlementLedger()
        self.transport = transport or FakeTransport()
        self.locks = FakeLockRepo()
        self.events = RecordingPublisher()
        self.service = TaskService(
            self.repo,
            SettlementGateway(self.ledger, self.transport),
            EntityLocks(self.locks),
            self.events,
        )

    def pending_review(self, *, difficulty=Difficulty.MEDIUM, submitted_at=datetime(2024, 6, 1, 16, 59)):
        task = self.service.create_task(
            title="Quarterly numbers",
            difficulty=difficulty,
            deadline=DEADLINE,
            assignee_id="emp-1",
            department_id="dep-1",
            now=datetime(2024, 6, 1, 8, 0),
        )
        self.service.start(task.task_id, "emp-1")
        self.service.submit_for_review(task.task_id, 100, [FILE], now=submitted_at)
        return task.task_id


def test_medium_task_on_time_is_paid_and_completed():
    seen = []

    class ObservingTransport(FakeTransport):
        def submit(self, **kw):
            seen.append(h.repo.get(task_id).payment_status)
            return super().submit(**kw)

    h = Harness(ObservingTransport())
    task_id = h.pending_review()
    assert h.repo.get(task_id).payment_status == PaymentStatus.NONE

    task = h.service.approve(task_id, admin_id="adm-1", now=datetime(2024, 6, 2, 9, 0))

    assert seen == [PaymentStatus.PENDING]
    assert task.status == TaskStatus.COMPLETED
    assert task.reward_amount == Decimal("15")
    assert task.penalty_amount == Decimal("0")
    assert task.payment_status == PaymentStatus.COMPLETED
    assert task.payment_reference == VALID_REF
    assert task.completed_at == datetime(2024, 6, 1, 16, 59)
    assert h.transport.calls[0]["key"] == idempotency_key(EntityType.TASK, task_id)
    assert h.transport.calls[0]["recipient"] == "emp-1"

    event = h.events.events[-1]
    assert event.name == "taskApproved"
    assert event.amount_delta == Decimal("15")
    assert event.payment_status == "completed"


def test_hard_task_one_second_late_gets_half():
    h = Harness()
    task_id = h.pending_review(difficulty=Difficulty.HARD, submitted_at=DEADLINE + timedelta(seconds=1))

    task = h.service.approve(task_id)

    assert task.reward_amount == Decimal("10")


def test_hard_task_exactly_at_deadline_gets_full_reward():
    h = Harness()
    task_id = h.pending_review(difficulty=Difficulty.HARD, submitted_at=DEADLINE)

    assert h.service.approve(task_id).reward_amount == Decimal("20")


def test_settlement_failure_keeps_completed_and_records_error():
    h = Harness(FakeTransport(error=SettlementFailure("insufficient balance")))
    task_id = h.pending_review()

    task = h.service.approve(task_id)

    assert task.status == TaskStatus.COMPLETED
    assert task.payment_status == PaymentStatus.FAILED
    assert "insufficient balance" in task.payment_error
    assert task.payment_reference is None
    assert h.events.events[-1].payment_status == "failed"


def test_retry_payment_reuses_the_same_key():
    transport = FakeTransport(error=SettlementFailure("timeout"))
    h = Harness(transport)
    task_id = h.pending_review()
    h.service.approve(task_id)

    transport.error = None
    task = h.service.retry_payment(task_id)

    assert task.payment_status == PaymentStatus.COMPLETED
    assert task.payment_reference == VALID_REF
    assert {c["key"] for c in transport.calls} == {idempotency_key(EntityType.TASK, task_id)}
    assert len(transport.calls) == 2


def test_retry_payment_only_after_failure():
    h = Harness()
    task_id = h.pending_review()
    h.service.approve(task_id)

    with pytest.raises(InvalidTransition):
        h.service.retry_payment(task_id)


def test_retry_adopts_settlement_the_task_never_recorded():
    h = Harness()
    task_id = h.pending_review()
    record_payment = h.repo.record_payment
    dropped = []

    def drop_first_completion(**kwargs):
        if kwargs["status"] == PaymentStatus.COMPLETED and not dropped:
            dropped.append(kwargs)
            raise UpstreamUnavailable("connection reset")
        return record_payment(**kwargs)

    h.repo.record_payment = drop_first_completion

    with pytest.raises(UpstreamUnavailable):
        h.service.approve(task_id)
    assert h.repo.get(task_id).payment_status == PaymentStatus.PENDING
    assert h.ledger.get(idempotency_key(EntityType.TASK, task_id)).status == PaymentStatus.COMPLETED
    with pytest.raises(AlreadyProcessing):
        h.service.approve(task_id)

    task = h.service.retry_payment(task_id)

    assert task.payment_status == PaymentStatus.COMPLETED
    assert task.payment_reference == VALID_REF
    assert len(h.transport.calls) == 1


def test_retry_refused_while_settlement_in_flight():
    gate = threading.Event()
    h = Harness(FakeTransport(gate=gate))
    task_id = h.pending_review()
    worker = threading.Thread(target=h.service.approve, args=(task_id,))
    worker.start()
    for _ in range(200):
        if h.transport.calls:
            break
        time.sleep(0.01)

    try:
        with pytest.raises(AlreadyProcessing):
            h.service.retry_payment(task_id)
    finally:
        gate.set()
        worker.join(timeout=5)

    assert h.repo.get(task_id).payment_status == PaymentStatus.COMPLETED
    assert len(h.transport.calls) == 1


def test_completed_task_cannot_be_approved_again():
    h = Harness()
    task_id = h.pending_review()
    h.service.approve(task_id)

    with pytest.raises(InvalidTransition):
        h.service.approve(task_id)
    assert len(h.transport.calls) == 1


def test_approve_requires_pending_review():
    h = Harness()
    task = h.service.create_task(
        title="t", difficulty="Easy", deadline=DEADLINE, assignee_id="emp-1", now=datetime(2024, 6, 1, 8, 0)
    )
    with pytest.raises(InvalidTransition):
        h.service.approve(task.task_id)


def test_approve_while_lock_is_held_is_already_processing():
    h = Harness()
    task_id = h.pending_review()
    h.locks.acquire(entity_type=EntityType.TASK, entity_id=task_id, owner="other", ttl_seconds=60)

    with pytest.raises(AlreadyProcessing):
        h.service.approve(task_id)
    assert h.repo.get(task_id).status == TaskStatus.PENDING_REVIEW


def test_lock_is_released_after_approval():
    h = Harness()
    task_id = h.pending_review()
    h.service.approve(task_id)
    assert h.locks.held == {}


def test_concurrent_approvals_settle_exactly_once():
    gate = threading.Event()
    h = Harness(FakeTransport(gate=gate))
    task_id = h.pending_review()
    n = 8
    barrier = threading.Barrier(n)
    guard = threading.Lock()
    approved, rejected = [], []

    def worker():
        barrier.wait()
        try:
            task = h.service.approve(task_id, admin_id="adm")
        except AlreadyProcessing as e:
            with guard:
                rejected.append(e)
        else:
            with guard:
                approved.append(task)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()

    # the winner is parked inside the transport until every loser has returned
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        with guard:
            if len(rejected) >= n - 1:
                break
        time.sleep(0.01)
    gate.set()
    for t in threads:
        t.join()

    assert len(approved) == 1
    assert len(rejected) == n - 1
    assert len(h.transport.calls) == 1
    assert h.repo.get(task_id).payment_status == PaymentStatus.COMPLETED


def test_auto_approve_stale_only_touches_old_submissions():
    h = Harness()
    old = h.pending_review(submitted_at=datetime(2024, 6, 1, 10, 0))
    fresh = h.pending_review(submitted_at=datetime(2024, 6, 1, 11, 30))

    approved = h.service.auto_approve_stale(datetime(2024, 6, 1, 12, 30))

    assert [t.task_id for t in approved] == [old]
    assert h.repo.get(old).status == TaskStatus.COMPLETED
    assert h.repo.get(fresh).status == TaskStatus.PENDING_REVIEW
    assert h.repo.get(old).review_notes[-1].author_id == "system"


def test_auto_approve_skips_tasks_in_contention():
    h = Harness()
    task_id = h.pending_review(submitted_at=datetime(2024, 6, 1, 8, 0))
    h.locks.acquire(entity_type=EntityType.TASK, entity_id=task_id, owner="other", ttl_seconds=60)

    assert h.service.auto_approve_stale(datetime(2024, 6, 1, 12, 0)) == []
    assert h.repo.get(task_id).status == TaskStatus.PENDING_REVIEW
