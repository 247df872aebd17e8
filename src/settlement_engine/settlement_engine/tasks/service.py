from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from ..common.datetime_utils import combine_deadline
from ..common.validators import require_non_empty, require_progress
from ..core.constants import DEFAULT_AUTO_APPROVE_MINUTES, DEFAULT_COMPLETION_THRESHOLD
from ..core.enums import Difficulty, EntityType, PaymentStatus, Priority, Role, TaskStatus
from ..core.exceptions import (
    AlreadyClaimed,
    AlreadyProcessing,
    ConfigurationError,
    InvalidArgument,
    InvalidTransition,
    NotFound,
    SettlementFailure,
)
from ..events.model import TaskApproved, TaskRejected
from ..events.publisher import EventPublisher
from ..locking.service import EntityLocks
from ..rewards import policy
from ..settlement.gateway import SettlementGateway
from ..settlement.references import idempotency_key
from .model import FileDescriptor, ReviewNote, Task
from .repository import TaskRepository
from .transitions import CLAIMABLE, TERMINAL, ensure_transition

logger = logging.getLogger(__name__)

SYSTEM_REVIEWER = "system"

AttachmentInput = Union[FileDescriptor, Mapping[str, Any]]


class TaskService:
    def __init__(
        self,
        tasks: TaskRepository,
        gateway: SettlementGateway,
        locks: EntityLocks,
        events: EventPublisher,
        *,
        completion_threshold: int = DEFAULT_COMPLETION_THRESHOLD,
        auto_approve_minutes: int = DEFAULT_AUTO_APPROVE_MINUTES,
    ):
        self._tasks = tasks
        self._gateway = gateway
        self._locks = locks
        self._events = events
        self._completion_threshold = int(completion_threshold)
        self._auto_approve_minutes = int(auto_approve_minutes)

    # -------- helpers --------
    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if not task:
            raise NotFound(f"Task {task_id} does not exist")
        return task

    def _lost_race(self, task_id: str, target: TaskStatus) -> InvalidTransition:
        current = self._require(task_id)
        return InvalidTransition(
            f"Task {task_id} changed to {current.status.value} before it could move to {target.value}",
            current=current.status,
            target=target,
        )

    @staticmethod
    def upload_files(
        files: Iterable[AttachmentInput],
        *,
        uploaded_by: Optional[str] = None,
        role: Role = Role.EMPLOYEE,
    ) -> list[FileDescriptor]:
        """Normalize uploaded file metadata into descriptors tagged with the uploader."""

        out: list[FileDescriptor] = []
        for f in files or []:
            if isinstance(f, FileDescriptor):
                out.append(f)
            else:
                out.append(FileDescriptor.from_dict(f, uploaded_by=uploaded_by, role=role))
        return out

    # -------- creation --------
    def create_task(
        self,
        *,
        title: str,
        difficulty: Union[Difficulty, str],
        deadline: Union[datetime, date],
        deadline_time: Optional[time] = None,
        description: Optional[str] = None,
        priority: Union[Priority, str] = Priority.MEDIUM,
        start_at: Optional[datetime] = None,
        assignee_id: Optional[str] = None,
        department_id: Optional[str] = None,
        assigner_id: Optional[str] = None,
        attachments: Sequence[AttachmentInput] = (),
        now: datetime | None = None,
    ) -> Task:
        now = now or datetime.now()
        title = require_non_empty(title, "title")
        try:
            difficulty = Difficulty(difficulty)
        except ValueError:
            raise ConfigurationError(f"Unknown difficulty tier: {difficulty!r}")
        try:
            priority = Priority(priority)
        except ValueError:
            raise InvalidArgument(f"Unknown priority: {priority!r}")

        deadline_at = combine_deadline(deadline, deadline_time)
        start = start_at or now
        if deadline_at < start:
            raise InvalidArgument("Deadline must not be before the start time")
        if assignee_id is None and not department_id:
            raise InvalidArgument("A department task needs a department")

        task = Task(
            task_id=str(uuid.uuid4()),
            title=title,
            description=(description or "").strip() or None,
            assigner_id=assigner_id,
            assignee_id=assignee_id,
            department_id=department_id,
            priority=priority,
            difficulty=difficulty,
            status=TaskStatus.NOT_STARTED,
            progress=0,
            start_at=start,
            deadline=deadline_at,
            attachments=tuple(self.upload_files(attachments, uploaded_by=assigner_id, role=Role.ADMIN)),
            created_at=now,
            updated_at=now,
        )
        self._tasks.create(task)
        logger.info("Task %s created (%s, due %s)", task.task_id, difficulty.value, deadline_at.isoformat())
        return task

    # -------- worker side --------
    def start(self, task_id: str, employee_id: str, *, now: datetime | None = None) -> Task:
        now = now or datetime.now()
        task = self._require(task_id)
        if task.assignee_id is None:
            raise InvalidArgument("Department tasks are taken with claim")
        if task.assignee_id != employee_id:
            raise InvalidArgument("Only the assignee can start this task")
        ensure_transition(task.status, TaskStatus.IN_PROGRESS)
        if task.status != TaskStatus.NOT_STARTED:
            raise InvalidTransition("Task was already started", current=task.status, target=TaskStatus.IN_PROGRESS)

        if not self._tasks.update_status(
            task_id=task_id,
            expected=[TaskStatus.NOT_STARTED],
            status=TaskStatus.IN_PROGRESS,
            accepted_at=now,
        ):
            raise self._lost_race(task_id, TaskStatus.IN_PROGRESS)
        logger.info("Task %s started by %s", task_id, employee_id)
        return self._require(task_id)

    def claim(self, task_id: str, employee_id: str, department_id: Optional[str], *, now: datetime | None = None) -> Task:
        now = now or datetime.now()
        employee_id = require_non_empty(employee_id, "employee_id")
        task = self._require(task_id)
        if task.assignee_id is not None:
            raise AlreadyClaimed(f"Task {task_id} is already assigned")
        if task.status not in CLAIMABLE:
            raise InvalidTransition(
                f"Task in status {task.status.value} cannot be claimed",
                current=task.status,
                target=TaskStatus.IN_PROGRESS,
            )
        if task.department_id != department_id:
            raise InvalidArgument("Only members of the task department can claim it")

        if not self._tasks.claim(task_id=task_id, employee_id=employee_id, accepted_at=now):
            logger.info("Claim of task %s by %s lost the race", task_id, employee_id)
            raise AlreadyClaimed(f"Task {task_id} was claimed by someone else")
        logger.info("Task %s claimed by %s", task_id, employee_id)
        return self._require(task_id)

    def update_progress(
        self,
        task_id: str,
        employee_id: str,
        progress: Any,
        attachments: Sequence[AttachmentInput],
        *,
        now: datetime | None = None,
    ) -> Task:
        progress = require_progress(progress)
        task = self._require(task_id)
        if task.status != TaskStatus.IN_PROGRESS:
            raise InvalidTransition(
                f"Progress can only be reported while in progress (now {task.status.value})",
                current=task.status,
            )
        if task.assignee_id != employee_id:
            raise InvalidArgument("Only the assignee can report progress")
        if progress >= self._completion_threshold:
            return self.submit_for_review(task_id, progress, attachments, employee_id=employee_id, now=now)

        files = self.upload_files(attachments, uploaded_by=employee_id)
        if not files:
            raise InvalidArgument("At least one attachment is required")
        if not self._tasks.update_progress(task_id=task_id, progress=progress, attachments=files):
            raise self._lost_race(task_id, TaskStatus.IN_PROGRESS)
        return self._require(task_id)

    def submit_for_review(
        self,
        task_id: str,
        progress: Any,
        attachments: Sequence[AttachmentInput],
        *,
        employee_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> Task:
        now = now or datetime.now()
        task = self._require(task_id)
        ensure_transition(task.status, TaskStatus.PENDING_REVIEW)

        progress = require_progress(progress)
        if progress < self._completion_threshold:
            raise InvalidArgument(f"Progress must reach {self._completion_threshold}% before review")
        files = self.upload_files(attachments, uploaded_by=employee_id or task.assignee_id)
        if not files:
            raise InvalidArgument("At least one attachment is required")

        if not self._tasks.update_progress(
            task_id=task_id,
            progress=progress,
            attachments=files,
            submitted_at=now,
            status=TaskStatus.PENDING_REVIEW,
        ):
            raise self._lost_race(task_id, TaskStatus.PENDING_REVIEW)
        logger.info("Task %s submitted for review", task_id)
        return self._require(task_id)

    # -------- review --------
    def approve(self, task_id: str, *, admin_id: Optional[str] = None, now: datetime | None = None) -> Task:
        """Complete the task and pay its reward.

        The entity lock covers the status check and the conditional update to
        Completed/pending. Settlement runs after the lock is released; the
        pending payment status keeps concurrent callers out meanwhile.
        """
        now = now or datetime.now()
        with self._locks.hold(EntityType.TASK, task_id):
            task = self._require(task_id)
            if task.status == TaskStatus.COMPLETED and task.payment_status == PaymentStatus.PENDING:
                raise AlreadyProcessing(f"Approval of task {task_id} is in flight")
            ensure_transition(task.status, TaskStatus.COMPLETED)
            if task.assignee_id is None:
                raise InvalidArgument("Task has no assignee to pay")

            completed_at = task.submitted_at or now
            decision = policy.evaluate(task.difficulty, deadline=task.deadline, completed_at=completed_at)
            if not self._tasks.mark_completed(
                task_id=task_id,
                reward=decision.reward,
                penalty=decision.penalty,
                completed_at=completed_at,
            ):
                raise self._lost_race(task_id, TaskStatus.COMPLETED)
            self._tasks.add_review_note(
                task_id=task_id,
                note=ReviewNote(
                    author_id=admin_id,
                    content=f"Approved ({'on time' if decision.on_time else 'late'}), reward {decision.reward}",
                    created_at=now,
                ),
            )
            logger.info("Task %s completed, reward %s (on_time=%s)", task_id, decision.reward, decision.on_time)

        task = self._settle(task_id)
        self._events.publish(
            TaskApproved(
                entity_id=task_id,
                status=task.status.value,
                amount_delta=task.reward_amount or Decimal("0"),
                occurred_at=now,
                details={"on_time": decision.on_time, "reference": task.settlement_reference},
                payment_status=task.payment_status.value,
            )
        )
        return task

    def _settle(self, task_id: str) -> Task:
        task = self._require(task_id)
        amount = task.reward_amount or Decimal("0")
        if amount <= 0:
            self._tasks.record_payment(
                task_id=task_id, expected=PaymentStatus.PENDING, status=PaymentStatus.NONE
            )
            return self._require(task_id)

        key = idempotency_key(EntityType.TASK, task_id)
        try:
            record = self._gateway.settle(key, amount, task.assignee_id)
        except SettlementFailure as e:
            logger.error("Payment for task %s failed: %s", task_id, e)
            self._tasks.record_payment(
                task_id=task_id, expected=PaymentStatus.PENDING, status=PaymentStatus.FAILED, error=str(e)
            )
        else:
            if record.status == PaymentStatus.COMPLETED:
                self._tasks.record_payment(
                    task_id=task_id,
                    expected=PaymentStatus.PENDING,
                    status=PaymentStatus.COMPLETED,
                    reference=record.transaction_reference,
                )
            else:
                logger.warning("Payment for task %s still %s in the ledger", task_id, record.status.value)
        return self._require(task_id)

    def reject(
        self,
        task_id: str,
        reason: str,
        progress: Any = 0,
        *,
        admin_id: Optional[str] = None,
        now: datetime | None = None,
    ) -> Task:
        now = now or datetime.now()
        reason = require_non_empty(reason, "reason")
        progress = require_progress(progress)
        task = self._require(task_id)
        if task.status != TaskStatus.PENDING_REVIEW:
            raise InvalidTransition(
                f"Only tasks pending review can be rejected (now {task.status.value})",
                current=task.status,
                target=TaskStatus.IN_PROGRESS,
            )

        if not self._tasks.update_status(
            task_id=task_id,
            expected=[TaskStatus.PENDING_REVIEW],
            status=TaskStatus.IN_PROGRESS,
            progress=progress,
        ):
            raise self._lost_race(task_id, TaskStatus.IN_PROGRESS)
        self._tasks.add_review_note(task_id=task_id, note=ReviewNote(author_id=admin_id, content=reason, created_at=now))
        logger.info("Task %s rejected, progress reset to %s", task_id, progress)

        self._events.publish(
            TaskRejected(
                entity_id=task_id,
                status=TaskStatus.IN_PROGRESS.value,
                amount_delta=Decimal("0"),
                occurred_at=now,
                details={"reason": reason, "progress": progress},
            )
        )
        return self._require(task_id)

    def _move(self, task_id: str, target: TaskStatus) -> Task:
        task = self._require(task_id)
        ensure_transition(task.status, target)
        if not self._tasks.update_status(task_id=task_id, expected=[task.status], status=target):
            raise self._lost_race(task_id, target)
        logger.info("Task %s: %s -> %s", task_id, task.status.value, target.value)
        return self._require(task_id)

    def pause(self, task_id: str) -> Task:
        return self._move(task_id, TaskStatus.PAUSED)

    def resume(self, task_id: str) -> Task:
        return self._move(task_id, TaskStatus.IN_PROGRESS)

    def cancel(self, task_id: str) -> Task:
        task = self._require(task_id)
        if task.status in TERMINAL:
            raise InvalidTransition(
                f"Task is already {task.status.value}", current=task.status, target=TaskStatus.CANCELLED
            )
        return self._move(task_id, TaskStatus.CANCELLED)

    # -------- payments --------
    def retry_payment(self, task_id: str) -> Task:
        """Re-pay a failed payment, or finish one left pending.

        A pending payment whose ledger row already completed adopts that
        reference without a new submission. A ledger row still pending means
        the relay call is in flight and the retry is refused.
        """
        with self._locks.hold(EntityType.TASK, task_id):
            task = self._require(task_id)
            if task.status != TaskStatus.COMPLETED or task.payment_status not in (
                PaymentStatus.FAILED,
                PaymentStatus.PENDING,
            ):
                raise InvalidTransition(
                    f"Only completed tasks with a failed or unfinished payment can be re-paid "
                    f"(status {task.status.value}, payment {task.payment_status.value})",
                    current=task.status,
                )
            if task.payment_status == PaymentStatus.PENDING:
                row = self._gateway.get(idempotency_key(EntityType.TASK, task_id))
                if row is not None and row.status == PaymentStatus.PENDING:
                    raise AlreadyProcessing(f"Settlement of task {task_id} is still in flight")
            elif not self._tasks.record_payment(
                task_id=task_id, expected=PaymentStatus.FAILED, status=PaymentStatus.PENDING
            ):
                raise AlreadyProcessing(f"Payment of task {task_id} is already being retried")
        logger.info("Retrying payment for task %s (was %s)", task_id, task.payment_status.value)
        return self._settle(task_id)

    def auto_approve_stale(self, now: datetime | None = None) -> list[Task]:
        """Approve every task that has waited longer than the review window."""

        now = now or datetime.now()
        cutoff = now - timedelta(minutes=self._auto_approve_minutes)
        approved: list[Task] = []
        for task in self._tasks.list_pending_review_before(cutoff):
            try:
                approved.append(self.approve(task.task_id, admin_id=SYSTEM_REVIEWER, now=now))
            except (AlreadyProcessing, InvalidTransition) as e:
                logger.info("Auto-approve skipped task %s: %s", task.task_id, e)
        if approved:
            logger.info("Auto-approved %d task(s) submitted before %s", len(approved), cutoff.isoformat())
        return approved
