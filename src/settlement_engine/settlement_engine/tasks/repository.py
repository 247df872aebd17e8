from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import PaymentStatus, TaskStatus
from .model import FileDescriptor, ReviewNote, Task, TaskFilter, TaskStats


class TaskRepository(Protocol):
    """Every mutating method is a conditional update on the expected state and
    returns False when the row no longer matches (another caller won)."""

    def get(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    def create(self, task: Task) -> None:
        raise NotImplementedError

    def list_tasks(self, task_filter: TaskFilter, *, limit: int, offset: int = 0) -> Sequence[Task]:
        raise NotImplementedError

    def list_pending_review_before(self, cutoff: datetime) -> Sequence[Task]:
        raise NotImplementedError

    def stats(self) -> TaskStats:
        raise NotImplementedError

    def update_status(
        self,
        *,
        task_id: str,
        expected: Iterable[TaskStatus],
        status: TaskStatus,
        progress: Optional[int] = None,
        accepted_at: Optional[datetime] = None,
    ) -> bool:
        raise NotImplementedError

    def claim(self, *, task_id: str, employee_id: str, accepted_at: datetime) -> bool:
        """assignee NULL and status NotStarted/InProgress -> assignee set, InProgress."""

        raise NotImplementedError

    def update_progress(
        self,
        *,
        task_id: str,
        progress: int,
        attachments: Sequence[FileDescriptor],
        submitted_at: Optional[datetime] = None,
        status: TaskStatus = TaskStatus.IN_PROGRESS,
    ) -> bool:
        """Only from InProgress. With status=PendingReview this is the review submission."""

        raise NotImplementedError

    def mark_completed(
        self,
        *,
        task_id: str,
        reward: Decimal,
        penalty: Decimal,
        completed_at: datetime,
    ) -> bool:
        """PendingReview -> Completed with amounts and payment status pending."""

        raise NotImplementedError

    def record_payment(
        self,
        *,
        task_id: str,
        expected: PaymentStatus,
        status: PaymentStatus,
        reference: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """A stored reference is never overwritten."""

        raise NotImplementedError

    def add_review_note(self, *, task_id: str, note: ReviewNote) -> None:
        raise NotImplementedError
