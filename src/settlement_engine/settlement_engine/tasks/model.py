from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from ..core.enums import Difficulty, PaymentStatus, Priority, Role, TaskStatus
from ..core.exceptions import InvalidArgument
from ..settlement.references import normalize_transaction_reference


@dataclass(frozen=True)
class FileDescriptor:
    """Metadata of an uploaded file. The engine never reads the bytes."""

    file_name: str
    file_uri: str
    file_type: str = "application/octet-stream"
    file_size: int = 0
    uploaded_by: Optional[str] = None
    uploader_role: Role = Role.EMPLOYEE
    uploaded_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, uploaded_by: Optional[str] = None, role: Role = Role.EMPLOYEE) -> "FileDescriptor":
        name = (data.get("file_name") or "").strip()
        uri = (data.get("file_uri") or "").strip()
        if not name or not uri:
            raise InvalidArgument("Attachment needs file_name and file_uri")
        uploaded_at = data.get("uploaded_at")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)
        return cls(
            file_name=name,
            file_uri=uri,
            file_type=data.get("file_type") or "application/octet-stream",
            file_size=int(data.get("file_size") or 0),
            uploaded_by=data.get("uploaded_by") or uploaded_by,
            uploader_role=Role(data.get("uploader_role") or role),
            uploaded_at=uploaded_at,
        )


@dataclass(frozen=True)
class ReviewNote:
    author_id: Optional[str]
    content: str
    created_at: datetime


@dataclass(frozen=True)
class Task:
    """Domain entity: a unit of work with a reward settled on approval."""

    task_id: str
    title: str
    description: Optional[str]
    assigner_id: Optional[str]
    assignee_id: Optional[str]
    department_id: Optional[str]
    priority: Priority
    difficulty: Difficulty
    status: TaskStatus
    progress: int
    start_at: datetime
    deadline: datetime
    attachments: tuple[FileDescriptor, ...] = ()
    review_notes: tuple[ReviewNote, ...] = ()
    reward_amount: Optional[Decimal] = None
    penalty_amount: Optional[Decimal] = None
    payment_reference: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.NONE
    payment_error: Optional[str] = None
    accepted_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_department_task(self) -> bool:
        return self.assignee_id is None

    @property
    def settlement_reference(self) -> Optional[str]:
        """Stored reference only if it has the on-chain hash shape."""
        return normalize_transaction_reference(self.payment_reference)


@dataclass(frozen=True)
class TaskFilter:
    status: Optional[TaskStatus] = None
    assignee_id: Optional[str] = None
    department_id: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    payment_status: Optional[PaymentStatus] = None
    unclaimed_only: bool = False

    def cache_key(self) -> tuple:
        return (
            self.status,
            self.assignee_id,
            self.department_id,
            self.difficulty,
            self.payment_status,
            self.unclaimed_only,
        )


@dataclass(frozen=True)
class TaskStats:
    by_status: dict
    total_rewarded: Decimal
    failed_payments: int
