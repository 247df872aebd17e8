from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Role of the person acting on an entity (used to tag attachments)."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class TaskStatus(str, Enum):
    """Task lifecycle statuses.

    NotStarted -> InProgress -> PendingReview -> Completed, with Paused and
    Cancelled as side exits. Completed and Cancelled are terminal.
    """

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    PENDING_REVIEW = "PendingReview"
    COMPLETED = "Completed"
    PAUSED = "Paused"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class AttendanceStatus(str, Enum):
    """Day status stored with an attendance record."""

    COMPLETED = "Completed"
    SUSPENDED = "Suspended"
    NO_CHECK_IN = "NoCheckIn"


class LeaveType(str, Enum):
    ANNUAL = "annual"
    SICK = "sick"
    MATERNITY = "maternity"
    UNPAID = "unpaid"
    PERSONAL = "personal"


class AdjudicationStatus(str, Enum):
    """Missed-checkout review flow."""

    NOT_APPLICABLE = "NotApplicable"
    PENDING_APPROVAL = "PendingApproval"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class AdjudicationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class EntityType(str, Enum):
    TASK = "task"
    ATTENDANCE = "attendance"
