from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..core.enums import Difficulty, PaymentStatus, Priority, Role, TaskStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, read_cursor, to_decimal
from .model import FileDescriptor, ReviewNote, Task, TaskFilter, TaskStats
from .repository import TaskRepository
from .transitions import CLAIMABLE

_TASK_COLUMNS = """
    task_id, title, description, assigner_id, assignee_id, department_id,
    priority, difficulty, status, progress, start_at, deadline,
    reward_amount, penalty_amount, payment_reference, payment_status, payment_error,
    accepted_at, submitted_at, completed_at, created_at, updated_at
"""


def _row_to_task(r: dict, attachments=(), notes=()) -> Task:
    return Task(
        task_id=r["task_id"],
        title=r["title"],
        description=r.get("description"),
        assigner_id=r.get("assigner_id"),
        assignee_id=r.get("assignee_id"),
        department_id=r.get("department_id"),
        priority=Priority(r["priority"]),
        difficulty=Difficulty(r["difficulty"]),
        status=TaskStatus(r["status"]),
        progress=int(r.get("progress") or 0),
        start_at=r["start_at"],
        deadline=r["deadline"],
        attachments=tuple(attachments),
        review_notes=tuple(notes),
        reward_amount=to_decimal(r.get("reward_amount")),
        penalty_amount=to_decimal(r.get("penalty_amount")),
        payment_reference=r.get("payment_reference"),
        payment_status=PaymentStatus(r.get("payment_status") or PaymentStatus.NONE.value),
        payment_error=r.get("payment_error"),
        accepted_at=r.get("accepted_at"),
        submitted_at=r.get("submitted_at"),
        completed_at=r.get("completed_at"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _in_clause(values: Iterable) -> tuple[str, list]:
    vals = [v.value if hasattr(v, "value") else v for v in values]
    return ",".join(["%s"] * len(vals)), vals


class MySQLTaskRepository(TaskRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Reads --------
    def _load_children(self, cur, task_id: str) -> tuple[list[FileDescriptor], list[ReviewNote]]:
        cur.execute(
            """
            SELECT file_name, file_uri, file_type, file_size, uploaded_by, uploader_role, uploaded_at
            FROM task_attachments
            WHERE task_id=%s
            ORDER BY attachment_id
            """,
            (task_id,),
        )
        attachments = [
            FileDescriptor(
                file_name=a["file_name"],
                file_uri=a["file_uri"],
                file_type=a.get("file_type") or "application/octet-stream",
                file_size=int(a.get("file_size") or 0),
                uploaded_by=a.get("uploaded_by"),
                uploader_role=Role(a.get("uploader_role") or Role.EMPLOYEE.value),
                uploaded_at=a.get("uploaded_at"),
            )
            for a in fetchall(cur)
        ]
        cur.execute(
            """
            SELECT author_id, content, created_at
            FROM task_review_notes
            WHERE task_id=%s
            ORDER BY note_id
            """,
            (task_id,),
        )
        notes = [
            ReviewNote(author_id=n.get("author_id"), content=n["content"], created_at=n["created_at"])
            for n in fetchall(cur)
        ]
        return attachments, notes

    def get(self, task_id: str) -> Optional[Task]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id=%s", (task_id,))
            r = fetchone(cur)
            if not r:
                return None
            attachments, notes = self._load_children(cur, task_id)
            return _row_to_task(r, attachments, notes)

    def list_tasks(self, task_filter: TaskFilter, *, limit: int, offset: int = 0) -> Sequence[Task]:
        clauses = ["1=1"]
        params: list[object] = []

        if task_filter.status is not None:
            clauses.append("status=%s")
            params.append(task_filter.status.value)
        if task_filter.assignee_id is not None:
            clauses.append("assignee_id=%s")
            params.append(task_filter.assignee_id)
        if task_filter.department_id is not None:
            clauses.append("department_id=%s")
            params.append(task_filter.department_id)
        if task_filter.difficulty is not None:
            clauses.append("difficulty=%s")
            params.append(task_filter.difficulty.value)
        if task_filter.payment_status is not None:
            clauses.append("payment_status=%s")
            params.append(task_filter.payment_status.value)
        if task_filter.unclaimed_only:
            clauses.append("assignee_id IS NULL")

        where = " AND ".join(clauses)

        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TASK_COLUMNS}
                FROM tasks
                WHERE {where}
                ORDER BY deadline ASC, created_at DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params + [int(limit), int(offset)]),
            )
            return [_row_to_task(r) for r in fetchall(cur)]

    def list_pending_review_before(self, cutoff: datetime) -> Sequence[Task]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TASK_COLUMNS}
                FROM tasks
                WHERE status=%s AND submitted_at IS NOT NULL AND submitted_at <= %s
                ORDER BY submitted_at ASC
                """,
                (TaskStatus.PENDING_REVIEW.value, cutoff),
            )
            return [_row_to_task(r) for r in fetchall(cur)]

    def stats(self) -> TaskStats:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT status, COUNT(*) AS c FROM tasks GROUP BY status")
            by_status = {r["status"]: int(r["c"]) for r in fetchall(cur)}
            cur.execute(
                """
                SELECT
                    COALESCE(SUM(CASE WHEN payment_status=%s THEN reward_amount ELSE 0 END), 0) AS rewarded,
                    COALESCE(SUM(CASE WHEN payment_status=%s THEN 1 ELSE 0 END), 0) AS failed
                FROM tasks
                """,
                (PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value),
            )
            r = fetchone(cur) or {}
            return TaskStats(
                by_status=by_status,
                total_rewarded=to_decimal(r.get("rewarded")) or Decimal("0"),
                failed_payments=int(r.get("failed") or 0),
            )

    # -------- Writes --------
    def _insert_attachments(self, cur, task_id: str, attachments: Sequence[FileDescriptor]) -> None:
        for a in attachments:
            cur.execute(
                """
                INSERT INTO task_attachments(
                    task_id, file_name, file_uri, file_type, file_size, uploaded_by, uploader_role, uploaded_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,COALESCE(%s, NOW()))
                """,
                (
                    task_id,
                    a.file_name,
                    a.file_uri,
                    a.file_type,
                    int(a.file_size),
                    a.uploaded_by,
                    a.uploader_role.value,
                    a.uploaded_at,
                ),
            )

    def create(self, task: Task) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO tasks(
                    task_id, title, description, assigner_id, assignee_id, department_id,
                    priority, difficulty, status, progress, start_at, deadline, payment_status
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    task.task_id,
                    task.title,
                    task.description,
                    task.assigner_id,
                    task.assignee_id,
                    task.department_id,
                    task.priority.value,
                    task.difficulty.value,
                    task.status.value,
                    int(task.progress),
                    task.start_at,
                    task.deadline,
                    task.payment_status.value,
                ),
            )
            self._insert_attachments(cur, task.task_id, task.attachments)

    def update_status(
        self,
        *,
        task_id: str,
        expected: Iterable[TaskStatus],
        status: TaskStatus,
        progress: Optional[int] = None,
        accepted_at: Optional[datetime] = None,
    ) -> bool:
        placeholders, values = _in_clause(expected)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE tasks
                SET status=%s,
                    progress=COALESCE(%s, progress),
                    accepted_at=COALESCE(accepted_at, %s)
                WHERE task_id=%s AND status IN ({placeholders})
                """,
                tuple([status.value, progress, accepted_at, task_id] + values),
            )
            return cur.rowcount == 1

    def claim(self, *, task_id: str, employee_id: str, accepted_at: datetime) -> bool:
        placeholders, values = _in_clause(CLAIMABLE)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE tasks
                SET assignee_id=%s, status=%s, accepted_at=%s
                WHERE task_id=%s AND assignee_id IS NULL AND status IN ({placeholders})
                """,
                tuple([employee_id, TaskStatus.IN_PROGRESS.value, accepted_at, task_id] + values),
            )
            return cur.rowcount == 1

    def update_progress(
        self,
        *,
        task_id: str,
        progress: int,
        attachments: Sequence[FileDescriptor],
        submitted_at: Optional[datetime] = None,
        status: TaskStatus = TaskStatus.IN_PROGRESS,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE tasks
                SET progress=%s, status=%s, submitted_at=COALESCE(%s, submitted_at)
                WHERE task_id=%s AND status=%s
                """,
                (int(progress), status.value, submitted_at, task_id, TaskStatus.IN_PROGRESS.value),
            )
            if cur.rowcount != 1:
                return False
            self._insert_attachments(cur, task_id, attachments)
            return True

    def mark_completed(
        self,
        *,
        task_id: str,
        reward: Decimal,
        penalty: Decimal,
        completed_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE tasks
                SET status=%s, progress=100, reward_amount=%s, penalty_amount=%s,
                    completed_at=%s, payment_status=%s, payment_error=NULL
                WHERE task_id=%s AND status=%s
                """,
                (
                    TaskStatus.COMPLETED.value,
                    reward,
                    penalty,
                    completed_at,
                    PaymentStatus.PENDING.value,
                    task_id,
                    TaskStatus.PENDING_REVIEW.value,
                ),
            )
            return cur.rowcount == 1

    def record_payment(
        self,
        *,
        task_id: str,
        expected: PaymentStatus,
        status: PaymentStatus,
        reference: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE tasks
                SET payment_status=%s,
                    payment_reference=COALESCE(payment_reference, %s),
                    payment_error=%s
                WHERE task_id=%s AND payment_status=%s
                """,
                (status.value, reference, (error or None) and error[:1000], task_id, expected.value),
            )
            return cur.rowcount == 1

    def add_review_note(self, *, task_id: str, note: ReviewNote) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_review_notes(task_id, author_id, content, created_at)
                VALUES(%s,%s,%s,%s)
                """,
                (task_id, note.author_id, note.content, note.created_at),
            )
