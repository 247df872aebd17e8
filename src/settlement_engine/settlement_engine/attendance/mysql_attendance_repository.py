from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

import mysql.connector

from ..core.enums import AdjudicationStatus, AttendanceStatus, LeaveType, PaymentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, read_cursor, to_decimal
from .model import AttendanceFilter, AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, employee_id, work_date, check_in, check_out, status, total_hours, wage,
    leave_type, missed_checkout_reported, adjudication_status, declared_hours, confirmed_hours,
    admin_note, evidence_urls, missed_checkout_description, adjudicated_by, adjudicated_at,
    payment_reference, payment_status, payment_error, created_at, updated_at
"""


def _row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=r["record_id"],
        employee_id=r["employee_id"],
        work_date=r["work_date"],
        check_in=r.get("check_in"),
        check_out=r.get("check_out"),
        status=AttendanceStatus(r["status"]),
        total_hours=to_decimal(r.get("total_hours")) or Decimal("0"),
        wage=to_decimal(r.get("wage")) or Decimal("0"),
        leave_type=LeaveType(r["leave_type"]) if r.get("leave_type") else None,
        missed_checkout_reported=bool(r.get("missed_checkout_reported")),
        adjudication_status=AdjudicationStatus(r.get("adjudication_status") or AdjudicationStatus.NOT_APPLICABLE.value),
        declared_hours=to_decimal(r.get("declared_hours")),
        confirmed_hours=to_decimal(r.get("confirmed_hours")),
        admin_note=r.get("admin_note"),
        evidence_urls=tuple(load_json(r.get("evidence_urls"), default=[])),
        missed_checkout_description=r.get("missed_checkout_description"),
        adjudicated_by=r.get("adjudicated_by"),
        adjudicated_at=r.get("adjudicated_at"),
        payment_reference=r.get("payment_reference"),
        payment_status=PaymentStatus(r.get("payment_status") or PaymentStatus.NONE.value),
        payment_error=r.get("payment_error"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (record_id,))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def get_for_employee_and_date(self, employee_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE employee_id=%s AND work_date=%s",
                (employee_id, work_date),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def create(self, record: AttendanceRecord) -> bool:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        record_id, employee_id, work_date, check_in, status, leave_type,
                        adjudication_status, payment_status
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.record_id,
                        record.employee_id,
                        record.work_date,
                        record.check_in,
                        record.status.value,
                        record.leave_type.value if record.leave_type else None,
                        record.adjudication_status.value,
                        record.payment_status.value,
                    ),
                )
                return True
        except mysql.connector.IntegrityError:
            # uq_attendance_employee_day
            return False

    def list_records(self, record_filter: AttendanceFilter, *, limit: int, offset: int = 0) -> Sequence[AttendanceRecord]:
        clauses = ["1=1"]
        params: list[object] = []

        if record_filter.employee_id is not None:
            clauses.append("employee_id=%s")
            params.append(record_filter.employee_id)
        if record_filter.status is not None:
            clauses.append("status=%s")
            params.append(record_filter.status.value)
        if record_filter.adjudication_status is not None:
            clauses.append("adjudication_status=%s")
            params.append(record_filter.adjudication_status.value)
        if record_filter.payment_status is not None:
            clauses.append("payment_status=%s")
            params.append(record_filter.payment_status.value)
        if record_filter.date_from is not None:
            clauses.append("work_date >= %s")
            params.append(record_filter.date_from)
        if record_filter.date_to is not None:
            clauses.append("work_date <= %s")
            params.append(record_filter.date_to)

        where = " AND ".join(clauses)

        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY work_date DESC, employee_id ASC
                LIMIT %s OFFSET %s
                """,
                tuple(params + [int(limit), int(offset)]),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_open_for_day(self, work_date: date) -> Sequence[AttendanceRecord]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE work_date=%s AND check_in IS NOT NULL AND check_out IS NULL
                """,
                (work_date,),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_pending_adjudication(self, *, limit: int) -> Sequence[AttendanceRecord]:
        with read_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE adjudication_status=%s
                ORDER BY work_date ASC
                LIMIT %s
                """,
                (AdjudicationStatus.PENDING_APPROVAL.value, int(limit)),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def set_leave(self, *, record_id: str, leave_type: Optional[LeaveType]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET leave_type=%s WHERE record_id=%s AND adjudication_status<>%s",
                (leave_type.value if leave_type else None, record_id, AdjudicationStatus.REJECTED.value),
            )
            return cur.rowcount == 1

    def close_checkout(
        self,
        *,
        record_id: str,
        check_out: datetime,
        hours: Decimal,
        wage: Decimal,
        payment_status: PaymentStatus,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET check_out=%s, total_hours=%s, wage=%s, status=%s, payment_status=%s
                WHERE record_id=%s AND check_in IS NOT NULL AND check_out IS NULL
                  AND adjudication_status=%s
                """,
                (
                    check_out,
                    hours,
                    wage,
                    AttendanceStatus.COMPLETED.value,
                    payment_status.value,
                    record_id,
                    AdjudicationStatus.NOT_APPLICABLE.value,
                ),
            )
            return cur.rowcount == 1

    def report_missed_checkout(
        self,
        *,
        record_id: str,
        declared_hours: Decimal,
        description: Optional[str],
        evidence_urls: Sequence[str],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET missed_checkout_reported=1, adjudication_status=%s, declared_hours=%s,
                    missed_checkout_description=%s, evidence_urls=%s
                WHERE record_id=%s AND check_out IS NULL AND adjudication_status=%s
                """,
                (
                    AdjudicationStatus.PENDING_APPROVAL.value,
                    declared_hours,
                    description,
                    dump_json(list(evidence_urls)),
                    record_id,
                    AdjudicationStatus.NOT_APPLICABLE.value,
                ),
            )
            return cur.rowcount == 1

    def decide_missed_checkout(
        self,
        *,
        record_id: str,
        status: AdjudicationStatus,
        hours: Decimal,
        wage: Decimal,
        confirmed_hours: Optional[Decimal],
        leave_type: Optional[LeaveType],
        admin_note: Optional[str],
        admin_id: Optional[str],
        decided_at: datetime,
        payment_status: PaymentStatus,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET adjudication_status=%s, total_hours=%s, wage=%s, confirmed_hours=%s,
                    leave_type=COALESCE(%s, leave_type), admin_note=%s,
                    adjudicated_by=%s, adjudicated_at=%s, payment_status=%s
                WHERE record_id=%s AND adjudication_status=%s
                """,
                (
                    status.value,
                    hours,
                    wage,
                    confirmed_hours,
                    leave_type.value if leave_type else None,
                    admin_note,
                    admin_id,
                    decided_at,
                    payment_status.value,
                    record_id,
                    AdjudicationStatus.PENDING_APPROVAL.value,
                ),
            )
            return cur.rowcount == 1

    def record_payment(
        self,
        *,
        record_id: str,
        expected: PaymentStatus,
        status: PaymentStatus,
        reference: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET payment_status=%s,
                    payment_reference=COALESCE(payment_reference, %s),
                    payment_error=%s
                WHERE record_id=%s AND payment_status=%s
                """,
                (status.value, reference, (error or None) and error[:1000], record_id, expected.value),
            )
            return cur.rowcount == 1
