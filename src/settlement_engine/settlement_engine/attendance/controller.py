from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import json_body, to_jsonable
from ..container import Container
from ..core.enums import AdjudicationStatus, AttendanceStatus, PaymentStatus
from ..core.exceptions import InvalidArgument
from ..settlement.references import explorer_link
from .model import AttendanceFilter, AttendanceRecord


def record_to_dict(record: AttendanceRecord, *, explorer_host: str) -> dict:
    reference = record.settlement_reference
    return to_jsonable(
        {
            "record_id": record.record_id,
            "employee_id": record.employee_id,
            "work_date": record.work_date,
            "check_in": record.check_in,
            "check_out": record.check_out,
            "status": record.status,
            "total_hours": record.total_hours,
            "wage": record.wage,
            "leave_type": record.leave_type,
            "missed_checkout_reported": record.missed_checkout_reported,
            "adjudication_status": record.adjudication_status,
            "declared_hours": record.declared_hours,
            "confirmed_hours": record.confirmed_hours,
            "admin_note": record.admin_note,
            "evidence_urls": list(record.evidence_urls),
            "missed_checkout_description": record.missed_checkout_description,
            "adjudicated_by": record.adjudicated_by,
            "adjudicated_at": record.adjudicated_at,
            "payment_status": record.payment_status,
            "payment_reference": reference,
            "payment_error": record.payment_error,
            "explorer_url": explorer_link(reference, explorer_host),
        }
    )


def _optional_date(value):
    return parse_iso_date(value) if value else None


def _enum_arg(enum_cls, value):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgument(f"Unknown {enum_cls.__name__}: {value!r}")


def register(app: Flask, container: Container) -> None:
    attendance = container.attendance_service
    missed = container.missed_checkout_service
    queries = container.attendance_query_service
    host = container.explorer_host

    def _out(record: AttendanceRecord):
        return jsonify(record_to_dict(record, explorer_host=host))

    @app.route("/attendance", methods=["GET"], endpoint="list_attendance")
    def list_attendance():
        record_filter = AttendanceFilter(
            employee_id=request.args.get("employee_id") or None,
            status=_enum_arg(AttendanceStatus, request.args.get("status")),
            adjudication_status=_enum_arg(AdjudicationStatus, request.args.get("adjudication_status")),
            payment_status=_enum_arg(PaymentStatus, request.args.get("payment_status")),
        )
        records = queries.list_attendance(
            _optional_date(request.args.get("from")),
            _optional_date(request.args.get("to")),
            record_filter,
            limit=request.args.get("limit", default=200, type=int),
            offset=request.args.get("offset", default=0, type=int),
        )
        return jsonify([record_to_dict(r, explorer_host=host) for r in records])

    @app.route("/attendance/check-in", methods=["POST"], endpoint="check_in")
    def check_in():
        body = json_body()
        record = attendance.check_in(body.get("employee_id") or "", _optional_date(body.get("day")))
        return jsonify(record_to_dict(record, explorer_host=host)), 201

    @app.route("/attendance/<record_id>/check-out", methods=["POST"], endpoint="check_out")
    def check_out(record_id: str):
        return _out(attendance.check_out(record_id))

    @app.route("/attendance/close-day", methods=["POST"], endpoint="close_day")
    def close_day():
        day = parse_iso_date(json_body().get("day") or "")
        return jsonify([record_to_dict(r, explorer_host=host) for r in attendance.close_day(day)])

    @app.route("/attendance/leave", methods=["POST"], endpoint="record_leave")
    def record_leave():
        body = json_body()
        record = attendance.record_leave(
            body.get("employee_id") or "", parse_iso_date(body.get("day") or ""), body.get("leave_type")
        )
        return _out(record)

    @app.route("/attendance/day-status", methods=["GET"], endpoint="day_status")
    def day_status():
        status = attendance.day_status(
            request.args.get("employee_id") or "", parse_iso_date(request.args.get("day") or "")
        )
        return jsonify(
            to_jsonable(
                {
                    "employee_id": status.employee_id,
                    "work_date": status.work_date,
                    "status": status.status,
                    "leave_type": status.leave_type,
                    "label": status.label,
                }
            )
        )

    @app.route("/attendance/<record_id>/retry-payment", methods=["POST"], endpoint="retry_wage_payment")
    def retry_wage_payment(record_id: str):
        return _out(attendance.retry_payment(record_id))

    @app.route("/attendance/<record_id>/missed-checkout", methods=["POST"], endpoint="report_missed_checkout")
    def report_missed_checkout(record_id: str):
        body = json_body()
        return _out(
            missed.report(
                record_id,
                body.get("declared_hours"),
                body.get("description"),
                body.get("evidence_urls") or [],
            )
        )

    @app.route("/attendance/<record_id>/missed-checkout/decision", methods=["POST"], endpoint="decide_missed_checkout")
    def decide_missed_checkout(record_id: str):
        body = json_body()
        return _out(
            missed.decide(
                record_id,
                body.get("action") or "",
                body.get("admin_note"),
                body.get("confirmed_hours"),
                admin_id=body.get("admin_id"),
            )
        )

    @app.route("/attendance/missed-checkout/pending", methods=["GET"], endpoint="pending_missed_checkouts")
    def pending_missed_checkouts():
        return jsonify([record_to_dict(r, explorer_host=host) for r in missed.list_pending()])
