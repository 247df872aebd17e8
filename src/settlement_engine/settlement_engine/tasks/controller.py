from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..common.http import json_body, to_jsonable
from ..container import Container
from ..core.constants import DEFAULT_EXPLORER_HOST
from ..core.enums import Difficulty, PaymentStatus, TaskStatus
from ..core.exceptions import InvalidArgument
from ..settlement.references import explorer_link
from .model import Task, TaskFilter


def task_to_dict(task: Task, *, explorer_host: str = DEFAULT_EXPLORER_HOST) -> dict:
    reference = task.settlement_reference
    return to_jsonable(
        {
            "task_id": task.task_id,
            "title": task.title,
            "description": task.description,
            "assigner_id": task.assigner_id,
            "assignee_id": task.assignee_id,
            "department_id": task.department_id,
            "priority": task.priority,
            "difficulty": task.difficulty,
            "status": task.status,
            "progress": task.progress,
            "start_at": task.start_at,
            "deadline": task.deadline,
            "attachments": [
                {
                    "file_name": a.file_name,
                    "file_uri": a.file_uri,
                    "file_type": a.file_type,
                    "file_size": a.file_size,
                    "uploaded_by": a.uploaded_by,
                    "uploader_role": a.uploader_role,
                    "uploaded_at": a.uploaded_at,
                }
                for a in task.attachments
            ],
            "review_notes": [
                {"author_id": n.author_id, "content": n.content, "created_at": n.created_at}
                for n in task.review_notes
            ],
            "reward_amount": task.reward_amount,
            "penalty_amount": task.penalty_amount,
            "payment_status": task.payment_status,
            "payment_reference": reference,
            "payment_error": task.payment_error,
            "explorer_url": explorer_link(reference, explorer_host),
            "submitted_at": task.submitted_at,
            "completed_at": task.completed_at,
        }
    )


def _enum_arg(enum_cls, value):
    if value in (None, ""):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgument(f"Unknown {enum_cls.__name__}: {value!r}")


def register(app: Flask, container: Container) -> None:
    service = container.task_service
    queries = container.task_query_service
    host = container.explorer_host

    def _out(task: Task):
        return jsonify(task_to_dict(task, explorer_host=host))

    @app.route("/tasks", methods=["GET"], endpoint="list_tasks")
    def list_tasks():
        task_filter = TaskFilter(
            status=_enum_arg(TaskStatus, request.args.get("status")),
            assignee_id=request.args.get("assignee_id") or None,
            department_id=request.args.get("department_id") or None,
            difficulty=_enum_arg(Difficulty, request.args.get("difficulty")),
            payment_status=_enum_arg(PaymentStatus, request.args.get("payment_status")),
            unclaimed_only=request.args.get("unclaimed") == "1",
        )
        tasks = queries.list_tasks(
            task_filter,
            limit=request.args.get("limit", default=200, type=int),
            offset=request.args.get("offset", default=0, type=int),
        )
        return jsonify([task_to_dict(t, explorer_host=host) for t in tasks])

    @app.route("/tasks/stats", methods=["GET"], endpoint="task_stats")
    def task_stats():
        stats = queries.stats()
        return jsonify(
            to_jsonable(
                {
                    "by_status": stats.by_status,
                    "total_rewarded": stats.total_rewarded,
                    "failed_payments": stats.failed_payments,
                }
            )
        )

    @app.route("/tasks/<task_id>", methods=["GET"], endpoint="get_task")
    def get_task(task_id: str):
        return _out(queries.get_task(task_id))

    @app.route("/tasks", methods=["POST"], endpoint="create_task")
    def create_task():
        body = json_body()
        deadline_raw = body.get("deadline") or ""
        deadline = parse_iso_datetime(deadline_raw) if "T" in deadline_raw else parse_iso_date(deadline_raw)
        deadline_time = None
        if body.get("deadline_time"):
            deadline_time = parse_iso_datetime(f"2000-01-01T{body['deadline_time']}").time()
        task = service.create_task(
            title=body.get("title") or "",
            description=body.get("description"),
            difficulty=body.get("difficulty") or "",
            priority=body.get("priority") or "Medium",
            deadline=deadline,
            deadline_time=deadline_time,
            start_at=parse_iso_datetime(body["start_at"]) if body.get("start_at") else None,
            assignee_id=body.get("assignee_id") or None,
            department_id=body.get("department_id") or None,
            assigner_id=body.get("admin_id"),
            attachments=body.get("attachments") or [],
        )
        return jsonify(task_to_dict(task, explorer_host=host)), 201

    @app.route("/tasks/<task_id>/start", methods=["POST"], endpoint="start_task")
    def start_task(task_id: str):
        return _out(service.start(task_id, json_body().get("employee_id") or ""))

    @app.route("/tasks/<task_id>/claim", methods=["POST"], endpoint="claim_task")
    def claim_task(task_id: str):
        body = json_body()
        return _out(service.claim(task_id, body.get("employee_id") or "", body.get("department_id")))

    @app.route("/tasks/<task_id>/progress", methods=["POST"], endpoint="update_task_progress")
    def update_task_progress(task_id: str):
        body = json_body()
        return _out(
            service.update_progress(
                task_id, body.get("employee_id") or "", body.get("progress"), body.get("attachments") or []
            )
        )

    @app.route("/tasks/<task_id>/submit", methods=["POST"], endpoint="submit_task")
    def submit_task(task_id: str):
        body = json_body()
        return _out(
            service.submit_for_review(
                task_id,
                body.get("progress"),
                body.get("attachments") or [],
                employee_id=body.get("employee_id"),
            )
        )

    @app.route("/tasks/<task_id>/approve", methods=["POST"], endpoint="approve_task")
    def approve_task(task_id: str):
        return _out(service.approve(task_id, admin_id=json_body().get("admin_id")))

    @app.route("/tasks/<task_id>/reject", methods=["POST"], endpoint="reject_task")
    def reject_task(task_id: str):
        body = json_body()
        return _out(
            service.reject(task_id, body.get("reason") or "", body.get("progress", 0), admin_id=body.get("admin_id"))
        )

    @app.route("/tasks/<task_id>/pause", methods=["POST"], endpoint="pause_task")
    def pause_task(task_id: str):
        return _out(service.pause(task_id))

    @app.route("/tasks/<task_id>/resume", methods=["POST"], endpoint="resume_task")
    def resume_task(task_id: str):
        return _out(service.resume(task_id))

    @app.route("/tasks/<task_id>/cancel", methods=["POST"], endpoint="cancel_task")
    def cancel_task(task_id: str):
        return _out(service.cancel(task_id))

    @app.route("/tasks/<task_id>/retry-payment", methods=["POST"], endpoint="retry_task_payment")
    def retry_task_payment(task_id: str):
        return _out(service.retry_payment(task_id))

    @app.route("/tasks/auto-approve", methods=["POST"], endpoint="auto_approve_tasks")
    def auto_approve_tasks():
        approved = service.auto_approve_stale()
        return jsonify([task_to_dict(t, explorer_host=host) for t in approved])
