from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.payments import AttendancePayments
from .attendance.query_service import AttendanceQueryService
from .attendance.service import AttendanceService
from .common.snapshots import SnapshotCache
from .core import constants
from .database.connection import DBConfig, DatabaseConnection
from .events.publisher import InProcessEventBus
from .locking.mysql_lock_repository import MySQLEntityLockRepository
from .locking.service import EntityLocks
from .missed_checkout.service import MissedCheckoutService
from .payroll.calculator.hourly_calculator import HourlyWageCalculator
from .settlement.gateway import SettlementGateway
from .settlement.mysql_settlement_repository import MySQLSettlementRepository
from .settlement.transport import HttpSettlementTransport
from .tasks.mysql_task_repository import MySQLTaskRepository
from .tasks.query_service import TaskQueryService
from .tasks.service import TaskService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    explorer_host: str

    tasks_repo: MySQLTaskRepository
    attendance_repo: MySQLAttendanceRepository
    settlements_repo: MySQLSettlementRepository
    locks_repo: MySQLEntityLockRepository

    events: InProcessEventBus
    gateway: SettlementGateway

    task_service: TaskService
    task_query_service: TaskQueryService
    attendance_service: AttendanceService
    attendance_query_service: AttendanceQueryService
    missed_checkout_service: MissedCheckoutService


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    def setting(name: str, default):
        return getattr(settings, name, default) if settings is not None else default

    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    tasks_repo = MySQLTaskRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    settlements_repo = MySQLSettlementRepository(conn)
    locks_repo = MySQLEntityLockRepository(conn)

    events = InProcessEventBus()
    locks = EntityLocks(locks_repo, ttl_seconds=int(setting("LOCK_TTL_SECONDS", constants.DEFAULT_LOCK_TTL_SECONDS)))
    transport = HttpSettlementTransport(
        setting("SETTLEMENT_GATEWAY_URL", ""),
        api_token=setting("SETTLEMENT_API_TOKEN", "") or None,
        token_decimals=int(setting("TOKEN_DECIMALS", constants.DEFAULT_TOKEN_DECIMALS)),
        timeout=float(setting("SETTLEMENT_TIMEOUT_SECONDS", constants.DEFAULT_SETTLEMENT_TIMEOUT_SECONDS)),
    )
    gateway = SettlementGateway(settlements_repo, transport)
    calculator = HourlyWageCalculator(
        rate=Decimal(str(setting("HOURLY_RATE", constants.DEFAULT_HOURLY_RATE))),
        max_paid_hours=Decimal(str(setting("MAX_PAID_HOURS", constants.DEFAULT_MAX_PAID_HOURS))),
    )
    payments = AttendancePayments(attendance_repo, gateway, locks)

    task_service = TaskService(
        tasks_repo,
        gateway,
        locks,
        events,
        completion_threshold=int(setting("COMPLETION_THRESHOLD", constants.DEFAULT_COMPLETION_THRESHOLD)),
        auto_approve_minutes=int(setting("AUTO_APPROVE_MINUTES", constants.DEFAULT_AUTO_APPROVE_MINUTES)),
    )
    snapshots = SnapshotCache()
    task_query_service = TaskQueryService(tasks_repo, snapshots)
    attendance_service = AttendanceService(attendance_repo, payments, calculator=calculator)
    attendance_query_service = AttendanceQueryService(attendance_repo, snapshots)
    missed_checkout_service = MissedCheckoutService(attendance_repo, payments, events, calculator=calculator)

    return Container(
        conn=conn,
        explorer_host=str(setting("EXPLORER_HOST", constants.DEFAULT_EXPLORER_HOST)),
        tasks_repo=tasks_repo,
        attendance_repo=attendance_repo,
        settlements_repo=settlements_repo,
        locks_repo=locks_repo,
        events=events,
        gateway=gateway,
        task_service=task_service,
        task_query_service=task_query_service,
        attendance_service=attendance_service,
        attendance_query_service=attendance_query_service,
        missed_checkout_service=missed_checkout_service,
    )
