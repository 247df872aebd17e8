from __future__ import annotations

import logging

from ..core.enums import EntityType, PaymentStatus
from ..core.exceptions import AlreadyProcessing, InvalidTransition, NotFound, SettlementFailure
from ..locking.service import EntityLocks
from ..settlement.gateway import SettlementGateway
from ..settlement.references import idempotency_key
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendancePayments:
    """Pays the wage of an attendance record whose payment status is pending.

    Shared by checkout and missed-checkout approval; both use the same
    per-record key, so a record is paid at most once.
    """

    def __init__(self, records: AttendanceRepository, gateway: SettlementGateway, locks: EntityLocks):
        self._records = records
        self._gateway = gateway
        self._locks = locks

    def _require(self, record_id: str) -> AttendanceRecord:
        record = self._records.get(record_id)
        if not record:
            raise NotFound(f"Attendance record {record_id} does not exist")
        return record

    def settle(self, record_id: str) -> AttendanceRecord:
        record = self._require(record_id)
        if record.payment_status != PaymentStatus.PENDING:
            return record

        key = idempotency_key(EntityType.ATTENDANCE, record_id)
        try:
            result = self._gateway.settle(key, record.wage, record.employee_id)
        except SettlementFailure as e:
            logger.error("Wage payment for record %s failed: %s", record_id, e)
            self._records.record_payment(
                record_id=record_id, expected=PaymentStatus.PENDING, status=PaymentStatus.FAILED, error=str(e)
            )
        else:
            if result.status == PaymentStatus.COMPLETED:
                self._records.record_payment(
                    record_id=record_id,
                    expected=PaymentStatus.PENDING,
                    status=PaymentStatus.COMPLETED,
                    reference=result.transaction_reference,
                )
            else:
                logger.warning("Wage payment for record %s still %s in the ledger", record_id, result.status.value)
        return self._require(record_id)

    def retry(self, record_id: str) -> AttendanceRecord:
        """Re-pay a failed wage, or finish one left pending after the ledger settled."""
        with self._locks.hold(EntityType.ATTENDANCE, record_id):
            record = self._require(record_id)
            if record.payment_status not in (PaymentStatus.FAILED, PaymentStatus.PENDING):
                raise InvalidTransition(
                    f"Only failed or unfinished wage payments can be retried (payment {record.payment_status.value})"
                )
            if record.payment_status == PaymentStatus.PENDING:
                row = self._gateway.get(idempotency_key(EntityType.ATTENDANCE, record_id))
                if row is not None and row.status == PaymentStatus.PENDING:
                    raise AlreadyProcessing(f"Settlement of record {record_id} is still in flight")
            elif not self._records.record_payment(
                record_id=record_id, expected=PaymentStatus.FAILED, status=PaymentStatus.PENDING
            ):
                raise AlreadyProcessing(f"Payment of record {record_id} is already being retried")
        logger.info("Retrying wage payment for record %s (was %s)", record_id, record.payment_status.value)
        return self.settle(record_id)
