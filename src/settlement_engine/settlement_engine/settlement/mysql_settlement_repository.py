from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..core.enums import PaymentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, to_decimal
from .model import SettlementRecord
from .repository import SettlementRepository


class MySQLSettlementRepository(SettlementRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, idempotency_key: str) -> Optional[SettlementRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT idempotency_key, amount, recipient, status, transaction_reference,
                       error, attempts, created_at, updated_at
                FROM settlements
                WHERE idempotency_key=%s
                """,
                (idempotency_key,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return SettlementRecord(
                idempotency_key=r["idempotency_key"],
                amount=to_decimal(r["amount"]),
                recipient=r["recipient"],
                status=PaymentStatus(r["status"]),
                transaction_reference=r.get("transaction_reference"),
                error=r.get("error"),
                attempts=int(r.get("attempts") or 0),
                created_at=r.get("created_at"),
                updated_at=r.get("updated_at"),
            )

    def reserve(self, *, idempotency_key: str, amount: Decimal, recipient: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO settlements(idempotency_key, amount, recipient, status, attempts)
                VALUES(%s,%s,%s,%s,1)
                """,
                (idempotency_key, amount, recipient, PaymentStatus.PENDING.value),
            )
            if cur.rowcount == 1:
                return True

            # Only a failed attempt may be taken over again.
            cur.execute(
                """
                UPDATE settlements
                SET status=%s, amount=%s, recipient=%s, error=NULL, attempts=attempts+1
                WHERE idempotency_key=%s AND status=%s
                """,
                (
                    PaymentStatus.PENDING.value,
                    amount,
                    recipient,
                    idempotency_key,
                    PaymentStatus.FAILED.value,
                ),
            )
            return cur.rowcount == 1

    def mark_completed(self, *, idempotency_key: str, transaction_reference: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE settlements
                SET status=%s, transaction_reference=%s, error=NULL
                WHERE idempotency_key=%s AND status=%s AND transaction_reference IS NULL
                """,
                (
                    PaymentStatus.COMPLETED.value,
                    transaction_reference,
                    idempotency_key,
                    PaymentStatus.PENDING.value,
                ),
            )
            return cur.rowcount == 1

    def mark_failed(self, *, idempotency_key: str, error: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE settlements
                SET status=%s, error=%s
                WHERE idempotency_key=%s AND status=%s
                """,
                (PaymentStatus.FAILED.value, error[:1000], idempotency_key, PaymentStatus.PENDING.value),
            )
            return cur.rowcount == 1
