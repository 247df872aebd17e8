from __future__ import annotations

from ..core.enums import EntityType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor
from .repository import EntityLockRepository


class MySQLEntityLockRepository(EntityLockRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def acquire(self, *, entity_type: EntityType, entity_id: str, owner: str, ttl_seconds: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            # Expired holders (crashed workers) do not block forever.
            cur.execute(
                """
                DELETE FROM entity_locks
                WHERE entity_type=%s AND entity_id=%s AND expires_at < NOW()
                """,
                (entity_type.value, str(entity_id)),
            )
            cur.execute(
                """
                INSERT IGNORE INTO entity_locks(entity_type, entity_id, owner, expires_at)
                VALUES(%s,%s,%s, NOW() + INTERVAL %s SECOND)
                """,
                (entity_type.value, str(entity_id), owner, int(ttl_seconds)),
            )
            return cur.rowcount == 1

    def release(self, *, entity_type: EntityType, entity_id: str, owner: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                DELETE FROM entity_locks
                WHERE entity_type=%s AND entity_id=%s AND owner=%s
                """,
                (entity_type.value, str(entity_id), owner),
            )
            return cur.rowcount == 1
