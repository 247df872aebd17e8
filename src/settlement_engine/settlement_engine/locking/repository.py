from __future__ import annotations

from typing import Protocol

from ..core.enums import EntityType


class EntityLockRepository(Protocol):
    """Durable per-entity mutual exclusion keyed by (entity type, entity id)."""

    def acquire(self, *, entity_type: EntityType, entity_id: str, owner: str, ttl_seconds: int) -> bool:
        """Take the lock unless a live (non-expired) holder exists."""

        raise NotImplementedError

    def release(self, *, entity_type: EntityType, entity_id: str, owner: str) -> bool:
        """Release only if `owner` still holds it."""

        raise NotImplementedError
