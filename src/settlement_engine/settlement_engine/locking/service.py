from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

from ..core.constants import DEFAULT_LOCK_TTL_SECONDS
from ..core.enums import EntityType
from ..core.exceptions import AlreadyProcessing
from .repository import EntityLockRepository

logger = logging.getLogger(__name__)


class EntityLocks:
    def __init__(self, locks: EntityLockRepository, *, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS):
        self._locks = locks
        self._ttl_seconds = int(ttl_seconds)

    @contextmanager
    def hold(self, entity_type: EntityType, entity_id: str) -> Iterator[str]:
        """Hold the entity lock for the block; AlreadyProcessing if someone else has it."""

        owner = uuid.uuid4().hex
        if not self._locks.acquire(
            entity_type=entity_type, entity_id=str(entity_id), owner=owner, ttl_seconds=self._ttl_seconds
        ):
            logger.info("Lock contention on %s %s", entity_type.value, entity_id)
            raise AlreadyProcessing(f"{entity_type.value} {entity_id} is already being processed")
        try:
            yield owner
        finally:
            self._locks.release(entity_type=entity_type, entity_id=str(entity_id), owner=owner)
