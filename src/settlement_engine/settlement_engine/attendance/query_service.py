from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ..common.snapshots import SnapshotCache
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.exceptions import InvalidArgument
from .model import AttendanceFilter, AttendanceRecord
from .repository import AttendanceRepository


class AttendanceQueryService:
    def __init__(self, records: AttendanceRepository, snapshots: Optional[SnapshotCache] = None):
        self._records = records
        self._snapshots = snapshots or SnapshotCache()

    def list_attendance(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        record_filter: Optional[AttendanceFilter] = None,
        *,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> Sequence[AttendanceRecord]:
        if date_from and date_to and date_from > date_to:
            raise InvalidArgument("date_from must not be after date_to")
        if limit <= 0 or offset < 0:
            raise InvalidArgument("limit must be positive and offset non-negative")

        record_filter = replace(record_filter or AttendanceFilter(), date_from=date_from, date_to=date_to)
        key = ("attendance", record_filter.cache_key(), int(limit), int(offset))
        return self._snapshots.fetch(
            key, lambda: list(self._records.list_records(record_filter, limit=int(limit), offset=int(offset)))
        )
