from __future__ import annotations

from typing import Optional, Sequence

from ..common.snapshots import SnapshotCache
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.exceptions import InvalidArgument, NotFound
from .model import Task, TaskFilter, TaskStats
from .repository import TaskRepository


class TaskQueryService:
    """Read-only views. No locks; last-known snapshot when the read path is down."""

    def __init__(self, tasks: TaskRepository, snapshots: Optional[SnapshotCache] = None):
        self._tasks = tasks
        self._snapshots = snapshots or SnapshotCache()

    def list_tasks(
        self,
        task_filter: Optional[TaskFilter] = None,
        *,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> Sequence[Task]:
        if limit <= 0 or offset < 0:
            raise InvalidArgument("limit must be positive and offset non-negative")
        task_filter = task_filter or TaskFilter()
        key = ("tasks", task_filter.cache_key(), int(limit), int(offset))
        return self._snapshots.fetch(
            key, lambda: list(self._tasks.list_tasks(task_filter, limit=int(limit), offset=int(offset)))
        )

    def get_task(self, task_id: str) -> Task:
        task = self._snapshots.fetch(("task", task_id), lambda: self._tasks.get(task_id))
        if not task:
            raise NotFound(f"Task {task_id} does not exist")
        return task

    def stats(self) -> TaskStats:
        return self._snapshots.fetch(("task-stats",), self._tasks.stats)
