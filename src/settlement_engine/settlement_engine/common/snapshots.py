from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Hashable, TypeVar

from ..core.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache:
    """Keeps the last successful result per query key.

    When the read path raises UpstreamUnavailable, the last snapshot for that
    key is served instead. Without a snapshot the error propagates.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshots: dict[Hashable, Any] = {}

    def fetch(self, key: Hashable, loader: Callable[[], T]) -> T:
        try:
            result = loader()
        except UpstreamUnavailable:
            with self._lock:
                if key in self._snapshots:
                    logger.warning("Serving last-known snapshot for %r", key)
                    return self._snapshots[key]
            raise
        with self._lock:
            self._snapshots[key] = result
        return result

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()
