from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Protocol

from .model import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


class EventPublisher(Protocol):
    def publish(self, event: DomainEvent) -> None:
        raise NotImplementedError


class InProcessEventBus(EventPublisher):
    """Synchronous fan-out to subscribers.

    A failing subscriber is logged and skipped; the mutation that produced the
    event has already been committed.
    """

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        self._handlers["*"].append(handler)

    def publish(self, event: DomainEvent) -> None:
        logger.info("Event %s: %s -> %s (%s)", event.name, event.entity_id, event.status, event.amount_delta)
        for handler in [*self._handlers.get(event.name, []), *self._handlers.get("*", [])]:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s %s", event.name, event.entity_id)
