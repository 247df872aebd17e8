from datetime import datetime
from decimal import Decimal

from src.settlement_engine.settlement_engine.events.model import TaskApproved, TaskRejected
from src.settlement_engine.settlement_engine.events.publisher import InProcessEventBus


def _approved():
    return TaskApproved(
        entity_id="t-1",
        status="Completed",
        amount_delta=Decimal("15"),
        occurred_at=datetime(2024, 6, 1, 17, 0),
        payment_status="completed",
    )


def test_subscribers_receive_matching_events_only():
    bus = InProcessEventBus()
    approved, everything = [], []
    bus.subscribe("taskApproved", approved.append)
    bus.subscribe_all(everything.append)

    bus.publish(_approved())
    bus.publish(TaskRejected(entity_id="t-2", status="InProgress", amount_delta=Decimal("0"), occurred_at=datetime(2024, 6, 1)))

    assert [e.entity_id for e in approved] == ["t-1"]
    assert [e.name for e in everything] == ["taskApproved", "taskRejected"]


def test_failing_subscriber_does_not_break_publish():
    bus = InProcessEventBus()
    received = []

    def broken(event):
        raise RuntimeError("webhook down")

    bus.subscribe("taskApproved", broken)
    bus.subscribe("taskApproved", received.append)

    bus.publish(_approved())

    assert len(received) == 1


def test_event_to_dict():
    data = _approved().to_dict()
    assert data["event"] == "taskApproved"
    assert data["amount_delta"] == "15"
    assert data["occurred_at"] == "2024-06-01T17:00:00"
