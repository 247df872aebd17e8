import pytest

from src.settlement_engine.settlement_engine.core.enums import EntityType
from src.settlement_engine.settlement_engine.core.exceptions import AlreadyProcessing
from src.settlement_engine.settlement_engine.locking.service import EntityLocks
from tests.fakes import FakeLockRepo


def test_hold_is_exclusive_and_released():
    repo = FakeLockRepo()
    locks = EntityLocks(repo, ttl_seconds=30)

    with locks.hold(EntityType.TASK, "t-1"):
        with pytest.raises(AlreadyProcessing):
            with locks.hold(EntityType.TASK, "t-1"):
                pass
        with locks.hold(EntityType.ATTENDANCE, "t-1"):
            pass

    assert repo.held == {}


def test_lock_released_when_block_raises():
    repo = FakeLockRepo()
    locks = EntityLocks(repo)

    with pytest.raises(ValueError):
        with locks.hold(EntityType.TASK, "t-1"):
            raise ValueError("inside")

    assert repo.held == {}
