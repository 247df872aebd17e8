"""Reward policy: difficulty tier x timeliness -> payout.

Rules:
- On time means completed at or before the deadline instant (date and time of day).
- Late work earns half of the base reward; there is no monetary fine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Union

from ..core.enums import Difficulty
from ..core.exceptions import ConfigurationError

BASE_REWARD: dict[Difficulty, Decimal] = {
    Difficulty.EASY: Decimal("5"),
    Difficulty.MEDIUM: Decimal("15"),
    Difficulty.HARD: Decimal("20"),
}
LATE_FACTOR = Decimal("0.5")


@dataclass(frozen=True)
class RewardDecision:
    reward: Decimal
    penalty: Decimal
    on_time: bool


def _as_difficulty(difficulty: Union[Difficulty, str]) -> Difficulty:
    if isinstance(difficulty, Difficulty):
        return difficulty
    try:
        return Difficulty(difficulty)
    except ValueError:
        raise ConfigurationError(f"Unknown difficulty tier: {difficulty!r}")


def is_on_time(completed_at: datetime, deadline: datetime) -> bool:
    return completed_at <= deadline


def payout(difficulty: Union[Difficulty, str], on_time: bool) -> Decimal:
    tier = _as_difficulty(difficulty)
    base = BASE_REWARD.get(tier)
    if base is None:
        raise ConfigurationError(f"No reward configured for tier {tier.value}")
    return base if on_time else base * LATE_FACTOR


def evaluate(difficulty: Union[Difficulty, str], *, deadline: datetime, completed_at: datetime) -> RewardDecision:
    on_time = is_on_time(completed_at, deadline)
    return RewardDecision(reward=payout(difficulty, on_time), penalty=Decimal("0"), on_time=on_time)
