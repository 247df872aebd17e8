from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal


class WageCalculator(ABC):
    """Calculator interface (Strategy Pattern for attendance wages)."""

    @abstractmethod
    def worked_hours(self, check_in: datetime, check_out: datetime) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    def wage(self, hours: Decimal) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    def missed_checkout_wage(self, hours: Decimal) -> Decimal:
        raise NotImplementedError
