from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ...core.constants import DEFAULT_HOURLY_RATE, DEFAULT_MAX_PAID_HOURS, MISSED_CHECKOUT_PAY_FACTOR
from .base import WageCalculator

_CENTS = Decimal("0.01")


class HourlyWageCalculator(WageCalculator):
    """Hourly rule: (out - in) in hours, capped at max paid hours, 2 dp; wage = hours x rate.

    A missed checkout approved by an admin pays half the rate.
    """

    def __init__(self, *, rate: Decimal = DEFAULT_HOURLY_RATE, max_paid_hours: Decimal = DEFAULT_MAX_PAID_HOURS):
        self._rate = Decimal(rate)
        self._max_paid_hours = Decimal(max_paid_hours)

    @property
    def rate(self) -> Decimal:
        return self._rate

    def worked_hours(self, check_in: datetime, check_out: datetime) -> Decimal:
        seconds = Decimal(int((check_out - check_in).total_seconds()))
        hours = max(seconds / Decimal(3600), Decimal("0"))
        return min(hours, self._max_paid_hours).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def wage(self, hours: Decimal) -> Decimal:
        return (Decimal(hours) * self._rate).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def missed_checkout_wage(self, hours: Decimal) -> Decimal:
        return (MISSED_CHECKOUT_PAY_FACTOR * Decimal(hours) * self._rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
