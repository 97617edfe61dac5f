from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

_LOGGER = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class FinePolicy:
    """
    Rate and optional cap for overdue fines.

    Two policies are in use across the app and neither is canonical yet:
    a flat 0.50 per day with no cap, and 5 per day capped at 100. Operators
    pick one through configuration.
    """

    rate_per_day: float
    max_fine: Optional[float] = None


FLAT_POLICY = FinePolicy(rate_per_day=0.50)
CAPPED_POLICY = FinePolicy(rate_per_day=5.0, max_fine=100.0)

NAMED_POLICIES = {
    "flat": FLAT_POLICY,
    "capped": CAPPED_POLICY,
}


def warn_unresolved_policy(policy: FinePolicy) -> None:
    _LOGGER.warning(
        "No fine policy configured; charging %.2f/day%s. Two policies are in use "
        "(flat 0.50/day uncapped, 5/day capped at 100); set MANALIB_FINE_POLICY "
        "to silence this warning.",
        policy.rate_per_day,
        f" capped at {policy.max_fine:.2f}" if policy.max_fine is not None else " uncapped",
    )


class FineCalculator:
    def __init__(self, policy: FinePolicy = FLAT_POLICY) -> None:
        if policy.rate_per_day < 0:
            raise ValueError("fine rate must not be negative")
        if policy.max_fine is not None and policy.max_fine < 0:
            raise ValueError("fine cap must not be negative")
        self.policy = policy

    @staticmethod
    def days_overdue(due_date: datetime, now: datetime) -> int:
        """Whole days late, rounding any started day up. Zero when not late."""
        late = now - due_date
        if late <= timedelta(0):
            return 0
        return math.ceil(late / ONE_DAY)

    def fine_amount(self, days_overdue: int) -> float:
        amount = max(0, days_overdue) * self.policy.rate_per_day
        if self.policy.max_fine is not None:
            amount = min(amount, self.policy.max_fine)
        return round(amount, 2)

    def assess(self, due_date: datetime, now: datetime) -> float:
        return self.fine_amount(self.days_overdue(due_date, now))
