"""
services/recurrence.py
----------------------
Advances an expiry date by one renewal cycle.
"""

from datetime import tzinfo
from typing import Optional

from dateutil.relativedelta import relativedelta

from models.errors import InvalidInputError, SubscriptionErrorCode
from models.subscription import SubscriptionCycle
from utils.dates import from_datetime, reference_tz, to_datetime

CYCLE_MONTHS = {
    SubscriptionCycle.MONTHLY: 1,
    SubscriptionCycle.QUARTERLY: 3,
    SubscriptionCycle.SEMI_ANNUAL: 6,
    SubscriptionCycle.ANNUAL: 12,
}


def next_expiry(current_expiry: int, cycle: SubscriptionCycle, tz: Optional[tzinfo] = None) -> int:
    """
    Compute the expiry after one more cycle.

    Calendar-month arithmetic in the reference timezone: the local
    wall-clock time is kept and a day past the end of the target month
    clamps to its last day (Jan 31 + 1 month -> Feb 28/29).
    'one-time' returns `current_expiry` unchanged; callers refuse to
    renew such subscriptions before getting here.

    Raises:
        InvalidInputError: If the result falls outside the representable date range.
    """
    cycle = SubscriptionCycle(cycle)
    if cycle is SubscriptionCycle.ONE_TIME:
        return current_expiry

    try:
        local = to_datetime(current_expiry, tz or reference_tz())
        advanced = local + relativedelta(months=CYCLE_MONTHS[cycle])
    except (OverflowError, OSError, ValueError) as e:
        raise InvalidInputError(
            f"Cannot advance expiry {current_expiry}: {e}", code=SubscriptionErrorCode.INVALID_DATE
        ) from e
    return from_datetime(advanced)
