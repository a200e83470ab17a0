"""
services/status_service.py
--------------------------
Derived state of a subscription at a reference instant.

Everything here is a pure function of the record and `now` (epoch ms).
Status is recomputed on every read and never persisted. The only
timezone-sensitive point is `remaining_days`, which counts calendar days
in the reference timezone.
"""

from datetime import tzinfo
from typing import Iterable, Optional

from models.subscription import Subscription, SubscriptionStatus
from utils.dates import local_day_number, reference_tz

# Sort buckets: most urgent first
PRIORITY_EXPIRED = 0
PRIORITY_EXPIRING_SOON = 1
PRIORITY_OTHER = 2


def validate_subscription_name(name: Optional[str]) -> bool:
    """A name is valid when it has at least one non-whitespace character."""
    return isinstance(name, str) and bool(name.strip())


def remaining_days(expiry_date: int, now: int, tz: Optional[tzinfo] = None) -> int:
    """
    Whole calendar days from `now` until `expiry_date`.

    Both instants are reduced to their local calendar day before
    subtracting, so the result does not depend on the time of day and
    is not shifted by DST transitions.

    Returns:
        Positive: days until expiry. Zero: expires today. Negative: days overdue.
    """
    tz = tz or reference_tz()
    return local_day_number(expiry_date, tz) - local_day_number(now, tz)


def calculate_status(sub: Subscription, now: int) -> SubscriptionStatus:
    """
    - disabled when the record is switched off,
    - expired when the exact expiry instant has passed,
    - active otherwise.
    """
    if not sub.is_enabled:
        return SubscriptionStatus.DISABLED
    if sub.expiry_date < now:
        return SubscriptionStatus.EXPIRED
    return SubscriptionStatus.ACTIVE


def is_expiring_soon(sub: Subscription, now: int, tz: Optional[tzinfo] = None) -> bool:
    """True when an enabled subscription is inside its reminder window."""
    if not sub.is_enabled:
        return False
    days = remaining_days(sub.expiry_date, now, tz)
    return 0 <= days <= sub.reminder_days


def should_remind(sub: Subscription, now: int, tz: Optional[tzinfo] = None) -> bool:
    """Disabled subscriptions never remind, even inside the window."""
    return sub.is_enabled and is_expiring_soon(sub, now, tz)


def sort_priority(sub: Subscription, now: int, tz: Optional[tzinfo] = None) -> tuple[int, int]:
    """Sort key: (bucket, expiry_date) with expired < expiring soon < everything else."""
    if calculate_status(sub, now) is SubscriptionStatus.EXPIRED:
        bucket = PRIORITY_EXPIRED
    elif is_expiring_soon(sub, now, tz):
        bucket = PRIORITY_EXPIRING_SOON
    else:
        bucket = PRIORITY_OTHER
    return bucket, sub.expiry_date


def sort_subscriptions(subs: Iterable[Subscription], now: int,
                       tz: Optional[tzinfo] = None) -> list[Subscription]:
    tz = tz or reference_tz()
    return sorted(subs, key=lambda s: sort_priority(s, now, tz))
