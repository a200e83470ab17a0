from dateutil import tz as dateutil_tz

from conftest import UTC, ms
from models.subscription import SubscriptionStatus
from services.status_service import (
    PRIORITY_EXPIRED,
    PRIORITY_EXPIRING_SOON,
    PRIORITY_OTHER,
    calculate_status,
    is_expiring_soon,
    remaining_days,
    should_remind,
    sort_priority,
    sort_subscriptions,
    validate_subscription_name,
)
from utils.dates import MS_PER_DAY


def test_validate_subscription_name():
    assert validate_subscription_name("Netflix")
    assert validate_subscription_name("  x ")
    assert not validate_subscription_name("")
    assert not validate_subscription_name("   \t")
    assert not validate_subscription_name(None)


def test_remaining_days_counts_calendar_days(now):
    assert remaining_days(ms(2024, 3, 15), now, UTC) == 5
    assert remaining_days(ms(2024, 3, 10, 23, 59), now, UTC) == 0
    assert remaining_days(ms(2024, 3, 10, 0, 1), now, UTC) == 0
    assert remaining_days(ms(2024, 3, 9, 23), now, UTC) == -1


def test_remaining_days_ignores_time_of_day():
    late = ms(2024, 3, 10, 23, 59)
    assert remaining_days(ms(2024, 3, 11, 0, 1), late, UTC) == 1


def test_remaining_days_across_dst_change():
    new_york = dateutil_tz.gettz("America/New_York")
    now = ms(2024, 3, 9, 12, tzinfo=new_york)
    expiry = ms(2024, 3, 11, 12, tzinfo=new_york)
    assert remaining_days(expiry, now, new_york) == 2


def test_remaining_days_uses_reference_zone():
    tokyo = dateutil_tz.gettz("Asia/Tokyo")
    # 2024-03-10 20:00 UTC is already 2024-03-11 in Tokyo
    now = ms(2024, 3, 10, 20)
    expiry = ms(2024, 3, 11, 10)
    assert remaining_days(expiry, now, UTC) == 1
    assert remaining_days(expiry, now, tokyo) == 0


def test_calculate_status(make_sub, now):
    assert calculate_status(make_sub(), now) is SubscriptionStatus.ACTIVE
    assert calculate_status(make_sub(expiry_date=now - 1), now) is SubscriptionStatus.EXPIRED
    assert calculate_status(make_sub(expiry_date=now), now) is SubscriptionStatus.ACTIVE
    disabled = make_sub(expiry_date=now - MS_PER_DAY, is_enabled=False)
    assert calculate_status(disabled, now) is SubscriptionStatus.DISABLED


def test_is_expiring_soon_window_bounds(make_sub, now):
    assert is_expiring_soon(make_sub(expiry_date=now + 7 * MS_PER_DAY, reminder_days=7), now, UTC)
    assert not is_expiring_soon(make_sub(expiry_date=now + 8 * MS_PER_DAY, reminder_days=7), now, UTC)
    assert is_expiring_soon(make_sub(expiry_date=ms(2024, 3, 10, 23), reminder_days=0), now, UTC)
    assert not is_expiring_soon(make_sub(expiry_date=now - MS_PER_DAY), now, UTC)


def test_expired_earlier_today_is_still_in_window(make_sub, now):
    sub = make_sub(expiry_date=ms(2024, 3, 10, 8))
    assert calculate_status(sub, now) is SubscriptionStatus.EXPIRED
    assert is_expiring_soon(sub, now, UTC)


def test_disabled_never_reminds(make_sub, now):
    sub = make_sub(is_enabled=False)
    assert not is_expiring_soon(sub, now, UTC)
    assert not should_remind(sub, now, UTC)
    assert should_remind(make_sub(), now, UTC)


def test_sort_priority_buckets(make_sub, now):
    assert sort_priority(make_sub(expiry_date=now - MS_PER_DAY), now, UTC)[0] == PRIORITY_EXPIRED
    assert sort_priority(make_sub(), now, UTC)[0] == PRIORITY_EXPIRING_SOON
    assert sort_priority(make_sub(expiry_date=now + 60 * MS_PER_DAY), now, UTC)[0] == PRIORITY_OTHER


def test_sort_subscriptions_most_urgent_first(make_sub, now):
    later = make_sub(name="later", expiry_date=now + 90 * MS_PER_DAY)
    soon = make_sub(name="soon", expiry_date=now + 3 * MS_PER_DAY)
    sooner = make_sub(name="sooner", expiry_date=now + 1 * MS_PER_DAY)
    expired = make_sub(name="expired", expiry_date=now - 2 * MS_PER_DAY)
    off = make_sub(name="off", expiry_date=now + 2 * MS_PER_DAY, is_enabled=False)

    ordered = sort_subscriptions([later, soon, off, expired, sooner], now, UTC)
    assert [s.name for s in ordered] == ["expired", "sooner", "soon", "off", "later"]
