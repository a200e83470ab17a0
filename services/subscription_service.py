"""
services/subscription_service.py
--------------------------------
User actions on subscriptions: add, edit, renew, enable/disable, delete, list.
"""

from typing import Any, Iterable, Optional

from models.errors import InvalidInputError, NotFoundError, SubscriptionErrorCode
from models.subscription import (
    MAX_CUSTOM_TYPE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_REMINDER_DAYS,
    VALID_CHANNELS,
    VALID_CYCLES,
    VALID_TYPES,
    Subscription,
    SubscriptionType,
    generate_subscription_id,
)
from repositories.config_repo import ConfigRepository
from repositories.subscription_repo import SubscriptionRepository
from services.recurrence import next_expiry
from services.status_service import should_remind, sort_subscriptions, validate_subscription_name
from utils.dates import is_valid_instant, now_ms, reference_tz
from utils.logger import get_logger

logger = get_logger(__name__)

_EDITABLE_FIELDS = {
    "name", "type", "custom_type", "cycle", "expiry_date", "reminder_days",
    "notification_channels", "is_enabled", "url", "notes",
}


def validate_fields(name: Any, type: Any, cycle: Any, expiry_date: Any,
                    reminder_days: Any, notification_channels: Iterable[Any] = (),
                    custom_type: Optional[str] = None) -> list[str]:
    """Return every violation found in the given field values (empty when valid)."""
    errors = []
    if not validate_subscription_name(name):
        errors.append("Name must not be empty")
    elif len(name.strip()) > MAX_NAME_LENGTH:
        errors.append(f"Name must be at most {MAX_NAME_LENGTH} characters")
    if getattr(type, "value", type) not in VALID_TYPES:
        errors.append(f"Invalid subscription type \"{type}\"")
    elif getattr(type, "value", type) == SubscriptionType.OTHER.value and not (custom_type or "").strip():
        errors.append("A custom type label is required when type is 'other'")
    if getattr(cycle, "value", cycle) not in VALID_CYCLES:
        errors.append(f"Invalid subscription cycle \"{cycle}\"")
    if custom_type is not None and len(custom_type) > MAX_CUSTOM_TYPE_LENGTH:
        errors.append(f"Custom type label must be at most {MAX_CUSTOM_TYPE_LENGTH} characters")
    if not isinstance(expiry_date, int) or not is_valid_instant(expiry_date):
        errors.append("Invalid expiry date")
    if (isinstance(reminder_days, bool) or not isinstance(reminder_days, int)
            or not 0 <= reminder_days <= MAX_REMINDER_DAYS):
        errors.append("Reminder days must be a whole number >= 0")
    unknown = [c for c in notification_channels if getattr(c, "value", c) not in VALID_CHANNELS]
    if unknown:
        errors.append(f"Unknown notification channel(s): {', '.join(map(str, unknown))}")
    return errors


class SubscriptionService:
    """
    Handles all business logic for the subscription list.

    Every method that takes an id raises NotFoundError for unknown ids,
    and every write path validates first and raises InvalidInputError
    listing all violations.
    """

    def __init__(self, repo: Optional[SubscriptionRepository] = None,
                 config_repo: Optional[ConfigRepository] = None, tz=None):
        self.repo = repo or SubscriptionRepository()
        self.config_repo = config_repo or ConfigRepository()
        self.tz = tz or reference_tz()

    # ── READ ──────────────────────────────────────────────

    def get(self, subscription_id: str) -> Subscription:
        sub = self.repo.get(subscription_id)
        if sub is None:
            raise NotFoundError(subscription_id)
        return sub

    def list_sorted(self, now: Optional[int] = None) -> list[Subscription]:
        """All subscriptions, most urgent first (expired, expiring soon, others)."""
        now = now_ms() if now is None else now
        return sort_subscriptions(self.repo.list_all(), now, self.tz)

    def needing_reminder(self, now: Optional[int] = None) -> list[Subscription]:
        now = now_ms() if now is None else now
        return [s for s in self.repo.list_all() if should_remind(s, now, self.tz)]

    @staticmethod
    def page(subs: list[Subscription], page: int, page_size: int) -> tuple[list[Subscription], int]:
        """
        Slice one page (1-based) out of `subs`.

        Returns:
            (items on the page, total number of pages). Out-of-range pages are clamped.
        """
        total_pages = max(1, -(-len(subs) // page_size))
        page = min(max(page, 1), total_pages)
        start = (page - 1) * page_size
        return subs[start:start + page_size], total_pages

    # ── WRITE ─────────────────────────────────────────────

    def create(self, name: str, type: str, cycle: str, expiry_date: int,
               reminder_days: Optional[int] = None, notification_channels: Iterable[str] = (),
               is_enabled: bool = True, custom_type: Optional[str] = None,
               url: Optional[str] = None, notes: Optional[str] = None,
               now: Optional[int] = None) -> Subscription:
        """
        Validate and store a new subscription. Reminder days default to
        the configured default when not given.

        Raises:
            InvalidInputError: Listing every invalid field.
        """
        if reminder_days is None:
            reminder_days = self.config_repo.get_settings().default_reminder_days
        channels = list(notification_channels)

        errors = validate_fields(name, type, cycle, expiry_date, reminder_days, channels, custom_type)
        if errors:
            raise InvalidInputError("; ".join(errors), errors)

        now = now_ms() if now is None else now
        sub = Subscription(
            id=generate_subscription_id(),
            name=name.strip(),
            type=type,
            custom_type=custom_type,
            cycle=cycle,
            expiry_date=expiry_date,
            reminder_days=reminder_days,
            notification_channels=frozenset(channels),
            is_enabled=is_enabled,
            url=url,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        return self.repo.put(sub)

    def update(self, subscription_id: str, now: Optional[int] = None, **changes) -> Subscription:
        """
        Apply field changes to an existing subscription and touch updated_at.

        Raises:
            NotFoundError: If the id is unknown.
            InvalidInputError: If a field name is not editable or a value is invalid.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        existing = self.get(subscription_id)
        merged = {f: getattr(existing, f) for f in _EDITABLE_FIELDS}
        merged.update(changes)
        merged["notification_channels"] = list(merged["notification_channels"])

        errors = validate_fields(
            merged["name"], merged["type"], merged["cycle"], merged["expiry_date"],
            merged["reminder_days"], merged["notification_channels"], merged["custom_type"],
        )
        if errors:
            raise InvalidInputError("; ".join(errors), errors)

        merged["name"] = merged["name"].strip()
        merged["notification_channels"] = frozenset(merged["notification_channels"])
        updated = existing.with_changes(updated_at=now_ms() if now is None else now, **merged)
        return self.repo.put(updated)

    def renew(self, subscription_id: str, now: Optional[int] = None) -> Subscription:
        """
        Advance the expiry by one cycle.

        Raises:
            NotFoundError: If the id is unknown.
            InvalidInputError: For one-time subscriptions, which cannot be renewed.
        """
        existing = self.get(subscription_id)
        if not existing.is_renewable:
            raise InvalidInputError(
                f"'{existing.name}' is a one-time subscription and cannot be renewed",
                code=SubscriptionErrorCode.INVALID_DATE,
            )
        new_expiry = next_expiry(existing.expiry_date, existing.cycle, self.tz)
        logger.info(f"Renewing '{existing.name}' ({existing.cycle.value})")
        return self.update(subscription_id, now=now, expiry_date=new_expiry)

    def toggle_enabled(self, subscription_id: str, now: Optional[int] = None) -> Subscription:
        existing = self.get(subscription_id)
        return self.update(subscription_id, now=now, is_enabled=not existing.is_enabled)

    def delete(self, subscription_id: str) -> None:
        if not self.repo.delete(subscription_id):
            raise NotFoundError(subscription_id)
