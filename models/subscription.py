"""
models/subscription.py
----------------------
Domain model for tracked subscriptions (licenses, hosting, domains, memberships).
"""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from utils.dates import is_valid_instant


class SubscriptionType(str, Enum):
    VIDEO = "video"
    MUSIC = "music"
    CLOUD = "cloud"
    SOFTWARE = "software"
    DOMAIN = "domain"
    SERVER = "server"
    OTHER = "other"


class SubscriptionCycle(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi-annual"
    ANNUAL = "annual"
    ONE_TIME = "one-time"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"
    EXPIRED = "expired"


class NotificationChannel(str, Enum):
    TELEGRAM = "telegram"
    EMAIL = "email"
    WEBHOOK = "webhook"
    BARK = "bark"


VALID_TYPES = frozenset(t.value for t in SubscriptionType)
VALID_CYCLES = frozenset(c.value for c in SubscriptionCycle)
VALID_CHANNELS = frozenset(c.value for c in NotificationChannel)

# Canonical channel order used for display and dispatch
CHANNEL_ORDER = tuple(NotificationChannel)

# Column limits of the subscriptions table
MAX_NAME_LENGTH = 200
MAX_CUSTOM_TYPE_LENGTH = 100
MAX_REMINDER_DAYS = 2 ** 31 - 1


def generate_subscription_id() -> str:
    """Return a fresh opaque subscription id."""
    return f"sub_{uuid.uuid4().hex}"


def _timestamp(value: Any) -> int:
    """Bundle timestamps that are not valid instants read as 0 (unknown)."""
    return int(value) if is_valid_instant(value) else 0


@dataclass
class Subscription:
    """
    A subscription the owner wants to be reminded about before it expires.

    Attributes:
        id: Opaque unique identifier (assigned on creation / import).
        name: Friendly name (e.g., 'Netflix', 'example.com').
        type: Category of the subscription.
        cycle: Renewal period; 'one-time' is never advanced.
        expiry_date: Expiry instant in epoch milliseconds.
        reminder_days: How many days before expiry reminders start.
        notification_channels: Channels selected for this record.
        is_enabled: Disabled records never remind.
        custom_type: Free-text label when type is 'other'.
        url: Optional management page.
        notes: Optional free-form notes.
        created_at: Creation instant (epoch ms).
        updated_at: Last modification instant (epoch ms).

    Status is derived from is_enabled, expiry_date and the current time,
    see services.status_service.calculate_status.
    """
    name: str
    type: SubscriptionType
    cycle: SubscriptionCycle
    expiry_date: int
    reminder_days: int = 7
    notification_channels: frozenset[NotificationChannel] = field(default_factory=frozenset)
    is_enabled: bool = True
    custom_type: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    id: str = ""
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self):
        self.type = SubscriptionType(self.type)
        self.cycle = SubscriptionCycle(self.cycle)
        self.notification_channels = frozenset(
            NotificationChannel(c) for c in self.notification_channels
        )

    @property
    def display_type(self) -> str:
        if self.type is SubscriptionType.OTHER and self.custom_type:
            return self.custom_type
        return self.type.value

    @property
    def is_renewable(self) -> bool:
        return self.cycle is not SubscriptionCycle.ONE_TIME

    def sorted_channels(self) -> list[NotificationChannel]:
        return [c for c in CHANNEL_ORDER if c in self.notification_channels]

    def with_changes(self, **changes) -> "Subscription":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape used by export bundles."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "cycle": self.cycle.value,
            "expiryDate": self.expiry_date,
            "reminderDays": self.reminder_days,
            "notificationChannels": [c.value for c in self.sorted_channels()],
            "isEnabled": self.is_enabled,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.custom_type is not None:
            data["customType"] = self.custom_type
        if self.url is not None:
            data["url"] = self.url
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subscription":
        """Build from the camelCase bundle shape. Unknown keys (e.g. 'status') are ignored."""
        return cls(
            id=data.get("id") or "",
            name=data["name"],
            type=data["type"],
            custom_type=data.get("customType"),
            cycle=data["cycle"],
            expiry_date=int(data["expiryDate"]),
            reminder_days=int(data["reminderDays"]),
            notification_channels=frozenset(data.get("notificationChannels") or ()),
            is_enabled=data["isEnabled"],
            url=data.get("url"),
            notes=data.get("notes"),
            created_at=_timestamp(data.get("createdAt")),
            updated_at=_timestamp(data.get("updatedAt")),
        )

    def __str__(self) -> str:
        status = "✅" if self.is_enabled else "⏸️"
        return f"{status} {self.name} ({self.display_type}, {self.cycle.value})"


@dataclass
class ReminderMark:
    """
    Durable record of the last reminder sent for a subscription.

    Attributes:
        subscription_id: The subscription this mark belongs to.
        notified_at: Instant (epoch ms) the reminder was dispatched.
        expiry_date: The expiry the reminder was about. A renewed
            subscription has a different expiry and so a fresh window.
    """
    subscription_id: str
    notified_at: int
    expiry_date: int
