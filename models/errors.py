"""
models/errors.py
----------------
Error taxonomy shared by services, repositories and handlers.
"""

from enum import Enum
from typing import Any, Optional


class SubscriptionErrorCode(str, Enum):
    INVALID_NAME = "INVALID_NAME"
    INVALID_DATE = "INVALID_DATE"
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    STORAGE_ERROR = "STORAGE_ERROR"
    IMPORT_INVALID_FORMAT = "IMPORT_INVALID_FORMAT"
    IMPORT_INVALID_DATA = "IMPORT_INVALID_DATA"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"


class SubscriptionError(Exception):
    """Base error carrying a machine-readable code and optional details."""

    def __init__(self, code: SubscriptionErrorCode, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class InvalidInputError(SubscriptionError):
    """Bad name, date, cycle or type at a validation boundary. `details` holds every violation."""

    def __init__(self, message: str, details: Optional[list[str]] = None,
                 code: SubscriptionErrorCode = SubscriptionErrorCode.INVALID_INPUT):
        super().__init__(code, message, details or [message])


class NotFoundError(SubscriptionError):
    def __init__(self, subscription_id: str):
        super().__init__(SubscriptionErrorCode.NOT_FOUND, f"Subscription {subscription_id} not found")
        self.subscription_id = subscription_id


class StorageFailure(SubscriptionError):
    def __init__(self, message: str):
        super().__init__(SubscriptionErrorCode.STORAGE_ERROR, message)


class NotificationFailure(SubscriptionError):
    """A single channel send failed. Never escalated past the dispatcher."""

    def __init__(self, channel: str, reason: str,
                 code: SubscriptionErrorCode = SubscriptionErrorCode.NOTIFICATION_FAILED):
        super().__init__(code, reason)
        self.channel = channel
        self.reason = reason


class ImportFormatError(SubscriptionError):
    def __init__(self, message: str, details: Optional[list[str]] = None):
        super().__init__(SubscriptionErrorCode.IMPORT_INVALID_FORMAT, message, details or [message])
