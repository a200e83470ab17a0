"""
services/export_service.py
---------------------------
Backup and restore of the full configuration as a versioned JSON bundle,
plus CSV and Excel exports of the subscription list.

Bundle format:
    {
        "version": "1.0.0",
        "exportedAt": <epoch ms>,
        "subscriptions": [...],
        "notificationConfig": {...},   # optional on import
        "settings": {...}              # optional on import
    }

Import runs parse -> structural validation -> semantic validation ->
merge or overwrite. Validation collects every problem across every
record; if anything is invalid nothing is written.
"""

import io
import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import pandas as pd

from models.errors import ImportFormatError, SubscriptionError
from models.notification import PAGE_SIZE_OPTIONS, NotificationConfig, SubscriptionSettings
from models.subscription import (
    CHANNEL_ORDER,
    MAX_CUSTOM_TYPE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_REMINDER_DAYS,
    VALID_CHANNELS,
    VALID_CYCLES,
    VALID_TYPES,
    Subscription,
    generate_subscription_id,
)
from repositories.config_repo import ConfigRepository
from repositories.subscription_repo import SubscriptionRepository
from services.status_service import calculate_status, remaining_days, sort_subscriptions
from utils.dates import format_date, is_valid_instant, now_ms, reference_tz
from utils.logger import get_logger

logger = get_logger(__name__)

EXPORT_DATA_VERSION = "1.0.0"


class ImportMode(str, Enum):
    OVERWRITE = "overwrite"
    MERGE = "merge"


@dataclass
class ImportValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    data: Optional[dict[str, Any]] = None


@dataclass
class ImportResult:
    success: bool
    imported_count: int = 0
    skipped_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_subscription_data(sub: Any, index: int) -> tuple[list[str], list[str]]:
    """Check one raw bundle record. Returns (errors, warnings)."""
    label = f"Subscription #{index + 1}"
    if not isinstance(sub, dict):
        return [f"{label}: invalid data format"], []

    errors, warnings = [], []
    name = sub.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(f"{label}: name must not be empty")
    else:
        label = f"{label} ({name.strip()[:40]})"
        if len(name.strip()) > MAX_NAME_LENGTH:
            errors.append(f"{label}: name is longer than {MAX_NAME_LENGTH} characters")

    custom_type = sub.get("customType")
    if sub.get("type") not in VALID_TYPES:
        errors.append(f"{label}: invalid subscription type \"{sub.get('type')}\"")
    elif sub["type"] == "other" and not (isinstance(custom_type, str) and custom_type.strip()):
        warnings.append(f"{label}: type is 'other' but no custom type label is set")
    if custom_type is not None:
        if not isinstance(custom_type, str):
            errors.append(f"{label}: custom type label must be text")
        elif len(custom_type) > MAX_CUSTOM_TYPE_LENGTH:
            errors.append(f"{label}: custom type label is longer than {MAX_CUSTOM_TYPE_LENGTH} characters")

    if sub.get("cycle") not in VALID_CYCLES:
        errors.append(f"{label}: invalid subscription cycle \"{sub.get('cycle')}\"")

    if not is_valid_instant(sub.get("expiryDate")):
        errors.append(f"{label}: invalid expiry date")

    reminder_days = sub.get("reminderDays")
    if not _is_number(reminder_days) or not 0 <= reminder_days <= MAX_REMINDER_DAYS:
        errors.append(f"{label}: invalid reminder days")
    elif not float(reminder_days).is_integer():
        errors.append(f"{label}: reminder days must be a whole number")

    if not isinstance(sub.get("isEnabled"), bool):
        errors.append(f"{label}: invalid enabled flag")

    channels = sub.get("notificationChannels", [])
    if not isinstance(channels, list):
        errors.append(f"{label}: notification channels must be a list")
    else:
        unknown = [str(c) for c in channels if c not in VALID_CHANNELS]
        if unknown:
            errors.append(f"{label}: unknown notification channel(s) {', '.join(unknown)}")

    for key in ("url", "notes"):
        if sub.get(key) is not None and not isinstance(sub[key], str):
            errors.append(f"{label}: {key} must be text")

    if "createdAt" in sub and not is_valid_instant(sub["createdAt"]):
        warnings.append(f"{label}: invalid creation time, the import time is used instead")

    return errors, warnings


def validate_notification_config(config: Any) -> list[str]:
    """All four channel configs must be present as objects."""
    try:
        NotificationConfig.from_dict(config)
    except ImportFormatError as e:
        return list(e.details)
    return []


def validate_settings(settings: Any) -> list[str]:
    if not isinstance(settings, dict):
        return ["Settings: invalid data format"]

    errors = []
    if not isinstance(settings.get("showLunarDate"), bool):
        errors.append("Settings: invalid lunar date flag")
    default_days = settings.get("defaultReminderDays")
    if not _is_number(default_days) or default_days < 0:
        errors.append("Settings: invalid default reminder days")
    if "dailyReminder" in settings and not isinstance(settings["dailyReminder"], bool):
        errors.append("Settings: invalid daily reminder flag")
    if "pageSize" in settings and settings["pageSize"] not in PAGE_SIZE_OPTIONS:
        errors.append(f"Settings: page size must be one of {', '.join(map(str, PAGE_SIZE_OPTIONS))}")
    return errors


def validate_import_data(text: str) -> ImportValidation:
    """
    Parse and validate a bundle without touching storage.

    Non-JSON input yields a single generic format error. A version that
    differs from EXPORT_DATA_VERSION is only a warning, since every
    record is validated field by field anyway.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return ImportValidation(valid=False, errors=["Invalid JSON format"])

    if not isinstance(data, dict):
        return ImportValidation(valid=False, errors=["Invalid data format"])

    errors, warnings = [], []

    version = data.get("version")
    if not isinstance(version, str):
        errors.append("Missing version")
    elif version != EXPORT_DATA_VERSION:
        warnings.append(
            f"Data version ({version}) differs from the current version ({EXPORT_DATA_VERSION}); "
            f"there may be compatibility issues"
        )

    if not _is_number(data.get("exportedAt")):
        warnings.append("Missing export time")

    subs = data.get("subscriptions")
    if not isinstance(subs, list):
        errors.append("Missing subscriptions or invalid format")
    else:
        for index, sub in enumerate(subs):
            sub_errors, sub_warnings = validate_subscription_data(sub, index)
            errors.extend(sub_errors)
            warnings.extend(sub_warnings)

    if data.get("notificationConfig") is not None:
        errors.extend(validate_notification_config(data["notificationConfig"]))
    else:
        warnings.append("Missing notification config, the current one is kept")

    if data.get("settings") is not None:
        errors.extend(validate_settings(data["settings"]))
    else:
        warnings.append("Missing settings, defaults will be used")

    return ImportValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        data=data if not errors else None,
    )


class ExportService:
    """Exports and imports the subscription list with its channel config and settings."""

    def __init__(self, repo: Optional[SubscriptionRepository] = None,
                 config_repo: Optional[ConfigRepository] = None, tz=None):
        self.repo = repo or SubscriptionRepository()
        self.config_repo = config_repo or ConfigRepository()
        self.tz = tz or reference_tz()

    # ── JSON bundle ───────────────────────────────────────

    def build_bundle(self, now: Optional[int] = None) -> dict[str, Any]:
        now = now_ms() if now is None else now
        subscriptions = []
        for sub in self.repo.list_all():
            data = sub.to_dict()
            # Informational only, ignored on import
            data["status"] = calculate_status(sub, now).value
            subscriptions.append(data)
        return {
            "version": EXPORT_DATA_VERSION,
            "exportedAt": now,
            "subscriptions": subscriptions,
            "notificationConfig": self.config_repo.get_notification_config().to_dict(),
            "settings": self.config_repo.get_settings().to_dict(),
        }

    def export_config(self, now: Optional[int] = None) -> str:
        """Serialize everything to a pretty-printed JSON string."""
        bundle = self.build_bundle(now)
        logger.info(f"Exported {len(bundle['subscriptions'])} subscriptions")
        return json.dumps(bundle, ensure_ascii=False, indent=2)

    def generate_export_filename(self, now: Optional[int] = None) -> str:
        now = now_ms() if now is None else now
        return f"subscriptions-backup-{format_date(now, self.tz)}.json"

    def validate_import(self, text: str) -> ImportValidation:
        return validate_import_data(text)

    def import_config(self, text: str, mode: ImportMode = ImportMode.OVERWRITE,
                      now: Optional[int] = None) -> ImportResult:
        """
        Import a bundle.

        Args:
            text: The bundle as a JSON string.
            mode: OVERWRITE replaces every subscription; MERGE adds those
                whose name (case-insensitive) is not taken yet and skips the rest.
            now: Timestamp for updatedAt (and createdAt when missing).

        Returns:
            ImportResult with counts, or with the validation errors when
            the bundle was rejected (nothing written in that case).
        """
        mode = ImportMode(mode)
        validation = self.validate_import(text)
        if not validation.valid:
            logger.warning(f"Import rejected with {len(validation.errors)} error(s)")
            return ImportResult(success=False, errors=validation.errors, warnings=validation.warnings)

        now = now_ms() if now is None else now
        data = validation.data
        incoming = [self._fresh_copy(raw, now) for raw in data["subscriptions"]]
        skipped = 0

        try:
            if mode is ImportMode.OVERWRITE:
                to_add = incoming
                self.repo.replace_all(to_add)
            else:
                taken = {s.name.lower() for s in self.repo.list_all()}
                to_add = []
                for sub in incoming:
                    if sub.name.lower() in taken:
                        skipped += 1
                        continue
                    to_add.append(sub)
                self.repo.batch_add(to_add)

            if data.get("notificationConfig") is not None:
                self.config_repo.set_notification_config(
                    NotificationConfig.from_dict(data["notificationConfig"])
                )
            if data.get("settings") is not None:
                self.config_repo.set_settings(SubscriptionSettings.from_dict(data["settings"]))
            else:
                self.config_repo.set_settings(SubscriptionSettings())
        except SubscriptionError as e:
            logger.error(f"Import failed while writing: {e.message}")
            return ImportResult(success=False, errors=[e.message], warnings=validation.warnings)

        logger.info(f"Imported {len(to_add)} subscriptions ({mode.value}), skipped {skipped}")
        return ImportResult(
            success=True,
            imported_count=len(to_add),
            skipped_count=skipped,
            warnings=validation.warnings,
        )

    @staticmethod
    def _fresh_copy(raw: dict[str, Any], now: int) -> Subscription:
        """Imported ids are never trusted: every record gets a new identity."""
        sub = Subscription.from_dict(raw)
        return sub.with_changes(
            id=generate_subscription_id(),
            name=sub.name.strip(),
            created_at=sub.created_at if sub.created_at > 0 else now,
            updated_at=now,
        )

    # ── Spreadsheets ──────────────────────────────────────

    def _dataframe(self, now: int) -> pd.DataFrame:
        subs = sort_subscriptions(self.repo.list_all(), now, self.tz)
        data = [
            {
                "Name": s.name,
                "Type": s.display_type,
                "Cycle": s.cycle.value,
                "Expiry date": format_date(s.expiry_date, self.tz),
                "Remaining days": remaining_days(s.expiry_date, now, self.tz),
                "Status": calculate_status(s, now).value,
                "Reminder days": s.reminder_days,
                "Channels": ", ".join(c.value for c in CHANNEL_ORDER if c in s.notification_channels),
                "URL": s.url or "",
                "Notes": s.notes or "",
            }
            for s in subs
        ]
        return pd.DataFrame(data, columns=[
            "Name", "Type", "Cycle", "Expiry date", "Remaining days",
            "Status", "Reminder days", "Channels", "URL", "Notes",
        ])

    def export_csv(self, now: Optional[int] = None) -> io.BytesIO:
        """
        Export the sorted subscription list as CSV.

        Returns:
            A BytesIO buffer containing the CSV data.
        """
        now = now_ms() if now is None else now
        df = self._dataframe(now)
        buffer = io.BytesIO()
        df.to_csv(buffer, index=False, encoding="utf-8-sig")
        buffer.seek(0)
        logger.info(f"Exported {len(df)} subscriptions as CSV")
        return buffer

    def export_excel(self, now: Optional[int] = None) -> io.BytesIO:
        """
        Export the sorted subscription list as an Excel (.xlsx) file,
        with a per-type summary sheet.

        Returns:
            A BytesIO buffer containing the Excel data.
        """
        now = now_ms() if now is None else now
        df = self._dataframe(now)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Subscriptions", index=False)

            if not df.empty:
                summary = df.groupby("Type").agg(
                    Count=("Name", "count"),
                    Expired=("Status", lambda s: int((s == "expired").sum())),
                ).reset_index()
                summary.to_excel(writer, sheet_name="By type", index=False)

        buffer.seek(0)
        logger.info(f"Exported {len(df)} subscriptions as Excel")
        return buffer
