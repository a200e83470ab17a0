"""
repositories/config_repo.py
---------------------------
Data access layer for the single-row documents in `app_config`:
the notification channel config and the reminder settings.
"""

from typing import Any, Optional

from psycopg2.extras import Json

from db.connection import db_cursor
from models.notification import NotificationConfig, SubscriptionSettings
from utils.logger import get_logger

logger = get_logger(__name__)

NOTIFICATION_CONFIG_KEY = "notification_config"
SETTINGS_KEY = "subscription_settings"


class ConfigRepository:
    """Key/value access to app_config. Missing rows read back as defaults."""

    def get_notification_config(self) -> NotificationConfig:
        data = self._get(NOTIFICATION_CONFIG_KEY)
        return NotificationConfig.from_dict(data) if data else NotificationConfig()

    def set_notification_config(self, config: NotificationConfig) -> None:
        self._set(NOTIFICATION_CONFIG_KEY, config.to_dict())

    def get_settings(self) -> SubscriptionSettings:
        data = self._get(SETTINGS_KEY)
        return SubscriptionSettings.from_dict(data) if data else SubscriptionSettings()

    def set_settings(self, settings: SubscriptionSettings) -> None:
        self._set(SETTINGS_KEY, settings.to_dict())

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _get(key: str) -> Optional[dict[str, Any]]:
        with db_cursor(f"read {key}") as cur:
            cur.execute("SELECT value FROM app_config WHERE key = %s;", (key,))
            row = cur.fetchone()
        return row[0] if row else None

    @staticmethod
    def _set(key: str, value: dict[str, Any]) -> None:
        sql = """
            INSERT INTO app_config (key, value) VALUES (%s, %s)
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW();
        """
        with db_cursor(f"save {key}") as cur:
            cur.execute(sql, (key, Json(value)))
        logger.info(f"Saved {key}")
