"""
repositories/subscription_repo.py
---------------------------------
Data access layer for subscriptions.
All SQL queries related to the `subscriptions` table live here.
"""

from typing import Optional

from psycopg2.extras import execute_batch

from db.connection import db_cursor
from models.subscription import Subscription
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, name, type, custom_type, cycle, expiry_date, reminder_days, "
    "notification_channels, is_enabled, url, notes, created_at, updated_at"
)

_UPSERT_SQL = f"""
    INSERT INTO subscriptions ({_COLUMNS})
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (id) DO UPDATE SET
        name = EXCLUDED.name,
        type = EXCLUDED.type,
        custom_type = EXCLUDED.custom_type,
        cycle = EXCLUDED.cycle,
        expiry_date = EXCLUDED.expiry_date,
        reminder_days = EXCLUDED.reminder_days,
        notification_channels = EXCLUDED.notification_channels,
        is_enabled = EXCLUDED.is_enabled,
        url = EXCLUDED.url,
        notes = EXCLUDED.notes,
        updated_at = EXCLUDED.updated_at;
"""


class SubscriptionRepository:
    """Repository for CRUD operations on the subscriptions table."""

    # ── READ ──────────────────────────────────────────────

    def list_all(self) -> list[Subscription]:
        """Return every subscription, ordered by expiry."""
        with db_cursor("list subscriptions") as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM subscriptions ORDER BY expiry_date ASC;")
            return [self._row_to_subscription(r) for r in cur.fetchall()]

    def get(self, subscription_id: str) -> Optional[Subscription]:
        """Fetch a single subscription by ID, or None."""
        with db_cursor(f"get subscription {subscription_id}") as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM subscriptions WHERE id = %s;", (subscription_id,))
            row = cur.fetchone()
            return self._row_to_subscription(row) if row else None

    # ── WRITE ─────────────────────────────────────────────

    def put(self, sub: Subscription) -> Subscription:
        """Insert or update a subscription."""
        with db_cursor(f"save subscription '{sub.name}'") as cur:
            cur.execute(_UPSERT_SQL, self._to_params(sub))
        logger.info(f"Saved subscription '{sub.name}' ({sub.id})")
        return sub

    def batch_add(self, subs: list[Subscription]) -> None:
        """Insert many subscriptions in one transaction."""
        if not subs:
            return
        with db_cursor(f"add {len(subs)} subscriptions") as cur:
            execute_batch(cur, _UPSERT_SQL, [self._to_params(s) for s in subs])
        logger.info(f"Added {len(subs)} subscriptions")

    # ── DELETE ────────────────────────────────────────────

    def delete(self, subscription_id: str) -> bool:
        """Delete a subscription by ID. Its reminder mark goes with it (cascade)."""
        with db_cursor(f"delete subscription {subscription_id}") as cur:
            cur.execute("DELETE FROM subscriptions WHERE id = %s;", (subscription_id,))
            deleted = cur.rowcount > 0
        if deleted:
            logger.info(f"Deleted subscription {subscription_id}")
        return deleted

    def replace_all(self, subs: list[Subscription]) -> None:
        """
        Delete every subscription and insert `subs`, in one transaction.
        If any insert fails the previous subscriptions are kept.
        """
        with db_cursor(f"replace subscriptions with {len(subs)} new ones") as cur:
            cur.execute("DELETE FROM subscriptions;")
            removed = cur.rowcount
            if subs:
                execute_batch(cur, _UPSERT_SQL, [self._to_params(s) for s in subs])
        logger.info(f"Replaced {removed} subscriptions with {len(subs)}")

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _to_params(sub: Subscription) -> tuple:
        return (
            sub.id, sub.name, sub.type.value, sub.custom_type, sub.cycle.value,
            sub.expiry_date, sub.reminder_days, [c.value for c in sub.sorted_channels()],
            sub.is_enabled, sub.url, sub.notes, sub.created_at, sub.updated_at,
        )

    @staticmethod
    def _row_to_subscription(row: tuple) -> Subscription:
        """Convert a database row tuple to a Subscription domain object."""
        return Subscription(
            id=row[0],
            name=row[1],
            type=row[2],
            custom_type=row[3],
            cycle=row[4],
            expiry_date=row[5],
            reminder_days=row[6],
            notification_channels=frozenset(row[7] or ()),
            is_enabled=row[8],
            url=row[9],
            notes=row[10],
            created_at=row[11],
            updated_at=row[12],
        )
