"""
repositories/reminder_repo.py
-----------------------------
Data access layer for reminder marks, the scheduler's only durable state.
"""

from typing import Optional

from db.connection import db_cursor
from models.subscription import ReminderMark


class ReminderRepository:
    """Repository for the reminder_marks table (one row per subscription)."""

    def get(self, subscription_id: str) -> Optional[ReminderMark]:
        sql = "SELECT subscription_id, notified_at, expiry_date FROM reminder_marks WHERE subscription_id = %s;"
        with db_cursor(f"read reminder mark for {subscription_id}") as cur:
            cur.execute(sql, (subscription_id,))
            row = cur.fetchone()
        return ReminderMark(*row) if row else None

    def put(self, mark: ReminderMark) -> None:
        sql = """
            INSERT INTO reminder_marks (subscription_id, notified_at, expiry_date)
            VALUES (%s, %s, %s)
            ON CONFLICT (subscription_id) DO UPDATE SET
                notified_at = EXCLUDED.notified_at,
                expiry_date = EXCLUDED.expiry_date;
        """
        with db_cursor(f"save reminder mark for {mark.subscription_id}") as cur:
            cur.execute(sql, (mark.subscription_id, mark.notified_at, mark.expiry_date))

    def delete(self, subscription_id: str) -> None:
        with db_cursor(f"delete reminder mark for {subscription_id}") as cur:
            cur.execute("DELETE FROM reminder_marks WHERE subscription_id = %s;", (subscription_id,))
