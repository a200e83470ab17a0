"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from db.connection import db_cursor
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Subscriptions: one row per tracked subscription. Status is derived, never stored.
CREATE TABLE IF NOT EXISTS subscriptions (
    id                      TEXT PRIMARY KEY,
    name                    VARCHAR(200) NOT NULL CHECK (btrim(name) <> ''),
    type                    VARCHAR(20) NOT NULL
                            CHECK (type IN ('video', 'music', 'cloud', 'software', 'domain', 'server', 'other')),
    custom_type             VARCHAR(100),
    cycle                   VARCHAR(20) NOT NULL
                            CHECK (cycle IN ('monthly', 'quarterly', 'semi-annual', 'annual', 'one-time')),
    expiry_date             BIGINT NOT NULL,
    reminder_days           INT NOT NULL DEFAULT 7 CHECK (reminder_days >= 0),
    notification_channels   TEXT[] NOT NULL DEFAULT '{}',
    is_enabled              BOOLEAN NOT NULL DEFAULT TRUE,
    url                     TEXT,
    notes                   TEXT,
    created_at              BIGINT NOT NULL,
    updated_at              BIGINT NOT NULL
);

-- Reminder marks: last reminder sent per subscription (scheduler dedup state)
CREATE TABLE IF NOT EXISTS reminder_marks (
    subscription_id         TEXT PRIMARY KEY REFERENCES subscriptions(id) ON DELETE CASCADE,
    notified_at             BIGINT NOT NULL,
    expiry_date             BIGINT NOT NULL
);

-- App config: notification channel config and settings as JSON documents
CREATE TABLE IF NOT EXISTS app_config (
    key                     VARCHAR(50) PRIMARY KEY,
    value                   JSONB NOT NULL,
    updated_at              TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_expiry ON subscriptions(expiry_date) WHERE is_enabled = TRUE;
CREATE INDEX IF NOT EXISTS idx_subscriptions_name ON subscriptions(lower(name));
"""


def create_tables() -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    with db_cursor("initialize schema") as cur:
        cur.execute(SCHEMA_SQL)
    logger.info("Database schema initialized successfully.")


if __name__ == "__main__":
    from db.connection import init_pool
    init_pool()
    create_tables()
    print("✅ Database schema created successfully.")
