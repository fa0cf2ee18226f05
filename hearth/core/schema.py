"""SQLite schema management (code-first approach)."""

import logging

from hearth.core.db_client import Database


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "members",
    "push_subscriptions",
    "task_definitions",
    "task_executions",
    "outbox",
    "processed_events",
]


_TABLES: dict[str, str] = {
    "members": """
        CREATE TABLE IF NOT EXISTS members (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created TEXT NOT NULL
        )
    """,
    "push_subscriptions": """
        CREATE TABLE IF NOT EXISTS push_subscriptions (
            id TEXT PRIMARY KEY,
            member_id TEXT NOT NULL REFERENCES members (id),
            endpoint TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            created TEXT NOT NULL
        )
    """,
    "task_definitions": """
        CREATE TABLE IF NOT EXISTS task_definitions (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            duration_minutes INTEGER NOT NULL,
            points INTEGER NOT NULL DEFAULT 0,
            scope TEXT NOT NULL CHECK (scope IN ('FAMILY', 'PERSONAL')),
            owner_id TEXT REFERENCES members (id),
            schedule TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            is_deleted INTEGER NOT NULL DEFAULT 0
        )
    """,
    "task_executions": """
        CREATE TABLE IF NOT EXISTS task_executions (
            id TEXT PRIMARY KEY,
            task_definition_id TEXT NOT NULL REFERENCES task_definitions (id),
            scheduled_date TEXT NOT NULL,
            status TEXT NOT NULL,
            assignee_id TEXT,
            snapshot TEXT,
            started_at TEXT,
            completed_at TEXT,
            completed_by TEXT,
            earned_points INTEGER,
            cancelled_at TEXT,
            UNIQUE (task_definition_id, scheduled_date)
        )
    """,
    "outbox": """
        CREATE TABLE IF NOT EXISTS outbox (
            id TEXT PRIMARY KEY,
            event_type TEXT NOT NULL,
            aggregate_type TEXT NOT NULL,
            aggregate_id TEXT NOT NULL,
            payload TEXT NOT NULL,
            status TEXT NOT NULL,
            retry_count INTEGER NOT NULL DEFAULT 0,
            max_retries INTEGER NOT NULL DEFAULT 5,
            created_at TEXT NOT NULL,
            processed_at TEXT,
            error_message TEXT
        )
    """,
    "processed_events": """
        CREATE TABLE IF NOT EXISTS processed_events (
            id TEXT PRIMARY KEY,
            event_type TEXT NOT NULL,
            processed_at TEXT NOT NULL
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_outbox_status_created ON outbox (status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_executions_date ON task_executions (scheduled_date)",
    "CREATE INDEX IF NOT EXISTS idx_executions_status ON task_executions (status)",
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_member ON push_subscriptions (member_id)",
]


def build_schema_script() -> str:
    """Return the full DDL script for every collection and index."""
    statements = [_TABLES[name].strip() for name in COLLECTIONS]
    statements.extend(_INDEXES)
    return ";\n".join(statements) + ";"


async def init_db(db: Database) -> None:
    """Create all tables and indexes that do not exist yet."""
    async with db.session() as session:
        await session.execute_script(build_schema_script())
    logger.info("Database schema initialized", extra={"collections": COLLECTIONS})
