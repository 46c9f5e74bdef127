"""Database operations for seikyu properties and triggers."""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("seikyu.db")


@dataclass
class Trigger:
    id: int
    handler: str
    cron_expression: str
    enabled: bool
    last_run_at: str | None
    created_at: str | None


def init_db(db_path: Path) -> None:
    """Initialize database with schema."""
    schema_path = Path(__file__).parent / "schema.sql"
    with sqlite3.connect(db_path) as conn:
        conn.executescript(schema_path.read_text())


@contextmanager
def get_db(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Get database connection with row factory."""
    # timeout=30.0 waits up to 30s for locks instead of failing immediately
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


# ============================================================================
# Property store
# ============================================================================


def prop_get(conn: sqlite3.Connection, key: str) -> str | None:
    """Get a property value, or None if unset."""
    row = conn.execute(
        "SELECT value FROM properties WHERE key = ?", (key,),
    ).fetchone()
    if row is None:
        return None
    return row["value"]


def prop_set(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Set a property value. Upserts if key already exists."""
    conn.execute(
        """
        INSERT INTO properties (key, value, updated_at)
        VALUES (?, ?, datetime('now'))
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """,
        (key, value),
    )


def prop_delete(conn: sqlite3.Connection, key: str) -> bool:
    """Delete a property. Returns True if key existed."""
    cursor = conn.execute("DELETE FROM properties WHERE key = ?", (key,))
    return cursor.rowcount > 0


def prop_list(conn: sqlite3.Connection) -> list[dict]:
    """List all properties. Returns list of dicts with key, value, updated_at."""
    cursor = conn.execute(
        "SELECT key, value, updated_at FROM properties ORDER BY key",
    )
    return [
        {"key": row["key"], "value": row["value"], "updated_at": row["updated_at"]}
        for row in cursor.fetchall()
    ]


# ============================================================================
# Triggers
# ============================================================================


def _row_to_trigger(row: sqlite3.Row) -> Trigger:
    return Trigger(
        id=row["id"],
        handler=row["handler"],
        cron_expression=row["cron_expression"],
        enabled=bool(row["enabled"]),
        last_run_at=row["last_run_at"],
        created_at=row["created_at"],
    )


def add_trigger(conn: sqlite3.Connection, handler: str, cron_expression: str) -> int:
    """Insert a trigger. Returns the new trigger ID."""
    cursor = conn.execute(
        "INSERT INTO triggers (handler, cron_expression) VALUES (?, ?)",
        (handler, cron_expression),
    )
    return cursor.lastrowid


def list_triggers(conn: sqlite3.Connection, handler: str | None = None) -> list[Trigger]:
    """List triggers, optionally only those for one handler."""
    query = (
        "SELECT id, handler, cron_expression, enabled, last_run_at, created_at "
        "FROM triggers"
    )
    params: tuple = ()
    if handler is not None:
        query += " WHERE handler = ?"
        params = (handler,)
    query += " ORDER BY id"
    return [_row_to_trigger(row) for row in conn.execute(query, params).fetchall()]


def get_enabled_triggers(conn: sqlite3.Connection) -> list[Trigger]:
    """Fetch all enabled triggers."""
    cursor = conn.execute(
        """
        SELECT id, handler, cron_expression, enabled, last_run_at, created_at
        FROM triggers
        WHERE enabled = 1
        ORDER BY id
        """
    )
    return [_row_to_trigger(row) for row in cursor.fetchall()]


def delete_triggers_for_handler(conn: sqlite3.Connection, handler: str) -> int:
    """Delete every trigger for a handler. Returns number deleted."""
    cursor = conn.execute("DELETE FROM triggers WHERE handler = ?", (handler,))
    return cursor.rowcount


def set_trigger_last_run(conn: sqlite3.Connection, trigger_id: int) -> None:
    """Update last_run_at to now for a trigger."""
    conn.execute(
        "UPDATE triggers SET last_run_at = datetime('now') WHERE id = ?",
        (trigger_id,),
    )
