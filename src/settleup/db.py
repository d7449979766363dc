"""SQLite storage for local CLI state."""

import sqlite3
from datetime import datetime
from pathlib import Path

ACTIVE_GROUP_KEY = "active_group_id"


class Database:
    """SQLite database manager.

    Only remembers settings between CLI invocations (such as the active
    group). Groups, members, expenses and plans always come from the services.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Config operations
    # ========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a config value by key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def set_config(self, key: str, value: str):
        """Set a config value."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO config (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        self.conn.commit()

    def delete_config(self, key: str):
        """Remove a config value."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM config WHERE key = ?", (key,))
        self.conn.commit()

    def get_active_group_id(self) -> int | None:
        """Get the remembered active group id."""
        value = self.get_config(ACTIVE_GROUP_KEY)
        return int(value) if value else None

    def set_active_group_id(self, group_id: int | None):
        """Remember the active group id (None forgets it)."""
        if group_id is None:
            self.delete_config(ACTIVE_GROUP_KEY)
        else:
            self.set_config(ACTIVE_GROUP_KEY, str(group_id))
