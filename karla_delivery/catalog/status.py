"""Persistent product-sync status.

Holds the tri-state status of the bulk walk and the time the last full sync
was triggered. Uses SQLite so the state survives worker restarts.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from karla_delivery.models import SyncStatus


class SyncStatusStore:
    """Single-row SQLite state; last writer wins."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS product_sync_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                status TEXT,
                last_enabled INTEGER
            )"""
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO product_sync_state (id, status, last_enabled) "
            "VALUES (1, NULL, NULL)"
        )
        self._conn.commit()

    def get_status(self) -> SyncStatus | None:
        row = self._conn.execute(
            "SELECT status FROM product_sync_state WHERE id = 1"
        ).fetchone()
        return SyncStatus(row[0]) if row and row[0] else None

    def set_status(self, status: SyncStatus) -> None:
        self._conn.execute(
            "UPDATE product_sync_state SET status = ? WHERE id = 1",
            (status.value,),
        )
        self._conn.commit()

    def get_last_enabled(self) -> int | None:
        row = self._conn.execute(
            "SELECT last_enabled FROM product_sync_state WHERE id = 1"
        ).fetchone()
        return row[0] if row else None

    def set_last_enabled(self, timestamp: int) -> None:
        self._conn.execute(
            "UPDATE product_sync_state SET last_enabled = ? WHERE id = 1",
            (timestamp,),
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
