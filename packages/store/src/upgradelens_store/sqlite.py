"""SQLiteStore — local file-based store, the default backend.

Why SQLite as the local store:
- Batteries included: ships with Python, no extra dependencies.
- Every checkpoint is a single-row upsert committed immediately, so a crash
  mid-batch loses at most the file being analysed.
- The database file can be copied between machines to hand over a
  half-finished run.

Schema:
  kv — one row per key; the value column holds JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any

from upgradelens_store.base import BaseStore, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value_json  TEXT NOT NULL,
    updated_at  TEXT
);
"""


class SQLiteStore(BaseStore):
    """Stores pipeline state in a local SQLite database file.

    The database file path defaults to `.upgradelens.db` in the current
    working directory. Configure via .upgradelens.yml:
    `store_path: /path/to/upgradelens.db`.
    """

    def __init__(self, db_path: str = ".upgradelens.db"):
        try:
            self._conn = sqlite3.connect(db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open store at {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = self._conn.execute("SELECT value_json FROM kv WHERE key=?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {key!r}: {e}") from e
        if row is None:
            return default
        return json.loads(row["value_json"])

    def set(self, key: str, value: Any) -> None:
        try:
            value_json = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value for {key!r} is not JSON-serialisable: {e}") from e
        try:
            self._conn.execute(
                """
                INSERT INTO kv (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value_json=excluded.value_json, updated_at=excluded.updated_at
                """,
                (key, value_json, datetime.now(timezone.utc).isoformat()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key=?", (key,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete {key!r}: {e}") from e

    def keys(self, prefix: str = "") -> list[str]:
        # LIKE treats _ and % as wildcards; filter in Python instead.
        rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [r["key"] for r in rows if r["key"].startswith(prefix)]

    def close(self) -> None:
        self._conn.close()
