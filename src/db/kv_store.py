from __future__ import annotations

import copy
import json
import sqlite3
from typing import Any, Dict, Iterable, Mapping, Protocol

DDL_STATEMENTS = [
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    """
    CREATE TABLE IF NOT EXISTS kv (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL,
      updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
    )
    """.strip(),
]

UPSERT_SQL = (
    """
    INSERT INTO kv (key, value) VALUES (:key, :value)
    ON CONFLICT(key)
    DO UPDATE SET
      value = excluded.value,
      updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
    """
).strip()

# Storage keys
BUSINESS_DATA_KEY = "businessData"
AUTO_SEQUENCE_KEY = "autoSequenceState"


class KeyValueStore(Protocol):
    """get/set persistence collaborator (values are JSON-compatible)."""

    def get(self, keys: Iterable[str]) -> Dict[str, Any]: ...

    def set(self, mapping: Mapping[str, Any]) -> None: ...


def ensure_schema(conn: sqlite3.Connection) -> None:
    for stmt in DDL_STATEMENTS:
        conn.execute(stmt)


class SQLiteKeyValueStore:
    """Key-value store on a single SQLite table; values stored as JSON text."""

    def __init__(self, db_path: str) -> None:
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path)
        ensure_schema(self._conn)

    def close(self) -> None:
        self._conn.close()

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        rows = self._conn.execute(
            f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
        ).fetchall()
        out: Dict[str, Any] = {}
        for key, value in rows:
            try:
                out[key] = json.loads(value)
            except ValueError:
                continue
        return out

    def set(self, mapping: Mapping[str, Any]) -> None:
        rows = [
            {"key": key, "value": json.dumps(value, ensure_ascii=False)}
            for key, value in mapping.items()
        ]
        if not rows:
            return
        with self._conn:  # transactional batch
            self._conn.executemany(UPSERT_SQL, rows)


class MemoryKeyValueStore:
    """In-process store; values are deep-copied in and out."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))
        self.set_calls = 0

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    def set(self, mapping: Mapping[str, Any]) -> None:
        self.set_calls += 1
        for key, value in mapping.items():
            self._data[key] = copy.deepcopy(value)
