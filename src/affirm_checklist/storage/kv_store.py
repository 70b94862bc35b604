# src/affirm_checklist/storage/kv_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..errors import BackingStoreUnavailable

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """
    SQLite-backed key-value store (one table, JSON values).

    - get(key) returns the decoded value or None for a missing key
    - set({...}) writes all pairs in one transaction

    Thread-safety:
    - each call opens its own SQLite connection
    - the blocking work runs in a worker thread so the event loop stays responsive
    """

    def __init__(self, db_path: str | Path = "checklist.sqlite3") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise BackingStoreUnavailable(f"Local store not available at {self._db_path}: {e}") from e
        logger.info("KeyValueStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _get_sync(self, key: str) -> Any | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON for key=%s; treating as missing", key)
            return None

    def _set_sync(self, items: dict[str, Any]) -> None:
        now = time.time()
        rows = [(k, json.dumps(v, ensure_ascii=False), now) for k, v in items.items()]
        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                rows,
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    async def get(self, key: str) -> Any | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as e:
            logger.error("KV get failed key=%s: %s", key, e)
            raise BackingStoreUnavailable(f"Failed to read '{key}' from local store: {e}") from e

    async def set(self, items: dict[str, Any]) -> None:
        if not items:
            return
        try:
            await asyncio.to_thread(self._set_sync, items)
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error("KV set failed keys=%s: %s", sorted(items), e)
            raise BackingStoreUnavailable(f"Failed to write {sorted(items)} to local store: {e}") from e
        logger.debug("KV set keys=%s", sorted(items))
