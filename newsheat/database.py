"""Shared SQLite handle for the article table and the heatmap tables.

One connection per engine, opened with ``check_same_thread=False`` so blocking
statements can run in worker threads via ``asyncio.to_thread``. Every
statement goes through ``lock`` (WAL mode tolerates concurrent readers,
the lock serializes use of the single connection object).
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from newsheat.config import SQLITE_BUSY_TIMEOUT_MS

logger = logging.getLogger(__name__)


class NewsDatabase:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError(f"database {self.path} is not open")
        return self._conn

    def open(self) -> None:
        """Open the file (creating parent dirs) and apply pragmas. Idempotent."""
        if self._conn is not None:
            return
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self.path),
            timeout=SQLITE_BUSY_TIMEOUT_MS / 1000,
            isolation_level=None,
            check_same_thread=False,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute(f"PRAGMA busy_timeout={int(SQLITE_BUSY_TIMEOUT_MS)};")
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn
        logger.debug("Opened news database %s", self.path)

    def close(self) -> None:
        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def table_exists(self, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,),
        ).fetchone()
        return row is not None

    def __enter__(self) -> "NewsDatabase":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
