"""
SQLite registry of published recordings.

Thread-safe via check_same_thread=False + explicit locking. The scheduler only
calls ensure_exists(); the other queries back the catalog CLI commands.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from streamrec.domain.models import AccessLevel, CatalogEntry

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS recordings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    folder_name TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    access_level TEXT NOT NULL DEFAULT 'authenticated'
        CHECK (access_level IN ('public', 'authenticated', 'admin')),
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    file_path TEXT NOT NULL
);
"""


class RecordingCatalog:
    def __init__(self, db_path: Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_CREATE_TABLES)
            self._conn.commit()
        logger.info(f"Catalog initialized at {self.db_path}")

    def close(self):
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_entry(row: Optional[sqlite3.Row]) -> Optional[CatalogEntry]:
        if row is None:
            return None
        return CatalogEntry(**dict(row))

    def create(
        self,
        folder_name: str,
        file_path: Path,
        name: Optional[str] = None,
        access_level: AccessLevel = AccessLevel.AUTHENTICATED,
    ) -> CatalogEntry:
        with self._lock:
            cur = self._conn.execute(
                "INSERT INTO recordings (folder_name, name, access_level, file_path) VALUES (?, ?, ?, ?)",
                (folder_name, name or folder_name, AccessLevel(access_level).value, str(file_path)),
            )
            self._conn.commit()
            row_id = cur.lastrowid
        return self.find_by_id(row_id)

    def find_by_id(self, entry_id: int) -> Optional[CatalogEntry]:
        with self._lock:
            row = self._conn.execute("SELECT * FROM recordings WHERE id = ?", (entry_id,)).fetchone()
        return self._row_to_entry(row)

    def find_by_folder_name(self, folder_name: str) -> Optional[CatalogEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM recordings WHERE folder_name = ?", (folder_name,)
            ).fetchone()
        return self._row_to_entry(row)

    def find_all(self) -> List[CatalogEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM recordings ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def find_by_access_level(self, levels: Iterable[AccessLevel]) -> List[CatalogEntry]:
        values = [AccessLevel(level).value for level in levels]
        if not values:
            return []
        placeholders = ",".join("?" for _ in values)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM recordings WHERE access_level IN ({placeholders}) "
                "ORDER BY created_at DESC, id DESC",
                values,
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def update_access_level(self, folder_name: str, access_level: AccessLevel) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE recordings SET access_level = ? WHERE folder_name = ?",
                (AccessLevel(access_level).value, folder_name),
            )
            self._conn.commit()
        return cur.rowcount > 0

    def delete(self, folder_name: str) -> bool:
        with self._lock:
            cur = self._conn.execute("DELETE FROM recordings WHERE folder_name = ?", (folder_name,))
            self._conn.commit()
        return cur.rowcount > 0

    def ensure_exists(self, folder_name: str, file_path: Path) -> CatalogEntry:
        """Returns the entry for folder_name, creating it with default access if missing."""
        existing = self.find_by_folder_name(folder_name)
        if existing is not None:
            return existing
        try:
            return self.create(folder_name, file_path)
        except sqlite3.IntegrityError:
            # Lost a race with another writer for the same folder
            return self.find_by_folder_name(folder_name)
