from __future__ import annotations

import json
import sqlite3
import time
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from repomap.logging import get_logger

CACHE_VERSION = "2"

logger = get_logger("cache")


@dataclass(slots=True)
class CacheEntry:
    fingerprint: str
    created_at: float
    payload: dict[str, Any]


def cache_key(repository: str, revision: str) -> str:
    return f"{repository}@{revision}"


class AnalysisCache:
    """Fingerprint-validated store of per-repository analysis results.

    Entries are read once by :meth:`load` and written back by :meth:`save`.
    A store that cannot be read is treated as empty and rebuilt on save.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._entries: dict[str, CacheEntry] = {}
        self._loaded = False
        self._dirty = False
        self._reset = False

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS cache_entries (
                cache_key TEXT PRIMARY KEY,
                repository TEXT NOT NULL,
                revision TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                created_at REAL NOT NULL,
                payload TEXT NOT NULL
            );
            """
        )

    def load(self) -> None:
        self._entries = {}
        self._loaded = True
        if not self.path.exists():
            return
        try:
            with closing(self._connect()) as conn:
                row = conn.execute("SELECT value FROM meta WHERE key = 'version'").fetchone()
                if not row or row[0] != CACHE_VERSION:
                    logger.info("cache version mismatch, starting cold: %s", self.path)
                    self._reset = True
                    return
                rows = conn.execute(
                    "SELECT cache_key, fingerprint, created_at, payload FROM cache_entries"
                ).fetchall()
        except sqlite3.Error as exc:
            logger.warning("cache store unreadable, starting cold (%s): %s", self.path, exc)
            self._reset = True
            return

        for key, fingerprint, created_at, payload in rows:
            try:
                data = json.loads(payload)
            except ValueError:
                logger.warning("dropping corrupt cache entry %s", key)
                self._dirty = True
                continue
            self._entries[key] = CacheEntry(fingerprint=fingerprint, created_at=created_at, payload=data)

    def get(self, key: str, fingerprint: str) -> dict[str, Any] | None:
        if not self._loaded:
            self.load()
        entry = self._entries.get(key)
        if entry is not None and entry.fingerprint == fingerprint:
            return entry.payload
        return None

    def set(self, key: str, fingerprint: str, value: dict[str, Any]) -> None:
        if not self._loaded:
            self.load()
        self._entries[key] = CacheEntry(fingerprint=fingerprint, created_at=time.time(), payload=value)
        self._dirty = True

    def save(self) -> None:
        if not self._dirty and not self._reset:
            return
        try:
            if self._reset and self.path.exists():
                self.path.unlink()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn:
                self._init_db(conn)
                conn.execute(
                    "INSERT OR REPLACE INTO meta(key, value) VALUES ('version', ?)",
                    (CACHE_VERSION,),
                )
                conn.execute("DELETE FROM cache_entries")
                conn.executemany(
                    "INSERT INTO cache_entries(cache_key, repository, revision, fingerprint, created_at, payload) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (
                            key,
                            key.rpartition("@")[0] or key,
                            key.rpartition("@")[2],
                            entry.fingerprint,
                            entry.created_at,
                            json.dumps(entry.payload, ensure_ascii=False),
                        )
                        for key, entry in self._entries.items()
                    ],
                )
                conn.commit()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("failed to save cache %s: %s", self.path, exc)
            return
        self._dirty = False
        self._reset = False

    def clear(self) -> None:
        self._entries = {}
        self._loaded = True
        self._dirty = True

    def stats(self) -> dict[str, Any]:
        size = sum(len(json.dumps(item.payload)) for item in self._entries.values())
        if size > 1024 * 1024:
            human = f"{size / 1024 / 1024:.1f}MB"
        else:
            human = f"{size / 1024:.1f}KB"
        return {"entries": len(self._entries), "size": human}
