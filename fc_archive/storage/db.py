from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Iterator

from ..models import Cast, User


def open_db(path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the archive database."""
    if str(path) != ":memory:":
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row

    # Pragmas: safe defaults for a local archive
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn


MIGRATIONS: list[str] = [
    # 1: response cache (complete, already-paginated payloads)
    """
    CREATE TABLE IF NOT EXISTS feed_cache (
      fid INTEGER PRIMARY KEY,
      data TEXT NOT NULL,
      fetched_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );

    CREATE TABLE IF NOT EXISTS replies_cache (
      fid INTEGER PRIMARY KEY,
      data TEXT NOT NULL,
      fetched_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );

    CREATE TABLE IF NOT EXISTS conversation_cache (
      hash TEXT PRIMARY KEY,
      data TEXT NOT NULL,
      fetched_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
    );
    """,

    # 2: archived users and casts
    """
    CREATE TABLE IF NOT EXISTS users (
      fid INTEGER PRIMARY KEY,
      username TEXT,
      display_name TEXT,
      avatar TEXT,
      bio TEXT
    );

    CREATE TABLE IF NOT EXISTS casts (
      hash TEXT PRIMARY KEY,
      fid INTEGER NOT NULL,
      timestamp TEXT,
      parent_fid INTEGER,
      parent_hash TEXT,
      thread_hash TEXT,
      data TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_casts_fid ON casts(fid);
    CREATE INDEX IF NOT EXISTS idx_casts_parent ON casts(parent_hash, parent_fid);
    """,
]


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')))")
    cur = conn.execute("SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations")
    current = int(cur.fetchone()["v"])

    for idx, sql in enumerate(MIGRATIONS, start=1):
        if idx <= current:
            continue
        with conn:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (idx,))


# -----------------------------------------------------------------------------
# Response cache
# -----------------------------------------------------------------------------

CACHE_TABLES = {
    "feed": ("feed_cache", "fid"),
    "replies": ("replies_cache", "fid"),
    "conversation": ("conversation_cache", "hash"),
}


class ResponseCache:
    """Keyed JSON blobs. Entries are never refreshed or evicted."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @staticmethod
    def _table(kind: str) -> tuple[str, str]:
        try:
            return CACHE_TABLES[kind]
        except KeyError:
            raise ValueError(f"unknown cache kind: {kind!r}") from None

    def get(self, kind: str, key: int | str) -> dict | None:
        table, column = self._table(kind)
        row = self.conn.execute(f"SELECT data FROM {table} WHERE {column} = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row["data"])

    def put(self, kind: str, key: int | str, payload: dict) -> None:
        table, column = self._table(kind)
        with self.conn:
            self.conn.execute(
                f"INSERT OR REPLACE INTO {table} ({column}, data) VALUES (?, ?)",
                (key, json.dumps(payload, ensure_ascii=False)),
            )


# -----------------------------------------------------------------------------
# Users and casts
# -----------------------------------------------------------------------------


class Store:
    """Archived authors (by fid) and casts (by hash)."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def tag_cast(self, cast: Cast) -> bool:
        """Record a cast and its author if not already present.

        Returns True when the cast row is new.
        """
        author = cast.author
        with self.conn:
            self.conn.execute(
                "INSERT INTO users (fid, username, display_name, avatar, bio) VALUES (?,?,?,?,?) "
                "ON CONFLICT(fid) DO NOTHING",
                (author.fid, author.username, author.display_name, author.avatar, author.bio),
            )
            cur = self.conn.execute(
                "INSERT INTO casts (hash, fid, timestamp, parent_fid, parent_hash, thread_hash, data) VALUES (?,?,?,?,?,?,?) "
                "ON CONFLICT(hash) DO NOTHING",
                (
                    cast.hash,
                    cast.fid,
                    cast.timestamp,
                    cast.parent_fid,
                    cast.parent_hash,
                    cast.thread_hash,
                    json.dumps(cast.raw, ensure_ascii=False),
                ),
            )
        return cur.rowcount > 0

    def save_user(self, user: User) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO users (fid, username, display_name, avatar, bio) VALUES (?,?,?,?,?) "
                "ON CONFLICT(fid) DO NOTHING",
                (user.fid, user.username, user.display_name, user.avatar, user.bio),
            )

    def get_user(self, fid: int) -> User | None:
        row = self.conn.execute(
            "SELECT fid, username, display_name, avatar, bio FROM users WHERE fid = ?", (fid,)
        ).fetchone()
        return User.from_row(row) if row else None

    def get_cast(self, cast_hash: str, fid: int | None = None) -> Cast | None:
        if fid:
            row = self.conn.execute("SELECT data FROM casts WHERE hash = ? AND fid = ?", (cast_hash, fid)).fetchone()
        else:
            row = self.conn.execute("SELECT data FROM casts WHERE hash = ?", (cast_hash,)).fetchone()
        if row is None:
            return None
        return Cast.from_dict(json.loads(row["data"]))

    def count_replies(self, fid: int, cast_hash: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(1) AS n FROM casts WHERE parent_hash = ? AND parent_fid = ?", (cast_hash, fid)
        ).fetchone()
        return int(row["n"]) if row else 0

    def user_fids(self) -> list[int]:
        return [int(r["fid"]) for r in self.conn.execute("SELECT fid FROM users ORDER BY fid")]

    def cast_hashes_for(self, fid: int) -> list[str]:
        return [
            str(r["hash"])
            for r in self.conn.execute("SELECT hash FROM casts WHERE fid = ? ORDER BY timestamp, hash", (fid,))
        ]

    def iter_casts(self) -> Iterator[Cast]:
        for r in self.conn.execute("SELECT data FROM casts ORDER BY timestamp, hash").fetchall():
            yield Cast.from_dict(json.loads(r["data"]))

    def counts(self) -> dict[str, int]:
        users = self.conn.execute("SELECT COUNT(1) AS n FROM users").fetchone()["n"]
        casts = self.conn.execute("SELECT COUNT(1) AS n FROM casts").fetchone()["n"]
        return {"users": int(users), "casts": int(casts)}
