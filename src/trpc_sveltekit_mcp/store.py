"""Record store: knowledge and examples tables plus a key/value metadata table.

The store is the source of truth.  Every row mutation calls
FullTextIndex.resync() for that row before the surrounding transaction
commits, replacing the INSERT/UPDATE/DELETE triggers a plain FTS5 setup
would use.

Upsert semantics (per natural key):
    no row                 -> INSERT, version 1              -> inserted
    row, same content_hash -> no write                       -> unchanged
    row, new content_hash  -> UPDATE, version + 1            -> updated
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from trpc_sveltekit_mcp.fts import FullTextIndex
from trpc_sveltekit_mcp.models import KINDS, EntryKind, UpsertOutcome

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterable, Iterator, Mapping

logger = logging.getLogger("trpc_sveltekit_mcp.store")


def content_hash(fields: Mapping[str, str], kind: EntryKind) -> str:
    """Hash of the text fields concatenated in column order."""
    text = "".join(fields[f] for f in kind.text_fields)
    return hashlib.sha256(text.encode("utf-8", errors="replace")).hexdigest()


def _now() -> str:
    return datetime.now(UTC).isoformat()


class RecordStore:
    """Durable rows for both entry kinds; owns ids and keeps the index in step."""

    def __init__(self, conn: sqlite3.Connection, index: FullTextIndex | None = None) -> None:
        self._conn = conn
        self.index = index or FullTextIndex(conn)

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Schema / transactions
    # ------------------------------------------------------------------

    def ensure_schema(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS knowledge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                question TEXT NOT NULL UNIQUE,
                answer TEXT NOT NULL,
                content_hash TEXT,
                version INTEGER DEFAULT 1,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS examples (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                instruction TEXT NOT NULL UNIQUE,
                input TEXT NOT NULL,
                output TEXT NOT NULL,
                content_hash TEXT,
                version INTEGER DEFAULT 1,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT
            );
        """)
        for kind in KINDS.values():
            self.index.ensure_schema(kind)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Exclusive write transaction: commit on success, roll back on any error."""
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Writes (call inside transaction())
    # ------------------------------------------------------------------

    def upsert(self, kind: EntryKind, fields: Mapping[str, str]) -> UpsertOutcome:
        key = fields[kind.key_field]
        new_hash = content_hash(fields, kind)
        row = self._conn.execute(
            f"SELECT id, content_hash, version FROM {kind.table} WHERE {kind.key_field} = ?",
            (key,),
        ).fetchone()

        now = _now()
        if row is None:
            columns = ", ".join(kind.text_fields)
            placeholders = ", ".join("?" for _ in kind.text_fields)
            cur = self._conn.execute(
                f"INSERT INTO {kind.table}({columns}, content_hash, version, created_at, updated_at) "
                f"VALUES ({placeholders}, ?, 1, ?, ?)",
                (*(fields[f] for f in kind.text_fields), new_hash, now, now),
            )
            entry_id = cur.lastrowid
            outcome = UpsertOutcome.INSERTED
        else:
            entry_id, old_hash, version = row
            if old_hash == new_hash:
                return UpsertOutcome.UNCHANGED
            assignments = ", ".join(f"{f} = ?" for f in kind.text_fields)
            self._conn.execute(
                f"UPDATE {kind.table} SET {assignments}, content_hash = ?, version = ?, updated_at = ? "
                f"WHERE id = ?",
                (*(fields[f] for f in kind.text_fields), new_hash, (version or 0) + 1, now, entry_id),
            )
            outcome = UpsertOutcome.UPDATED

        self.index.resync(kind, entry_id, fields)
        return outcome

    def delete(self, kind: EntryKind, entry_id: int) -> bool:
        cur = self._conn.execute(f"DELETE FROM {kind.table} WHERE id = ?", (entry_id,))
        self.index.resync(kind, entry_id, None)
        return cur.rowcount > 0

    def clear(self, kind: EntryKind) -> int:
        """Delete every row of a kind. AUTOINCREMENT keeps old ids from coming back."""
        cur = self._conn.execute(f"DELETE FROM {kind.table}")
        self.index.clear(kind)
        logger.info("cleared %d %s rows", cur.rowcount, kind.name)
        return cur.rowcount

    def set_metadata(self, key: str, value: str) -> None:
        self._conn.execute(
            """INSERT INTO metadata(key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                   value = excluded.value,
                   updated_at = excluded.updated_at""",
            (key, value, _now()),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self, kind: EntryKind) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {kind.table}").fetchone()[0]

    def _row_dict(self, kind: EntryKind, row: tuple[Any, ...]) -> dict[str, Any]:
        names = ("id", *kind.text_fields, "content_hash", "version", "created_at", "updated_at")
        return dict(zip(names, row, strict=True))

    def _select(self, kind: EntryKind) -> str:
        columns = ", ".join(kind.text_fields)
        return f"SELECT id, {columns}, content_hash, version, created_at, updated_at FROM {kind.table}"

    def get_by_key(self, kind: EntryKind, key: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            f"{self._select(kind)} WHERE {kind.key_field} = ?", (key,)
        ).fetchone()
        return self._row_dict(kind, row) if row else None

    def get_many(self, kind: EntryKind, ids: Iterable[int]) -> dict[int, dict[str, Any]]:
        id_list = list(ids)
        if not id_list:
            return {}
        placeholders = ", ".join("?" for _ in id_list)
        rows = self._conn.execute(
            f"{self._select(kind)} WHERE id IN ({placeholders})", id_list
        ).fetchall()
        return {r[0]: self._row_dict(kind, r) for r in rows}

    def all_entries(self, kind: EntryKind) -> list[dict[str, Any]]:
        rows = self._conn.execute(f"{self._select(kind)} ORDER BY id").fetchall()
        return [self._row_dict(kind, r) for r in rows]

    def get_metadata(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def metadata(self) -> dict[str, str]:
        return dict(self._conn.execute("SELECT key, value FROM metadata ORDER BY key").fetchall())
