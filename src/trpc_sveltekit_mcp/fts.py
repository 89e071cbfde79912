"""Full-text index: one FTS5 table per entry kind, derived from the record store.

The FTS tables are self-contained (no content= link): each stores its own copy
of the indexed text, keyed by rowid = entry id.  They are never written
directly by callers; RecordStore calls resync() inside the transaction that
mutates the row, so readers never see a row whose postings are stale.

Ranking is FTS5 bm25(): more negative is a stronger match.  Ties are broken by
ascending entry id.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Mapping

    from trpc_sveltekit_mcp.models import EntryKind

# Every ASCII punctuation character splits tokens, on top of whitespace.
SEPARATORS = " !\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~"

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"

# Letters and digits, minus "_" which is one of the separators above.
_TOKEN_RE = re.compile(r"[^\W_]+")


def _tokenize_clause() -> str:
    inner = "unicode61 separators '" + SEPARATORS.replace("'", "''") + "'"
    return 'tokenize="' + inner.replace('"', '""') + '"'


def tokenize(text: str) -> list[str]:
    """Lower-cased tokens as the index sees them (no stemming)."""
    return _TOKEN_RE.findall(text.lower())


@dataclass
class Match:
    entry_id: int
    rank: float
    highlights: dict[str, str] = field(default_factory=dict)   # field -> marked-up text


class FullTextIndex:
    """Token index over the text fields of each entry kind."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def ensure_schema(self, kind: EntryKind) -> None:
        columns = ", ".join(kind.text_fields)
        self._conn.execute(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {kind.fts_table} "
            f"USING fts5({columns}, {_tokenize_clause()})"
        )

    def resync(self, kind: EntryKind, entry_id: int, fields: Mapping[str, str] | None) -> None:
        """Replace the postings of one entry; fields=None removes them.

        Must run inside the caller's write transaction.
        """
        self._conn.execute(f"DELETE FROM {kind.fts_table} WHERE rowid = ?", (entry_id,))
        if fields is None:
            return
        columns = ", ".join(kind.text_fields)
        placeholders = ", ".join("?" for _ in kind.text_fields)
        self._conn.execute(
            f"INSERT INTO {kind.fts_table}(rowid, {columns}) VALUES (?, {placeholders})",
            (entry_id, *(fields[f] for f in kind.text_fields)),
        )

    def clear(self, kind: EntryKind) -> None:
        self._conn.execute(f"DELETE FROM {kind.fts_table}")

    def count(self, kind: EntryKind) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {kind.fts_table}").fetchone()[0]

    def match(self, kind: EntryKind, expression: str, limit: int | None = None) -> list[Match]:
        """Run an FTS5 MATCH expression; best rank first, ties by ascending id.

        An empty expression matches nothing.
        """
        if not expression.strip():
            return []
        highlight_cols = ", ".join(
            f"highlight({kind.fts_table}, {i}, ?, ?)" for i in range(len(kind.text_fields))
        )
        params: list[object] = []
        for _ in kind.text_fields:
            params += [HIGHLIGHT_OPEN, HIGHLIGHT_CLOSE]
        params += [expression, -1 if limit is None else limit]
        rows = self._conn.execute(
            f"""SELECT rowid, bm25({kind.fts_table}) AS rank, {highlight_cols}
                FROM {kind.fts_table}
                WHERE {kind.fts_table} MATCH ?
                ORDER BY rank, rowid
                LIMIT ?""",
            params,
        ).fetchall()
        return [
            Match(
                entry_id=r[0],
                rank=r[1],
                highlights=dict(zip(kind.text_fields, r[2:], strict=True)),
            )
            for r in rows
        ]
