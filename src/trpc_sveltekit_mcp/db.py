"""DB connection: a single local SQLite file (or :memory: for tests)."""

from __future__ import annotations

import sqlite3
from pathlib import Path

MEMORY = ":memory:"


def get_conn(db_path: Path | str) -> sqlite3.Connection:
    """Open the store at db_path.

    The connection runs in autocommit mode (isolation_level=None) so the
    record store can issue its own BEGIN IMMEDIATE / COMMIT, and may be
    shared across threads; callers serialise access themselves.

    A 0-byte file is reported up front instead of surfacing later as an
    opaque "disk I/O error".
    """
    if str(db_path) == MEMORY:
        return sqlite3.connect(MEMORY, isolation_level=None, check_same_thread=False)

    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if db_path.exists() and db_path.stat().st_size == 0:
        msg = (
            f"SQLite DB is empty (0 bytes): {db_path}\n"
            f"Fix: rm {db_path}* && trpc-sveltekit-mcp sync --force"
        )
        raise sqlite3.OperationalError(msg)
    conn = sqlite3.connect(str(db_path), isolation_level=None, check_same_thread=False)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.OperationalError as exc:
        conn.close()
        raise sqlite3.OperationalError(
            f"Failed to open DB {db_path} — may be corrupt.\n"
            f"Fix: rm {db_path}* && trpc-sveltekit-mcp sync --force\n"
            f"Original error: {exc}"
        ) from exc
    return conn
