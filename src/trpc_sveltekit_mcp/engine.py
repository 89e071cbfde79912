"""SearchEngine: ingestion and ranked search over the knowledge and examples corpora.

    with SearchEngine.open(cfg.db_path) as engine:
        engine.ingest(knowledge, examples, version="1.2.0")
        engine.search_knowledge("router", limit=5)

The engine owns one SQLite connection.  A lock serialises every use of it, so
a query sees either the state before an ingestion batch or the state after,
never a mix.  A batch is a single BEGIN IMMEDIATE transaction: if any write
fails, nothing from the batch (including a force-resync clear) survives.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from trpc_sveltekit_mcp.db import MEMORY, get_conn
from trpc_sveltekit_mcp.errors import MalformedInputError, StorageError
from trpc_sveltekit_mcp.expander import ExpandedQuery, expand_query
from trpc_sveltekit_mcp.formatter import format_match
from trpc_sveltekit_mcp.models import (
    EXAMPLES,
    KINDS,
    KNOWLEDGE,
    EntryKind,
    IngestSummary,
    Rejection,
    coerce_record,
    get_kind,
)
from trpc_sveltekit_mcp.ranker import DEFAULT_BOOST_LIMIT, DEFAULT_CODE_BOOST, BoostOptions, rank_boosted
from trpc_sveltekit_mcp.store import RecordStore
from trpc_sveltekit_mcp.synonyms import DEFAULT_SYNONYMS, SynonymTable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path
    from types import TracebackType

logger = logging.getLogger("trpc_sveltekit_mcp.engine")

DEFAULT_PACKAGE_NAME = "trpc-sveltekit-mcp"


class SearchEngine:
    """Ingest records and answer ranked, synonym-expanded queries."""

    def __init__(self, store: RecordStore, synonyms: SynonymTable = DEFAULT_SYNONYMS) -> None:
        self._store = store
        self._synonyms = synonyms
        self._lock = threading.RLock()
        self._closed = False
        store.ensure_schema()

    @classmethod
    def open(cls, db_path: Path | str = MEMORY, synonyms: SynonymTable = DEFAULT_SYNONYMS) -> SearchEngine:
        try:
            conn = get_conn(db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open store at {db_path}: {exc}") from exc
        if str(db_path) != MEMORY:
            logger.info("database initialized at %s", db_path)
        return cls(RecordStore(conn), synonyms)

    @property
    def store(self) -> RecordStore:
        return self._store

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._store.conn.close()
                self._closed = True

    def __enter__(self) -> SearchEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _is_current(self, version: str | None) -> bool:
        if version is None:
            return False
        populated = any(self._store.count(k) > 0 for k in KINDS.values())
        return populated and self._store.get_metadata("db_version") == version

    def ingest(
        self,
        knowledge: Iterable[Any],
        examples: Iterable[Any],
        *,
        force_resync: bool = False,
        version: str | None = None,
        package_name: str = DEFAULT_PACKAGE_NAME,
    ) -> IngestSummary:
        """Upsert both corpora in one transaction.

        Skipped entirely when the store already holds data ingested under
        `version` (unless force_resync).  Invalid records are skipped and
        listed in summary.rejected; storage failures roll back the whole
        batch and raise StorageError.
        """
        summary = IngestSummary()
        batches = (
            (KNOWLEDGE, self._validate(KNOWLEDGE, knowledge, summary)),
            (EXAMPLES, self._validate(EXAMPLES, examples, summary)),
        )

        with self._lock:
            try:
                if not force_resync and self._is_current(version):
                    logger.info("database is up to date (v%s), skipping population", version)
                    summary.skipped = True
                    return summary

                with self._store.transaction():
                    if force_resync:
                        logger.info("force resync: clearing existing data")
                        for kind in KINDS.values():
                            self._store.clear(kind)
                        summary.cleared = True

                    for kind, records in batches:
                        for record in records:
                            summary.record(kind, self._store.upsert(kind, record.fields()))

                    self._write_metadata(version, package_name)
            except sqlite3.Error as exc:
                logger.exception("ingestion failed, batch rolled back")
                raise StorageError(f"ingestion failed: {exc}") from exc

        if summary.inserted_knowledge or summary.inserted_examples:
            logger.info(
                "added %d knowledge items, %d examples",
                summary.inserted_knowledge, summary.inserted_examples,
            )
        if summary.updated_knowledge or summary.updated_examples:
            logger.info(
                "updated %d knowledge items, %d examples",
                summary.updated_knowledge, summary.updated_examples,
            )
        return summary

    @staticmethod
    def _validate(kind: EntryKind, items: Iterable[Any], summary: IngestSummary) -> list[Any]:
        """Valid records, one per natural key: the last occurrence wins, at its own position."""
        by_key: dict[str, tuple[int, Any]] = {}
        for i, item in enumerate(items):
            try:
                record = coerce_record(kind, item)
            except MalformedInputError as exc:
                logger.warning("rejected %s record #%d: %s", kind.name, i, exc.reason)
                summary.rejected.append(Rejection(kind=kind.name, index=i, reason=exc.reason))
                continue
            key = record.fields()[kind.key_field]
            if key in by_key:
                prev = by_key.pop(key)[0]
                logger.info("%s record #%d superseded by #%d (same %s)", kind.name, prev, i, kind.key_field)
                summary.superseded.append(
                    Rejection(kind=kind.name, index=prev, reason=f"duplicate {kind.key_field}, superseded by #{i}")
                )
            by_key[key] = (i, record)
        return [record for _, record in by_key.values()]

    def _write_metadata(self, version: str | None, package_name: str) -> None:
        self._store.set_metadata("last_sync", datetime.now(UTC).isoformat())
        if version is not None:
            self._store.set_metadata("db_version", version)
        self._store.set_metadata("package_name", package_name)
        self._store.set_metadata("knowledge_count", str(self._store.count(KNOWLEDGE)))
        self._store.set_metadata("examples_count", str(self._store.count(EXAMPLES)))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def expand(self, query: str) -> ExpandedQuery:
        return expand_query(query, self._synonyms)

    def _search(self, kind: EntryKind, query: str, limit: int, max_length: int) -> dict[str, Any]:
        expanded = self.expand(query)
        results: list[dict[str, Any]] = []
        if not expanded.is_empty and limit > 0:
            with self._lock:
                matches = self._store.index.match(kind, expanded.expression, limit=limit)
                records = self._store.get_many(kind, (m.entry_id for m in matches))
            results = [
                format_match(kind, records[m.entry_id], m, max_length)
                for m in matches
                if m.entry_id in records
            ]
        return {
            "query": query,
            "expanded_query": expanded.expression,
            "total_results": len(results),
            "results": results,
        }

    def search_knowledge(self, query: str, limit: int = 3, max_answer_length: int = 800) -> dict[str, Any]:
        return self._search(KNOWLEDGE, query, limit, max_answer_length)

    def search_examples(self, query: str, limit: int = 3, max_field_length: int = 400) -> dict[str, Any]:
        return self._search(EXAMPLES, query, limit, max_field_length)

    def search_with_boosts(
        self,
        query: str,
        kind: EntryKind | str,
        *,
        limit: int = DEFAULT_BOOST_LIMIT,
        primary_field_boost: float | None = None,
        code_boost: float = DEFAULT_CODE_BOOST,
    ) -> list[dict[str, Any]]:
        """Heuristically boosted search; each row carries rank and composite_score."""
        entry_kind = get_kind(kind)
        expanded = self.expand(query)
        if expanded.is_empty:
            return []
        with self._lock:
            matches = self._store.index.match(entry_kind, expanded.expression)
            records = self._store.get_many(entry_kind, (m.entry_id for m in matches))
        options = BoostOptions(limit=limit, primary_field_boost=primary_field_boost, code_boost=code_boost)
        return rank_boosted(entry_kind, matches, records, options)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def all_entries(self, kind: EntryKind | str) -> list[dict[str, Any]]:
        with self._lock:
            return self._store.all_entries(get_kind(kind))

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "knowledge_count": self._store.count(KNOWLEDGE),
                "examples_count": self._store.count(EXAMPLES),
                "metadata": self._store.metadata(),
            }
