"""Domain synonym table for tRPC + SvelteKit terms.

Fixed at import time and never mutated, so lookups need no locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

TRPC_SVELTEKIT_SYNONYMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("router", ("t.router", "trpc router", "api router", "procedure router")),
    ("procedure", ("t.procedure", "query", "mutation", "subscription", "endpoint")),
    ("context", ("trpc context", "request context", "ctx", "createContext")),
    ("middleware", ("trpc middleware", "t.middleware", "auth middleware", "logging middleware")),
    ("query", ("t.procedure.query", "get data", "fetch data", "read operation")),
    ("mutation", ("t.procedure.mutation", "post data", "update data", "write operation")),
    ("subscription", ("t.procedure.subscription", "real-time", "websocket", "live data")),
    ("client", ("trpc client", "createTRPCClient", "api client", "frontend client")),
    ("load", ("page load", "load function", "+page.ts", "server load", "+page.server.ts")),
    ("auth", ("authentication", "authorization", "jwt", "session", "login")),
    ("error", ("TRPCError", "error handling", "TRPCClientError", "exception")),
    ("type safety", ("typescript", "type inference", "end-to-end types", "type safe")),
    ("hooks", ("hooks.server.ts", "server hooks", "sveltekit hooks", "request hooks")),
)


@dataclass(frozen=True)
class SynonymEntry:
    term: str
    synonyms: tuple[str, ...]


class SynonymTable:
    """Ordered term -> synonyms mapping with substring lookup."""

    def __init__(self, entries: Iterable[tuple[str, Iterable[str]]]) -> None:
        by_term: dict[str, SynonymEntry] = {}
        for term, synonyms in entries:
            # Later duplicates replace earlier ones, keeping the first position.
            by_term[term] = SynonymEntry(term, tuple(synonyms))
        self._entries: Mapping[str, SynonymEntry] = MappingProxyType(by_term)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SynonymEntry]:
        return iter(self._entries.values())

    def get(self, term: str) -> SynonymEntry | None:
        return self._entries.get(term)

    def lookup(self, word: str) -> list[SynonymEntry]:
        """Entries whose term contains word, or is contained in word (case-insensitive)."""
        needle = word.lower()
        if not needle:
            return []
        return [
            e for e in self._entries.values()
            if needle in e.term.lower() or e.term.lower() in needle
        ]


DEFAULT_SYNONYMS = SynonymTable(TRPC_SVELTEKIT_SYNONYMS)
