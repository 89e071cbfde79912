"""Query expansion: raw query -> OR of quoted phrases for FTS5 MATCH.

    "router setup" ->
        "router setup" OR "t.router" OR "trpc router" OR ... OR "t.router setup" OR ...

The original query is always the first disjunct.  Expansion is purely
syntactic: same input, same output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from trpc_sveltekit_mcp.fts import tokenize
from trpc_sveltekit_mcp.synonyms import DEFAULT_SYNONYMS, SynonymTable


@dataclass
class ExpandedQuery:
    query: str
    disjuncts: list[str] = field(default_factory=list)
    expression: str = ""

    @property
    def is_empty(self) -> bool:
        """True when nothing indexable is left to match."""
        return not self.expression


def quote_phrase(phrase: str) -> str:
    return '"' + phrase.replace('"', '""') + '"'


def expand_query(query: str, table: SynonymTable = DEFAULT_SYNONYMS) -> ExpandedQuery:
    """Expand each query word through the synonym table.

    For every word, each matching synonym is added on its own and also as a
    variant of the full query with the word replaced by it.
    """
    seen: dict[str, None] = {query: None}

    for word in query.lower().split():
        pattern = re.compile(re.escape(word), re.IGNORECASE)
        for entry in table.lookup(word):
            for synonym in entry.synonyms:
                seen.setdefault(synonym, None)
            for synonym in entry.synonyms:
                seen.setdefault(pattern.sub(lambda _m, s=synonym: s, query), None)

    disjuncts = list(seen)
    # Phrases with no indexable token can never match; keep them out of MATCH.
    expression = " OR ".join(quote_phrase(d) for d in disjuncts if tokenize(d))
    return ExpandedQuery(query=query, disjuncts=disjuncts, expression=expression)
