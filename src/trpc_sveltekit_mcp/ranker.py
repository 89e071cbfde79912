"""Relevance scoring on top of the FTS5 bm25 rank.

Default mode presents relevance_score = -rank (positive, higher is better).

Boosted mode keeps the rank sign convention (lower is better):

    score = rank * (primary_field_boost if rank < -10 else 1.0)
          + (code_boost if the entry looks like code else 1.0)

The threshold and the "$" / "{" markers are domain heuristics and are applied
exactly as written, even where the additive term makes the ordering
non-monotonic in the boosts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from trpc_sveltekit_mcp.fts import Match
    from trpc_sveltekit_mcp.models import EntryKind

STRONG_MATCH_RANK = -10.0
DEFAULT_BOOST_LIMIT = 5
DEFAULT_CODE_BOOST = 1.5


def relevance_score(rank: float) -> float:
    return -rank


def has_code_marker(kind: EntryKind, record: Mapping[str, Any]) -> bool:
    return any(
        marker in (record.get(f) or "")
        for f in kind.code_fields
        for marker in kind.code_markers
    )


def composite_score(rank: float, *, primary_field_boost: float, code_boost: float, has_code: bool) -> float:
    return (
        rank * (primary_field_boost if rank < STRONG_MATCH_RANK else 1.0)
        + (code_boost if has_code else 1.0)
    )


@dataclass
class BoostOptions:
    limit: int = DEFAULT_BOOST_LIMIT
    primary_field_boost: float | None = None    # None: the kind's default
    code_boost: float = DEFAULT_CODE_BOOST


def rank_boosted(
    kind: EntryKind,
    matches: Iterable[Match],
    records: Mapping[int, Mapping[str, Any]],
    options: BoostOptions,
) -> list[dict[str, Any]]:
    """Score every match and return the best `options.limit`, lowest score first."""
    primary = kind.primary_boost if options.primary_field_boost is None else options.primary_field_boost
    scored: list[dict[str, Any]] = []
    for m in matches:
        record = records.get(m.entry_id)
        if record is None:
            continue
        row = {"id": m.entry_id}
        row.update({f: record[f] for f in kind.text_fields})
        row["rank"] = m.rank
        row["composite_score"] = composite_score(
            m.rank,
            primary_field_boost=primary,
            code_boost=options.code_boost,
            has_code=has_code_marker(kind, record),
        )
        scored.append(row)
    scored.sort(key=lambda r: (r["composite_score"], r["id"]))
    return scored[: max(options.limit, 0)]
