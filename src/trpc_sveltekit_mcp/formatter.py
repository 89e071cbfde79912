"""Presentation: truncate text fields and attach highlighted variants."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from trpc_sveltekit_mcp.ranker import relevance_score

if TYPE_CHECKING:
    from collections.abc import Mapping

    from trpc_sveltekit_mcp.fts import Match
    from trpc_sveltekit_mcp.models import EntryKind

ELLIPSIS = "..."
_WORD_BOUNDARY_FRACTION = 0.8


def truncate_text(text: str, max_length: int) -> str:
    """Cut text to max_length chars plus ELLIPSIS.

    Prefers the last whitespace at or after 80% of max_length; otherwise cuts
    mid-word.  Markup is not special-cased, so a highlight marker past the cut
    is dropped along with the text.  A negative max_length counts as 0.
    """
    max_length = max(max_length, 0)
    if len(text) <= max_length:
        return text
    head = text[:max_length]
    last_space = max((i for i, ch in enumerate(head) if ch.isspace()), default=-1)
    cut = last_space if last_space >= max_length * _WORD_BOUNDARY_FRACTION else max_length
    return text[:cut] + ELLIPSIS


def format_match(
    kind: EntryKind,
    record: Mapping[str, Any],
    match: Match,
    max_length: int,
) -> dict[str, Any]:
    """Build one presented result: plain fields, highlighted fields, score."""
    out: dict[str, Any] = {"id": match.entry_id}
    for f in kind.text_fields:
        out[f] = truncate_text(record[f], max_length)
    for f in kind.text_fields:
        out[f"highlighted_{f}"] = truncate_text(match.highlights.get(f) or record[f], max_length)
    out["relevance_score"] = relevance_score(match.rank)
    return out
