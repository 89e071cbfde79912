"""Data models shared by the store, the index and the engine."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any

from trpc_sveltekit_mcp.errors import MalformedInputError


@dataclass(frozen=True)
class EntryKind:
    """One of the two corpora and how it is laid out in the store."""

    name: str
    table: str
    fts_table: str
    key_field: str                     # natural key, UNIQUE in the table
    text_fields: tuple[str, ...]       # hashed and indexed, in column order
    primary_boost: float               # default boost when the key field matches strongly
    code_fields: tuple[str, ...]       # fields scanned for code markers
    code_markers: tuple[str, ...]

    def __str__(self) -> str:
        return self.name


KNOWLEDGE = EntryKind(
    name="knowledge",
    table="knowledge",
    fts_table="knowledge_fts",
    key_field="question",
    text_fields=("question", "answer"),
    primary_boost=2.0,
    code_fields=("question", "answer"),
    code_markers=("$",),
)

EXAMPLES = EntryKind(
    name="examples",
    table="examples",
    fts_table="examples_fts",
    key_field="instruction",
    text_fields=("instruction", "input", "output"),
    primary_boost=1.5,
    code_fields=("output",),
    code_markers=("$", "{"),
)

KINDS: dict[str, EntryKind] = {k.name: k for k in (KNOWLEDGE, EXAMPLES)}


def get_kind(kind: EntryKind | str) -> EntryKind:
    """Resolve a kind by name. Raises ValueError for unknown names."""
    if isinstance(kind, EntryKind):
        return kind
    try:
        return KINDS[kind]
    except KeyError:
        msg = f"Unknown entry kind: {kind!r} (expected one of {', '.join(KINDS)})"
        raise ValueError(msg) from None


def _require_text(kind: EntryKind, d: dict[str, Any], name: str, *, allow_empty: bool = False) -> str:
    if name not in d:
        if allow_empty:
            return ""
        raise MalformedInputError(kind.name, f"missing required field {name!r}")
    value = d[name]
    if not isinstance(value, str):
        raise MalformedInputError(kind.name, f"field {name!r} must be a string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        raise MalformedInputError(kind.name, f"field {name!r} is empty")
    return value


@dataclass
class KnowledgeRecord:
    """A question/answer pair as handed over by the loader."""

    question: str
    answer: str

    @classmethod
    def from_dict(cls, d: Any) -> KnowledgeRecord:
        if not isinstance(d, dict):
            raise MalformedInputError(KNOWLEDGE.name, f"expected an object, got {type(d).__name__}")
        return cls(
            question=_require_text(KNOWLEDGE, d, "question"),
            answer=_require_text(KNOWLEDGE, d, "answer"),
        )

    def fields(self) -> dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass
class ExampleRecord:
    """An instruction/input/output pattern as handed over by the loader."""

    instruction: str
    input: str
    output: str

    @classmethod
    def from_dict(cls, d: Any) -> ExampleRecord:
        if not isinstance(d, dict):
            raise MalformedInputError(EXAMPLES.name, f"expected an object, got {type(d).__name__}")
        return cls(
            instruction=_require_text(EXAMPLES, d, "instruction"),
            input=_require_text(EXAMPLES, d, "input", allow_empty=True),
            output=_require_text(EXAMPLES, d, "output"),
        )

    def fields(self) -> dict[str, str]:
        return {"instruction": self.instruction, "input": self.input, "output": self.output}


_RECORD_TYPES: dict[str, type[KnowledgeRecord] | type[ExampleRecord]] = {
    KNOWLEDGE.name: KnowledgeRecord,
    EXAMPLES.name: ExampleRecord,
}


def coerce_record(kind: EntryKind, item: Any) -> KnowledgeRecord | ExampleRecord:
    """Accept a record dataclass or a plain mapping; validate either way."""
    record_type = _RECORD_TYPES[kind.name]
    if isinstance(item, record_type):
        return record_type.from_dict(item.fields())
    return record_type.from_dict(dict(item) if hasattr(item, "keys") else item)


class UpsertOutcome(enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class Rejection:
    """A record ingestion skipped: it failed validation or a later record reused its key."""

    kind: str
    index: int        # position in the caller's sequence
    reason: str


@dataclass
class IngestSummary:
    inserted_knowledge: int = 0
    updated_knowledge: int = 0
    unchanged_knowledge: int = 0
    inserted_examples: int = 0
    updated_examples: int = 0
    unchanged_examples: int = 0
    rejected: list[Rejection] = field(default_factory=list)
    superseded: list[Rejection] = field(default_factory=list)   # earlier records with a repeated key
    skipped: bool = False       # version gate hit; nothing was written
    cleared: bool = False       # force resync wiped both kinds first

    def record(self, kind: EntryKind, outcome: UpsertOutcome) -> None:
        attr = f"{outcome.value}_{kind.name}"
        setattr(self, attr, getattr(self, attr) + 1)

    @property
    def changed(self) -> int:
        return (
            self.inserted_knowledge + self.updated_knowledge
            + self.inserted_examples + self.updated_examples
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
