"""Shared fixtures: in-memory and file-backed stores, small corpora."""

from __future__ import annotations

import json

import pytest

from trpc_sveltekit_mcp.db import get_conn
from trpc_sveltekit_mcp.engine import SearchEngine
from trpc_sveltekit_mcp.store import RecordStore

KNOWLEDGE = [
    {"question": "What is a router?", "answer": "A router groups procedures."},
    {"question": "How do I create context?", "answer": "Export createContext and return ctx values."},
    {"question": "How are errors reported?", "answer": "Throw a TRPCError with a code."},
]

EXAMPLES = [
    {
        "instruction": "Create a router",
        "input": "posts API",
        "output": "export const postsRouter = t.router({ list: t.procedure.query(() => []) });",
    },
    {
        "instruction": "Add auth middleware",
        "input": "",
        "output": "const isAuthed = t.middleware(({ ctx, next }) => next());",
    },
]


@pytest.fixture
def store():
    conn = get_conn(":memory:")
    s = RecordStore(conn)
    s.ensure_schema()
    yield s
    conn.close()


@pytest.fixture
def engine():
    with SearchEngine.open() as e:
        yield e


@pytest.fixture
def loaded_engine(engine):
    engine.ingest(KNOWLEDGE, EXAMPLES)
    return engine


@pytest.fixture
def data_dir(tmp_path):
    """A corpus directory laid out like the bundled data."""
    root = tmp_path / "data"
    (root / "knowledge").mkdir(parents=True)
    (root / "patterns").mkdir(parents=True)
    (root / "knowledge" / "a.jsonl").write_text(
        "\n".join(json.dumps(k) for k in KNOWLEDGE) + "\n", encoding="utf-8"
    )
    (root / "patterns" / "a.jsonl").write_text(
        "\n".join(json.dumps(e) for e in EXAMPLES) + "\n", encoding="utf-8"
    )
    return root
