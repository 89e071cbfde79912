"""Searchable tRPC + SvelteKit knowledge base: SQLite FTS5 with synonym expansion.

Layout:
    <config dir>/
        database.db     # knowledge, examples, metadata + knowledge_fts, examples_fts
    <data dir>/
        knowledge/*.jsonl   # {"question", "answer"}
        patterns/*.jsonl    # {"instruction", "input", "output"}

The JSONL corpora are the source material; the database is derived from them
and is re-synced by content hash on startup (`sync --force` rebuilds it).
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trpc-sveltekit-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0"

from trpc_sveltekit_mcp.config import AppConfig, load_config  # noqa: E402
from trpc_sveltekit_mcp.engine import SearchEngine  # noqa: E402
from trpc_sveltekit_mcp.errors import KnowledgeBaseError, MalformedInputError, StorageError  # noqa: E402
from trpc_sveltekit_mcp.models import EXAMPLES, KNOWLEDGE, ExampleRecord, IngestSummary, KnowledgeRecord  # noqa: E402

__all__ = [
    "EXAMPLES",
    "KNOWLEDGE",
    "AppConfig",
    "ExampleRecord",
    "IngestSummary",
    "KnowledgeBaseError",
    "KnowledgeRecord",
    "MalformedInputError",
    "SearchEngine",
    "StorageError",
    "__version__",
    "load_config",
]
