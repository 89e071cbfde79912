"""trpc-sveltekit-mcp CLI — searchable tRPC SvelteKit knowledge base.

Commands:
    trpc-sveltekit-mcp init                write a default config.toml
    trpc-sveltekit-mcp paths               show config / database / data locations
    trpc-sveltekit-mcp sync [--force]      ingest the JSONL corpora into the database
    trpc-sveltekit-mcp search QUERY        synonym-expanded FTS search
    trpc-sveltekit-mcp boost QUERY         search with heuristic boosts
    trpc-sveltekit-mcp status              counts and sync metadata
    trpc-sveltekit-mcp convert SRC DST     JSON array file -> JSONL
    trpc-sveltekit-mcp serve [--force]     start stdio MCP server
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from trpc_sveltekit_mcp import __version__
from trpc_sveltekit_mcp.config import AppConfig, init_config, load_config
from trpc_sveltekit_mcp.engine import SearchEngine
from trpc_sveltekit_mcp.errors import KnowledgeBaseError
from trpc_sveltekit_mcp.jsonl import convert_json_to_jsonl, load_corpora
from trpc_sveltekit_mcp.models import KINDS, get_kind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> AppConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _open_engine(cfg: AppConfig) -> SearchEngine:
    try:
        return SearchEngine.open(cfg.db_path)
    except KnowledgeBaseError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="trpc-sveltekit-mcp")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr")
def cli(verbose: bool) -> None:
    """trpc-sveltekit-mcp — tRPC SvelteKit knowledge search."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s", stream=sys.stderr)


# ---------------------------------------------------------------------------
# init / paths
# ---------------------------------------------------------------------------


@cli.command()
def init() -> None:
    """Write a default config.toml into the config directory."""
    cfg = _load_cfg()
    try:
        path = init_config(cfg.config_dir)
        click.echo(f"Created {path}")
    except FileExistsError:
        click.echo("config.toml already exists — skipping init")


@cli.command()
def paths() -> None:
    """Show where config, database and corpora are read from."""
    cfg = _load_cfg()
    for line in cfg.describe():
        click.echo(line)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, help="Clear existing entries and re-ingest everything")
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Corpus directory (knowledge/ and patterns/)")
@click.option("--json", "as_json", is_flag=True, help="Print the ingest summary as JSON")
def sync(force: bool, data_dir: Path | None, as_json: bool) -> None:
    """Ingest the JSONL corpora; unchanged entries are skipped by content hash."""
    cfg = _load_cfg()
    source = data_dir or cfg.data_dir
    knowledge, examples = load_corpora(source)
    if not as_json:
        click.echo(f"Loaded {len(knowledge)} knowledge items, {len(examples)} patterns from {source}")

    with _open_engine(cfg) as engine:
        try:
            summary = engine.ingest(knowledge, examples, force_resync=force, version=__version__)
        except KnowledgeBaseError as exc:
            raise click.ClickException(str(exc)) from exc
        stats = engine.stats()

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return
    if summary.skipped:
        click.echo(f"Database is up to date (v{__version__}). Use --force to resync.")
        return
    if summary.cleared:
        click.echo("Existing data cleared")
    click.echo(
        f"Knowledge: +{summary.inserted_knowledge} ~{summary.updated_knowledge} "
        f"={summary.unchanged_knowledge}  ({stats['knowledge_count']} total)"
    )
    click.echo(
        f"Examples : +{summary.inserted_examples} ~{summary.updated_examples} "
        f"={summary.unchanged_examples}  ({stats['examples_count']} total)"
    )
    for r in summary.rejected:
        click.echo(f"  rejected {r.kind} #{r.index}: {r.reason}", err=True)
    for r in summary.superseded:
        click.echo(f"  skipped {r.kind} #{r.index}: {r.reason}", err=True)


# ---------------------------------------------------------------------------
# search / boost
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@click.option("--examples", "search_examples", is_flag=True, help="Search code patterns instead of Q&A")
@click.option("--limit", "-n", default=None, type=int, help="Max results (default from config)")
@click.option("--max-length", default=None, type=int, help="Truncate text fields to this many chars")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON")
def search(query: str, search_examples: bool, limit: int | None, max_length: int | None, as_json: bool) -> None:
    """Synonym-expanded full-text search."""
    cfg = _load_cfg()
    limit = cfg.search.default_limit if limit is None else limit
    if max_length is None:
        max_length = cfg.search.max_content_length if search_examples else cfg.search.max_answer_length
    with _open_engine(cfg) as engine:
        if search_examples:
            result = engine.search_examples(query, limit, max_length)
        else:
            result = engine.search_knowledge(query, limit, max_length)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return
    if not result["results"]:
        click.echo("(no results)")
        return
    title, body = ("instruction", "output") if search_examples else ("question", "answer")
    for r in result["results"]:
        click.echo(f"[{r['id']}] {r['relevance_score']:.4f}  {r[title]}")
        click.echo(f"    {r[body][:200]}")


@cli.command()
@click.argument("query")
@click.option("--kind", type=click.Choice(list(KINDS)), default="knowledge", show_default=True)
@click.option("--limit", "-n", default=5, show_default=True)
@click.option("--primary-boost", type=float, default=None,
              help="Boost for strong matches (default: question 2.0 / instruction 1.5, from config)")
@click.option("--code-boost", type=float, default=None, help="Boost for entries containing '$' or '{'")
def boost(query: str, kind: str, limit: int, primary_boost: float | None, code_boost: float | None) -> None:
    """Search with the strong-match and code-likelihood boosts applied."""
    cfg = _load_cfg()
    if primary_boost is None:
        primary_boost = cfg.search.question_boost if kind == "knowledge" else cfg.search.instruction_boost
    if code_boost is None:
        code_boost = cfg.search.code_boost
    entry_kind = get_kind(kind)
    with _open_engine(cfg) as engine:
        rows = engine.search_with_boosts(
            query, entry_kind, limit=limit, primary_field_boost=primary_boost, code_boost=code_boost
        )
    if not rows:
        click.echo("(no results)")
        return
    for r in rows:
        click.echo(f"[{r['id']}] {r['composite_score']:+.4f}  {r[entry_kind.key_field][:120]}")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Show entry counts and sync metadata."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg()
    console = Console()

    table = Table(title="trpc-sveltekit-mcp", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Version", __version__)
    table.add_row("Config", str(cfg.config_path))
    table.add_row("Data", str(cfg.data_dir))

    if not cfg.db_path.exists():
        table.add_row("Database", "[red]missing — run `trpc-sveltekit-mcp sync`[/red]")
        console.print(table)
        return

    size_mb = cfg.db_path.stat().st_size / 1_000_000
    table.add_row("Database", f"{cfg.db_path}  [{size_mb:.1f} MB]")
    table.add_row("", "")

    with _open_engine(cfg) as engine:
        stats = engine.stats()
    table.add_row("Knowledge", str(stats["knowledge_count"]))
    table.add_row("Examples", str(stats["examples_count"]))
    meta = stats["metadata"]
    for key in ("db_version", "package_name", "last_sync"):
        table.add_row(f"  {key}", meta.get(key, "[dim]—[/dim]"))
    console.print(table)


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("src", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("dst", type=click.Path(dir_okay=False, path_type=Path))
def convert(src: Path, dst: Path) -> None:
    """Convert a JSON array file to JSONL."""
    try:
        n = convert_json_to_jsonl(src, dst)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Converted {n} items to {dst}")
    click.echo(f"Size: {src.stat().st_size / 1024:.2f}KB -> {dst.stat().st_size / 1024:.2f}KB")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, help="Clear and reload the knowledge base before serving")
def serve(force: bool) -> None:
    """Start the stdio MCP server."""
    from trpc_sveltekit_mcp.mcp import run_server

    run_server(_load_cfg(), force_resync=force)
