"""JSONL corpus files: one JSON object per line.

Corpus layout under a data directory:

    data/
        knowledge/*.jsonl     # {"question": ..., "answer": ...}
        patterns/*.jsonl      # {"instruction": ..., "input": ..., "output": ...}

Files in a folder are loaded in sorted name order.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger("trpc_sveltekit_mcp.jsonl")


def iter_jsonl(path: Path | str, *, skip_empty: bool = True, validate: bool = True) -> Iterator[Any]:
    """Yield parsed lines.

    With validate=True an unparseable line raises ValueError; otherwise it is
    logged and skipped.
    """
    path = Path(path)
    if not path.exists():
        msg = f"JSONL file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if skip_empty and not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                if validate:
                    msg = f"Invalid JSON on line {lineno} in {path}: {exc}"
                    raise ValueError(msg) from exc
                logger.warning("skipping invalid JSON on line %d in %s", lineno, path)


def read_jsonl(path: Path | str, *, skip_empty: bool = True, validate: bool = True) -> list[Any]:
    return list(iter_jsonl(path, skip_empty=skip_empty, validate=validate))


def to_jsonl(items: Iterable[Any]) -> str:
    return "\n".join(json.dumps(item, ensure_ascii=False) for item in items)


def write_jsonl(path: Path | str, items: Iterable[Any]) -> None:
    Path(path).write_text(to_jsonl(items) + "\n", encoding="utf-8")


def append_jsonl(path: Path | str, item: Any) -> None:
    with Path(path).open("a", encoding="utf-8") as f:
        f.write(json.dumps(item, ensure_ascii=False) + "\n")


def count_jsonl_lines(path: Path | str) -> int:
    """Non-blank lines; 0 for a missing file."""
    path = Path(path)
    if not path.exists():
        return 0
    with path.open(encoding="utf-8") as f:
        return sum(1 for line in f if line.strip())


def validate_jsonl(path: Path | str) -> tuple[bool, list[str]]:
    try:
        read_jsonl(path, validate=True)
    except (OSError, ValueError) as exc:
        return False, [str(exc)]
    return True, []


def scan_jsonl_files(dir_path: Path | str) -> list[Path]:
    dir_path = Path(dir_path)
    if not dir_path.is_dir():
        return []
    return sorted(p for p in dir_path.iterdir() if p.is_file() and p.suffix == ".jsonl")


def load_jsonl_dir(dir_path: Path | str) -> list[Any]:
    """Concatenate every *.jsonl file in dir_path; unreadable files are logged and skipped."""
    items: list[Any] = []
    for path in scan_jsonl_files(dir_path):
        try:
            data = read_jsonl(path)
        except (OSError, ValueError):
            logger.exception("error loading %s", path)
            continue
        items.extend(data)
        logger.info("loaded %d entries from %s", len(data), path.name)
    return items


def load_corpora(data_dir: Path | str) -> tuple[list[Any], list[Any]]:
    """Return (knowledge, examples) from data_dir/knowledge and data_dir/patterns."""
    data_dir = Path(data_dir)
    knowledge = load_jsonl_dir(data_dir / "knowledge")
    logger.info("total knowledge loaded: %d items", len(knowledge))
    examples = load_jsonl_dir(data_dir / "patterns")
    logger.info("total patterns loaded: %d items", len(examples))
    return knowledge, examples


def convert_json_to_jsonl(src: Path | str, dst: Path | str) -> int:
    """Rewrite a JSON array file as JSONL. Returns the number of items written."""
    data = json.loads(Path(src).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        msg = f"{src}: JSON file must contain an array"
        raise ValueError(msg)
    write_jsonl(dst, data)
    return len(data)
