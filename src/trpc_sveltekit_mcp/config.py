"""Config: where the database lives, where the corpora come from, search defaults.

Default layout:

    $XDG_CONFIG_HOME/binsarjr/trpc-sveltekit-mcp/    (~/.config/... when unset)
        config.toml       # optional
        database.db       # SQLite store (derived; safe to delete, `sync --force` rebuilds)

Environment overrides:

    TRPC_SVELTEKIT_MCP_CONFIG_DIR   config directory
    TRPC_SVELTEKIT_MCP_DB_PATH      database file
    TRPC_SVELTEKIT_MCP_DATA_DIR     corpus directory (knowledge/ and patterns/ subfolders)

config.toml example:

    [storage]
    # db_path = "/abs/path/database.db"
    # data_dir = "/abs/path/data"

    [search]
    default_limit = 5
    max_answer_length = 800
    max_content_length = 400
    question_boost = 2.0
    instruction_boost = 1.5
    code_boost = 1.5
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("trpc_sveltekit_mcp.config")

_CONFIG_FILENAME = "config.toml"
_DB_FILENAME = "database.db"
_APP_SUBDIR = Path("binsarjr") / "trpc-sveltekit-mcp"
_FALLBACK_DIRNAME = ".trpc-sveltekit-mcp-cache"

ENV_CONFIG_DIR = "TRPC_SVELTEKIT_MCP_CONFIG_DIR"
ENV_DB_PATH = "TRPC_SVELTEKIT_MCP_DB_PATH"
ENV_DATA_DIR = "TRPC_SVELTEKIT_MCP_DATA_DIR"

BUNDLED_DATA_DIR = Path(__file__).parent / "data"


@dataclass
class SearchConfig:
    default_limit: int = 5
    max_answer_length: int = 800
    max_content_length: int = 400
    question_boost: float = 2.0
    instruction_boost: float = 1.5
    code_boost: float = 1.5


@dataclass
class ServerConfig:
    name: str = "trpc-sveltekit-mcp-server"
    protocol_version: str = "2024-11-05"


@dataclass
class AppConfig:
    """Resolved configuration."""

    config_dir: Path
    db_path: Path = field(default_factory=Path)
    data_dir: Path = field(default_factory=lambda: BUNDLED_DATA_DIR)
    search: SearchConfig = field(default_factory=SearchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    overrides: tuple[str, ...] = ()     # env vars that took effect

    @property
    def config_path(self) -> Path:
        return self.config_dir / _CONFIG_FILENAME

    @property
    def knowledge_dir(self) -> Path:
        return self.data_dir / "knowledge"

    @property
    def patterns_dir(self) -> Path:
        return self.data_dir / "patterns"

    def describe(self) -> list[str]:
        lines = [
            f"Config Directory: {self.config_dir}",
            f"Database Path: {self.db_path}",
            f"Data Directory: {self.data_dir}",
        ]
        lines += [f"Using {var} from environment" for var in self.overrides]
        return lines


def _xdg_config_home(env: dict[str, str]) -> Path:
    if env.get("XDG_CONFIG_HOME"):
        return Path(env["XDG_CONFIG_HOME"])
    return Path.home() / ".config"


def _ensure_config_dir(config_dir: Path) -> Path:
    """Create config_dir; fall back to ./.trpc-sveltekit-mcp-cache if that fails."""
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        fallback = Path.cwd() / _FALLBACK_DIRNAME
        logger.warning("could not create config directory %s (%s), using %s", config_dir, exc, fallback)
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback
    return config_dir


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid {path}: {exc}"
        raise ValueError(msg) from exc


def load_config(env: dict[str, str] | None = None) -> AppConfig:
    """Resolve paths (env > config.toml > defaults) and search settings."""
    env = dict(os.environ) if env is None else env
    overrides: list[str] = []

    if env.get(ENV_CONFIG_DIR):
        config_dir = Path(env[ENV_CONFIG_DIR])
        overrides.append(ENV_CONFIG_DIR)
    else:
        config_dir = _xdg_config_home(env) / _APP_SUBDIR
    config_dir = _ensure_config_dir(config_dir)

    raw = _read_toml(config_dir / _CONFIG_FILENAME)
    storage = raw.get("storage", {})
    srch = raw.get("search", {})
    srv = raw.get("server", {})

    if env.get(ENV_DB_PATH):
        db_path = Path(env[ENV_DB_PATH])
        overrides.append(ENV_DB_PATH)
    elif storage.get("db_path"):
        db_path = Path(storage["db_path"]).expanduser()
    else:
        db_path = config_dir / _DB_FILENAME

    if env.get(ENV_DATA_DIR):
        data_dir = Path(env[ENV_DATA_DIR])
        overrides.append(ENV_DATA_DIR)
    elif storage.get("data_dir"):
        data_dir = Path(storage["data_dir"]).expanduser()
    else:
        data_dir = BUNDLED_DATA_DIR

    defaults = SearchConfig()
    return AppConfig(
        config_dir=config_dir,
        db_path=db_path,
        data_dir=data_dir,
        search=SearchConfig(
            default_limit=int(srch.get("default_limit", defaults.default_limit)),
            max_answer_length=int(srch.get("max_answer_length", defaults.max_answer_length)),
            max_content_length=int(srch.get("max_content_length", defaults.max_content_length)),
            question_boost=float(srch.get("question_boost", defaults.question_boost)),
            instruction_boost=float(srch.get("instruction_boost", defaults.instruction_boost)),
            code_boost=float(srch.get("code_boost", defaults.code_boost)),
        ),
        server=ServerConfig(
            name=srv.get("name", ServerConfig.name),
            protocol_version=srv.get("protocol_version", ServerConfig.protocol_version),
        ),
        overrides=tuple(overrides),
    )


def init_config(config_dir: Path) -> Path:
    """Write a default config.toml in config_dir. Raises if it already exists."""
    config_path = config_dir / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"config.toml already exists at {config_path}"
        raise FileExistsError(msg)
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path.write_text("""\
[storage]
# db_path = "/abs/path/database.db"    # or set TRPC_SVELTEKIT_MCP_DB_PATH
# data_dir = "/abs/path/data"          # knowledge/ and patterns/ JSONL folders

[search]
# default_limit = 5
# max_answer_length = 800
# max_content_length = 400
# question_boost = 2.0      # boosted search: knowledge entries with a strong match
# instruction_boost = 1.5   # boosted search: examples with a strong match
# code_boost = 1.5          # boosted search: entries containing "$" / "{"
""")
    return config_path
