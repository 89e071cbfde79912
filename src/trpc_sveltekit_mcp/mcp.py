"""Stdio MCP server for the tRPC SvelteKit knowledge base.

Tools:
    search_knowledge(query, limit?)                          → ranked Q&A entries
    search_examples(query, limit?)                           → ranked code patterns
    generate_with_context(description, procedures?, complexity?) → patterns + knowledge for generation
    audit_with_rules(code, focus?)                           → keyword checklist + guidelines
    explain_concept(concept, detail_level?)                  → explanations + code examples

Resources:
    trpc-sveltekit://knowledge    full knowledge corpus (JSON)
    trpc-sveltekit://examples     full pattern corpus (JSON)

Prompts: generate-router, audit-trpc-code, explain-concept, search-patterns.

Protocol: JSON-RPC 2.0 over stdin/stdout (Model Context Protocol).  Logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from trpc_sveltekit_mcp import __version__
from trpc_sveltekit_mcp.engine import DEFAULT_PACKAGE_NAME, SearchEngine
from trpc_sveltekit_mcp.jsonl import load_corpora

if TYPE_CHECKING:
    from trpc_sveltekit_mcp.config import AppConfig

logger = logging.getLogger("trpc_sveltekit_mcp.mcp")

KNOWLEDGE_URI = "trpc-sveltekit://knowledge"
EXAMPLES_URI = "trpc-sveltekit://examples"

_COMPLEXITIES = ("simple", "moderate", "complex")
_FOCUS_AREAS = ("performance", "type-safety", "best-practices", "all")
_DETAIL_LEVELS = ("basic", "intermediate", "advanced")

_FOCUS_QUERIES = {
    "performance": "performance optimization caching middleware",
    "type-safety": "typescript type inference zod validation",
    "best-practices": "best practices router structure error handling",
    "all": "best practices performance type safety patterns",
}


class ToolInputError(ValueError):
    """Tool arguments failed validation."""


def _tool_defs() -> list[dict[str, Any]]:
    search_schema = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "limit": {"type": "number", "default": 5, "description": "Maximum number of results"},
        },
        "required": ["query"],
    }
    return [
        {
            "name": "search_knowledge",
            "description": "Search the tRPC SvelteKit knowledge base for concepts, explanations, and Q&A",
            "inputSchema": search_schema,
        },
        {
            "name": "search_examples",
            "description": "Search tRPC SvelteKit code examples and patterns",
            "inputSchema": search_schema,
        },
        {
            "name": "generate_with_context",
            "description": "Generate tRPC SvelteKit routers and procedures using knowledge context",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "description": {"type": "string", "description": "Description of the tRPC router to generate"},
                    "procedures": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Specific procedures to include",
                    },
                    "complexity": {"type": "string", "enum": list(_COMPLEXITIES), "default": "moderate"},
                },
                "required": ["description"],
            },
        },
        {
            "name": "audit_with_rules",
            "description": "Audit tRPC SvelteKit code against best practices and patterns",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "code": {"type": "string", "description": "tRPC SvelteKit code to audit"},
                    "focus": {"type": "string", "enum": list(_FOCUS_AREAS), "default": "all"},
                },
                "required": ["code"],
            },
        },
        {
            "name": "explain_concept",
            "description": "Get detailed explanations of tRPC SvelteKit concepts with examples",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "concept": {"type": "string", "description": "tRPC SvelteKit concept to explain"},
                    "detail_level": {"type": "string", "enum": list(_DETAIL_LEVELS), "default": "intermediate"},
                },
                "required": ["concept"],
            },
        },
    ]


def _resource_defs() -> list[dict[str, Any]]:
    return [
        {
            "uri": KNOWLEDGE_URI,
            "mimeType": "application/json",
            "name": "tRPC SvelteKit Knowledge Base",
            "description": "Curated Q&A knowledge base for tRPC SvelteKit concepts, patterns, and best practices",
        },
        {
            "uri": EXAMPLES_URI,
            "mimeType": "application/json",
            "name": "tRPC SvelteKit Code Examples",
            "description": "Searchable collection of tRPC SvelteKit code patterns and implementation examples",
        },
    ]


def _prompt_defs() -> list[dict[str, Any]]:
    def arg(name: str, description: str, required: bool = False) -> dict[str, Any]:
        return {"name": name, "description": description, "required": required}

    return [
        {
            "name": "generate-router",
            "description": "Generate a tRPC SvelteKit router with modern patterns",
            "arguments": [
                arg("description", "Description of the router to create", required=True),
                arg("procedures", "Comma-separated list of procedures to include"),
            ],
        },
        {
            "name": "audit-trpc-code",
            "description": "Audit tRPC SvelteKit code for best practices and optimization opportunities",
            "arguments": [
                arg("code", "tRPC SvelteKit code to audit", required=True),
                arg("focus", "Focus area: performance, type-safety, best-practices, or all"),
            ],
        },
        {
            "name": "explain-concept",
            "description": "Explain tRPC SvelteKit concepts with detailed examples and comparisons",
            "arguments": [
                arg("concept", "Concept to explain (e.g. 'router', 'procedures', 'context')", required=True),
                arg("level", "Detail level: basic, intermediate, or advanced"),
            ],
        },
        {
            "name": "search-patterns",
            "description": "Search for specific tRPC SvelteKit patterns and implementations",
            "arguments": [
                arg("pattern", "Pattern or feature to search for", required=True),
                arg("context", "Additional context or requirements"),
            ],
        },
    ]


def _require_str(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str):
        msg = f"'{name}' is required and must be a string"
        raise ToolInputError(msg)
    return value


def _choice(args: dict[str, Any], name: str, choices: tuple[str, ...], default: str) -> str:
    value = args.get(name, default)
    if value not in choices:
        msg = f"'{name}' must be one of {', '.join(choices)}"
        raise ToolInputError(msg)
    return value


def audit_checklist(code: str) -> dict[str, bool]:
    """Keyword heuristics over a code snippet."""
    return {
        "uses_typescript": any(s in code for s in (": ", "interface ", "type ")),
        "has_router_definition": "t.router" in code or "createTRPCRouter" in code,
        "uses_procedures": any(s in code for s in ("t.procedure", "query", "mutation")),
        "has_input_validation": any(s in code for s in ("z.", "zod", "input:")),
        "implements_error_handling": any(s in code for s in ("TRPCError", "throw", "try")),
        "uses_context": "ctx" in code or "context" in code,
    }


class KnowledgeServer:
    def __init__(self, cfg: AppConfig, engine: SearchEngine) -> None:
        self._cfg = cfg
        self._engine = engine

    @classmethod
    def from_config(cls, cfg: AppConfig, *, force_resync: bool = False) -> KnowledgeServer:
        """Open the store and sync the configured corpora into it."""
        engine = SearchEngine.open(cfg.db_path)
        knowledge, examples = load_corpora(cfg.data_dir)
        engine.ingest(
            knowledge,
            examples,
            force_resync=force_resync,
            version=__version__,
            package_name=DEFAULT_PACKAGE_NAME,
        )
        return cls(cfg, engine)

    def close(self) -> None:
        self._engine.close()

    def _limit(self, args: dict[str, Any]) -> int:
        try:
            return int(args.get("limit", self._cfg.search.default_limit))
        except (TypeError, ValueError) as exc:
            msg = "'limit' must be a number"
            raise ToolInputError(msg) from exc

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def _call_search_knowledge(self, args: dict[str, Any]) -> Any:
        return self._engine.search_knowledge(
            _require_str(args, "query"), self._limit(args), self._cfg.search.max_answer_length
        )

    def _call_search_examples(self, args: dict[str, Any]) -> Any:
        return self._engine.search_examples(
            _require_str(args, "query"), self._limit(args), self._cfg.search.max_content_length
        )

    def _call_generate_with_context(self, args: dict[str, Any]) -> Any:
        description = _require_str(args, "description")
        procedures = args.get("procedures") or []
        complexity = _choice(args, "complexity", _COMPLEXITIES, "moderate")
        patterns = self._engine.search_examples(description, 3, self._cfg.search.max_content_length)
        knowledge = self._engine.search_knowledge(description, 2, self._cfg.search.max_answer_length)
        return {
            "request": {"description": description, "procedures": procedures, "complexity": complexity},
            "relevant_patterns": [
                {"instruction": r["instruction"], "output": r["output"], "relevance": r["relevance_score"]}
                for r in patterns["results"]
            ],
            "relevant_knowledge": [
                {"question": r["question"], "answer": r["answer"], "relevance": r["relevance_score"]}
                for r in knowledge["results"]
            ],
            "generation_guidance": {
                "use_typescript": True,
                "include_zod_validation": True,
                "implement_error_handling": True,
                "ensure_type_safety": True,
                "follow_trpc_patterns": True,
            },
        }

    def _call_audit_with_rules(self, args: dict[str, Any]) -> Any:
        code = _require_str(args, "code")
        focus = _choice(args, "focus", _FOCUS_AREAS, "all")
        guidelines = self._engine.search_knowledge(
            _FOCUS_QUERIES[focus], 4, self._cfg.search.max_answer_length
        )
        return {
            "code_audit": {
                "focus_area": focus,
                "code_length": len(code),
                "relevant_guidelines": [
                    {"guideline": r["question"], "explanation": r["answer"], "relevance": r["relevance_score"]}
                    for r in guidelines["results"]
                ],
                "audit_checklist": audit_checklist(code),
            },
        }

    def _call_explain_concept(self, args: dict[str, Any]) -> Any:
        concept = _require_str(args, "concept")
        detail_level = _choice(args, "detail_level", _DETAIL_LEVELS, "intermediate")
        explanations = self._engine.search_knowledge(concept, 3, self._cfg.search.max_answer_length)
        examples = self._engine.search_examples(concept, 2, self._cfg.search.max_content_length)
        return {
            "concept_explanation": {
                "concept": concept,
                "detail_level": detail_level,
                "explanations": [
                    {"question": r["question"], "answer": r["answer"], "relevance": r["relevance_score"]}
                    for r in explanations["results"]
                ],
                "code_examples": [
                    {"scenario": r["input"], "implementation": r["output"], "relevance": r["relevance_score"]}
                    for r in examples["results"]
                ],
            },
        }

    def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        dispatch = {
            "search_knowledge": self._call_search_knowledge,
            "search_examples": self._call_search_examples,
            "generate_with_context": self._call_generate_with_context,
            "audit_with_rules": self._call_audit_with_rules,
            "explain_concept": self._call_explain_concept,
        }
        if not isinstance(name, str) or name not in dispatch:
            msg = f"Unknown tool: {name}"
            raise ValueError(msg)
        args = arguments or {}
        if not isinstance(args, dict):
            msg = "Tool arguments must be an object"
            raise ToolInputError(msg)
        return json.dumps(dispatch[name](args), indent=2)

    # ------------------------------------------------------------------
    # Resources / prompts
    # ------------------------------------------------------------------

    def read_resource(self, uri: str) -> dict[str, Any]:
        kinds = {KNOWLEDGE_URI: "knowledge", EXAMPLES_URI: "examples"}
        if not isinstance(uri, str) or uri not in kinds:
            msg = f"Unknown resource: {uri}"
            raise ValueError(msg)
        entries = self._engine.all_entries(kinds[uri])
        fields = ("question", "answer") if kinds[uri] == "knowledge" else ("instruction", "input", "output")
        text = json.dumps([{f: e[f] for f in fields} for e in entries], indent=2)
        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": text}]}

    def get_prompt(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        args = arguments or {}
        if not isinstance(args, dict):
            msg = "Prompt arguments must be an object"
            raise ValueError(msg)
        if name == "generate-router":
            procedures = args.get("procedures") or ""
            description = "Generate a modern tRPC SvelteKit router with best practices"
            text = (
                f"Create a tRPC SvelteKit router: {args.get('description') or '[router description]'}\n\n"
                + (f"Procedures to include: {procedures}\n\n" if procedures else "")
                + "Requirements:\n"
                "- Use TypeScript with proper type definitions\n"
                "- Include input validation with Zod schemas\n"
                "- Implement proper error handling with TRPCError\n"
                "- Use context for authentication and request data\n"
                "- Follow tRPC naming conventions\n"
                "- Include proper middleware where appropriate\n\n"
                "Provide a complete, working router with explanation of the tRPC SvelteKit patterns used."
            )
        elif name == "audit-trpc-code":
            description = "Audit tRPC SvelteKit code for best practices and optimization opportunities"
            text = (
                f"Please audit this tRPC SvelteKit code with focus on: {args.get('focus') or 'all'}\n\n"
                f"```typescript\n{args.get('code') or '[paste your tRPC SvelteKit code here]'}\n```\n\n"
                "Check TypeScript usage, router structure, procedure definitions, Zod input "
                "validation, TRPCError handling, context and middleware, and caching.\n\n"
                "Provide:\n"
                "1. Issues found with severity (high/medium/low)\n"
                "2. Specific code improvements with examples\n"
                "3. Best practice recommendations for tRPC SvelteKit\n"
                "4. Performance optimization opportunities"
            )
        elif name == "explain-concept":
            description = "Explain tRPC SvelteKit concepts with detailed examples and comparisons"
            text = (
                f'Explain the tRPC SvelteKit concept: "{args.get("concept") or "[tRPC SvelteKit concept]"}" '
                f"at {args.get('level') or 'intermediate'} level\n\n"
                "Please provide:\n"
                "1. Clear definition and purpose\n"
                "2. Syntax and usage examples\n"
                "3. Integration with SvelteKit patterns\n"
                "4. When and why to use this feature\n"
                "5. Common patterns, gotchas and edge cases"
            )
        elif name == "search-patterns":
            context = args.get("context") or ""
            description = "Search for specific tRPC SvelteKit patterns and implementations"
            text = (
                f'Find tRPC SvelteKit patterns for: "{args.get("pattern") or "[pattern or feature]"}"\n\n'
                + (f"Additional context: {context}\n\n" if context else "")
                + "Please search the knowledge base and provide:\n"
                "1. Relevant patterns and implementations\n"
                "2. Code examples using tRPC SvelteKit features\n"
                "3. Best practices for this specific use case\n"
                "4. Alternative approaches and trade-offs\n"
                "5. Common mistakes to avoid"
            )
        else:
            msg = f"Unknown prompt: {name}"
            raise ValueError(msg)
        return {
            "description": description,
            "messages": [{"role": "user", "content": {"type": "text", "text": text}}],
        }

    # ------------------------------------------------------------------
    # JSON-RPC
    # ------------------------------------------------------------------

    def handle(self, msg: dict[str, Any]) -> dict[str, Any] | None:
        """Answer one JSON-RPC message; None for notifications."""
        method = msg.get("method", "")
        msg_id = msg.get("id")
        params = msg.get("params") or {}

        def ok(result: dict[str, Any]) -> dict[str, Any]:
            return {"jsonrpc": "2.0", "id": msg_id, "result": result}

        def error(code: int, message: str) -> dict[str, Any]:
            return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}

        if not isinstance(method, str):
            return error(-32600, "Invalid request: 'method' must be a string") if msg_id is not None else None
        if not isinstance(params, dict):
            if msg_id is None:
                return None
            return error(-32602, "Invalid params: 'params' must be an object")

        if method == "initialize":
            return ok({
                "protocolVersion": self._cfg.server.protocol_version,
                "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
                "serverInfo": {"name": self._cfg.server.name, "version": __version__},
            })
        if method.startswith("notifications/"):
            return None
        if method == "tools/list":
            return ok({"tools": _tool_defs()})
        if method == "tools/call":
            try:
                text = self.call_tool(params.get("name", ""), params.get("arguments") or {})
            except Exception as exc:
                logger.exception("tool %s failed", params.get("name"))
                return ok({"content": [{"type": "text", "text": f"Error: {exc}"}], "isError": True})
            return ok({"content": [{"type": "text", "text": text}], "isError": False})
        if method == "resources/list":
            return ok({"resources": _resource_defs()})
        if method == "resources/read":
            try:
                return ok(self.read_resource(params.get("uri", "")))
            except ValueError as exc:
                return error(-32602, str(exc))
        if method == "prompts/list":
            return ok({"prompts": _prompt_defs()})
        if method == "prompts/get":
            try:
                return ok(self.get_prompt(params.get("name", ""), params.get("arguments")))
            except ValueError as exc:
                return error(-32602, str(exc))
        if msg_id is not None:
            return error(-32601, f"Method not found: {method}")
        return None


async def _run_server(cfg: AppConfig, force_resync: bool = False) -> None:
    server = KnowledgeServer.from_config(cfg, force_resync=force_resync)
    reader = asyncio.StreamReader()
    loop = asyncio.get_running_loop()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

    writer_transport, _ = await loop.connect_write_pipe(asyncio.BaseProtocol, sys.stdout.buffer)

    def write_json(obj: Any) -> None:
        writer_transport.write((json.dumps(obj) + "\n").encode())

    try:
        while True:
            try:
                line = await reader.readline()
            except (asyncio.IncompleteReadError, EOFError):
                break
            if not line:
                break
            try:
                msg = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("ignoring non-JSON input line")
                continue
            if not isinstance(msg, dict):
                continue
            try:
                response = server.handle(msg)
            except Exception:
                logger.exception("failed to handle %s", msg.get("method"))
                if msg.get("id") is None:
                    continue
                response = {
                    "jsonrpc": "2.0",
                    "id": msg.get("id"),
                    "error": {"code": -32603, "message": "Internal error"},
                }
            if response is not None:
                write_json(response)
    finally:
        server.close()


def run_server(cfg: AppConfig, *, force_resync: bool = False) -> None:
    """Entry point for `trpc-sveltekit-mcp serve`."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s", stream=sys.stderr)
    for line in cfg.describe():
        logger.info(line)
    asyncio.run(_run_server(cfg, force_resync=force_resync))
