"""MCP server: tool dispatch, resources, prompts and JSON-RPC handling."""

import json

import pytest

from tests.conftest import EXAMPLES, KNOWLEDGE
from trpc_sveltekit_mcp import __version__
from trpc_sveltekit_mcp.config import AppConfig
from trpc_sveltekit_mcp.mcp import (
    EXAMPLES_URI,
    KNOWLEDGE_URI,
    KnowledgeServer,
    ToolInputError,
    audit_checklist,
)


@pytest.fixture
def server(tmp_path, loaded_engine):
    return KnowledgeServer(AppConfig(config_dir=tmp_path), loaded_engine)


def _call(server, name, **arguments):
    return json.loads(server.call_tool(name, arguments))


class TestTools:
    def test_search_knowledge(self, server):
        out = _call(server, "search_knowledge", query="router", limit=1)
        assert out["total_results"] == 1
        assert out["results"][0]["question"] == "What is a router?"
        assert "expanded_query" in out

    def test_search_examples(self, server):
        out = _call(server, "search_examples", query="middleware")
        assert out["results"][0]["instruction"] == "Add auth middleware"

    def test_missing_query(self, server):
        with pytest.raises(ToolInputError, match="query"):
            server.call_tool("search_knowledge", {})

    def test_bad_limit(self, server):
        with pytest.raises(ToolInputError, match="limit"):
            server.call_tool("search_knowledge", {"query": "router", "limit": "many"})

    def test_generate_with_context(self, server):
        out = _call(server, "generate_with_context", description="router", procedures=["list"])
        assert out["request"] == {"description": "router", "procedures": ["list"], "complexity": "moderate"}
        assert out["relevant_patterns"][0]["instruction"] == "Create a router"
        assert out["relevant_knowledge"][0]["question"] == "What is a router?"
        assert out["generation_guidance"]["use_typescript"] is True

    def test_generate_rejects_unknown_complexity(self, server):
        with pytest.raises(ToolInputError, match="complexity"):
            server.call_tool("generate_with_context", {"description": "x", "complexity": "huge"})

    def test_audit_with_rules(self, server):
        code = "export const r = t.router({ a: t.procedure.input(z.string()).query(() => 1) });"
        out = _call(server, "audit_with_rules", code=code, focus="type-safety")
        audit = out["code_audit"]
        assert audit["focus_area"] == "type-safety"
        assert audit["code_length"] == len(code)
        assert audit["audit_checklist"]["has_router_definition"] is True
        assert audit["audit_checklist"]["implements_error_handling"] is False

    def test_explain_concept(self, server):
        out = _call(server, "explain_concept", concept="router")
        explained = out["concept_explanation"]
        assert explained["detail_level"] == "intermediate"
        assert explained["explanations"][0]["question"] == "What is a router?"
        assert explained["code_examples"][0]["scenario"] == "posts API"

    def test_unknown_tool(self, server):
        with pytest.raises(ValueError, match="Unknown tool"):
            server.call_tool("drop_tables", {})


def test_audit_checklist():
    checks = audit_checklist("throw new TRPCError({ code: 'NOT_FOUND' }); ctx.user")
    assert checks["implements_error_handling"]
    assert checks["uses_context"]
    assert not checks["has_router_definition"]


class TestResourcesAndPrompts:
    def test_read_knowledge(self, server):
        res = server.read_resource(KNOWLEDGE_URI)
        (content,) = res["contents"]
        assert content["mimeType"] == "application/json"
        assert json.loads(content["text"]) == KNOWLEDGE

    def test_read_examples(self, server):
        text = server.read_resource(EXAMPLES_URI)["contents"][0]["text"]
        assert json.loads(text) == EXAMPLES

    def test_unknown_resource(self, server):
        with pytest.raises(ValueError, match="Unknown resource"):
            server.read_resource("trpc-sveltekit://nope")

    @pytest.mark.parametrize(
        ("name", "args", "needle"),
        [
            ("generate-router", {"description": "posts", "procedures": "list,get"}, "Procedures to include: list,get"),
            ("audit-trpc-code", {"code": "t.router({})"}, "t.router({})"),
            ("explain-concept", {"concept": "context", "level": "basic"}, "at basic level"),
            ("search-patterns", {"pattern": "auth"}, '"auth"'),
        ],
    )
    def test_prompts(self, server, name, args, needle):
        prompt = server.get_prompt(name, args)
        (message,) = prompt["messages"]
        assert message["role"] == "user"
        assert needle in message["content"]["text"]

    def test_prompt_placeholders(self, server):
        text = server.get_prompt("generate-router", None)["messages"][0]["content"]["text"]
        assert "[router description]" in text
        assert "Procedures to include" not in text

    def test_unknown_prompt(self, server):
        with pytest.raises(ValueError, match="Unknown prompt"):
            server.get_prompt("nope", {})


class TestJsonRpc:
    def test_initialize(self, server):
        resp = server.handle({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
        assert resp["id"] == 1
        assert resp["result"]["protocolVersion"] == "2024-11-05"
        assert resp["result"]["serverInfo"]["version"] == __version__

    def test_notification_gets_no_response(self, server):
        assert server.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    def test_lists(self, server):
        tools = server.handle({"id": 2, "method": "tools/list"})["result"]["tools"]
        assert [t["name"] for t in tools] == [
            "search_knowledge", "search_examples", "generate_with_context",
            "audit_with_rules", "explain_concept",
        ]
        resources = server.handle({"id": 3, "method": "resources/list"})["result"]["resources"]
        assert {r["uri"] for r in resources} == {KNOWLEDGE_URI, EXAMPLES_URI}
        prompts = server.handle({"id": 4, "method": "prompts/list"})["result"]["prompts"]
        assert len(prompts) == 4

    def test_tool_call(self, server):
        resp = server.handle({
            "id": 5,
            "method": "tools/call",
            "params": {"name": "search_knowledge", "arguments": {"query": "router"}},
        })
        result = resp["result"]
        assert result["isError"] is False
        assert json.loads(result["content"][0]["text"])["total_results"] >= 1

    def test_tool_error_is_reported_in_result(self, server):
        resp = server.handle({"id": 6, "method": "tools/call", "params": {"name": "search_knowledge"}})
        assert resp["result"]["isError"] is True
        assert resp["result"]["content"][0]["text"].startswith("Error:")

    def test_bad_resource_is_invalid_params(self, server):
        resp = server.handle({"id": 7, "method": "resources/read", "params": {"uri": "x://y"}})
        assert resp["error"]["code"] == -32602

    @pytest.mark.parametrize("method", ["tools/call", "resources/read", "prompts/get", "initialize"])
    def test_non_object_params(self, server, method):
        resp = server.handle({"id": 9, "method": method, "params": ["x"]})
        assert resp["error"]["code"] == -32602
        assert server.handle({"method": method, "params": ["x"]}) is None

    def test_non_string_method(self, server):
        resp = server.handle({"id": 10, "method": ["tools/list"]})
        assert resp["error"]["code"] == -32600
        assert server.handle({"method": 42}) is None

    def test_non_object_arguments(self, server):
        resp = server.handle({
            "id": 11, "method": "tools/call", "params": {"name": "search_knowledge", "arguments": ["x"]},
        })
        assert resp["result"]["isError"] is True
        resp = server.handle({"id": 12, "method": "prompts/get", "params": {"name": "explain-concept", "arguments": ["x"]}})
        assert resp["error"]["code"] == -32602
        resp = server.handle({"id": 13, "method": "resources/read", "params": {"uri": ["x"]}})
        assert resp["error"]["code"] == -32602

    def test_unknown_method(self, server):
        resp = server.handle({"id": 8, "method": "sampling/createMessage"})
        assert resp["error"]["code"] == -32601
        assert server.handle({"method": "sampling/createMessage"}) is None


def test_from_config_syncs_corpora(tmp_path, data_dir):
    cfg = AppConfig(config_dir=tmp_path, db_path=tmp_path / "db.sqlite", data_dir=data_dir)
    server = KnowledgeServer.from_config(cfg)
    try:
        out = json.loads(server.call_tool("search_knowledge", {"query": "router"}))
        assert out["total_results"] >= 1
    finally:
        server.close()

    # Same version and a populated store: the second start does not re-ingest.
    server = KnowledgeServer.from_config(cfg)
    try:
        meta = server._engine.stats()["metadata"]
        assert meta["db_version"] == __version__
        assert meta["knowledge_count"] == str(len(KNOWLEDGE))
    finally:
        server.close()
