import json
import logging

import pytest

from core.registry import ToolRegistry


def _responses(server):
    return [json.loads(line) for line in server.sent]


def _line(payload):
    return json.dumps(payload) + "\n"


def test_initialize_advertises_server(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}))
    (resp,) = _responses(srv)
    assert resp["id"] == 1
    assert resp["result"]["protocolVersion"] == "2024-11-05"
    assert resp["result"]["capabilities"] == {"tools": {}}
    assert resp["result"]["serverInfo"] == {"name": "ai-prd-builder", "version": "7.2.0"}


def test_server_version_defaults_without_config(make_server):
    srv = make_server({})
    srv.feed(_line({"jsonrpc": "2.0", "id": 1, "method": "initialize"}))
    assert _responses(srv)[0]["result"]["serverInfo"]["version"] == "7.2.0"


def test_initialized_notification_has_no_response(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "method": "notifications/initialized"}))
    assert srv.sent == []


def test_tools_list_projects_registry(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}))
    tools = _responses(srv)[0]["result"]["tools"]
    assert [t["name"] for t in tools] == [
        "validate_license",
        "get_license_features",
        "get_config",
        "read_skill_config",
        "check_health",
        "get_prd_context_info",
        "list_available_strategies",
    ]
    for tool in tools:
        assert set(tool) == {"name", "description", "inputSchema"}
        assert tool["inputSchema"]["type"] == "object"


def test_unknown_tool_is_tool_level_error(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "nope", "arguments": {}}}))
    (resp,) = _responses(srv)
    assert "error" not in resp
    assert resp["result"]["isError"] is True
    assert json.loads(resp["result"]["content"][0]["text"]) == {"error": "Unknown tool: nope"}


def test_handler_exception_is_tool_level_error(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 4, "method": "tools/call",
                    "params": {"name": "get_license_features", "arguments": {"tier": "gold"}}}))
    (resp,) = _responses(srv)
    assert resp["result"]["isError"] is True
    assert "Invalid tier" in json.loads(resp["result"]["content"][0]["text"])["error"]


def test_successful_call_wraps_json_text(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 5, "method": "tools/call",
                    "params": {"name": "read_skill_config", "arguments": {"section": "providers"}}}))
    result = _responses(srv)[0]["result"]
    assert "isError" not in result
    assert result["content"][0]["type"] == "text"
    assert json.loads(result["content"][0]["text"]) == {"section": "providers", "data": {"supported": ["anthropic", "openai"]}}


def test_tools_call_without_params(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 6, "method": "tools/call"}))
    assert _responses(srv)[0]["result"]["isError"] is True


def test_unknown_method_with_id(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": 7, "method": "resources/list"}))
    (resp,) = _responses(srv)
    assert resp["error"] == {"code": -32601, "message": "Method not found: resources/list"}


def test_unknown_method_with_null_id_still_answers(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": None, "method": "ping"}))
    assert _responses(srv)[0]["error"]["code"] == -32601


def test_unknown_notification_is_silent(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "method": "notifications/cancelled"}))
    assert srv.sent == []


def test_two_messages_in_one_chunk_answer_in_order(make_server):
    srv = make_server()
    srv.feed(_line({"jsonrpc": "2.0", "id": "a", "method": "tools/list"})
             + _line({"jsonrpc": "2.0", "id": "b", "method": "initialize"}))
    assert [r["id"] for r in _responses(srv)] == ["a", "b"]
    assert all(line.endswith("\n") and line.count("\n") == 1 for line in srv.sent)


def test_partial_line_waits_for_next_chunk(make_server):
    srv = make_server()
    raw = _line({"jsonrpc": "2.0", "id": 9, "method": "initialize"})
    srv.feed(raw[:10])
    assert srv.sent == []
    srv.feed(raw[10:])
    assert _responses(srv)[0]["id"] == 9


def test_malformed_line_logged_and_skipped(make_server, caplog):
    srv = make_server()
    with caplog.at_level(logging.ERROR, logger="core.server"):
        srv.feed("{broken json\n" + _line({"jsonrpc": "2.0", "id": 10, "method": "initialize"}))
    assert [r["id"] for r in _responses(srv)] == [10]
    errors = [r for r in caplog.records if r.name == "core.server" and r.levelno == logging.ERROR]
    assert len(errors) == 1


@pytest.mark.parametrize("noise", ["\n", "   \r\n", "Content-Length: 52\r\n", "content-length: 10\n"])
def test_blank_and_header_lines_discarded(make_server, noise, caplog):
    srv = make_server()
    with caplog.at_level(logging.ERROR, logger="core.server"):
        srv.feed(noise + _line({"jsonrpc": "2.0", "id": 11, "method": "initialize"}))
    assert [r["id"] for r in _responses(srv)] == [11]
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


def test_non_object_json_is_dropped(make_server):
    srv = make_server()
    srv.feed("[1, 2]\n42\n")
    assert srv.sent == []


def test_crlf_lines_are_accepted(make_server):
    srv = make_server()
    srv.feed(json.dumps({"jsonrpc": "2.0", "id": 12, "method": "initialize"}) + "\r\n")
    assert _responses(srv)[0]["id"] == 12


def test_registry_is_frozen(make_server):
    srv = make_server()
    assert len(srv.registry) == 7
    with pytest.raises(RuntimeError):
        srv.registry.register("extra", lambda a, s: {}, description="x")


def test_registry_rejects_duplicates_and_blank_names():
    reg = ToolRegistry()
    reg.register("a", lambda a, s: 1, description="a")
    with pytest.raises(ValueError):
        reg.register("a", lambda a, s: 2, description="again")
    with pytest.raises(ValueError):
        reg.register("", lambda a, s: 3, description="blank")
    assert reg.get(["a"]) is None
    assert reg.list_tools()[0]["inputSchema"] == {"type": "object", "properties": {}, "required": []}


def test_deeply_nested_line_dropped_without_losing_the_rest(make_server, caplog):
    srv = make_server()
    with caplog.at_level(logging.ERROR, logger="core.server"):
        srv.feed("[" * 200000 + "\n" + _line({"jsonrpc": "2.0", "id": 13, "method": "initialize"}))
    assert [r["id"] for r in _responses(srv)] == [13]
    assert len([r for r in caplog.records if r.name == "core.server" and r.levelno == logging.ERROR]) == 1
