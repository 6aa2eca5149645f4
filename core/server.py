from __future__ import annotations

import json
import logging
import sys
from typing import Any, Callable, Dict, Optional

from observability.metrics import record_dropped_message, record_tool_result
from observability.tracer import ExecutionTracer

from .config import Settings
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
METHOD_NOT_FOUND = -32601
SERVER_NAME = "ai-prd-builder"
DEFAULT_SERVER_VERSION = "7.2.0"


def _stdout_writer(line: str) -> None:
    sys.stdout.write(line)
    sys.stdout.flush()


def _to_text_content(result: Any) -> str:
    """Render a tool result as the text of an MCP content block."""
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


class PRDBuilderMCPServer:
    """Line-delimited JSON-RPC engine for the PRD builder tools.

    Owns the input accumulator: ``feed`` appends a chunk, dispatches every
    complete line in order and writes each response before moving on to the
    next line. The trailing partial line stays buffered for the next chunk.
    """

    def __init__(
        self,
        *,
        config: Dict[str, Any],
        settings: Settings,
        environment: str,
        registry: ToolRegistry,
        license_resolver,
        write: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.environment = environment
        self.registry = registry
        self.license_resolver = license_resolver
        self.tracer = ExecutionTracer()
        self._write = write or _stdout_writer
        self._buffer = ""

    @property
    def server_info(self) -> Dict[str, str]:
        version = self.config.get("version") or DEFAULT_SERVER_VERSION
        return {"name": SERVER_NAME, "version": str(version)}

    # --- Transport ---
    def feed(self, chunk: str) -> None:
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        for line in lines:
            self._process_line(line)

    def _process_line(self, line: str) -> None:
        trimmed = line.strip()
        if not trimmed or trimmed.lower().startswith("content-length"):
            return
        try:
            message = json.loads(trimmed)
        except (ValueError, RecursionError) as e:
            logger.error("Failed to parse message: %s", e)
            record_dropped_message()
            return
        if not isinstance(message, dict):
            logger.error("Failed to parse message: expected a JSON object, got %s", type(message).__name__)
            record_dropped_message()
            return
        response = self.handle_message(message)
        if response is not None:
            self._send(response)

    def _send(self, payload: Dict[str, Any]) -> None:
        self._write(json.dumps(payload, ensure_ascii=False) + "\n")

    # --- Dispatch ---
    def handle_message(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        method = message.get("method")
        _id = message.get("id")

        if method == "initialize":
            return self._ok(_id, {
                "protocolVersion": self.settings.protocol_version,
                "capabilities": {"tools": {}},
                "serverInfo": self.server_info,
            })
        if method == "notifications/initialized":
            return None
        if method == "tools/list":
            return self._ok(_id, {"tools": self.registry.list_tools()})
        if method == "tools/call":
            return self.handle_tool_call(message)

        if "id" in message:
            return self._err(_id, METHOD_NOT_FOUND, f"Method not found: {method}")
        logger.debug("Ignoring notification %s", method)
        return None

    def handle_tool_call(self, message: Dict[str, Any]) -> Dict[str, Any]:
        _id = message.get("id")
        params = message.get("params")
        if not isinstance(params, dict):
            params = {}
        tool_name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(arguments, dict):
            arguments = {}

        tool = self.registry.get(tool_name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", tool_name)
            record_tool_result("unknown", False, 0.0)
            return self._tool_error(_id, f"Unknown tool: {tool_name}")

        logger.info(">>> %s %s", tool.name, arguments)
        try:
            with self.tracer.trace(tool.name):
                result = tool.handler(arguments, self)
        except Exception as e:
            logger.exception("Tool %s failed", tool.name)
            return self._tool_error(_id, str(e))
        logger.info("<<< %s OK", tool.name)
        return self._ok(_id, {"content": [{"type": "text", "text": _to_text_content(result)}]})

    # --- Envelopes ---
    def _tool_error(self, _id, message: str) -> Dict[str, Any]:
        text = _to_text_content({"error": message})
        return self._ok(_id, {"content": [{"type": "text", "text": text}], "isError": True})

    @staticmethod
    def _ok(_id, result: Dict[str, Any]) -> Dict[str, Any]:
        return {"jsonrpc": JSONRPC_VERSION, "id": _id, "result": result}

    @staticmethod
    def _err(_id, code: int, message: str) -> Dict[str, Any]:
        return {"jsonrpc": JSONRPC_VERSION, "id": _id, "error": {"code": code, "message": message}}
