#!/usr/bin/env python3
"""
AI PRD Builder MCP server: JSON-RPC 2.0 over stdio, one message per line.

Exposes license and configuration tools to the host. License validation runs
the external validator binary when present (CLI installs) and falls back to
in-plugin file checks otherwise. All logging goes to stderr.
"""

import codecs
import logging
import os
import signal
import sys
from typing import Dict, Optional

from core.config import Settings, detect_environment, load_skill_config
from core.registry import ToolRegistry
from core.server import PRDBuilderMCPServer
from handlers.config_tools import (
    handle_get_config,
    handle_get_prd_context_info,
    handle_read_skill_config,
)
from handlers.license_tools import (
    handle_check_health,
    handle_get_license_features,
    handle_list_available_strategies,
    handle_validate_license,
)
from licensing import LicenseResolver

logger = logging.getLogger(__name__)

PRD_CONTEXT_TYPES = ["proposal", "feature", "bug", "incident", "poc", "mvp", "release", "cicd"]
_READ_CHUNK = 65536


def _no_args() -> dict:
    return {"type": "object", "properties": {}, "required": []}


def _register_all_handlers(registry: ToolRegistry) -> ToolRegistry:
    """Register the seven PRD builder tools and freeze the registry."""
    registry.register(
        "validate_license",
        handle_validate_license,
        description=(
            "Validate the current license tier. Returns tier, features, and validation details. "
            "Works in both CLI (external binary) and Cowork (in-plugin) modes."
        ),
        input_schema=_no_args(),
    )
    registry.register(
        "get_license_features",
        handle_get_license_features,
        description="Get the full feature set available for a given license tier.",
        input_schema={
            "type": "object",
            "properties": {
                "tier": {
                    "type": "string",
                    "enum": ["free", "trial", "licensed"],
                    "description": "The license tier to query features for",
                },
            },
            "required": [],
        },
    )
    registry.register(
        "get_config",
        handle_get_config,
        description="Get the full plugin configuration.",
        input_schema=_no_args(),
    )
    registry.register(
        "read_skill_config",
        handle_read_skill_config,
        description="Read a specific section of the skill configuration.",
        input_schema={
            "type": "object",
            "properties": {
                "section": {
                    "type": "string",
                    "description": "Config section to read (e.g. 'license', 'prd_contexts', 'thinking', 'verification')",
                },
            },
            "required": [],
        },
    )
    registry.register(
        "check_health",
        handle_check_health,
        description="Check the health of the MCP server and its dependencies.",
        input_schema=_no_args(),
    )
    registry.register(
        "get_prd_context_info",
        handle_get_prd_context_info,
        description="Get configuration details for a specific PRD context type.",
        input_schema={
            "type": "object",
            "properties": {
                "context_type": {
                    "type": "string",
                    "enum": PRD_CONTEXT_TYPES,
                    "description": "The PRD context type to query",
                },
            },
            "required": [],
        },
    )
    registry.register(
        "list_available_strategies",
        handle_list_available_strategies,
        description="List thinking strategies available for the current license tier.",
        input_schema=_no_args(),
    )
    return registry.freeze()


def build_server(environ: Optional[Dict[str, str]] = None, write=None) -> PRDBuilderMCPServer:
    settings = Settings.from_env(environ)
    environment = detect_environment(environ)
    config = load_skill_config(settings.skill_config_path)
    return PRDBuilderMCPServer(
        config=config,
        settings=settings,
        environment=environment,
        registry=_register_all_handlers(ToolRegistry()),
        license_resolver=LicenseResolver(settings, environment),
        write=write,
    )


def _exit_on_signal(signum, _frame):
    logger.info("Received signal %s, exiting", signum)
    sys.exit(0)


def serve_stdio(server: PRDBuilderMCPServer) -> None:
    """Feed raw stdin chunks to the server until EOF."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    fd = sys.stdin.fileno()
    while True:
        data = os.read(fd, _READ_CHUNK)
        if not data:
            server.feed(decoder.decode(b"", final=True))
            return
        server.feed(decoder.decode(data))


def main():
    """Main entry point for the AI PRD Builder MCP server"""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="[ai-prd-builder] %(levelname)s %(name)s: %(message)s",
    )
    signal.signal(signal.SIGTERM, _exit_on_signal)
    signal.signal(signal.SIGINT, _exit_on_signal)

    server = build_server()
    logger.info("MCP server started (%s mode)", server.environment)
    logger.info("Skill config: %s", server.settings.skill_config_path)
    logger.info("Engine home: %s", server.settings.engine_home)
    serve_stdio(server)


if __name__ == "__main__":
    main()
