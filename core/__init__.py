"""Core package for the AI PRD Builder MCP server.

This package houses the protocol and wiring components:
- server: line-delimited JSON-RPC engine and tool-call dispatch
- registry: tool registration and metadata store
- config: settings, skill configuration loading and environment detection
- errors: exceptions raised by tool handlers
"""
