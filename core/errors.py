from __future__ import annotations


class ToolError(Exception):
    """Raised by a tool handler; surfaced to the host as an ``isError`` result."""
    pass


class ValidationError(ToolError):
    """Raised for invalid tool arguments."""
    pass
