from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

Handler = Callable[[Dict[str, Any], Any], Any]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: Handler

    def describe(self) -> Dict[str, Any]:
        """Projection used by ``tools/list``."""
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


class ToolRegistry:
    """Tool registry mapping names to definitions.

    Handlers take (arguments: dict, server). The registry is filled once at
    start-up and then frozen; later registrations raise.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        handler: Handler,
        *,
        description: str,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        if not isinstance(name, str) or not name:
            raise ValueError("Tool name must be a non-empty string")
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        schema = input_schema or {"type": "object", "properties": {}, "required": []}
        self._tools[name] = ToolDefinition(name, description, schema, handler)

    def freeze(self) -> "ToolRegistry":
        self._frozen = True
        return self

    def get(self, name: Any) -> Optional[ToolDefinition]:
        if not isinstance(name, str):
            return None
        return self._tools.get(name)

    def list_tools(self) -> List[Dict[str, Any]]:
        return [t.describe() for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
