from __future__ import annotations

import contextlib
import time
from collections import deque
from typing import Any, Deque, Dict, Iterator

from .metrics import record_tool_result


class ExecutionTracer:
    """Times tool executions and keeps the most recent spans.

    Each span is reported to the tool metrics when it closes.
    """

    def __init__(self, max_events: int = 100) -> None:
        self.events: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    @contextlib.contextmanager
    def trace(self, name: str) -> Iterator[Dict[str, Any]]:
        span: Dict[str, Any] = {"name": name, "ok": True}
        start = time.perf_counter()
        try:
            yield span
        except Exception:
            span["ok"] = False
            raise
        finally:
            span["duration_ms"] = (time.perf_counter() - start) * 1000.0
            self.events.append(span)
            record_tool_result(name, span["ok"], span["duration_ms"])
