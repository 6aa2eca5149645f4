"""
Prometheus metrics for tool calls, license resolution and input framing.
Collectors live on a private registry; set METRICS_ENABLED=0 to turn recording into a no-op.
"""
from __future__ import annotations

import os
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Single registry for the process
_REGISTRY: Optional[CollectorRegistry] = None

# Metrics objects
TOOL_CALLS_TOTAL = None
TOOL_LATENCY = None
LICENSE_RESOLUTIONS = None
DROPPED_MESSAGES = None


def metrics_enabled() -> bool:
    return os.getenv("METRICS_ENABLED", "1").lower() in {"1", "true", "yes", "on"}


def _get_registry() -> CollectorRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = CollectorRegistry()
    return _REGISTRY


def init_metrics():
    global TOOL_CALLS_TOTAL, TOOL_LATENCY, LICENSE_RESOLUTIONS, DROPPED_MESSAGES
    if TOOL_CALLS_TOTAL is not None:
        return
    reg = _get_registry()
    TOOL_CALLS_TOTAL = Counter("mcp_tool_calls_total", "Tool calls by tool and outcome", ["tool", "outcome"], registry=reg)
    TOOL_LATENCY = Histogram("mcp_tool_latency_seconds", "Tool handler latency", ["tool"], registry=reg)
    LICENSE_RESOLUTIONS = Counter("mcp_license_resolutions_total", "License resolutions by winning source", ["source"], registry=reg)
    DROPPED_MESSAGES = Counter("mcp_dropped_messages_total", "Input lines dropped because they were not JSON-RPC objects", registry=reg)


# Initialize eagerly if enabled
if metrics_enabled():
    init_metrics()


def record_tool_result(tool: str, success: bool, latency_ms: float):
    if TOOL_CALLS_TOTAL is None or TOOL_LATENCY is None:
        return
    outcome = "success" if success else "failure"
    TOOL_CALLS_TOTAL.labels(tool=tool, outcome=outcome).inc()
    TOOL_LATENCY.labels(tool=tool).observe(max(0.0, latency_ms / 1000.0))


def record_license_resolution(source: str):
    if LICENSE_RESOLUTIONS is None:
        return
    LICENSE_RESOLUTIONS.labels(source=source).inc()


def record_dropped_message():
    if DROPPED_MESSAGES is None:
        return
    DROPPED_MESSAGES.inc()


def metrics_snapshot() -> Dict[str, float]:
    """Flatten counter samples into ``{"name{label=value}": count}``."""
    if _REGISTRY is None:
        return {}
    snap: Dict[str, float] = {}
    for family in _REGISTRY.collect():
        if family.type != "counter":
            continue
        for sample in family.samples:
            if not sample.name.endswith("_total"):
                continue
            labels = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
            key = f"{sample.name}{{{labels}}}" if labels else sample.name
            snap[key] = sample.value
    return snap


def metrics_payload_bytes() -> bytes:
    if _REGISTRY is None:
        return b""
    return generate_latest(_REGISTRY)
