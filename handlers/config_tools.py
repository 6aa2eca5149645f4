from __future__ import annotations

from typing import Any, Dict

from core.config import section
from licensing.features import free_tier_contexts


def handle_get_config(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    config = server.config
    return {
        "version": config.get("version") or "unknown",
        "name": config.get("name") or "AI PRD Builder",
        "environment": server.environment,
        "engine_home": str(server.settings.engine_home),
        "plugin_root": str(server.settings.plugin_root),
        "skill_config_path": str(server.settings.skill_config_path),
        "prd_contexts": section(config, "prd_contexts").get("available") or [],
        "supported_providers": section(config, "providers").get("supported") or [],
    }


def handle_read_skill_config(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    """Return one configuration section, or the section directory when it is not found."""
    name = arguments.get("section")
    if isinstance(name, str) and name in server.config:
        return {"section": name, "data": server.config[name]}
    return {
        "available_sections": sorted(server.config.keys()),
        "hint": "Pass a section name to read its contents",
    }


def handle_get_prd_context_info(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    contexts = section(server.config, "prd_contexts")
    catalog = section(contexts, "configurations")
    available = contexts.get("available") or sorted(catalog.keys())
    context_type = arguments.get("context_type")

    if context_type and catalog:
        cfg = catalog.get(context_type) if isinstance(context_type, str) else None
        if cfg is None:
            # reported in the payload, not raised
            return {"error": f"unknown context type '{context_type}'", "available": available}
        return {
            "context_type": context_type,
            "configuration": cfg,
            "requires_license": context_type not in free_tier_contexts(server.config),
            "current_tier": server.license_resolver.resolve().tier.value,
        }

    return {"available_contexts": contexts.get("available") or [], "configurations": catalog}
