from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from core.config import section
from core.errors import ValidationError
from licensing import Tier, features_for_tier
from licensing.features import free_tier_strategies
from observability.metrics import metrics_snapshot


def handle_validate_license(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    return server.license_resolver.resolve().to_dict()


def handle_get_license_features(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    """Feature profile for ``arguments.tier``, or for the resolved tier when omitted."""
    requested = arguments.get("tier")
    if requested:
        tier = Tier.parse(requested)
        if tier is None:
            raise ValidationError(f"Invalid tier: {requested!r} (expected free, trial or licensed)")
    else:
        tier = server.license_resolver.resolve().tier
    return {
        "tier": tier.value,
        "features": features_for_tier(tier, server.config),
        "environment": server.environment,
    }


def handle_check_health(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    # Existence check only; the validator is not run here.
    validator_exists = server.license_resolver.validator_available()
    return {
        "status": "ok",
        "version": server.config.get("version") or "unknown",
        "environment": server.environment,
        "skill_config_loaded": bool(server.config),
        "external_validator_available": validator_exists,
        "license_mode": "external_binary" if validator_exists else "in_plugin",
        "engine_home": str(server.settings.engine_home),
        "plugin_root": str(server.settings.plugin_root),
        "tools_registered": len(server.registry),
        "metrics": metrics_snapshot(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def handle_list_available_strategies(arguments: Dict[str, Any], server) -> Dict[str, Any]:
    """Strategies unlocked for the resolved tier; free tier also reports what is locked."""
    license_state = server.license_resolver.resolve()
    thinking = section(server.config, "thinking")
    catalog = thinking.get("available_strategies")
    catalog = list(catalog) if isinstance(catalog, list) else []
    prioritization = section(thinking, "strategy_prioritization")

    if license_state.tier is Tier.FREE:
        free = free_tier_strategies(server.config)
        return {
            "tier": license_state.tier.value,
            "strategies": free,
            "total_available": len(free),
            "total_strategies": len(catalog),
            "locked": [s for s in catalog if s not in free],
            "prioritization": prioritization,
        }

    return {
        "tier": license_state.tier.value,
        "strategies": catalog,
        "total_available": len(catalog),
        "total_strategies": len(catalog),
        "locked": [],
        "prioritization": prioritization,
    }
