from __future__ import annotations

from typing import Any, Dict, List, Union

from core.config import section

from .models import Tier

ALL_LICENSED_FEATURES = (
    "thinking_strategies",
    "advanced_rag",
    "verification_engine",
    "vision_engine",
    "orchestration_engine",
    "encryption_engine",
    "strategy_engine",
)

DEFAULT_FREE_STRATEGIES = ["zero_shot", "chain_of_thought"]
DEFAULT_FREE_CONTEXTS = ["feature", "bug"]

# field -> default used when free_tier omits it
FREE_TIER_DEFAULTS: Dict[str, Any] = {
    "max_clarification_rounds": 3,
    "max_clarification_questions": 5,
    "verification": "basic",
    "rag_max_hops": 1,
    "sections_limit": 6,
    "business_kpis": "summary_only",
}

_TIER_OVERRIDE_KEYS = {Tier.LICENSED: "licensed_tier", Tier.TRIAL: "trial_tier"}


def _is_paid(tier: Union[Tier, str, None]) -> bool:
    return Tier.parse(tier) in (Tier.LICENSED, Tier.TRIAL)


def _get(mapping: Dict[str, Any], key: str, default: Any) -> Any:
    value = mapping.get(key)
    return default if value is None else value


def _list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def licensed_feature_ids(tier: Union[Tier, str, None]) -> List[str]:
    """Coarse feature gate: every capability for paid tiers, nothing for free."""
    return list(ALL_LICENSED_FEATURES) if _is_paid(tier) else []


def free_tier_strategies(config: Dict[str, Any]) -> List[str]:
    """Strategies unlocked on the free tier, most specific source first."""
    free_tier = section(section(config, "license"), "free_tier")
    if free_tier.get("strategies") is not None:
        return _list(free_tier["strategies"])
    engine_tiers = section(section(config, "strategy_engine"), "license_tiers")
    if engine_tiers.get("free") is not None:
        return _list(engine_tiers["free"])
    return list(DEFAULT_FREE_STRATEGIES)


def free_tier_contexts(config: Dict[str, Any]) -> List[str]:
    free_tier = section(section(config, "license"), "free_tier")
    return _list(_get(free_tier, "prd_contexts", DEFAULT_FREE_CONTEXTS))


def features_for_tier(tier: Union[Tier, str, None], config: Dict[str, Any]) -> Dict[str, Any]:
    """Build the feature profile for ``tier`` from the skill configuration.

    Paid tiers start from an everything-enabled baseline and apply the
    ``license.<tier>_tier`` override object on top (override keys win).
    Any other tier, known or not, gets the free profile, with each field
    taken from ``license.free_tier`` or its built-in default.
    """
    license_cfg = section(config, "license")
    parsed = Tier.parse(tier)

    if parsed in _TIER_OVERRIDE_KEYS:
        profile: Dict[str, Any] = {
            "strategies": "all",
            "strategies_list": _list(section(config, "thinking").get("available_strategies")),
            "prd_contexts": "all",
            "prd_contexts_list": _list(section(config, "prd_contexts").get("available")),
            "max_clarification_rounds": "unlimited",
            "max_clarification_questions": "context_aware",
            "verification": "full",
            "rag_max_hops": "context_aware",
            "sections_limit": "context_aware",
            "business_kpis": "full",
        }
        profile.update(section(license_cfg, _TIER_OVERRIDE_KEYS[parsed]))
        return profile

    free_tier = section(license_cfg, "free_tier")
    strategies = _list(_get(free_tier, "strategies", DEFAULT_FREE_STRATEGIES))
    contexts = free_tier_contexts(config)
    profile = {
        "strategies": strategies,
        "strategies_list": list(strategies),
        "prd_contexts": contexts,
        "prd_contexts_list": list(contexts),
    }
    for key, default in FREE_TIER_DEFAULTS.items():
        profile[key] = _get(free_tier, key, default)
    return profile
