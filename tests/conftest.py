import sys
import pathlib
from datetime import datetime, timezone

import pytest

# Ensure project root is importable in tests
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.config import Settings  # noqa: E402
from core.registry import ToolRegistry  # noqa: E402
from core.server import PRDBuilderMCPServer  # noqa: E402
from licensing import LicenseResolver  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

SKILL_CONFIG = {
    "name": "AI PRD Builder",
    "version": "7.2.0",
    "license": {
        "free_tier": {
            "strategies": ["zero_shot", "chain_of_thought"],
            "prd_contexts": ["feature", "bug"],
            "max_clarification_rounds": 2,
        },
        "licensed_tier": {"max_clarification_rounds": 10},
    },
    "thinking": {
        "available_strategies": ["zero_shot", "chain_of_thought", "tree_of_thoughts", "self_consistency", "react"],
        "strategy_prioritization": {"feature": ["tree_of_thoughts"]},
    },
    "prd_contexts": {
        "available": ["feature", "bug", "proposal"],
        "configurations": {
            "feature": {"sections": 11},
            "bug": {"sections": 6},
            "proposal": {"sections": 7},
        },
    },
    "providers": {"supported": ["anthropic", "openai"]},
}


@pytest.fixture
def settings(tmp_path):
    for sub in ("plugin", "engine", "home"):
        (tmp_path / sub).mkdir()
    return Settings(
        plugin_root=tmp_path / "plugin",
        engine_home=tmp_path / "engine",
        skill_config_path=tmp_path / "plugin" / "skill-config.json",
        home=tmp_path / "home",
    )


@pytest.fixture
def resolver(settings):
    return LicenseResolver(settings, "cli", clock=lambda: NOW)


@pytest.fixture
def make_server(settings, resolver):
    """Build a server around ``config`` that collects output lines in ``server.sent``."""
    import server as entry

    def _make(config=None):
        sent = []
        srv = PRDBuilderMCPServer(
            config=dict(SKILL_CONFIG) if config is None else config,
            settings=settings,
            environment="cli",
            registry=entry._register_all_handlers(ToolRegistry()),
            license_resolver=resolver,
            write=sent.append,
        )
        srv.sent = sent
        return srv

    return _make
