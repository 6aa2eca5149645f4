from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "2024-11-05"
DEFAULT_VALIDATOR_TIMEOUT = 5.0


def _default_plugin_root() -> Path:
    return Path(__file__).resolve().parents[1]


@dataclass(frozen=True)
class Settings:
    """Filesystem locations and tunables resolved once at start-up."""

    plugin_root: Path
    engine_home: Path
    skill_config_path: Path
    home: Path
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    validator_timeout: float = DEFAULT_VALIDATOR_TIMEOUT

    @property
    def validator_path(self) -> Path:
        return self.engine_home / "validate-license"

    @property
    def trial_path(self) -> Path:
        return self.engine_home / "trial.json"

    @property
    def license_candidates(self) -> tuple:
        return (
            self.plugin_root / "license.json",
            self.engine_home / "license.json",
            self.home / ".ai-prd" / "license.json",
        )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        home = Path(os.path.expanduser("~"))
        plugin_root = Path(env.get("CLAUDE_PLUGIN_ROOT") or _default_plugin_root())
        skill_config = Path(env.get("AIPRD_SKILL_CONFIG") or plugin_root / "skill-config.json")
        engine_home = Path(env.get("AIPRD_ENGINE_HOME") or home / ".aiprd")
        try:
            timeout = float(env.get("VALIDATOR_TIMEOUT", DEFAULT_VALIDATOR_TIMEOUT))
        except ValueError:
            logger.warning("Ignoring invalid VALIDATOR_TIMEOUT=%r", env.get("VALIDATOR_TIMEOUT"))
            timeout = DEFAULT_VALIDATOR_TIMEOUT
        return cls(
            plugin_root=plugin_root,
            engine_home=engine_home,
            skill_config_path=skill_config,
            home=home,
            protocol_version=env.get("PROTOCOL_VERSION") or DEFAULT_PROTOCOL_VERSION,
            validator_timeout=timeout,
        )


def load_skill_config(path: Path) -> Dict[str, Any]:
    """Load the skill configuration document.

    A missing or unreadable file, or one that is not a JSON object, yields an
    empty document and a warning on the diagnostic channel.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not load skill-config.json from %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring skill-config.json at %s: top level is not an object", path)
        return {}
    return data


def detect_environment(environ: Optional[Dict[str, str]] = None, cwd: Optional[str] = None) -> str:
    """Return ``cowork`` when launched as a Cowork plugin, else ``cli``."""
    env = os.environ if environ is None else environ
    if cwd is None:
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = ""
    if env.get("CLAUDE_PLUGIN_ROOT") or (cwd or "").startswith("/sessions/"):
        return "cowork"
    return "cli"


def section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return a top-level section as a dict, or ``{}`` when absent or mistyped."""
    value = config.get(name) if isinstance(config, dict) else None
    return value if isinstance(value, dict) else {}
