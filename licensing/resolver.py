"""Ordered license resolution.

Sources are tried highest priority first and the first acceptable one wins:

1. the external ``validate-license`` binary under the engine home
2. ``license.json`` candidates (plugin root, engine home, ``~/.ai-prd``)
3. ``trial.json`` under the engine home
4. the free tier

Every source failure is logged and absorbed; ``resolve()`` never raises.
"""

from __future__ import annotations

import json
import logging
import math
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from core.config import Settings
from observability.metrics import record_license_resolution

from .features import licensed_feature_ids
from .models import LicenseState, SourceTag, Tier

logger = logging.getLogger(__name__)

# Applied when a license file carries no expires_at.
DEFAULT_LICENSE_EXPIRY = "2099-12-31"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECONDS_PER_DAY = 86_400


class CandidateRejected(Exception):
    """A resolution source was present but unusable."""
    pass


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 date/datetime or epoch milliseconds into an aware UTC datetime."""
    if isinstance(value, bool):
        raise CandidateRejected(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise CandidateRejected(f"invalid timestamp: {value!r}") from e
    if not isinstance(value, str) or not value.strip():
        raise CandidateRejected(f"invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise CandidateRejected(f"invalid timestamp: {value!r}") from e


def expiry_label(raw: Any, expires: datetime) -> str:
    """The expiry as supplied when it is a string, else its ISO form."""
    return raw if isinstance(raw, str) else expires.isoformat()


def days_until(expires_at: datetime, now: datetime) -> int:
    return math.ceil((expires_at - now).total_seconds() / _SECONDS_PER_DAY)


class LicenseResolver:
    """Produce a LicenseState from the first acceptable source.

    ``clock`` and ``runner`` are injectable so the fallback chain can be
    exercised without a real validator binary or wall clock.
    """

    def __init__(
        self,
        settings: Settings,
        environment: str,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.settings = settings
        self.environment = environment
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._runner = runner

    # --- Public API ---
    def validator_available(self) -> bool:
        return self.settings.validator_path.is_file()

    def resolve(self) -> LicenseState:
        now = self._clock()
        state = (
            self._from_external_validator(now)
            or self._from_license_files(now)
            or self._from_trial_file(now)
            or self._default_free()
        )
        record_license_resolution(state.source.value)
        logger.debug("License resolved: tier=%s source=%s", state.tier.value, state.source.value)
        return state

    # --- Sources ---
    def _from_external_validator(self, now: datetime) -> Optional[LicenseState]:
        path = self.settings.validator_path
        if not self.validator_available():
            return None
        try:
            proc = self._runner(
                [str(path)],
                capture_output=True,
                text=True,
                timeout=self.settings.validator_timeout,
                check=True,
            )
            doc = json.loads(proc.stdout)
            return self._state_from_validator(doc, now)
        except (OSError, subprocess.SubprocessError, ValueError, RecursionError, CandidateRejected) as e:
            logger.warning("External validator failed, falling back to in-plugin: %s", e)
            return None

    def _from_license_files(self, now: datetime) -> Optional[LicenseState]:
        for path in self.settings.license_candidates:
            doc = self._read_candidate(path)
            if doc is None:
                continue
            try:
                state = self._state_from_license_file(doc, now)
            except CandidateRejected as e:
                logger.info("Skipping license file %s: %s", path, e)
                continue
            logger.debug("Accepted license file %s", path)
            return state
        return None

    def _from_trial_file(self, now: datetime) -> Optional[LicenseState]:
        path = self.settings.trial_path
        doc = self._read_candidate(path)
        if doc is None:
            return None
        try:
            raw_expiry = doc.get("trial_expires_at") or doc.get("expires_at")
            expires = parse_timestamp(raw_expiry) if raw_expiry else _EPOCH
            days = self._require_future(expires, now)
        except CandidateRejected as e:
            logger.info("Skipping trial file %s: %s", path, e)
            return None
        return LicenseState(
            tier=Tier.TRIAL,
            features=tuple(licensed_feature_ids(Tier.TRIAL)),
            source=SourceTag.TRIAL,
            environment=self.environment,
            expires_at=expiry_label(raw_expiry, expires),
            days_remaining=days,
        )

    def _default_free(self) -> LicenseState:
        return LicenseState(
            tier=Tier.FREE,
            features=tuple(licensed_feature_ids(Tier.FREE)),
            source=SourceTag.DEFAULT_FREE,
            environment=self.environment,
        )

    # --- Helpers ---
    @staticmethod
    def _read_candidate(path: Path) -> Optional[Dict[str, Any]]:
        """Return the JSON object at ``path``; None when absent, unreadable or malformed."""
        if not path.is_file():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError, RecursionError) as e:
            logger.info("Ignoring unreadable license candidate %s: %s", path, e)
            return None
        if not isinstance(doc, dict):
            logger.info("Ignoring license candidate %s: not a JSON object", path)
            return None
        return doc

    @staticmethod
    def _require_future(expires: datetime, now: datetime) -> int:
        if expires <= now:
            raise CandidateRejected(f"expired at {expires.isoformat()}")
        return days_until(expires, now)

    @staticmethod
    def _tier_of(doc: Dict[str, Any]) -> Tier:
        raw = doc.get("tier")
        if not raw:
            raise CandidateRejected("missing tier")
        tier = Tier.parse(raw)
        if tier is None:
            raise CandidateRejected(f"unknown tier {raw!r}")
        return tier

    @staticmethod
    def _features_of(doc: Dict[str, Any], key: str, tier: Tier) -> tuple:
        explicit = doc.get(key)
        if explicit is None:
            return tuple(licensed_feature_ids(tier))
        if not isinstance(explicit, list) or not all(isinstance(f, str) for f in explicit):
            raise CandidateRejected(f"{key} must be a list of strings")
        return tuple(explicit)

    def _state_from_license_file(self, doc: Dict[str, Any], now: datetime) -> LicenseState:
        tier = self._tier_of(doc)
        raw_expiry = doc.get("expires_at") or DEFAULT_LICENSE_EXPIRY
        expires = parse_timestamp(raw_expiry)
        days = self._require_future(expires, now)
        return LicenseState(
            tier=tier,
            features=self._features_of(doc, "enabled_features", tier),
            source=SourceTag.LICENSE_FILE,
            environment=self.environment,
            expires_at=expiry_label(raw_expiry, expires),
            days_remaining=days,
        )

    def _state_from_validator(self, doc: Any, now: datetime) -> LicenseState:
        if not isinstance(doc, dict):
            raise CandidateRejected("validator output is not a JSON object")
        tier = self._tier_of(doc)
        expires_at = None
        days = None
        if doc.get("expires_at"):
            expires = parse_timestamp(doc["expires_at"])
            days = self._require_future(expires, now)
            expires_at = expiry_label(doc["expires_at"], expires)
        return LicenseState(
            tier=tier,
            features=self._features_of(doc, "features", tier),
            source=SourceTag.EXTERNAL_BINARY,
            environment=self.environment,
            signature_verified=bool(doc.get("signature_verified", False)),
            hardware_verified=bool(doc.get("hardware_verified", False)),
            expires_at=expires_at,
            days_remaining=days,
        )
