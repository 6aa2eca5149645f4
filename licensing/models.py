from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Tier(str, Enum):
    FREE = "free"
    TRIAL = "trial"
    LICENSED = "licensed"

    @classmethod
    def parse(cls, value: Any) -> Optional["Tier"]:
        """Return the matching tier, or None for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class SourceTag(str, Enum):
    EXTERNAL_BINARY = "external_binary"
    LICENSE_FILE = "license_file"
    TRIAL = "trial"
    DEFAULT_FREE = "default_free"


@dataclass(frozen=True)
class LicenseState:
    """Resolved entitlement snapshot.

    ``expires_at`` and ``days_remaining`` are set together or not at all.
    """

    tier: Tier
    features: Tuple[str, ...]
    source: SourceTag
    environment: str
    signature_verified: bool = False
    hardware_verified: bool = False
    expires_at: Optional[str] = None
    days_remaining: Optional[int] = None
    errors: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if (self.expires_at is None) != (self.days_remaining is None):
            raise ValueError("expires_at and days_remaining must be set together")
        if self.days_remaining is not None and self.days_remaining < 0:
            raise ValueError("days_remaining must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "features": list(self.features),
            "signature_verified": self.signature_verified,
            "hardware_verified": self.hardware_verified,
            "expires_at": self.expires_at,
            "days_remaining": self.days_remaining,
            "source": self.source.value,
            "environment": self.environment,
            "errors": list(self.errors),
        }
