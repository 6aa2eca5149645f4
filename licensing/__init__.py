"""License resolution and tier-based feature entitlements.

- models: LicenseState value object and the Tier/SourceTag enums
- features: pure tier -> feature profile mapping
- resolver: ordered fallback chain producing a LicenseState
"""

from .features import features_for_tier, licensed_feature_ids
from .models import LicenseState, SourceTag, Tier
from .resolver import LicenseResolver

__all__ = [
    "LicenseResolver",
    "LicenseState",
    "SourceTag",
    "Tier",
    "features_for_tier",
    "licensed_feature_ids",
]
