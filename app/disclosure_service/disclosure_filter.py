"""
Graduated disclosure of preference records.

Redacts a full record down to the fields a driver may see at a given
access tier. Hidden fields are omitted, never nulled: a missing key
looks the same whether the passenger never set it or it was filtered,
so the shape of the view does not leak the tier.
"""

from typing import Dict, Tuple

from app.disclosure_service.access_level import AccessTier
from app.preference_service.schemas import (
    CATEGORIES,
    CommunicationStyle,
    PreferenceRecord,
)

PartialView = Dict[str, Dict]

# Category -> visible fields. FULL is not listed: it returns the record as is.
VISIBILITY: Dict[AccessTier, Dict[str, Tuple[str, ...]]] = {
    AccessTier.MODERATE: {
        "music": ("enabled", "genre", "volume"),
        "communication": ("style", "small_talk"),
        "comfort": (
            "temperature_preference_celsius",
            "window_preference",
            "phone_usage",
        ),
        "trip": ("route_preference",),
    },
    AccessTier.BASIC: {
        "music": ("enabled",),
        "communication": ("style",),
        "comfort": ("temperature_preference_celsius", "phone_usage"),
    },
    AccessTier.MINIMAL: {
        "communication": ("style",),
    },
}

# Fields whose value is replaced at a tier rather than shown as stored
OVERRIDES: Dict[AccessTier, Dict[Tuple[str, str], object]] = {
    AccessTier.MINIMAL: {
        ("communication", "style"): CommunicationStyle.NEUTRAL.value,
    },
}


def filter_preferences(record: PreferenceRecord, tier: AccessTier) -> PartialView:
    """
    Build the driver-facing view of a record at the given tier.

    Args:
        record (PreferenceRecord): Full passenger record.
        tier (AccessTier): Tier resolved for the requesting driver.

    Returns:
        PartialView: Category -> field -> value, containing only the
        fields the tier allows.
    """
    tier = AccessTier(tier)
    full = record.model_dump(mode="json")

    if tier is AccessTier.FULL:
        return full

    overrides = OVERRIDES.get(tier, {})
    view: PartialView = {}

    for category, fields in VISIBILITY[tier].items():
        view[category] = {
            field: overrides.get((category, field), full[category][field])
            for field in fields
        }

    return view


def category_view(record: PreferenceRecord, category: str) -> Dict:
    """Return every field of one category, unfiltered."""
    if category not in CATEGORIES:
        raise KeyError(category)
    return getattr(record, category).model_dump(mode="json")


def visible_fields(tier: AccessTier) -> Dict[str, Tuple[str, ...]]:
    """Visibility table row for a tier, for display in access receipts."""
    tier = AccessTier(tier)
    if tier is AccessTier.FULL:
        return {
            category: tuple(PreferenceRecord.model_fields[category].annotation.model_fields)
            for category in CATEGORIES
        }
    return dict(VISIBILITY[tier])
