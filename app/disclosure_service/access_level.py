"""
Driver access tiers.

Maps a driver's rating and the passenger's minimum-rating threshold
to a discrete access tier.
"""

import math
from enum import Enum

from app.common.exceptions import InvalidRatingError

FULL_ACCESS_RATING = 4.8
MODERATE_ACCESS_RATING = 4.5
BASIC_ACCESS_RATING = 4.0

MIN_RATING = 0.0
MAX_RATING = 5.0


class AccessTier(str, Enum):
    """Ordered trust tiers: full > moderate > basic > minimal."""

    MINIMAL = "minimal"
    BASIC = "basic"
    MODERATE = "moderate"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, AccessTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, AccessTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, AccessTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, AccessTier):
            return NotImplemented
        return self.rank >= other.rank


_RANKS = {
    AccessTier.MINIMAL: 0,
    AccessTier.BASIC: 1,
    AccessTier.MODERATE: 2,
    AccessTier.FULL: 3,
}

_DESCRIPTIONS = {
    AccessTier.FULL: "Full Access - Driver can see all your preferences",
    AccessTier.MODERATE: "Moderate Access - Driver sees comfort & music preferences",
    AccessTier.BASIC: "Basic Access - Driver sees essential preferences only",
    AccessTier.MINIMAL: "Minimal Access - Driver sees communication style only",
}


def validate_rating(value: float) -> float:
    """
    Reject ratings outside [0, 5] before they reach policy logic.

    Raises:
        InvalidRatingError: If the rating is NaN or out of range.
    """
    rating = float(value)
    if math.isnan(rating) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRatingError(
            f"Driver rating must be between {MIN_RATING} and {MAX_RATING}, got {value}"
        )
    return rating


def resolve_access_tier(driver_rating: float, min_required: float) -> AccessTier:
    """
    Resolve the access tier for a driver.

    The passenger's floor is checked first, so a driver below it gets
    minimal access no matter how high the rating is otherwise.
    """
    if driver_rating < min_required:
        return AccessTier.MINIMAL
    if driver_rating >= FULL_ACCESS_RATING:
        return AccessTier.FULL
    if driver_rating >= MODERATE_ACCESS_RATING:
        return AccessTier.MODERATE
    if driver_rating >= BASIC_ACCESS_RATING:
        return AccessTier.BASIC
    return AccessTier.MINIMAL


def describe_access_tier(tier: AccessTier) -> str:
    """Human-readable explanation of a tier for the driver UI."""
    return _DESCRIPTIONS[AccessTier(tier)]
