"""
Schemas for passenger preference records.

A record is grouped by category; each category is the unit of
disclosure to drivers.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MusicGenre(str, Enum):
    POP = "pop"
    ROCK = "rock"
    JAZZ = "jazz"
    CLASSICAL = "classical"
    HIP_HOP = "hip_hop"
    ELECTRONIC = "electronic"
    COUNTRY = "country"
    RNB = "rnb"
    INDIE = "indie"
    NO_PREFERENCE = "no_preference"


class Volume(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CommunicationStyle(str, Enum):
    CHATTY = "chatty"
    QUIET = "quiet"
    NEUTRAL = "neutral"


class WindowPreference(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    NO_PREFERENCE = "no_preference"


class PhoneUsage(str, Enum):
    ALLOWED = "allowed"
    SILENT = "silent"
    NO_PREFERENCE = "no_preference"


class RoutePreference(str, Enum):
    FASTEST = "fastest"
    SCENIC = "scenic"
    SAFEST = "safest"


class PrivacyLevel(str, Enum):
    OPEN = "open"
    SELECTIVE = "selective"
    MINIMAL = "minimal"


class _Category(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        use_enum_values=True,
        validate_default=True,
    )


class MusicPreferences(_Category):
    enabled: bool = True
    genre: MusicGenre = MusicGenre.POP
    volume: Volume = Volume.MEDIUM


class CommunicationPreferences(_Category):
    style: CommunicationStyle = CommunicationStyle.NEUTRAL
    small_talk: bool = True
    language: str = "english"


class SafetyPreferences(_Category):
    share_trip_status: bool = True
    emergency_contacts: List[str] = Field(default_factory=list)
    ride_recording: bool = True
    photo_verification: bool = True


class ComfortPreferences(_Category):
    temperature_preference_celsius: int = Field(22, ge=16, le=28)
    window_preference: WindowPreference = WindowPreference.NO_PREFERENCE
    phone_usage: PhoneUsage = PhoneUsage.NO_PREFERENCE


class SpecialNeedsPreferences(_Category):
    accessibility_needs: List[str] = Field(default_factory=list)
    medical_conditions: List[str] = Field(default_factory=list)
    service_animal: bool = False


class TripPreferences(_Category):
    route_preference: RoutePreference = RoutePreference.FASTEST
    stops_allowed: bool = False
    max_detour_minutes: int = Field(5, ge=0)


class AccessPolicy(_Category):
    min_driver_rating: float = Field(4.0, ge=1.0, le=5.0)
    privacy_level: PrivacyLevel = PrivacyLevel.SELECTIVE


class PreferenceRecord(BaseModel):
    """
    Full preference record of one passenger.

    All defaults together form the materialized default record used
    when a passenger has never saved preferences.
    """

    model_config = ConfigDict(extra="forbid")

    music: MusicPreferences = Field(default_factory=MusicPreferences)
    communication: CommunicationPreferences = Field(
        default_factory=CommunicationPreferences
    )
    safety: SafetyPreferences = Field(default_factory=SafetyPreferences)
    comfort: ComfortPreferences = Field(default_factory=ComfortPreferences)
    special_needs: SpecialNeedsPreferences = Field(
        default_factory=SpecialNeedsPreferences
    )
    trip: TripPreferences = Field(default_factory=TripPreferences)
    access_policy: AccessPolicy = Field(default_factory=AccessPolicy)


CATEGORIES = tuple(PreferenceRecord.model_fields)
SENSITIVE_CATEGORIES = ("safety", "special_needs")


class PreferenceUpdate(BaseModel):
    """
    Partial update: any subset of categories, each with any subset of fields.
    """

    model_config = ConfigDict(extra="forbid")

    music: Optional[dict] = None
    communication: Optional[dict] = None
    safety: Optional[dict] = None
    comfort: Optional[dict] = None
    special_needs: Optional[dict] = None
    trip: Optional[dict] = None
    access_policy: Optional[dict] = None


class PreferenceSaveResponse(BaseModel):
    success: bool
    preferences: PreferenceRecord
