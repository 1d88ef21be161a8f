"""
Schemas for driver profiles.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VerificationLevel(str, Enum):
    NEW = "new"
    VERIFIED = "verified"
    PREMIUM = "premium"


class DriverProfile(BaseModel):
    """Driver attributes the consent policy depends on."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    driver_id: str
    name: str = ""
    rating: float = Field(0.0, ge=0.0, le=5.0)
    total_rides: int = Field(0, ge=0)
    verification_level: VerificationLevel = VerificationLevel.NEW
