"""
Schemas for driver-specific consent grants and negotiations.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.preference_service.schemas import CATEGORIES

EMERGENCY_CONTACT = "emergency_contact"
LOCATION_HISTORY = "location_history"

CONSENT_CATEGORIES = frozenset(CATEGORIES) | {EMERGENCY_CONTACT, LOCATION_HISTORY}


class ShareWith(str, Enum):
    ALL_DRIVERS = "all_drivers"
    VERIFIED_ONLY = "verified_only"
    SPECIFIC_DRIVERS = "specific_drivers"
    NONE = "none"
    EMERGENCY_ONLY = "emergency_only"


class NegotiationStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ConsentGrant(BaseModel):
    """
    Passenger consent for one driver and one data category.

    Exactly one expiry mode is set: either the grant ends with the
    ride, or at ``expires_at``.
    """

    model_config = ConfigDict(use_enum_values=True)

    passenger_id: str
    driver_id: str
    category: str
    share_with: ShareWith
    granted_to: List[str] = Field(default_factory=list)
    expires_after_ride: bool = False
    expires_at: Optional[datetime] = None
    granted_at: datetime


class ConsentCheck(BaseModel):
    """Outcome of a consent check. Denial is data, not an error."""

    allowed: bool
    reason: str


class Negotiation(BaseModel):
    """One driver -> passenger consent request and its outcome."""

    model_config = ConfigDict(use_enum_values=True)

    negotiation_id: str
    driver_id: str
    passenger_id: str
    category: str
    reason: Optional[str] = None
    message: str
    status: NegotiationStatus = NegotiationStatus.REQUESTED
    requested_at: datetime
    respond_by: datetime
    responded_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


# --------------------------------------------------
# API payloads
# --------------------------------------------------
class NegotiateRequest(BaseModel):
    passenger_id: str
    category: str
    reason: Optional[str] = Field(None, max_length=500)


class NegotiateResponse(BaseModel):
    negotiation_id: str
    message: str
    status: str = "pending"
    respond_by: datetime


class RespondRequest(BaseModel):
    """
    Passenger answer to a consent request.

    The negotiation is addressed either by id or by the requesting
    driver and category.
    """

    negotiation_id: Optional[str] = None
    driver_id: Optional[str] = None
    category: Optional[str] = None
    approved: bool
    duration_ms: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _check_target(self):
        if self.negotiation_id is None and not (self.driver_id and self.category):
            raise ValueError("Provide negotiation_id or both driver_id and category")
        return self


class RespondResponse(BaseModel):
    negotiation_id: str
    status: str
    category: str
    expires_at: Optional[datetime] = None


class GrantListResponse(BaseModel):
    grants: List[ConsentGrant]


class RideCompleteResponse(BaseModel):
    expired_grants: int
