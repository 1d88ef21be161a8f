"""
Schemas for the driver-facing preference view.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from app.disclosure_service.access_level import AccessTier


class DriverView(BaseModel):
    """
    Composed result of the read path.

    ``tier_categories`` were disclosed by the driver's access tier,
    ``consent_granted_extra`` by explicit passenger consent.
    """

    preferences: Dict[str, Dict]
    tier: AccessTier
    description: str
    tier_categories: List[str] = Field(default_factory=list)
    consent_granted_extra: List[str] = Field(default_factory=list)
    hidden_category_count: int = 0

    @property
    def visible_categories(self) -> List[str]:
        return list(self.preferences)


class AccessLevelInfo(BaseModel):
    tier: AccessTier
    visible_categories: List[str]
    hidden_category_count: int
    description: str
    consent_granted_extra: List[str]


class DriverViewResponse(BaseModel):
    preferences: Dict[str, Dict]
    access_level: AccessLevelInfo
