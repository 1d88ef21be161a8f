"""
Driver view API route.

Drivers fetch the part of a passenger's preferences their rating and
the passenger's consent allow them to see.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.common.exceptions import InvalidRatingError
from app.core.dependencies import get_services, require_driver
from app.core.services import Services
from app.disclosure_service.schemas import AccessLevelInfo, DriverViewResponse
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/driver-view",
    tags=["Driver View"],
)


@router.get(
    "",
    response_model=DriverViewResponse,
)
def read_driver_view(
    passenger_id: str = Query(..., min_length=1),
    driver_rating: float = Query(..., ge=0.0, le=5.0),
    current_user: dict = Depends(require_driver),
    services: Services = Depends(get_services),
) -> DriverViewResponse:
    """
    Return the passenger preferences visible to the calling driver.
    """
    driver_id = current_user["sub"]

    try:
        view = services.driver_view.get_driver_view(passenger_id, driver_id, driver_rating)
    except InvalidRatingError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    return DriverViewResponse(
        preferences=view.preferences,
        access_level=AccessLevelInfo(
            tier=view.tier,
            visible_categories=view.visible_categories,
            hidden_category_count=view.hidden_category_count,
            description=view.description,
            consent_granted_extra=view.consent_granted_extra,
        ),
    )
