"""
Passenger preference API routes.

Passengers read and edit their own preference record. Writes are
passenger-only; drivers see preferences through /driver-view.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from app.core.dependencies import get_services, require_passenger
from app.core.rate_limit import limiter
from app.core.services import Services
from app.preference_service.schemas import (
    PreferenceRecord,
    PreferenceSaveResponse,
    PreferenceUpdate,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/preferences",
    tags=["Preferences"],
)


@router.get(
    "/me",
    response_model=PreferenceRecord,
)
def read_preferences(
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> PreferenceRecord:
    """
    Retrieve the current passenger's full preference record.

    A passenger who never saved preferences receives (and from now on
    has) the default record.
    """
    return services.preferences.get_preferences(current_user["sub"])


@router.put(
    "",
    response_model=PreferenceSaveResponse,
)
@limiter.limit("20/minute")
def save_preferences(
    request: Request,
    payload: PreferenceRecord,
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> PreferenceSaveResponse:
    """
    Replace the current passenger's preference record.
    """
    passenger_id = current_user["sub"]

    try:
        record = services.preferences.save_preferences(passenger_id, payload)
    except RuntimeError as exc:
        logger.exception(
            "Failed to save preferences",
            extra={"passenger_id": passenger_id},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to save preferences",
        ) from exc

    return PreferenceSaveResponse(success=True, preferences=record)


@router.patch(
    "",
    response_model=PreferenceSaveResponse,
)
@limiter.limit("20/minute")
def update_preferences(
    request: Request,
    payload: PreferenceUpdate,
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> PreferenceSaveResponse:
    """
    Merge a partial update into the current passenger's record.
    """
    passenger_id = current_user["sub"]

    try:
        record = services.preferences.upsert(
            passenger_id,
            payload.model_dump(exclude_none=True),
        )
    except ValidationError as exc:
        logger.warning(
            "Rejected invalid preference update",
            extra={"passenger_id": passenger_id},
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[
                {"loc": list(error["loc"]), "msg": error["msg"]}
                for error in exc.errors()
            ],
        ) from exc
    except RuntimeError as exc:
        logger.exception(
            "Failed to update preferences",
            extra={"passenger_id": passenger_id},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to save preferences",
        ) from exc

    return PreferenceSaveResponse(success=True, preferences=record)
