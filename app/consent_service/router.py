"""
Consent negotiation API routes.

Drivers request access to a data category; passengers approve, deny,
list and revoke grants.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.common.exceptions import (
    IneligibleDriverError,
    InvalidGrantError,
    InvalidNegotiationStateError,
    NegotiationAccessError,
    NegotiationNotFoundError,
)
from app.consent_service.schemas import (
    GrantListResponse,
    NegotiateRequest,
    NegotiateResponse,
    Negotiation,
    RespondRequest,
    RespondResponse,
    RideCompleteResponse,
)
from app.core.config import settings
from app.core.dependencies import get_current_user, get_services, require_driver, require_passenger
from app.core.rate_limit import limiter
from app.core.services import Services
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/consent",
    tags=["Consent"],
)


@router.post(
    "/negotiate",
    response_model=NegotiateResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.NEGOTIATION_RATE_LIMIT)
def request_consent(
    request: Request,
    payload: NegotiateRequest,
    current_user: dict = Depends(require_driver),
    services: Services = Depends(get_services),
) -> NegotiateResponse:
    """
    Ask a passenger for access to one data category.
    """
    driver_id = current_user["sub"]

    logger.info(
        "Consent negotiation requested",
        extra={"driver_id": driver_id, "category": payload.category},
    )

    try:
        negotiation = services.negotiations.request_consent(
            driver_id,
            payload.passenger_id,
            payload.category,
            payload.reason,
        )
    except InvalidGrantError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except IneligibleDriverError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.reason,
        ) from exc
    except RuntimeError as exc:
        logger.exception(
            "Consent negotiation failed",
            extra={"driver_id": driver_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to send consent request",
        ) from exc

    return NegotiateResponse(
        negotiation_id=negotiation.negotiation_id,
        message=negotiation.message,
        respond_by=negotiation.respond_by,
    )


@router.patch(
    "/negotiate",
    response_model=RespondResponse,
)
def respond_to_consent(
    payload: RespondRequest,
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> RespondResponse:
    """
    Approve or deny a pending consent request.
    """
    passenger_id = current_user["sub"]

    try:
        if payload.negotiation_id:
            negotiation = services.negotiations.respond(
                payload.negotiation_id,
                passenger_id,
                payload.approved,
                payload.duration_ms,
            )
        else:
            negotiation = services.negotiations.respond_for(
                payload.driver_id,
                passenger_id,
                payload.category,
                payload.approved,
                payload.duration_ms,
            )
    except NegotiationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except NegotiationAccessError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except InvalidNegotiationStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except InvalidGrantError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.exception(
            "Consent response failed",
            extra={"passenger_id": passenger_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to record consent response",
        ) from exc

    return RespondResponse(
        negotiation_id=negotiation.negotiation_id,
        status=negotiation.status,
        category=negotiation.category,
        expires_at=negotiation.expires_at,
    )


@router.get(
    "/negotiations/{negotiation_id}",
    response_model=Negotiation,
)
def read_negotiation(
    negotiation_id: str,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> Negotiation:
    """
    Fetch a negotiation; visible to its driver and passenger only.
    """
    try:
        negotiation = services.negotiations.get(negotiation_id)
    except NegotiationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    if current_user["sub"] not in (negotiation.driver_id, negotiation.passenger_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Negotiation {negotiation_id} not found",
        )
    return negotiation


@router.get(
    "/grants",
    response_model=GrantListResponse,
)
def list_grants(
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> GrantListResponse:
    """
    List every consent grant the current passenger has extended.
    """
    try:
        grants = services.ledger.list_grants(current_user["sub"])
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to load consent grants",
        ) from exc
    return GrantListResponse(grants=grants)


@router.delete(
    "/grants/{driver_id}/{category}",
)
def revoke_grant(
    driver_id: str,
    category: str,
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> dict:
    """
    Revoke a driver's access to a category. Idempotent.
    """
    try:
        removed = services.negotiations.revoke_grant(current_user["sub"], driver_id, category)
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to revoke consent",
        ) from exc
    return {"revoked": removed, "driver_id": driver_id, "category": category}


@router.post(
    "/rides/{driver_id}/complete",
    response_model=RideCompleteResponse,
)
def complete_ride(
    driver_id: str,
    current_user: dict = Depends(require_passenger),
    services: Services = Depends(get_services),
) -> RideCompleteResponse:
    """
    Expire grants that were only valid for the ride with this driver.
    """
    try:
        removed = services.negotiations.complete_ride(current_user["sub"], driver_id)
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to expire ride grants",
        ) from exc
    return RideCompleteResponse(expired_grants=removed)
