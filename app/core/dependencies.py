"""
FastAPI dependencies.

Provides the authenticated user, role guards and the service
container built during the application lifespan.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import sentry_sdk

from app.core.security import ROLE_DRIVER, ROLE_PASSENGER, verify_access_token
from app.core.services import Services
from app.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer()


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Retrieve the currently authenticated user.

    Returns:
        dict: Decoded JWT payload.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        user = verify_access_token(credentials.credentials)
    except ValueError as exc:
        logger.warning("Authentication failed")
        sentry_sdk.capture_exception(exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc

    request.state.user = user
    sentry_sdk.set_user({"id": user.get("sub"), "role": user.get("role")})

    return user


def _require_role(role: str):
    def dependency(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") != role:
            logger.warning(
                "Role check failed",
                extra={"user_id": current_user.get("sub"), "required": role},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only {role}s can perform this action",
            )
        return current_user

    return dependency


require_passenger = _require_role(ROLE_PASSENGER)
require_driver = _require_role(ROLE_DRIVER)


def get_services(request: Request) -> Services:
    """Service container created in the application lifespan."""
    return request.app.state.services
