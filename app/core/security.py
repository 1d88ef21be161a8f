"""
JWT security utilities.

Verifies access tokens issued by the auth provider. Tokens carry the
user id in ``sub`` and the user's role (passenger or driver) in ``role``.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict

from jose import JWTError, jwt

from app.core.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 30

ROLE_PASSENGER = "passenger"
ROLE_DRIVER = "driver"


def create_access_token(data: Dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """
    Create a signed JWT access token.

    Used by local tooling and tests; production tokens come from the
    auth provider with the same claims.

    Args:
        data (Dict): Claims to encode (``sub``, ``role``).

    Returns:
        str: Encoded JWT token.
    """
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def verify_access_token(token: str) -> Dict:
    """
    Verify and decode a JWT access token.

    Args:
        token (str): JWT token.

    Returns:
        Dict: Decoded token payload.

    Raises:
        ValueError: If the token is invalid, expired or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as exc:
        logger.warning(
            "Token verification failed",
            extra={"error": str(exc)},
        )
        raise ValueError("Invalid or expired token") from exc

    if not payload.get("sub"):
        raise ValueError("Token has no subject")

    logger.debug(
        "Token successfully verified",
        extra={"subject": payload.get("sub"), "role": payload.get("role")},
    )
    return payload
