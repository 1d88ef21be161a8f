"""
Consent ledger.

Tracks explicit, category-scoped grants a passenger has extended to a
specific driver. Independent of rating tiers: a grant lets a driver
see a category their tier would hide.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from app.common.exceptions import InvalidGrantError
from app.consent_service.schemas import (
    CONSENT_CATEGORIES,
    EMERGENCY_CONTACT,
    ConsentCheck,
    ConsentGrant,
    ShareWith,
)
from app.driver_service.schemas import VerificationLevel
from app.utils.logger import get_logger

logger = get_logger(__name__)

REASON_NO_GRANT = "no consent settings found"
REASON_DECLINED = "passenger declined"
REASON_NOT_ALLOWED = "driver not on allow-list"
REASON_NOT_VERIFIED = "driver not verified"
REASON_EMERGENCY_ONLY = "emergency-only category"
REASON_EXPIRED = "grant expired"
REASON_STORE_DOWN = "consent store unavailable"
REASON_MALFORMED = "consent grant unreadable"
REASON_GRANTED = "consent granted"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # Some drivers hand back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConsentLedger:
    """
    Grant, check and revoke driver-specific consent.

    Args:
        store: Grant repository (get / put / delete / delete_ride_scoped /
            list_for_passenger).
        drivers: Driver directory used for verification checks.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        store,
        drivers,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._drivers = drivers
        self._clock = clock

    def grant(
        self,
        passenger_id: str,
        driver_id: str,
        category: str,
        share_with: ShareWith,
        *,
        granted_to: Iterable[str] = (),
        expires_after_ride: bool = False,
        expires_at: Optional[datetime] = None,
    ) -> ConsentGrant:
        """
        Create or replace the grant for (passenger, driver, category).

        Raises:
            InvalidGrantError: If both or neither expiry modes are set,
                or the category or share mode is unknown.
            RuntimeError: If the store rejects the write.
        """
        if category not in CONSENT_CATEGORIES:
            raise InvalidGrantError(f"Unknown consent category: {category}")

        if expires_after_ride == (expires_at is not None):
            raise InvalidGrantError(
                "Set exactly one of expires_after_ride or expires_at"
            )

        try:
            share_with = ShareWith(share_with)
        except ValueError as exc:
            raise InvalidGrantError(f"Unknown share mode: {share_with}") from exc

        grant = ConsentGrant(
            passenger_id=passenger_id,
            driver_id=driver_id,
            category=category,
            share_with=share_with,
            granted_to=sorted(set(granted_to)),
            expires_after_ride=expires_after_ride,
            expires_at=as_utc(expires_at) if expires_at else None,
            granted_at=self._clock(),
        )
        self._store.put(grant.model_dump())

        logger.info(
            "Consent grant stored",
            extra={
                "passenger_id": passenger_id,
                "driver_id": driver_id,
                "category": category,
                "share_with": grant.share_with,
            },
        )
        return grant

    def check(
        self,
        passenger_id: str,
        driver_id: str,
        category: str,
        *,
        emergency_active: bool = False,
    ) -> ConsentCheck:
        """
        Decide whether a driver may see a category by explicit consent.

        Rules are evaluated in a fixed order and the first denial wins.
        Never raises; a store outage denies.
        """
        try:
            stored = self._store.get(passenger_id, driver_id, category)
        except RuntimeError:
            logger.warning(
                "Consent check failed closed",
                extra={"passenger_id": passenger_id, "driver_id": driver_id, "category": category},
            )
            return ConsentCheck(allowed=False, reason=REASON_STORE_DOWN)

        if stored is None:
            return self._deny(REASON_NO_GRANT, passenger_id, driver_id, category)

        try:
            grant = ConsentGrant.model_validate(stored)
        except ValidationError:
            logger.error(
                "Malformed consent grant, denying",
                extra={"passenger_id": passenger_id, "driver_id": driver_id, "category": category},
            )
            return ConsentCheck(allowed=False, reason=REASON_MALFORMED)

        share_with = ShareWith(grant.share_with)

        if share_with is ShareWith.NONE:
            return self._deny(REASON_DECLINED, passenger_id, driver_id, category)

        if share_with is ShareWith.SPECIFIC_DRIVERS and driver_id not in grant.granted_to:
            return self._deny(REASON_NOT_ALLOWED, passenger_id, driver_id, category)

        if (
            share_with is ShareWith.VERIFIED_ONLY
            and self._verification_level(driver_id) == VerificationLevel.NEW.value
        ):
            return self._deny(REASON_NOT_VERIFIED, passenger_id, driver_id, category)

        if share_with is ShareWith.EMERGENCY_ONLY and (
            category != EMERGENCY_CONTACT or not emergency_active
        ):
            return self._deny(REASON_EMERGENCY_ONLY, passenger_id, driver_id, category)

        if grant.expires_at is not None and as_utc(grant.expires_at) <= self._clock():
            return self._deny(REASON_EXPIRED, passenger_id, driver_id, category)

        logger.info(
            "Consent check allowed",
            extra={"passenger_id": passenger_id, "driver_id": driver_id, "category": category},
        )
        return ConsentCheck(allowed=True, reason=REASON_GRANTED)

    def revoke(self, passenger_id: str, driver_id: str, category: str) -> bool:
        """
        Delete a grant. Revoking a missing grant is a no-op.

        Returns:
            bool: True if a grant was removed.
        """
        removed = self._store.delete(passenger_id, driver_id, category)
        logger.info(
            "Consent grant revoked",
            extra={
                "passenger_id": passenger_id,
                "driver_id": driver_id,
                "category": category,
                "removed": removed,
            },
        )
        return removed

    def expire_ride_grants(self, passenger_id: str, driver_id: str) -> int:
        """Drop every ride-scoped grant between a passenger and driver."""
        removed = self._store.delete_ride_scoped(passenger_id, driver_id)
        logger.info(
            "Ride-scoped grants expired",
            extra={"passenger_id": passenger_id, "driver_id": driver_id, "count": removed},
        )
        return removed

    def list_grants(self, passenger_id: str) -> List[ConsentGrant]:
        return [
            ConsentGrant.model_validate(grant)
            for grant in self._store.list_for_passenger(passenger_id)
        ]

    def _verification_level(self, driver_id: str) -> str:
        # Unknown drivers and directory outages count as unverified
        try:
            driver = self._drivers.get_driver(driver_id)
        except RuntimeError:
            return VerificationLevel.NEW.value
        if driver is None:
            return VerificationLevel.NEW.value
        return driver.verification_level

    @staticmethod
    def _deny(reason: str, passenger_id: str, driver_id: str, category: str) -> ConsentCheck:
        logger.debug(
            "Consent check denied",
            extra={
                "passenger_id": passenger_id,
                "driver_id": driver_id,
                "category": category,
                "reason": reason,
            },
        )
        return ConsentCheck(allowed=False, reason=reason)
