"""
Consent negotiation between a requesting driver and a passenger.

Lifecycle of one negotiation:

    requested --approve--> approved --(expires_at passed)--> expired
        |                      \\--(passenger revokes)-----> revoked
        \\--deny--> denied (terminal)

Expiry is evaluated lazily when a negotiation is read. Approval writes
a grant to the consent ledger; denial leaves the ledger untouched.
"""

import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.common.audit_logger import AuditEvent, AuditEventType, record_safely
from app.common.exceptions import (
    IneligibleDriverError,
    InvalidGrantError,
    InvalidNegotiationStateError,
    NegotiationAccessError,
    NegotiationNotFoundError,
)
from app.consent_service.ledger import ConsentLedger, as_utc, utc_now
from app.consent_service.schemas import (
    CONSENT_CATEGORIES,
    Negotiation,
    NegotiationStatus,
    ShareWith,
)
from app.driver_service.schemas import DriverProfile, VerificationLevel
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ConsentNegotiationProtocol:
    """
    Runs request -> notify -> approve/deny -> ledger update.

    Args:
        store: Negotiation repository.
        ledger: Consent ledger receiving approved grants.
        drivers: Driver directory for the eligibility gate.
        audit_sink: Destination of audit events.
        message_generator: Writes the passenger-facing request text.
        min_driver_rating: Lowest rating allowed to request consent.
        new_driver_min_rides: Rides a ``new`` driver needs before requesting.
        response_window: How long a passenger has to answer.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        store,
        ledger: ConsentLedger,
        drivers,
        audit_sink,
        message_generator,
        *,
        min_driver_rating: float = 4.5,
        new_driver_min_rides: int = 10,
        response_window: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._ledger = ledger
        self._drivers = drivers
        self._audit_sink = audit_sink
        self._messages = message_generator
        self._min_driver_rating = min_driver_rating
        self._new_driver_min_rides = new_driver_min_rides
        self._response_window = response_window
        self._clock = clock

    # --------------------------------------------------
    # Driver side
    # --------------------------------------------------
    def check_eligibility(self, driver_id: str) -> DriverProfile:
        """
        Apply the eligibility gate for consent requests.

        Raises:
            IneligibleDriverError: Naming the first unmet condition.
        """
        driver = self._drivers.get_driver(driver_id)

        if driver is None:
            raise IneligibleDriverError("Driver not found")

        if driver.rating < self._min_driver_rating:
            raise IneligibleDriverError(
                f"Driver rating must be {self._min_driver_rating}+ "
                "to request additional access"
            )

        if (
            driver.verification_level == VerificationLevel.NEW.value
            and driver.total_rides < self._new_driver_min_rides
        ):
            raise IneligibleDriverError(
                f"New drivers must complete {self._new_driver_min_rides} rides "
                "before requesting access"
            )

        return driver

    def request_consent(
        self,
        driver_id: str,
        passenger_id: str,
        category: str,
        reason: Optional[str] = None,
    ) -> Negotiation:
        """
        Open a negotiation and notify the passenger.

        Raises:
            InvalidGrantError: If the category is unknown.
            IneligibleDriverError: If the driver fails the eligibility gate.
        """
        if category not in CONSENT_CATEGORIES:
            raise InvalidGrantError(f"Unknown consent category: {category}")

        try:
            driver = self.check_eligibility(driver_id)
        except IneligibleDriverError as exc:
            logger.info(
                "Consent request rejected",
                extra={"driver_id": driver_id, "reason": exc.reason},
            )
            self._audit(
                AuditEventType.CONSENT_REQUEST_REJECTED,
                actor_id=driver_id,
                actor_type="driver",
                subject_id=passenger_id,
                categories=[],
                reason=exc.reason,
            )
            raise

        message = self._messages.generate(driver, category, reason)
        now = self._clock()

        negotiation = Negotiation(
            negotiation_id=str(uuid.uuid4()),
            driver_id=driver_id,
            passenger_id=passenger_id,
            category=category,
            reason=reason,
            message=message,
            status=NegotiationStatus.REQUESTED,
            requested_at=now,
            respond_by=now + self._response_window,
        )
        self._store.insert(negotiation.model_dump())

        self._notify_passenger(negotiation)
        self._audit(
            AuditEventType.CONSENT_REQUESTED,
            actor_id=driver_id,
            actor_type="driver",
            subject_id=passenger_id,
            categories=[category],
            reason=reason or "Driver requested additional access",
        )

        logger.info(
            "Consent request sent",
            extra={
                "negotiation_id": negotiation.negotiation_id,
                "driver_id": driver_id,
                "category": category,
            },
        )
        return negotiation

    # --------------------------------------------------
    # Passenger side
    # --------------------------------------------------
    def respond(
        self,
        negotiation_id: str,
        passenger_id: str,
        approved: bool,
        duration_ms: Optional[int] = None,
    ) -> Negotiation:
        """
        Record the passenger's answer.

        Approval grants ``verified_only`` access to the requesting driver,
        for ``duration_ms`` if given, otherwise until the ride ends.

        Raises:
            NegotiationNotFoundError: Unknown negotiation.
            NegotiationAccessError: Caller is not the addressed passenger.
            InvalidNegotiationStateError: Not awaiting an answer.
            InvalidGrantError: Non-positive duration.
        """
        if duration_ms is not None and duration_ms <= 0:
            raise InvalidGrantError("duration_ms must be positive")

        negotiation = self._load_owned(negotiation_id, passenger_id)
        status = self.status_of(negotiation)

        if status is not NegotiationStatus.REQUESTED:
            raise InvalidNegotiationStateError(
                f"Negotiation is {status.value}, not awaiting a response"
            )

        now = self._clock()
        category = negotiation.category
        driver_id = negotiation.driver_id

        if approved:
            expires_at = now + timedelta(milliseconds=duration_ms) if duration_ms else None
            # Written before the negotiation update: if that update fails the
            # request stays answerable, and the retry replaces this grant,
            # which is keyed by (passenger, driver, category).
            self._ledger.grant(
                passenger_id,
                driver_id,
                category,
                ShareWith.VERIFIED_ONLY,
                granted_to=[driver_id],
                expires_after_ride=expires_at is None,
                expires_at=expires_at,
            )
            fields = {
                "status": NegotiationStatus.APPROVED.value,
                "responded_at": now,
                "expires_at": expires_at,
            }
            self._audit(
                AuditEventType.CONSENT_GRANTED,
                actor_id=passenger_id,
                actor_type="passenger",
                subject_id=passenger_id,
                categories=[category],
                reason=f"Passenger approved driver {driver_id} access to {category}",
            )
        else:
            fields = {
                "status": NegotiationStatus.DENIED.value,
                "responded_at": now,
            }
            self._audit(
                AuditEventType.CONSENT_DENIED,
                actor_id=passenger_id,
                actor_type="passenger",
                subject_id=passenger_id,
                categories=[],
                reason=f"Passenger denied driver {driver_id} access to {category}",
            )

        self._store.update(negotiation_id, fields)

        logger.info(
            "Consent response processed",
            extra={
                "negotiation_id": negotiation_id,
                "status": fields["status"],
                "category": category,
            },
        )
        return negotiation.model_copy(update=fields)

    def respond_for(
        self,
        driver_id: str,
        passenger_id: str,
        category: str,
        approved: bool,
        duration_ms: Optional[int] = None,
    ) -> Negotiation:
        """Answer the latest pending request of a driver for a category."""
        pending = self._store.find_latest(
            driver_id,
            passenger_id,
            category,
            status=NegotiationStatus.REQUESTED.value,
        )
        if pending is None:
            raise NegotiationNotFoundError(
                f"No pending request from driver {driver_id} for {category}"
            )
        return self.respond(pending["negotiation_id"], passenger_id, approved, duration_ms)

    def revoke(self, negotiation_id: str, passenger_id: str) -> Negotiation:
        """
        Withdraw an approved negotiation and delete its grant.

        Raises:
            InvalidNegotiationStateError: If the negotiation is not approved.
        """
        negotiation = self._load_owned(negotiation_id, passenger_id)
        status = self.status_of(negotiation)

        if status is not NegotiationStatus.APPROVED:
            raise InvalidNegotiationStateError(
                f"Only approved negotiations can be revoked (is {status.value})"
            )

        return self._revoke(negotiation)

    def revoke_grant(self, passenger_id: str, driver_id: str, category: str) -> bool:
        """
        Delete a grant directly, closing the negotiation that created it.

        Idempotent: revoking a missing grant returns False.
        """
        removed = self._ledger.revoke(passenger_id, driver_id, category)

        approved = self._store.find_latest(
            driver_id,
            passenger_id,
            category,
            status=NegotiationStatus.APPROVED.value,
        )
        if approved is not None:
            self._store.update(
                approved["negotiation_id"],
                {"status": NegotiationStatus.REVOKED.value},
            )

        if removed:
            self._audit(
                AuditEventType.CONSENT_REVOKED,
                actor_id=passenger_id,
                actor_type="passenger",
                subject_id=passenger_id,
                categories=[category],
                reason=f"Passenger revoked driver {driver_id} access to {category}",
            )
        return removed

    def complete_ride(self, passenger_id: str, driver_id: str) -> int:
        """End every ride-scoped grant between passenger and driver."""
        removed = self._ledger.expire_ride_grants(passenger_id, driver_id)
        if removed:
            self._audit(
                AuditEventType.CONSENT_EXPIRED,
                actor_id="system",
                actor_type="system",
                subject_id=passenger_id,
                categories=[],
                reason=f"Ride with driver {driver_id} completed; {removed} grant(s) expired",
            )
        return removed

    # --------------------------------------------------
    # Reads
    # --------------------------------------------------
    def get(self, negotiation_id: str) -> Negotiation:
        stored = self._store.get(negotiation_id)
        if stored is None:
            raise NegotiationNotFoundError(f"Negotiation {negotiation_id} not found")
        negotiation = Negotiation.model_validate(stored)
        return negotiation.model_copy(update={"status": self.status_of(negotiation).value})

    def status_of(self, negotiation: Negotiation) -> NegotiationStatus:
        """
        Current status with lazy expiry applied.

        An approved negotiation past ``expires_at``, or a request past its
        response window, reads as expired.
        """
        status = NegotiationStatus(negotiation.status)
        now = self._clock()

        if status is NegotiationStatus.APPROVED and negotiation.expires_at is not None:
            if as_utc(negotiation.expires_at) <= now:
                return NegotiationStatus.EXPIRED

        if status is NegotiationStatus.REQUESTED and as_utc(negotiation.respond_by) <= now:
            return NegotiationStatus.EXPIRED

        return status

    # --------------------------------------------------
    # Internals
    # --------------------------------------------------
    def _load_owned(self, negotiation_id: str, passenger_id: str) -> Negotiation:
        stored = self._store.get(negotiation_id)
        if stored is None:
            raise NegotiationNotFoundError(f"Negotiation {negotiation_id} not found")

        negotiation = Negotiation.model_validate(stored)
        if negotiation.passenger_id != passenger_id:
            logger.warning(
                "Negotiation accessed by another user",
                extra={"negotiation_id": negotiation_id, "caller": passenger_id},
            )
            raise NegotiationAccessError("Only the addressed passenger can act on this request")
        return negotiation

    def _revoke(self, negotiation: Negotiation) -> Negotiation:
        self._ledger.revoke(negotiation.passenger_id, negotiation.driver_id, negotiation.category)
        fields = {"status": NegotiationStatus.REVOKED.value}
        self._store.update(negotiation.negotiation_id, fields)
        self._audit(
            AuditEventType.CONSENT_REVOKED,
            actor_id=negotiation.passenger_id,
            actor_type="passenger",
            subject_id=negotiation.passenger_id,
            categories=[negotiation.category],
            reason=(
                f"Passenger revoked driver {negotiation.driver_id} "
                f"access to {negotiation.category}"
            ),
        )
        return negotiation.model_copy(update=fields)

    def _notify_passenger(self, negotiation: Negotiation) -> None:
        # Delivery (push, in-app, SMS) belongs to the notification service
        logger.info(
            "Consent request queued for passenger notification",
            extra={
                "passenger_id": negotiation.passenger_id,
                "negotiation_id": negotiation.negotiation_id,
                "respond_by": negotiation.respond_by.isoformat(),
            },
        )

    def _audit(
        self,
        action: AuditEventType,
        *,
        actor_id: str,
        actor_type: str,
        subject_id: str,
        categories: list,
        reason: str,
    ) -> None:
        record_safely(
            self._audit_sink,
            AuditEvent(
                action=action,
                actor_id=actor_id,
                actor_type=actor_type,
                subject_id=subject_id,
                categories_disclosed=categories,
                reason=reason,
                timestamp=self._clock(),
            ),
        )
