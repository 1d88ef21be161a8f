"""
Driver view service.

The read path used by driver-facing screens: loads the passenger's
record, applies rating-tier disclosure, then adds any sensitive
category the passenger explicitly granted to this driver.
"""

from datetime import datetime
from typing import Callable

from app.common.audit_logger import AuditEvent, AuditEventType, record_safely
from app.consent_service.ledger import ConsentLedger, utc_now
from app.disclosure_service.access_level import (
    describe_access_tier,
    resolve_access_tier,
    validate_rating,
)
from app.disclosure_service.disclosure_filter import category_view, filter_preferences
from app.disclosure_service.schemas import DriverView
from app.preference_service.schemas import CATEGORIES, SENSITIVE_CATEGORIES
from app.preference_service.service import PreferenceService
from app.utils.logger import get_logger

logger = get_logger(__name__)


class DriverViewService:
    """
    Composes tier disclosure and consent into one driver view.

    The two mechanisms stay independent: tier filtering never consults
    consent, and consent only adds categories, never removes them.
    """

    def __init__(
        self,
        preferences: PreferenceService,
        ledger: ConsentLedger,
        audit_sink,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._preferences = preferences
        self._ledger = ledger
        self._audit_sink = audit_sink
        self._clock = clock

    def get_driver_view(
        self,
        passenger_id: str,
        driver_id: str,
        driver_rating: float,
    ) -> DriverView:
        """
        Build the view of a passenger's preferences for one driver.

        Emergency-only grants cover ``emergency_contact``, which is not a
        preference category, so they never widen this view.

        Args:
            passenger_id (str): Passenger whose preferences are requested.
            driver_id (str): Requesting driver.
            driver_rating (float): Current rating of the driver, 0 to 5.

        Returns:
            DriverView: Filtered preferences plus the disclosure receipt.

        Raises:
            InvalidRatingError: If the rating is outside [0, 5].
        """
        rating = validate_rating(driver_rating)

        record = self._preferences.get_preferences(passenger_id)
        tier = resolve_access_tier(rating, record.access_policy.min_driver_rating)
        view = filter_preferences(record, tier)
        tier_categories = list(view)

        consent_extra = []
        for category in SENSITIVE_CATEGORIES:
            if category in view:
                continue
            decision = self._ledger.check(passenger_id, driver_id, category)
            if decision.allowed:
                view[category] = category_view(record, category)
                consent_extra.append(category)

        logger.info(
            "Driver view composed",
            extra={
                "passenger_id": passenger_id,
                "driver_id": driver_id,
                "tier": tier.value,
                "consent_categories": consent_extra,
            },
        )

        record_safely(
            self._audit_sink,
            AuditEvent(
                action=AuditEventType.DRIVER_VIEW_DISCLOSED,
                actor_id=driver_id,
                actor_type="driver",
                subject_id=passenger_id,
                categories_disclosed=list(view),
                reason=(
                    f"tier={tier.value}; "
                    f"via tier: {', '.join(tier_categories) or 'none'}; "
                    f"via consent: {', '.join(consent_extra) or 'none'}"
                ),
                timestamp=self._clock(),
            ),
        )

        return DriverView(
            preferences=view,
            tier=tier,
            description=describe_access_tier(tier),
            tier_categories=tier_categories,
            consent_granted_extra=consent_extra,
            hidden_category_count=len(CATEGORIES) - len(view),
        )
