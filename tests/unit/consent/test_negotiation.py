from datetime import timedelta

import pytest

from app.common.audit_logger import AuditEventType
from app.common.exceptions import (
    IneligibleDriverError,
    InvalidGrantError,
    InvalidNegotiationStateError,
    NegotiationAccessError,
    NegotiationNotFoundError,
)
from app.consent_service.schemas import NegotiationStatus
from app.disclosure_service.access_level import AccessTier


def _actions(services):
    return [event.action for event in services.audit_sink.events]


def test_request_opens_pending_negotiation(services, clock, messages):
    negotiation = services.negotiations.request_consent(
        "driver-verified", "p1", "safety", "Passenger asked for trip sharing"
    )

    assert negotiation.status == NegotiationStatus.REQUESTED.value
    assert negotiation.respond_by == clock() + timedelta(minutes=5)
    assert negotiation.message == "Sarah would like to see your safety."
    assert messages.calls == [("driver-verified", "safety", "Passenger asked for trip sharing")]
    assert AuditEventType.CONSENT_REQUESTED.value in _actions(services)


@pytest.mark.parametrize(
    "driver_id, reason",
    [
        ("ghost-driver", "Driver not found"),
        ("driver-low", "Driver rating must be 4.5+ to request additional access"),
        ("driver-new", "New drivers must complete 10 rides before requesting access"),
    ],
)
def test_ineligible_drivers_rejected(services, messages, driver_id, reason):
    with pytest.raises(IneligibleDriverError) as exc_info:
        services.negotiations.request_consent(driver_id, "p1", "safety")

    assert exc_info.value.reason == reason
    assert messages.calls == []
    assert _actions(services) == [AuditEventType.CONSENT_REQUEST_REJECTED.value]


def test_new_driver_with_enough_rides_may_request(services):
    negotiation = services.negotiations.request_consent("driver-new-veteran", "p1", "music")

    assert negotiation.driver_id == "driver-new-veteran"


def test_unknown_category_rejected(services):
    with pytest.raises(InvalidGrantError):
        services.negotiations.request_consent("driver-verified", "p1", "bank_details")


def test_approval_writes_ride_scoped_grant(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    answered = services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    assert answered.status == NegotiationStatus.APPROVED.value
    assert answered.expires_at is None
    grants = services.ledger.list_grants("p1")
    assert len(grants) == 1
    assert grants[0].share_with == "verified_only"
    assert grants[0].granted_to == ["driver-verified"]
    assert grants[0].expires_after_ride is True
    assert services.ledger.check("p1", "driver-verified", "safety").allowed is True


def test_approval_with_duration_expires(services, clock):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    answered = services.negotiations.respond(
        negotiation.negotiation_id, "p1", approved=True, duration_ms=60_000
    )
    assert answered.expires_at == clock() + timedelta(minutes=1)

    clock.advance(minutes=2)

    assert services.ledger.check("p1", "driver-verified", "safety").allowed is False
    assert services.negotiations.get(negotiation.negotiation_id).status == "expired"


def test_denial_leaves_ledger_untouched(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    answered = services.negotiations.respond(negotiation.negotiation_id, "p1", approved=False)

    assert answered.status == NegotiationStatus.DENIED.value
    assert services.ledger.list_grants("p1") == []
    assert AuditEventType.CONSENT_DENIED.value in _actions(services)


def test_denied_safety_never_disclosed_below_full(services):
    negotiation = services.negotiations.request_consent("driver-premium", "p1", "safety")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=False)

    for rating in (4.0, 4.5, 4.7):
        view = services.driver_view.get_driver_view("p1", "driver-premium", rating)
        assert view.tier is not AccessTier.FULL
        assert "safety" not in view.preferences


def test_approved_consent_shows_in_driver_view(services):
    negotiation = services.negotiations.request_consent("driver-premium", "p1", "special_needs")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    view = services.driver_view.get_driver_view("p1", "driver-premium", 4.6)

    assert view.consent_granted_extra == ["special_needs"]


def test_respond_twice_conflicts(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=False)

    with pytest.raises(InvalidNegotiationStateError):
        services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)


def test_late_response_conflicts(services, clock):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    clock.advance(minutes=6)

    assert services.negotiations.get(negotiation.negotiation_id).status == "expired"
    with pytest.raises(InvalidNegotiationStateError):
        services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)
    assert services.ledger.list_grants("p1") == []


def test_only_addressed_passenger_may_respond(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    with pytest.raises(NegotiationAccessError):
        services.negotiations.respond(negotiation.negotiation_id, "p2", approved=True)


def test_unknown_negotiation(services):
    with pytest.raises(NegotiationNotFoundError):
        services.negotiations.respond("missing", "p1", approved=True)


def test_non_positive_duration_rejected(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    with pytest.raises(InvalidGrantError):
        services.negotiations.respond(negotiation.negotiation_id, "p1", True, duration_ms=0)


def test_respond_for_targets_latest_pending(services, clock):
    services.negotiations.request_consent("driver-verified", "p1", "safety")
    clock.advance(seconds=30)
    latest = services.negotiations.request_consent("driver-verified", "p1", "safety")

    answered = services.negotiations.respond_for(
        "driver-verified", "p1", "safety", approved=True
    )

    assert answered.negotiation_id == latest.negotiation_id


def test_respond_for_without_pending_request(services):
    with pytest.raises(NegotiationNotFoundError):
        services.negotiations.respond_for("driver-verified", "p1", "safety", approved=True)


def test_revoke_removes_grant(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    revoked = services.negotiations.revoke(negotiation.negotiation_id, "p1")

    assert revoked.status == NegotiationStatus.REVOKED.value
    assert services.ledger.check("p1", "driver-verified", "safety").allowed is False
    assert AuditEventType.CONSENT_REVOKED.value in _actions(services)


def test_revoke_requires_approved(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")

    with pytest.raises(InvalidNegotiationStateError):
        services.negotiations.revoke(negotiation.negotiation_id, "p1")


def test_revoke_grant_marks_negotiation_revoked(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    assert services.negotiations.revoke_grant("p1", "driver-verified", "safety") is True
    assert services.negotiations.revoke_grant("p1", "driver-verified", "safety") is False
    assert services.negotiations.get(negotiation.negotiation_id).status == "revoked"


def test_complete_ride_expires_ride_scoped_grants(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    assert services.negotiations.complete_ride("p1", "driver-verified") == 1
    assert services.ledger.check("p1", "driver-verified", "safety").allowed is False

    expired = [e for e in services.audit_sink.events if e.action == "consent_expired"]
    assert len(expired) == 1
    assert expired[0].actor_type == "system"


def test_complete_ride_without_grants_is_silent(services):
    assert services.negotiations.complete_ride("p1", "driver-verified") == 0
    assert AuditEventType.CONSENT_EXPIRED.value not in _actions(services)


def test_retry_after_failed_status_update_keeps_one_grant(services):
    negotiation = services.negotiations.request_consent("driver-verified", "p1", "safety")
    store = services.negotiations._store
    real_update = store.update
    calls = []

    def update_failing_once(negotiation_id, fields):
        calls.append(negotiation_id)
        if len(calls) == 1:
            raise RuntimeError("Failed to update consent negotiation")
        real_update(negotiation_id, fields)

    store.update = update_failing_once

    with pytest.raises(RuntimeError):
        services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)
    assert services.negotiations.get(negotiation.negotiation_id).status == "requested"

    answered = services.negotiations.respond(negotiation.negotiation_id, "p1", approved=True)

    assert answered.status == NegotiationStatus.APPROVED.value
    assert len(services.ledger.list_grants("p1")) == 1
    assert services.ledger.check("p1", "driver-verified", "safety").allowed is True
