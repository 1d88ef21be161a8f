"""
Service wiring.

Builds the stores and services once per application lifespan. With a
MongoDB database the stores are Mongo-backed; without one (local demo
mode, tests) they live in memory.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from app.common.audit_logger import InMemoryAuditSink, MongoAuditSink
from app.consent_service.ledger import ConsentLedger, utc_now
from app.consent_service.message_generator import ConsentMessageGenerator
from app.consent_service.negotiation import ConsentNegotiationProtocol
from app.consent_service.repository import (
    InMemoryConsentGrantStore,
    InMemoryNegotiationStore,
    MongoConsentGrantStore,
    MongoNegotiationStore,
)
from app.core.config import Settings
from app.db.mongodb import (
    AUDIT_COLLECTION,
    CONSENT_GRANTS_COLLECTION,
    DRIVERS_COLLECTION,
    NEGOTIATIONS_COLLECTION,
    PREFERENCES_COLLECTION,
)
from app.disclosure_service.service import DriverViewService
from app.driver_service.repository import InMemoryDriverDirectory, MongoDriverDirectory
from app.preference_service.repository import (
    InMemoryPreferenceStore,
    MongoPreferenceStore,
)
from app.preference_service.service import PreferenceService
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    preferences: PreferenceService
    ledger: ConsentLedger
    negotiations: ConsentNegotiationProtocol
    driver_view: DriverViewService
    drivers: Any
    audit_sink: Any


def build_services(
    settings: Settings,
    database=None,
    *,
    message_generator: Optional[ConsentMessageGenerator] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Services:
    """
    Assemble every service around one set of stores.

    Args:
        settings (Settings): Application settings.
        database: pymongo Database, or None for in-memory stores.
        message_generator: Override for consent request text generation.
        clock: Source of the current UTC time.
    """
    if database is not None:
        preference_store = MongoPreferenceStore(database[PREFERENCES_COLLECTION])
        grant_store = MongoConsentGrantStore(database[CONSENT_GRANTS_COLLECTION])
        negotiation_store = MongoNegotiationStore(database[NEGOTIATIONS_COLLECTION])
        drivers = MongoDriverDirectory(database[DRIVERS_COLLECTION])
        audit_sink = MongoAuditSink(database[AUDIT_COLLECTION])
        mode = "mongodb"
    else:
        preference_store = InMemoryPreferenceStore()
        grant_store = InMemoryConsentGrantStore()
        negotiation_store = InMemoryNegotiationStore()
        drivers = InMemoryDriverDirectory()
        audit_sink = InMemoryAuditSink()
        mode = "in_memory"

    preferences = PreferenceService(preference_store, audit_sink)
    ledger = ConsentLedger(grant_store, drivers, clock=clock)
    negotiations = ConsentNegotiationProtocol(
        negotiation_store,
        ledger,
        drivers,
        audit_sink,
        message_generator or ConsentMessageGenerator(),
        min_driver_rating=settings.CONSENT_MIN_DRIVER_RATING,
        new_driver_min_rides=settings.NEW_DRIVER_MIN_RIDES,
        response_window=timedelta(minutes=settings.NEGOTIATION_RESPONSE_MINUTES),
        clock=clock,
    )

    logger.info("Services initialized", extra={"storage": mode})

    return Services(
        preferences=preferences,
        ledger=ledger,
        negotiations=negotiations,
        driver_view=DriverViewService(preferences, ledger, audit_sink, clock=clock),
        drivers=drivers,
        audit_sink=audit_sink,
    )
