"""
Disclosure audit logging.

Append-only record of every disclosure and consent decision.
"""

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pymongo.collection import Collection

from app.utils.logger import get_logger

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Types of auditable events."""

    # Disclosure
    DRIVER_VIEW_DISCLOSED = "driver_view_disclosed"

    # Consent negotiation
    CONSENT_REQUESTED = "consent_requested"
    CONSENT_REQUEST_REJECTED = "consent_request_rejected"
    CONSENT_GRANTED = "consent_granted"
    CONSENT_DENIED = "consent_denied"
    CONSENT_REVOKED = "consent_revoked"
    CONSENT_EXPIRED = "consent_expired"

    # Preferences
    PREFERENCES_UPDATED = "preferences_updated"


class AuditEvent(BaseModel):
    """
    One immutable audit entry.

    Frozen so no layer can alter an event after it is created.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    action: AuditEventType
    actor_id: str
    actor_type: str
    subject_id: Optional[str] = None
    categories_disclosed: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MongoAuditSink:
    """Writes audit events to an append-only MongoDB collection."""

    def __init__(self, collection: Collection):
        self._collection = collection

    def record(self, event: AuditEvent) -> None:
        # Insert only; this sink never updates or deletes
        self._collection.insert_one(event.model_dump())

        logger.debug(
            f"Audit event logged: {event.action}",
            extra={"event_type": event.action, "actor_id": event.actor_id},
        )


class InMemoryAuditSink:
    """Keeps audit events in process memory (demo mode and tests)."""

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def record(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)


def record_safely(sink, event: AuditEvent) -> bool:
    """
    Hand an event to the audit sink without ever raising.

    A failed audit write must not block the decision being audited.

    Returns:
        bool: True if the sink accepted the event.
    """
    try:
        sink.record(event)
        return True

    except Exception as exc:
        logger.critical(
            f"AUDIT LOGGING FAILED: {event.action}",
            extra={
                "event_type": event.action,
                "actor_id": event.actor_id,
                "subject_id": event.subject_id,
                "error": str(exc),
            },
        )
        return False
