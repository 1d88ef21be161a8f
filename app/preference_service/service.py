"""
Preference service logic.

Loads, synthesizes and saves passenger preference records.
"""

from typing import Dict, Optional

from pydantic import ValidationError

from app.common.audit_logger import AuditEvent, AuditEventType, record_safely
from app.preference_service.schemas import PreferenceRecord
from app.utils.logger import get_logger

logger = get_logger(__name__)


class PreferenceService:
    """
    Owns reads and writes of preference records.

    Reads never fail: a passenger without a stored row, or a store
    outage, yields the materialized default record.
    """

    def __init__(self, store, audit_sink=None):
        self._store = store
        self._audit_sink = audit_sink

    def get_preferences(self, passenger_id: str) -> PreferenceRecord:
        """
        Load a passenger's record, synthesizing and persisting defaults
        on first read.
        """
        try:
            stored = self._store.get(passenger_id)
        except RuntimeError:
            logger.warning(
                "Preference store unavailable, serving defaults",
                extra={"passenger_id": passenger_id},
            )
            return PreferenceRecord()

        if stored is not None:
            try:
                return PreferenceRecord.model_validate(stored)
            except ValidationError:
                logger.exception(
                    "Stored preferences failed validation, serving defaults",
                    extra={"passenger_id": passenger_id},
                )
                return PreferenceRecord()

        logger.info(
            "Creating default preferences for new passenger",
            extra={"passenger_id": passenger_id},
        )
        record = PreferenceRecord()
        try:
            self._store.save(passenger_id, record.model_dump(mode="json"))
        except RuntimeError:
            logger.warning(
                "Could not persist default preferences",
                extra={"passenger_id": passenger_id},
            )
        return record

    def save_preferences(
        self,
        passenger_id: str,
        record: PreferenceRecord,
    ) -> PreferenceRecord:
        """
        Replace a passenger's full record.

        Raises:
            RuntimeError: If the store rejects the write.
        """
        self._store.save(passenger_id, record.model_dump(mode="json"))

        logger.info(
            "Preferences saved",
            extra={
                "passenger_id": passenger_id,
                "privacy_level": record.access_policy.privacy_level,
                "min_driver_rating": record.access_policy.min_driver_rating,
            },
        )
        self._audit_saved(passenger_id, list(PreferenceRecord.model_fields))
        return record

    def upsert(
        self,
        passenger_id: str,
        partial: Dict[str, Optional[Dict]],
    ) -> PreferenceRecord:
        """
        Merge a partial update over the current record and save it.

        Args:
            passenger_id (str): Owning passenger.
            partial (dict): Category name -> subset of that category's fields.

        Raises:
            pydantic.ValidationError: If the merged record is invalid.
            RuntimeError: If the store is unavailable or holds a record
                that no longer validates.
        """
        merged = self._load_for_update(passenger_id).model_dump(mode="json")
        changed = []

        for category, fields in partial.items():
            if not fields:
                continue
            merged[category] = {**merged.get(category, {}), **fields}
            changed.append(category)

        record = PreferenceRecord.model_validate(merged)
        self._store.save(passenger_id, record.model_dump(mode="json"))

        logger.info(
            "Preferences partially updated",
            extra={"passenger_id": passenger_id, "categories": changed},
        )
        self._audit_saved(passenger_id, changed)
        return record

    def _load_for_update(self, passenger_id: str) -> PreferenceRecord:
        # Writes merge over defaults only when nothing is stored
        stored = self._store.get(passenger_id)
        if stored is None:
            return PreferenceRecord()

        try:
            return PreferenceRecord.model_validate(stored)
        except ValidationError as exc:
            logger.error(
                "Stored preferences failed validation, refusing partial update",
                extra={"passenger_id": passenger_id},
            )
            raise RuntimeError("Stored preferences are invalid") from exc

    def _audit_saved(self, passenger_id: str, categories: list) -> None:
        if self._audit_sink is None:
            return
        record_safely(
            self._audit_sink,
            AuditEvent(
                action=AuditEventType.PREFERENCES_UPDATED,
                actor_id=passenger_id,
                actor_type="passenger",
                subject_id=passenger_id,
                categories_disclosed=[],
                reason=f"Passenger updated {', '.join(categories) or 'nothing'}",
            ),
        )
