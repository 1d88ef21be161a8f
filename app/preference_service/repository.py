"""
Preference repository.

Handles persistence and retrieval of passenger preference records
stored in the passenger_preferences collection.
"""

import copy
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from app.utils.logger import get_logger

logger = get_logger(__name__)


class MongoPreferenceStore:
    """Preference records in MongoDB, one document per passenger."""

    def __init__(self, collection: Collection):
        self._collection = collection

    def get(self, passenger_id: str) -> Optional[Dict]:
        """
        Fetch the stored preference document for a passenger.

        Returns:
            Optional[Dict]: Category-keyed preferences, or None if never saved.

        Raises:
            RuntimeError: If the database is unavailable.
        """
        try:
            doc = self._collection.find_one(
                {"passenger_id": passenger_id},
                {"_id": 0, "preferences": 1},
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to fetch preferences",
                extra={"passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to fetch passenger preferences") from exc

        if not doc:
            logger.debug(
                "No stored preferences",
                extra={"passenger_id": passenger_id},
            )
            return None

        return doc.get("preferences")

    def save(self, passenger_id: str, preferences: Dict) -> None:
        """
        Replace the stored preferences of a passenger (last write wins).

        Raises:
            RuntimeError: If the database operation fails.
        """
        now = datetime.now(timezone.utc)
        try:
            self._collection.update_one(
                {"passenger_id": passenger_id},
                {
                    "$set": {"preferences": preferences, "updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to persist preferences",
                extra={"passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to store passenger preferences") from exc


class InMemoryPreferenceStore:
    """Process-local preference store for demo mode and tests."""

    def __init__(self):
        self._records: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def get(self, passenger_id: str) -> Optional[Dict]:
        with self._lock:
            record = self._records.get(passenger_id)
            return copy.deepcopy(record) if record is not None else None

    def save(self, passenger_id: str, preferences: Dict) -> None:
        with self._lock:
            self._records[passenger_id] = copy.deepcopy(preferences)
