"""
Driver directory.

Read-only lookup of driver profiles maintained by the driver
onboarding flow.
"""

import threading
from typing import Dict, Iterable, Optional

from pydantic import ValidationError
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from app.driver_service.schemas import DriverProfile
from app.utils.logger import get_logger

logger = get_logger(__name__)


class MongoDriverDirectory:
    """Driver profiles from the drivers collection."""

    def __init__(self, collection: Collection):
        self._collection = collection

    def get_driver(self, driver_id: str) -> Optional[DriverProfile]:
        """
        Fetch a driver profile.

        Returns:
            Optional[DriverProfile]: Profile, or None if unknown.

        Raises:
            RuntimeError: If the database is unavailable.
        """
        try:
            doc = self._collection.find_one({"driver_id": driver_id}, {"_id": 0})
        except PyMongoError as exc:
            logger.error(
                "Failed to fetch driver profile",
                extra={"driver_id": driver_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to fetch driver profile") from exc

        if not doc:
            return None

        try:
            return DriverProfile.model_validate(doc)
        except ValidationError:
            logger.exception(
                "Malformed driver profile",
                extra={"driver_id": driver_id},
            )
            return None


class InMemoryDriverDirectory:
    """Driver profiles held in memory (demo mode and tests)."""

    def __init__(self, drivers: Iterable[DriverProfile] = ()):
        self._drivers: Dict[str, DriverProfile] = {d.driver_id: d for d in drivers}
        self._lock = threading.Lock()

    def get_driver(self, driver_id: str) -> Optional[DriverProfile]:
        with self._lock:
            return self._drivers.get(driver_id)

    def add(self, driver: DriverProfile) -> None:
        with self._lock:
            self._drivers[driver.driver_id] = driver
