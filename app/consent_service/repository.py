"""
Consent repositories.

Persistence of consent grants (one document per passenger, driver and
category) and of consent negotiations.
"""

import copy
import threading
from typing import Dict, List, Optional, Tuple

from pymongo import DESCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from app.utils.logger import get_logger

logger = get_logger(__name__)

GrantKey = Tuple[str, str, str]


def _grant_filter(passenger_id: str, driver_id: str, category: str) -> dict:
    return {
        "passenger_id": passenger_id,
        "driver_id": driver_id,
        "category": category,
    }


class MongoConsentGrantStore:
    """Consent grants in the consent_grants collection."""

    def __init__(self, collection: Collection):
        self._collection = collection

    def get(self, passenger_id: str, driver_id: str, category: str) -> Optional[Dict]:
        try:
            return self._collection.find_one(
                _grant_filter(passenger_id, driver_id, category),
                {"_id": 0},
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to fetch consent grant",
                extra={
                    "passenger_id": passenger_id,
                    "driver_id": driver_id,
                    "category": category,
                    "error": str(exc),
                },
            )
            raise RuntimeError("Failed to fetch consent grant") from exc

    def put(self, grant: Dict) -> None:
        """Create or replace the grant for its (passenger, driver, category)."""
        try:
            self._collection.replace_one(
                _grant_filter(grant["passenger_id"], grant["driver_id"], grant["category"]),
                grant,
                upsert=True,
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to persist consent grant",
                extra={"passenger_id": grant["passenger_id"], "error": str(exc)},
            )
            raise RuntimeError("Failed to store consent grant") from exc

    def delete(self, passenger_id: str, driver_id: str, category: str) -> bool:
        try:
            result = self._collection.delete_one(
                _grant_filter(passenger_id, driver_id, category)
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to delete consent grant",
                extra={"passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to delete consent grant") from exc
        return result.deleted_count > 0

    def delete_ride_scoped(self, passenger_id: str, driver_id: str) -> int:
        try:
            result = self._collection.delete_many(
                {
                    "passenger_id": passenger_id,
                    "driver_id": driver_id,
                    "expires_after_ride": True,
                }
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to expire ride-scoped grants",
                extra={"passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to expire ride-scoped grants") from exc
        return result.deleted_count

    def list_for_passenger(self, passenger_id: str) -> List[Dict]:
        try:
            return list(
                self._collection.find({"passenger_id": passenger_id}, {"_id": 0})
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to list consent grants",
                extra={"passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to list consent grants") from exc


class InMemoryConsentGrantStore:
    """Consent grants held in memory (demo mode and tests)."""

    def __init__(self):
        self._grants: Dict[GrantKey, Dict] = {}
        self._lock = threading.Lock()

    def get(self, passenger_id: str, driver_id: str, category: str) -> Optional[Dict]:
        with self._lock:
            grant = self._grants.get((passenger_id, driver_id, category))
            return copy.deepcopy(grant) if grant is not None else None

    def put(self, grant: Dict) -> None:
        key = (grant["passenger_id"], grant["driver_id"], grant["category"])
        with self._lock:
            self._grants[key] = copy.deepcopy(grant)

    def delete(self, passenger_id: str, driver_id: str, category: str) -> bool:
        with self._lock:
            return self._grants.pop((passenger_id, driver_id, category), None) is not None

    def delete_ride_scoped(self, passenger_id: str, driver_id: str) -> int:
        with self._lock:
            keys = [
                key
                for key, grant in self._grants.items()
                if key[:2] == (passenger_id, driver_id) and grant.get("expires_after_ride")
            ]
            for key in keys:
                del self._grants[key]
            return len(keys)

    def list_for_passenger(self, passenger_id: str) -> List[Dict]:
        with self._lock:
            return [
                copy.deepcopy(grant)
                for key, grant in self._grants.items()
                if key[0] == passenger_id
            ]


class MongoNegotiationStore:
    """Consent negotiations in the consent_negotiations collection."""

    def __init__(self, collection: Collection):
        self._collection = collection

    def insert(self, negotiation: Dict) -> None:
        try:
            self._collection.insert_one(dict(negotiation))
        except PyMongoError as exc:
            logger.error(
                "Failed to store negotiation",
                extra={"negotiation_id": negotiation["negotiation_id"], "error": str(exc)},
            )
            raise RuntimeError("Failed to store consent negotiation") from exc

    def get(self, negotiation_id: str) -> Optional[Dict]:
        try:
            return self._collection.find_one(
                {"negotiation_id": negotiation_id},
                {"_id": 0},
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to fetch negotiation",
                extra={"negotiation_id": negotiation_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to fetch consent negotiation") from exc

    def update(self, negotiation_id: str, fields: Dict) -> None:
        try:
            self._collection.update_one(
                {"negotiation_id": negotiation_id},
                {"$set": fields},
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to update negotiation",
                extra={"negotiation_id": negotiation_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to update consent negotiation") from exc

    def find_latest(
        self,
        driver_id: str,
        passenger_id: str,
        category: str,
        status: Optional[str] = None,
    ) -> Optional[Dict]:
        query = {
            "driver_id": driver_id,
            "passenger_id": passenger_id,
            "category": category,
        }
        if status is not None:
            query["status"] = status
        try:
            return self._collection.find_one(
                query,
                {"_id": 0},
                sort=[("requested_at", DESCENDING)],
            )
        except PyMongoError as exc:
            logger.error(
                "Failed to look up negotiation",
                extra={"driver_id": driver_id, "passenger_id": passenger_id, "error": str(exc)},
            )
            raise RuntimeError("Failed to fetch consent negotiation") from exc


class InMemoryNegotiationStore:
    """Consent negotiations held in memory (demo mode and tests)."""

    def __init__(self):
        self._negotiations: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def insert(self, negotiation: Dict) -> None:
        with self._lock:
            self._negotiations[negotiation["negotiation_id"]] = copy.deepcopy(negotiation)

    def get(self, negotiation_id: str) -> Optional[Dict]:
        with self._lock:
            found = self._negotiations.get(negotiation_id)
            return copy.deepcopy(found) if found is not None else None

    def update(self, negotiation_id: str, fields: Dict) -> None:
        with self._lock:
            if negotiation_id in self._negotiations:
                self._negotiations[negotiation_id].update(copy.deepcopy(fields))

    def find_latest(
        self,
        driver_id: str,
        passenger_id: str,
        category: str,
        status: Optional[str] = None,
    ) -> Optional[Dict]:
        with self._lock:
            matches = [
                n
                for n in self._negotiations.values()
                if n["driver_id"] == driver_id
                and n["passenger_id"] == passenger_id
                and n["category"] == category
                and (status is None or n["status"] == status)
            ]
            if not matches:
                return None
            return copy.deepcopy(max(matches, key=lambda n: n["requested_at"]))
