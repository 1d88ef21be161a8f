"""
MongoDB connection utilities.

Builds a validated MongoDB client for the application lifespan.
The client is owned by the host process and handed to repositories;
nothing connects at import time.
"""

import time
from typing import Any, Tuple

import certifi
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from app.utils.logger import get_logger

logger = get_logger(__name__)

PREFERENCES_COLLECTION = "passenger_preferences"
CONSENT_GRANTS_COLLECTION = "consent_grants"
NEGOTIATIONS_COLLECTION = "consent_negotiations"
DRIVERS_COLLECTION = "drivers"
AUDIT_COLLECTION = "audit_logs"


def _parse_mongo_uri(uri: str) -> dict:
    """
    Extract connection details for logging without exposing credentials.

    Args:
        uri: MongoDB connection string

    Returns:
        Dictionary with host, protocol and Atlas flags
    """
    if "mongodb://" not in uri and "mongodb+srv://" not in uri:
        return {"host": "unknown", "is_atlas": False, "is_srv": False}

    remainder = uri.split("://", 1)[1]
    if "@" in remainder:
        remainder = remainder.split("@", 1)[1]

    return {
        "host": remainder.split("/")[0],
        "is_atlas": "mongodb.net" in uri,
        "is_srv": uri.startswith("mongodb+srv://"),
    }


def _validate_connection(client: MongoClient) -> bool:
    """
    Validate the connection by pinging the server.

    Returns:
        True if the server answered, False otherwise
    """
    try:
        client.admin.command("ping")
        logger.info("MongoDB connection validated")
        return True

    except ServerSelectionTimeoutError as exc:
        logger.error(
            "MongoDB server selection timeout",
            extra={
                "error": str(exc),
                "possible_causes": [
                    "MongoDB server is down",
                    "IP not whitelisted in MongoDB Atlas",
                    "Firewall blocking connection",
                ],
            },
        )
        return False

    except OperationFailure as exc:
        logger.error(
            "MongoDB authentication or permission failure",
            extra={"error": str(exc)},
        )
        return False

    except ConnectionFailure as exc:
        logger.error(
            "MongoDB connection failure",
            extra={"error": str(exc)},
        )
        return False


def connect_mongo(uri: str, db_name: str) -> Tuple[MongoClient, Database[Any]]:
    """
    Create a MongoDB client and return it with the application database.

    Args:
        uri: MongoDB connection string.
        db_name: Database name.

    Returns:
        Tuple of (client, database)

    Raises:
        RuntimeError: If the connection cannot be established.
    """
    uri_info = _parse_mongo_uri(uri)

    logger.info(
        "Initializing MongoDB connection",
        extra={"database": db_name, "host": uri_info["host"]},
    )

    start_time = time.time()

    options = {
        "serverSelectionTimeoutMS": 10000,
        "connectTimeoutMS": 10000,
        "socketTimeoutMS": 10000,
        # Grant expiry compares against timezone-aware UTC timestamps
        "tz_aware": True,
    }
    # Atlas and SRV deployments require TLS with a known CA bundle
    if uri_info["is_atlas"] or uri_info["is_srv"]:
        options.update({"tls": True, "tlsCAFile": certifi.where()})

    try:
        client = MongoClient(uri, **options)
    except ConfigurationError as exc:
        logger.critical(
            "MongoDB configuration error",
            extra={"error": str(exc)},
        )
        raise RuntimeError(f"MongoDB configuration error: {exc}") from exc

    if not _validate_connection(client):
        client.close()
        raise RuntimeError(
            "MongoDB connection validation failed. Check the connection "
            "string, network access and credentials."
        )

    try:
        database = client[db_name]
    except PyMongoError as exc:
        client.close()
        raise RuntimeError(f"Unable to open database: {db_name}") from exc

    logger.info(
        "MongoDB connection established",
        extra={
            "database": db_name,
            "host": uri_info["host"],
            "connection_time_ms": round((time.time() - start_time) * 1000, 2),
        },
    )

    return client, database


def check_connection_health(client: MongoClient | None) -> dict:
    """
    Check the health of the MongoDB connection.

    Returns:
        Dictionary with connection health status
    """
    if client is None:
        return {"status": "in_memory"}

    try:
        client.admin.command("ping")
        return {"status": "connected"}

    except PyMongoError as exc:
        logger.warning("MongoDB health check failed", extra={"error": str(exc)})
        return {"status": "unhealthy", "error": str(exc)}


__all__ = [
    "connect_mongo",
    "check_connection_health",
    "PREFERENCES_COLLECTION",
    "CONSENT_GRANTS_COLLECTION",
    "NEGOTIATIONS_COLLECTION",
    "DRIVERS_COLLECTION",
    "AUDIT_COLLECTION",
]
