"""
Barangay Portal Database Module
MongoDB access through pymongo. Collections are used directly via driver
calls; there is no ODM layer.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from barangay.core.config import get_settings
from barangay.core.errors import ValidationError
from barangay.core.utc import to_iso_z

logger = logging.getLogger(__name__)

CASES = "cases"
COUNTERS = "counters"
CASE_NOTIFICATIONS = "case_notifications"
SYSTEM_SETTINGS = "system_settings"

CASE_COUNTER_ID = "case"
CASE_ID_PREFIX = "C-"


# Client and database handle (lazy initialization)
_client: Optional[MongoClient] = None
_database: Optional[Database] = None


def get_client() -> MongoClient:
    """
    Get or create the shared MongoClient.

    pymongo keeps its own connection pool per client, so one client per
    process is enough.
    """
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        )
    return _client


def get_database() -> Database:
    """Get the application database handle."""
    global _database
    if _database is None:
        _database = get_client()[get_settings().mongo_db]
    return _database


def set_database(database: Optional[Database]) -> None:
    """
    Replace the database handle (tests plug an in-memory database here).
    Passing None resets to the configured client on next access.
    """
    global _database
    _database = database


def get_db() -> Database:
    """
    FastAPI dependency for the database handle.

    Usage:
        @router.get("/items")
        def get_items(db: Database = Depends(get_db)):
            return list(db.items.find())
    """
    return get_database()


def init_db(db: Optional[Database] = None) -> None:
    """
    Create collections, indexes and the case counter document.
    Call this on startup. Idempotent.
    """
    db = db if db is not None else get_database()
    existing = set(db.list_collection_names())
    for name in (CASES, COUNTERS, CASE_NOTIFICATIONS):
        if name not in existing:
            db.create_collection(name)

    cases = db[CASES]
    cases.create_index([("caseId", ASCENDING)], unique=True)
    cases.create_index([("status", ASCENDING), ("dateOfIncident", ASCENDING), ("createdAt", ASCENDING)])
    cases.create_index([("typeOfCase", ASCENDING), ("priority", ASCENDING)])
    cases.create_index([("reportedBy.username", ASCENDING), ("createdAt", DESCENDING)])
    cases.create_index([("ongoingSince", ASCENDING), ("status", ASCENDING)])

    # The counter document must exist without touching `seq`; the sequence
    # generator is the only writer of that field.
    db[COUNTERS].update_one(
        {"_id": CASE_COUNTER_ID},
        {"$setOnInsert": {"prefix": CASE_ID_PREFIX}},
        upsert=True,
    )

    notifications = db[CASE_NOTIFICATIONS]
    notifications.create_index(
        [("user.username", ASCENDING), ("read", ASCENDING), ("createdAt", DESCENDING)],
        name="user_read_createdAt",
    )
    notifications.create_index([("caseId", ASCENDING)], name="by_case")
    logger.info("MongoDB collections ready (db=%s)", db.name)


def close_db() -> None:
    """
    Close database connections.
    Call this on shutdown.
    """
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None


def parse_object_id(value: str, label: str = "case id") -> ObjectId:
    """Turn a path parameter into an ObjectId or fail with a 400."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label}.")


def to_jsonable(value: Any) -> Any:
    """
    Convert a Mongo document (or part of one) into JSON-safe values:
    ObjectId -> str, datetime -> ISO 8601 UTC with Z.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return to_iso_z(value)
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value
