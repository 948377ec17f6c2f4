"""
MongoDB access helpers.

Each schema in ``schemas.py`` maps to one collection named after the
lower-cased class name. Route handlers receive the database through the
``get_db`` dependency so tests can swap in another client.
"""
import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from settings import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_client() -> MongoClient:
    # MongoClient connects lazily; an unreachable server surfaces as a
    # per-request PyMongoError after the selection timeout.
    return MongoClient(
        settings.MONGODB_URI,
        serverSelectionTimeoutMS=settings.DB_CONNECT_TIMEOUT_MS,
        connectTimeoutMS=settings.DB_CONNECT_TIMEOUT_MS,
    )


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_client()[settings.DATABASE_NAME]


def utc_now() -> datetime:
    # naive UTC, matching what pymongo hands back on reads
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for ``value`` or None if it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def to_public(doc: Any) -> Any:
    """Make a stored document JSON friendly: ``_id`` becomes ``id`` and
    ObjectIds become strings, recursively."""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [to_public(item) for item in doc]
    if isinstance(doc, dict):
        out = {}
        for key, value in doc.items():
            if key == "_id":
                out["id"] = str(value)
            else:
                out[key] = to_public(value)
        return out
    return doc


def to_storage(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Dump a schema with its wire (camelCase) names; plain dates become
    midnight datetimes since BSON has no date type."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    return {key: _storage_value(value) for key, value in data.items()}


def _storage_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, dict):
        return {k: _storage_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_storage_value(v) for v in value]
    return value


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with creation/update timestamps; returns its id."""
    data_dict = to_storage(data)
    now = utc_now()
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(db: Database) -> None:
    """Create the unique and lookup indexes the application relies on."""
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["user"].create_index([("googleId", ASCENDING)])
    db["room"].create_index([("slug", ASCENDING)], unique=True)
    db["booking"].create_index([("roomSlug", ASCENDING), ("status", ASCENDING)])
    db["booking"].create_index([("guestInfo.email", ASCENDING)])
    # one document per (room, calendar day) held by an active booking
    db["bookingnight"].create_index([("roomSlug", ASCENDING), ("night", ASCENDING)], unique=True)
    db["bookingnight"].create_index([("bookingId", ASCENDING)])
    db["pagecontent"].create_index([("pageName", ASCENDING)], unique=True)
    db["blogpost"].create_index([("slug", ASCENDING)], unique=True)
    db["blogpost"].create_index([("publishedAt", DESCENDING)])
    db["expense"].create_index([("date", DESCENDING)])
    db["expense"].create_index([("category", ASCENDING)])
    db["expense"].create_index([("status", ASCENDING)])
    db["contactsettings"].create_index([("key", ASCENDING)], unique=True)


def init_db(db: Database) -> bool:
    """Prepare indexes at startup. A store that cannot be reached is logged
    and left for per-request failures so the HTTP surface stays up."""
    try:
        ensure_indexes(db)
    except PyMongoError as exc:
        logger.error("MongoDB unavailable, continuing without database: %s", exc)
        return False
    logger.info("MongoDB connected, indexes ensured on %s", db.name)
    return True


def ping(db: Database) -> bool:
    try:
        db.command("ping")
        return True
    except PyMongoError:
        return False
