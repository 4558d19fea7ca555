"""
MongoDB access.

A single client is created at import time from DATABASE_URL. Route modules
reach collections through ``collection(name)`` so the handle can be swapped
(tests point ``db`` at a mongomock database).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import structlog
from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

import settings
from errors import Internal, ValidationError

logger = structlog.get_logger(__name__)

client: Optional[MongoClient] = MongoClient(settings.DATABASE_URL) if settings.DATABASE_URL else None
db = client[settings.DATABASE_NAME] if client is not None else None


def collection(name: str) -> Collection:
    if db is None:
        raise Internal("Database not configured")
    return db[name]


def utcnow() -> datetime:
    """Current UTC time as stored by Mongo: naive, millisecond precision."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_obj_id(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise ValidationError("Invalid id")
    return ObjectId(id_str)


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a record with created_at/updated_at stamps and return it with its id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    res = collection(collection_name).insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def update_document(collection_name: str, doc_id: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if changes:
        collection(collection_name).update_one({"_id": doc_id}, {"$set": {**changes, "updated_at": utcnow()}})
    return collection(collection_name).find_one({"_id": doc_id})


INDEXES = {
    "admin": [([("email", ASCENDING)], {"unique": True})],
    "category": [
        ([("name", ASCENDING)], {"unique": True}),
        ([("slug", ASCENDING)], {"unique": True}),
    ],
    "image": [
        ([("category_id", ASCENDING), ("order", ASCENDING)], {}),
        ([("category_id", ASCENDING), ("is_active", ASCENDING)], {}),
    ],
    "promotion": [
        ([("is_active", ASCENDING), ("start_date", ASCENDING), ("end_date", ASCENDING)], {}),
        ([("type", ASCENDING), ("is_active", ASCENDING)], {}),
        ([("category_id", ASCENDING), ("is_active", ASCENDING)], {}),
    ],
    "review": [
        ([("status", ASCENDING), ("created_at", DESCENDING)], {}),
        ([("visitor_id", ASCENDING), ("created_at", DESCENDING)], {}),
    ],
    "analytics": [([("date", DESCENDING)], {"unique": True})],
}


def ensure_indexes() -> None:
    if db is None:
        logger.warning("database_not_configured")
        return
    for name, specs in INDEXES.items():
        for keys, options in specs:
            try:
                db[name].create_index(keys, **options)
            except Exception as exc:
                logger.warning("index_creation_failed", collection=name, keys=keys, error=str(exc))
