"""
MongoDB access shared by every resource.

Parent documents (movies, users, communities) own their embedded arrays and
are written back whole with ``save_document``; that single replace is the only
atomicity the store promises.
"""

import math
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from loguru import logger
from pymongo import MongoClient
from pymongo.database import Database

import config
from errors import Conflict, NotFound

client = MongoClient(config.DATABASE_URL)
db = client[config.DATABASE_NAME]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    """Current UTC time in the naive, millisecond form BSON round-trips."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_object_id(value) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def find_by_id(db: Database, collection: str, doc_id, projection: Optional[dict] = None) -> Optional[dict]:
    """Load one document; malformed ids behave like missing ones."""
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return db[collection].find_one({"_id": oid}, projection)


def find_sub_document(items: list, sub_id) -> Optional[dict]:
    """Look up an embedded entry by its sub-document id."""
    oid = to_object_id(sub_id)
    if oid is None:
        return None
    for item in items:
        if item.get("_id") == oid:
            return item
    return None


def insert_document(db: Database, collection: str, doc: dict) -> dict:
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    doc["version"] = 0
    res = db[collection].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def save_document(db: Database, collection: str, doc: dict, check_version: Optional[bool] = None) -> dict:
    """
    Replace a whole document.

    With the version check on, the replace only matches the version that was
    loaded, so a concurrent writer makes this call fail with Conflict instead
    of silently overwriting. With it off, the last writer wins.
    """
    if check_version is None:
        check_version = config.OPTIMISTIC_LOCKING

    loaded_version = doc.get("version")
    query = {"_id": doc["_id"]}
    if check_version:
        query["version"] = loaded_version if loaded_version is not None else {"$exists": False}

    doc["version"] = (loaded_version or 0) + 1
    doc["updatedAt"] = utcnow()
    res = db[collection].replace_one(query, doc)
    if res.matched_count == 0:
        doc["version"] = loaded_version
        if check_version and db[collection].count_documents({"_id": doc["_id"]}):
            logger.warning(f"[DB] Version conflict on {collection}/{doc['_id']}")
            raise Conflict("The document was modified by another request. Please retry.")
        raise NotFound(f"Document no longer exists in {collection}.")
    return doc


def page_meta(page: int, limit: int, total: int, total_key: str) -> dict:
    return {
        "currentPage": page,
        "limit": limit,
        total_key: total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def paginate(items: list, page: int, limit: int, key: str, total_key: str) -> dict:
    """Offset/limit slice of an embedded array plus pagination metadata."""
    skip = (page - 1) * limit
    out = {key: items[skip:skip + limit]}
    out.update(page_meta(page, limit, len(items), total_key))
    return out
