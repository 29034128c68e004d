"""
Database helpers

A single MongoClient is created per process and handed to the routes through
the `get_db` dependency, so tests can swap in an in-memory database.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic.alias_generators import to_camel
from pymongo import MongoClient

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if DATABASE_URL:
    try:
        client = MongoClient(DATABASE_URL)
        db = client[DATABASE_NAME]
    except Exception:
        logger.exception("Could not create MongoDB client")
        client = None
        db = None


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id from a path or token; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(collection, data: dict) -> dict:
    """Insert a document stamped with created_at/updated_at and return the stored document."""
    now = utcnow()
    document = dict(data)
    document.setdefault("_id", ObjectId())
    document.setdefault("created_at", now)
    document["updated_at"] = now
    collection.insert_one(document)
    return document


def wire_key(key: str) -> str:
    """Stored snake_case key -> camelCase key sent to clients."""
    if key == "_id":
        return "id"
    return to_camel(key) if "_" in key else key


def serialize_document(value):
    """Turn a Mongo document into the JSON clients see (camelCase keys, ObjectId -> str, datetime -> ISO)."""
    if isinstance(value, dict):
        serialized = {}
        for key, item in value.items():
            if key == "password_hash":
                continue
            serialized[wire_key(key)] = serialize_document(item)
        return serialized
    if isinstance(value, list):
        return [serialize_document(item) for item in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value
