"""
MongoDB access for the marketplace backend.

A single client is created at import time when DATABASE_URL is configured.
Handlers receive the database through the ``get_db`` dependency so tests can
swap in an in-memory database.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from bson.objectid import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import BUY_NOW_TTL_SECONDS, DATABASE_NAME, DATABASE_URL

logger = structlog.get_logger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive UTC datetimes unless the client is tz aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def oid(value: Union[str, ObjectId], label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return ObjectId(value)


def serialize_doc(doc: Any) -> Any:
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id``, ObjectIds
    become strings and datetimes ISO strings, at any depth."""
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = serialize_doc(v)
            else:
                out[k] = serialize_doc(v)
        return out
    return doc


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]], session=None) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now_utc()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = database[collection_name].insert_one(doc, session=session)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["vendor"].create_index("email", unique=True)
    database["vendor"].create_index("phone", unique=True)
    database["admin"].create_index("email", unique=True)
    database["cart"].create_index("user", unique=True)
    database["wishlist"].create_index("user", unique=True)
    database["recentlyviewed"].create_index("user", unique=True)
    database["offer"].create_index("type", unique=True)
    database["offer"].create_index([("type", ASCENDING), ("products.start_date", ASCENDING), ("products.end_date", ASCENDING)])
    for level in ("mainmenu", "category", "subcategory"):
        database[level].create_index("menu_name", unique=True)
        database[level].create_index("slug", unique=True)
    database["order"].create_index("order_id", unique=True)
    database["product"].create_index("name", unique=True)
    database["product"].create_index([("sales_count", DESCENDING), ("is_active", ASCENDING)])
    database["buynowsession"].create_index("session_id", unique=True)
    database["buynowsession"].create_index("created_at", expireAfterSeconds=BUY_NOW_TTL_SECONDS)
    logger.info("indexes_ensured", database=database.name)
