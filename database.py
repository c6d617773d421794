"""
MongoDB access helpers

The client is created by the application at startup and handed to the
routes through the app state; nothing here holds a global connection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import Request
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pydantic import BaseModel

logger = logging.getLogger(__name__)

UNIQUE_INDEXES = {
    "user": ["email", "userId"],
    "seller": ["email", "sellerId"],
    "cart": ["userId"],
    "order": ["orderId"],
    "complaint": ["complaintNumber"],
    "coupon": ["code"],
    "session": ["sid"],
}


def utcnow() -> datetime:
    # naive UTC, matching what pymongo hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db(request: Request) -> Database:
    return request.app.state.db


def connect(url: str, name: str, pool_size: int = 10):
    client = MongoClient(url, maxPoolSize=pool_size)
    logger.info("MongoDB client created for database %s (pool size %d)", name, pool_size)
    return client, client[name]


def ensure_indexes(db: Database):
    for collection_name, fields in UNIQUE_INDEXES.items():
        for field in fields:
            db[collection_name].create_index([(field, ASCENDING)], unique=True)


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    data_dict = _as_dict(data)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


class Repository:
    """Find/insert/upsert/update/delete over a single collection."""

    def __init__(self, db: Database, collection_name: str):
        self.db = db
        self.name = collection_name
        self.collection = db[collection_name]

    def find(self, filter_dict: Optional[dict] = None, projection: Optional[dict] = None) -> List[dict]:
        return list(self.collection.find(filter_dict or {}, projection))

    def find_one(self, filter_dict: dict, projection: Optional[dict] = None) -> Optional[dict]:
        return self.collection.find_one(filter_dict, projection)

    def exists(self, filter_dict: dict) -> bool:
        return self.collection.find_one(filter_dict, {"_id": 1}) is not None

    def insert(self, data: Union[BaseModel, Dict[str, Any]]) -> dict:
        data_dict = _as_dict(data)
        _id = create_document(self.db, self.name, data_dict)
        return self.collection.find_one({"_id": ObjectId(_id)})

    def upsert(self, filter_dict: dict, fields: dict) -> dict:
        now = utcnow()
        return self.collection.find_one_and_update(
            filter_dict,
            {"$set": {**fields, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def update(self, filter_dict: dict, update: dict) -> Optional[dict]:
        """Apply a raw update document; returns the updated document or None."""
        update = dict(update)
        update["$set"] = {**update.get("$set", {}), "updated_at": utcnow()}
        return self.collection.find_one_and_update(filter_dict, update, return_document=ReturnDocument.AFTER)

    def delete(self, filter_dict: dict) -> Optional[dict]:
        return self.collection.find_one_and_delete(filter_dict)
