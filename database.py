"""
MongoDB access for the FixEase API.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; request handlers
get the database through the `get_db` dependency so tests can swap it out.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config
from errors import AppError, ValidationError

logger = logging.getLogger(__name__)

db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    client = MongoClient(config.DATABASE_URL, tz_aware=True)
    db = client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")


def get_db():
    if db is None:
        raise AppError("Database not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: str, label: str = "id") -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise ValidationError(f"Invalid {label} format", {label: f"Invalid {label} format"})
    return ObjectId(id_str)


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = database[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, newest_first: bool = False, projection: Optional[dict] = None):
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if newest_first:
        cursor = cursor.sort([("createdAt", -1), ("_id", -1)])
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(value):
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str, datetime -> iso."""
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if k == "_id":
                out["id"] = str(v)
            else:
                out[k] = serialize(v)
        return out
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def ensure_indexes(database):
    database["employee"].create_index([("employeeId", ASCENDING)], unique=True)
    database["employee"].create_index([("aadhaar", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["admin"].create_index([("email", ASCENDING)], unique=True)
    database["payrollreset"].create_index([("monthYear", ASCENDING)], unique=True)
    database["booking"].create_index([("email", ASCENDING)])
    database["booking"].create_index([("serviceIds", ASCENDING)])
    database["booking"].create_index([("status", ASCENDING)])
