"""
Callback requests and testimonials submitted from the public site.
"""

import logging

from pydantic import BaseModel
from pymongo import ReturnDocument

from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import QUERY_STATUSES, Testimonial, UserQuery, UserQueryCreate

logger = logging.getLogger(__name__)


class QueryStatusUpdate(BaseModel):
    status: str


# Callback requests

def submit_query(db, payload: UserQueryCreate) -> dict:
    query = UserQuery(**payload.model_dump(by_alias=True))
    doc = create_document(db, "userquery", query)
    logger.info("Callback request %s received", doc["_id"])
    return serialize(doc)


def list_queries(db):
    return [serialize(d) for d in get_documents(db, "userquery", newest_first=True)]


def update_query_status(db, query_id: str, status: str) -> dict:
    if status not in QUERY_STATUSES:
        raise ValidationError(
            f"Invalid status. Allowed values are: {', '.join(QUERY_STATUSES)}",
            {"status": f"must be one of: {', '.join(QUERY_STATUSES)}"},
        )
    now = utcnow()
    resolved = status == "resolved"
    doc = db["userquery"].find_one_and_update(
        {"_id": to_object_id(query_id)},
        {"$set": {
            "status": status,
            "attended": resolved,
            "resolvedAt": now if resolved else None,
            "updatedAt": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("Query not found")
    return serialize(doc)


# Testimonials

def submit_testimonial(db, payload: Testimonial) -> dict:
    return serialize(create_document(db, "testimonial", payload))


def list_testimonials(db):
    return [serialize(d) for d in get_documents(db, "testimonial", newest_first=True)]
