"""
Booking workflow: customers submit bookings, admins move them between
statuses or delete them. Price totals are not computed here.
"""

import logging
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ReturnDocument

from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import BOOKING_STATUSES, Booking, BookingCreate

logger = logging.getLogger(__name__)

SERVICE_FIELDS = {"title": 1, "price": 1, "duration": 1}


class StatusUpdate(BaseModel):
    status: str


def create_booking(db, payload: BookingCreate) -> dict:
    booking = Booking(**payload.model_dump(by_alias=True))
    data = booking.model_dump(by_alias=True)
    data["serviceIds"] = [ObjectId(sid) for sid in booking.service_ids]
    doc = create_document(db, "booking", data)
    logger.info("Booking %s created for %d service(s)", doc["_id"], len(data["serviceIds"]))
    return {
        "bookingId": str(doc["_id"]),
        "status": doc["status"],
        "createdAt": serialize(doc["createdAt"]),
    }


def _attach_services(db, bookings):
    ids = {sid for b in bookings for sid in b.get("serviceIds", [])}
    services = {}
    if ids:
        for s in db["service"].find({"_id": {"$in": list(ids)}}, SERVICE_FIELDS):
            services[s["_id"]] = {
                "id": str(s["_id"]),
                "title": s.get("title"),
                "price": s.get("price"),
                "duration": s.get("duration"),
            }
    out = []
    for b in bookings:
        item = serialize(b)
        item["services"] = [services[sid] for sid in b.get("serviceIds", []) if sid in services]
        out.append(item)
    return out


def list_bookings(db, status: Optional[str] = None, service_id: Optional[str] = None):
    filters = {}
    if status:
        filters["status"] = status
    if service_id:
        filters["serviceIds"] = to_object_id(service_id, "serviceId")
    return _attach_services(db, get_documents(db, "booking", filters, newest_first=True))


def update_booking_status(db, booking_id: str, status: str) -> dict:
    # Any status may move to any other; only the value itself is checked.
    if status not in BOOKING_STATUSES:
        allowed = ", ".join(BOOKING_STATUSES)
        raise ValidationError(f"Invalid status. Allowed values are: {allowed}", {"status": f"must be one of: {allowed}"})
    now = utcnow()
    doc = db["booking"].find_one_and_update(
        {"_id": to_object_id(booking_id)},
        {"$set": {"status": status, "statusChangedAt": now, "updatedAt": now}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("Booking not found")
    logger.info("Booking %s moved to %s", booking_id, status)
    return _attach_services(db, [doc])[0]


def delete_booking(db, booking_id: str):
    result = db["booking"].delete_one({"_id": to_object_id(booking_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Booking not found")
    logger.info("Booking %s deleted", booking_id)
