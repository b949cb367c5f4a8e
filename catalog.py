"""
Service catalog managed from the admin console. Images arrive as multipart
uploads and are written under the uploads directory.
"""

import logging
import os
import shutil
import time
from typing import Optional

from fastapi import UploadFile
from pymongo import ReturnDocument

from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import Service, ServiceUpdate

logger = logging.getLogger(__name__)


def save_upload(upload: Optional[UploadFile], upload_dir: str) -> Optional[str]:
    if upload is None or not upload.filename:
        return None
    os.makedirs(upload_dir, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{os.path.basename(upload.filename)}"
    with open(os.path.join(upload_dir, filename), "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return f"uploads/{filename}"


def create_service(db, payload: Service, image: Optional[UploadFile], upload_dir: str) -> dict:
    data = payload.model_dump()
    data["image"] = save_upload(image, upload_dir) or payload.image
    doc = create_document(db, "service", data)
    logger.info("Service %s created", doc["_id"])
    return serialize(doc)


def list_services(db, category: Optional[str] = None):
    filters = {"category": category} if category else {}
    return [serialize(d) for d in get_documents(db, "service", filters)]


def get_service(db, service_id: str) -> dict:
    doc = db["service"].find_one({"_id": to_object_id(service_id)})
    if not doc:
        raise NotFoundError("Service not found")
    return serialize(doc)


def update_service(db, service_id: str, payload: ServiceUpdate, image: Optional[UploadFile], upload_dir: str) -> dict:
    oid = to_object_id(service_id)
    changes = payload.model_dump(exclude_none=True)
    path = save_upload(image, upload_dir)
    if path:
        changes["image"] = path
    if not changes:
        raise ValidationError("Nothing to update")
    changes["updatedAt"] = utcnow()
    doc = db["service"].find_one_and_update({"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if not doc:
        raise NotFoundError("Service not found")
    return serialize(doc)


def delete_service(db, service_id: str):
    result = db["service"].delete_one({"_id": to_object_id(service_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Service not found")
    logger.info("Service %s deleted", service_id)
