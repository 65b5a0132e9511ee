"""
Attachment files for itineraries, stops, activities, accommodations and notes.

The file is stored first and the row inserted second; when the insert fails
the stored object is removed again. Deletion goes the other way round: the
object is removed, then the row.
"""
import logging
import secrets
import time
from pathlib import Path
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from config import settings
from models.Accommodation import Accommodation
from models.Activity import Activity
from models.Attachment import Attachment
from models.Note import Note
from models.Stop import Stop
from schemas import AttachmentRead
from services.access import READ, WRITE, get_itinerary_for, store_errors
from services.query_cache import QueryCache, attachment_keys
from services.storage_service import ObjectStorage, path_from_url
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/avif"}
ALLOWED_DOCUMENT_TYPES = {
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
ALLOWED_TYPES = ALLOWED_IMAGE_TYPES | ALLOWED_DOCUMENT_TYPES

MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "avif": "image/avif",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

OWNER_COLUMNS = {
    "itinerary": "itinerary_id",
    "stop": "stop_id",
    "activity": "activity_id",
    "accommodation": "accommodation_id",
    "note": "note_id",
}


def _extension(filename: Optional[str]) -> str:
    return Path(filename or "").suffix.lower().lstrip(".")


def get_file_type(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Classify an upload as image, pdf or file."""
    if content_type and content_type.startswith("image/"):
        return "image"
    if content_type == "application/pdf" or _extension(filename) == "pdf":
        return "pdf"
    return "file"


def validate_file(content_type: Optional[str], filename: Optional[str], size: int) -> str:
    """Return the effective content type, or raise 400."""
    if not content_type or content_type == "application/octet-stream":
        content_type = MIME_BY_EXTENSION.get(_extension(filename), content_type)

    if not content_type or content_type not in ALLOWED_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed. Allowed: images, PDF, text and Word documents. Received: {content_type or 'unknown'}",
        )
    if size > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size: {settings.max_upload_bytes / (1024 * 1024):.1f} MB",
        )
    return content_type


def _note_itinerary_id(db: Session, note: Note) -> Optional[str]:
    if note.itinerary_id:
        return note.itinerary_id
    for model, column in ((Stop, note.stop_id), (Activity, note.activity_id), (Accommodation, note.accommodation_id)):
        if column:
            owner = db.query(model).filter(model.id == column).first()
            return owner.itinerary_id if owner else None
    return None


def resolve_itinerary_id(db: Session, entity_type: str, entity_id: str) -> str:
    """Itinerary that owns the entity an attachment hangs off."""
    if entity_type == "itinerary":
        return entity_id

    model = {"stop": Stop, "activity": Activity, "accommodation": Accommodation, "note": Note}.get(entity_type)
    if model is None:
        raise HTTPException(status_code=422, detail={"field": "entity_type", "message": f"Unknown entity type: {entity_type}"})

    entity = db.query(model).filter(model.id == entity_id).first()
    itinerary_id = None
    if entity is not None:
        itinerary_id = _note_itinerary_id(db, entity) if entity_type == "note" else entity.itinerary_id
    if itinerary_id is None:
        raise HTTPException(status_code=404, detail=f"{entity_type.capitalize()} not found")
    return itinerary_id


def _scope(entity_type: str, entity_id: str) -> str:
    return f"{entity_type}:{entity_id}"


def _owner_of(attachment: Attachment):
    for entity_type, column in OWNER_COLUMNS.items():
        value = getattr(attachment, column)
        if value:
            return entity_type, value
    return None, None


# ---------- Queries ----------
def list_attachments(db: Session, cache: QueryCache, user: CurrentUser, entity_type: str, entity_id: str) -> List[AttachmentRead]:
    get_itinerary_for(db, resolve_itinerary_id(db, entity_type, entity_id), user, READ)
    column = getattr(Attachment, OWNER_COLUMNS[entity_type])

    def load():
        rows = (
            db.query(Attachment)
            .filter(column == entity_id)
            .order_by(Attachment.uploaded_at.desc(), Attachment.id)
            .all()
        )
        return [AttachmentRead.model_validate(a) for a in rows]

    return cache.fetch(attachment_keys.list(_scope(entity_type, entity_id)), load, retry=1)


# ---------- Mutations ----------
def upload_attachment(
    db: Session,
    cache: QueryCache,
    storage: ObjectStorage,
    user: CurrentUser,
    entity_type: str,
    entity_id: str,
    content: bytes,
    filename: Optional[str],
    content_type: Optional[str],
) -> AttachmentRead:
    get_itinerary_for(db, resolve_itinerary_id(db, entity_type, entity_id), user, WRITE)
    content_type = validate_file(content_type, filename, len(content))

    ext = _extension(filename) or "bin"
    path = f"{user.id}/{entity_type}/{entity_id}/{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"
    try:
        url = storage.upload(path, content, content_type)
    except OSError as e:
        logger.exception("Upload of %s failed", path)
        raise HTTPException(status_code=500, detail=f"Failed to upload file: {e}")

    try:
        with store_errors(db, "save attachment"):
            attachment = Attachment(
                user_id=user.id,
                url=url,
                type=get_file_type(content_type, filename),
                filename=filename,
                **{OWNER_COLUMNS[entity_type]: entity_id},
            )
            db.add(attachment)
            db.commit()
            db.refresh(attachment)
    except HTTPException:
        storage.remove([path])
        raise

    cache.invalidate(attachment_keys.list(_scope(entity_type, entity_id)))
    return AttachmentRead.model_validate(attachment)


def delete_attachment(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, attachment_id: str) -> None:
    attachment = db.query(Attachment).filter(Attachment.id == attachment_id).first()
    if not attachment:
        raise HTTPException(status_code=404, detail="Attachment not found")
    entity_type, entity_id = _owner_of(attachment)
    if entity_type is None:
        raise HTTPException(status_code=404, detail="Attachment not found")
    get_itinerary_for(db, resolve_itinerary_id(db, entity_type, entity_id), user, WRITE)

    try:
        storage.remove([path_from_url(attachment.url)])
    except (OSError, ValueError) as e:
        logger.exception("Could not remove stored file for attachment %s", attachment_id)
        raise HTTPException(status_code=500, detail=f"Failed to delete file: {e}")

    with store_errors(db, "delete attachment"):
        db.query(Attachment).filter(Attachment.id == attachment_id).delete(synchronize_session=False)
        db.commit()

    cache.invalidate(attachment_keys.list(_scope(entity_type, entity_id)))
