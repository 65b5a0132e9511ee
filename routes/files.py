"""
Attachment upload, listing and deletion, plus download of stored files.
Supports images, PDFs, plain text and Word documents.
"""
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from schemas import AttachmentRead, EntityType
from services import attachment_service
from services.query_cache import QueryCache, get_query_cache
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(tags=["Files"])


@router.post(
    "/attachments/{entity_type}/{entity_id}",
    response_model=AttachmentRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_attachment(
    entity_type: EntityType,
    entity_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    # one byte past the cap is enough for the size check to reject it
    content = file.file.read(settings.max_upload_bytes + 1)
    return attachment_service.upload_attachment(
        db, cache, storage, user, entity_type, entity_id, content, file.filename, file.content_type
    )


@router.get("/attachments/{entity_type}/{entity_id}", response_model=List[AttachmentRead])
def list_attachments(
    entity_type: EntityType,
    entity_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return attachment_service.list_attachments(db, cache, user, entity_type, entity_id)


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attachment(
    attachment_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    attachment_service.delete_attachment(db, cache, storage, user, attachment_id)
    return None


@router.get("/files/attachments/{path:path}")
def get_attachment_file(path: str, storage: ObjectStorage = Depends(get_storage)):
    """Serve a stored file by its public path"""
    try:
        file_path = storage.resolve(path)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid file path")

    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    media_type = attachment_service.MIME_BY_EXTENSION.get(file_path.suffix.lower().lstrip("."), "application/octet-stream")
    return FileResponse(file_path, media_type=media_type, filename=file_path.name)
