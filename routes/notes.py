from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import NoteRead, NoteWrite
from services import note_service
from services.query_cache import QueryCache, get_query_cache
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(tags=["Notes"])


@router.get("/itineraries/{itinerary_id}/notes", response_model=List[NoteRead])
def list_notes(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return note_service.list_notes(db, cache, user, itinerary_id)


@router.post("/itineraries/{itinerary_id}/notes", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
def create_note(
    itinerary_id: str,
    payload: NoteWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return note_service.create_note(db, cache, user, itinerary_id, payload)


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    note_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    note_service.delete_note(db, cache, storage, user, note_id)
    return None
