from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import ItineraryRead, ItineraryUpdate, ItineraryWrite
from services import itinerary_service
from services.query_cache import QueryCache, get_query_cache
from services.session_state import SessionRegistry, get_sessions
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/itineraries", tags=["Itineraries"])


@router.get("/", response_model=List[ItineraryRead])
def list_itineraries(
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return itinerary_service.list_itineraries(db, cache, user)


@router.post("/", response_model=ItineraryRead, status_code=status.HTTP_201_CREATED)
def create_itinerary(
    payload: ItineraryWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return itinerary_service.create_itinerary(db, cache, user, payload)


@router.get("/{itinerary_id}", response_model=ItineraryRead)
def get_itinerary(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return itinerary_service.get_itinerary(db, cache, user, itinerary_id)


@router.patch("/{itinerary_id}", response_model=ItineraryRead)
def update_itinerary(
    itinerary_id: str,
    payload: ItineraryUpdate,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return itinerary_service.update_itinerary(db, cache, user, itinerary_id, payload)


@router.delete("/{itinerary_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_itinerary(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    sessions: SessionRegistry = Depends(get_sessions),
    user: CurrentUser = Depends(get_current_user),
):
    itinerary_service.delete_itinerary(db, cache, storage, user, itinerary_id)
    sessions.forget_itinerary(itinerary_id)
    return None
