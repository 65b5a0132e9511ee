from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import AccommodationRead, AccommodationUpdate, AccommodationWrite
from services import accommodation_service
from services.query_cache import QueryCache, get_query_cache
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(tags=["Accommodations"])


@router.get("/itineraries/{itinerary_id}/accommodations", response_model=List[AccommodationRead])
def list_accommodations(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return accommodation_service.list_accommodations(db, cache, user, itinerary_id)


@router.post("/itineraries/{itinerary_id}/accommodations", response_model=AccommodationRead, status_code=status.HTTP_201_CREATED)
def create_accommodation(
    itinerary_id: str,
    payload: AccommodationWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return accommodation_service.create_standalone_accommodation(db, cache, user, itinerary_id, payload)


@router.get("/accommodations/{accommodation_id}", response_model=AccommodationRead)
def get_accommodation(
    accommodation_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return accommodation_service.get_accommodation(db, cache, user, accommodation_id)


@router.patch("/accommodations/{accommodation_id}", response_model=AccommodationRead)
def update_accommodation(
    accommodation_id: str,
    payload: AccommodationUpdate,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return accommodation_service.update_accommodation(db, cache, user, accommodation_id, payload)


@router.delete("/accommodations/{accommodation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_accommodation(
    accommodation_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    accommodation_service.delete_accommodation(db, cache, storage, user, accommodation_id)
    return None
