from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import (
    AccommodationRead,
    AccommodationWrite,
    ScheduleCheck,
    ScheduleCheckResult,
    StopRead,
    StopUpdate,
    StopWrite,
)
from services import accommodation_service, stop_service
from services.access import READ
from services.query_cache import QueryCache, get_query_cache
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(tags=["Stops"])


@router.get("/itineraries/{itinerary_id}/stops", response_model=List[StopRead])
def list_stops(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return stop_service.list_stops(db, cache, user, itinerary_id)


@router.post("/itineraries/{itinerary_id}/stops", response_model=StopRead, status_code=status.HTTP_201_CREATED)
def create_stop(
    itinerary_id: str,
    payload: StopWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return stop_service.create_stop(db, cache, user, itinerary_id, payload)


@router.get("/stops/{stop_id}", response_model=StopRead)
def get_stop(
    stop_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return stop_service.get_stop(db, cache, user, stop_id)


@router.patch("/stops/{stop_id}", response_model=StopRead)
def update_stop(
    stop_id: str,
    payload: StopUpdate,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return stop_service.update_stop(db, cache, user, stop_id, payload)


@router.delete("/stops/{stop_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stop(
    stop_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    stop_service.delete_stop(db, cache, storage, user, stop_id)
    return None


@router.post("/stops/{stop_id}/accommodation", response_model=AccommodationRead, status_code=status.HTTP_201_CREATED)
def link_accommodation(
    stop_id: str,
    payload: AccommodationWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    """Create an accommodation already linked to this stop"""
    return accommodation_service.link_accommodation_to_existing_stop(db, cache, user, stop_id, payload)


@router.post("/stops/{stop_id}/schedule-check", response_model=ScheduleCheckResult)
def schedule_check(
    stop_id: str,
    payload: ScheduleCheck,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Check whether a datetime falls inside the stop dates"""
    stop = stop_service.get_stop_for(db, stop_id, user, READ)
    return stop_service.check_schedule(stop, payload.scheduled_at)
