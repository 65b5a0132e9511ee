from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import ActivityRead, ActivityUpdate, ActivityWrite
from services import activity_service
from services.query_cache import QueryCache, get_query_cache
from services.storage_service import ObjectStorage, get_storage
from utils.auth import CurrentUser, get_current_user

router = APIRouter(tags=["Activities"])


@router.get("/itineraries/{itinerary_id}/activities", response_model=List[ActivityRead])
def list_activities(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return activity_service.list_activities(db, cache, user, itinerary_id)


@router.post("/itineraries/{itinerary_id}/activities", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def create_activity(
    itinerary_id: str,
    payload: ActivityWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return activity_service.create_activity(db, cache, user, itinerary_id, payload)


@router.get("/activities/{activity_id}", response_model=ActivityRead)
def get_activity(
    activity_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return activity_service.get_activity(db, cache, user, activity_id)


@router.patch("/activities/{activity_id}", response_model=ActivityRead)
def update_activity(
    activity_id: str,
    payload: ActivityUpdate,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return activity_service.update_activity(db, cache, user, activity_id, payload)


@router.delete("/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_activity(
    activity_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(get_current_user),
):
    activity_service.delete_activity(db, cache, storage, user, activity_id)
    return None
