from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import CollaboratorRead, InviteRead, InviteWrite
from services import invite_service
from services.query_cache import QueryCache, get_query_cache
from utils.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/itineraries/{itinerary_id}", tags=["Itinerary Invites"])


@router.post("/invites", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
def create_invite(
    itinerary_id: str,
    payload: InviteWrite,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    """Invite someone to the itinerary by email"""
    return invite_service.create_invite(db, cache, user, itinerary_id, payload)


@router.get("/invites", response_model=List[InviteRead])
def list_invites(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return invite_service.list_invites(db, cache, user, itinerary_id)


@router.delete("/invites/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invite(
    itinerary_id: str,
    invite_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    """Withdraw a pending invitation"""
    invite_service.delete_invite(db, cache, user, itinerary_id, invite_id)
    return None


@router.get("/collaborators", response_model=List[CollaboratorRead])
def list_collaborators(
    itinerary_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return invite_service.list_collaborators(db, cache, user, itinerary_id)


@router.delete("/collaborators/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_collaborator(
    itinerary_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    invite_service.remove_collaborator(db, cache, user, itinerary_id, user_id)
    return None
