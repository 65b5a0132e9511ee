from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas import CurrentItineraryRead, CurrentItinerarySelect
from services import itinerary_service
from services.access import READ, get_itinerary_for
from services.query_cache import QueryCache, get_query_cache
from services.session_state import SessionRegistry, get_sessions
from utils.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/session", tags=["Session"])


@router.get("/current-itinerary", response_model=CurrentItineraryRead)
def get_current_itinerary(
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    sessions: SessionRegistry = Depends(get_sessions),
    user: CurrentUser = Depends(get_current_user),
):
    itineraries = itinerary_service.list_itineraries(db, cache, user)
    return CurrentItineraryRead(itinerary=sessions.current_itinerary(user.id).get(itineraries))


@router.put("/current-itinerary", response_model=CurrentItineraryRead)
def select_current_itinerary(
    payload: CurrentItinerarySelect,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    sessions: SessionRegistry = Depends(get_sessions),
    user: CurrentUser = Depends(get_current_user),
):
    get_itinerary_for(db, payload.itinerary_id, user, READ)
    current = sessions.current_itinerary(user.id)
    current.set(payload.itinerary_id)
    return CurrentItineraryRead(itinerary=current.get(itinerary_service.list_itineraries(db, cache, user)))


@router.delete("/current-itinerary", status_code=status.HTTP_204_NO_CONTENT)
def clear_current_itinerary(
    sessions: SessionRegistry = Depends(get_sessions),
    user: CurrentUser = Depends(get_current_user),
):
    sessions.current_itinerary(user.id).clear()
    return None
