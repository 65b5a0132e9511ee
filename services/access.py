"""
Row-level access rules shared by the entity services.

Every lookup filters by the itinerary id plus the owner or collaborator
membership of the current user, so an itinerary the user cannot see is
reported as missing rather than forbidden.
"""
import logging
from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.Itinerary import Itinerary
from models.ItineraryCollaborator import ItineraryCollaborator
from models.ItineraryInvite import CollaboratorRole
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"
OWNER = "owner"


def accessible_itineraries(db: Session, user: CurrentUser):
    """Query of itineraries owned by the user or shared with them."""
    return (
        db.query(Itinerary)
        .outerjoin(
            ItineraryCollaborator,
            (ItineraryCollaborator.itinerary_id == Itinerary.id)
            & (ItineraryCollaborator.user_id == user.id),
        )
        .filter(or_(Itinerary.user_id == user.id, ItineraryCollaborator.id.isnot(None)))
    )


def get_itinerary_for(db: Session, itinerary_id: str, user: CurrentUser, level: str = READ) -> Itinerary:
    """Load an itinerary the user may access at `level` (read, write or owner)."""
    itinerary = db.query(Itinerary).filter(Itinerary.id == itinerary_id).first()
    if not itinerary:
        raise HTTPException(status_code=404, detail="Itinerary not found")

    if itinerary.user_id == user.id:
        return itinerary

    collaborator = db.query(ItineraryCollaborator).filter(
        ItineraryCollaborator.itinerary_id == itinerary_id,
        ItineraryCollaborator.user_id == user.id,
    ).first()

    if collaborator is None:
        if level == READ and itinerary.is_public:
            return itinerary
        raise HTTPException(status_code=404, detail="Itinerary not found")

    if level == OWNER:
        raise HTTPException(status_code=403, detail="Only the itinerary owner can do this")
    if level == WRITE and collaborator.role != CollaboratorRole.EDITOR.value:
        raise HTTPException(status_code=403, detail="Viewers cannot modify this itinerary")
    return itinerary


@contextmanager
def store_errors(db: Session, action: str):
    """Roll back and surface a store failure as a 500 carrying its message.

    Usage: ``with store_errors(db, "update stop"): ...``
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {e.__class__.__name__}: {getattr(e, 'orig', None) or e}",
        )


def validation_error(field: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"field": field, "message": message},
    )
