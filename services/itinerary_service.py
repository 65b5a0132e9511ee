import logging
from typing import List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.Accommodation import Accommodation
from models.Activity import Activity
from models.Attachment import Attachment
from models.Itinerary import Itinerary
from models.Note import Note
from models.Stop import Stop
from schemas import ItineraryRead, ItineraryUpdate, ItineraryWrite
from services.access import OWNER, READ, WRITE, accessible_itineraries, get_itinerary_for, store_errors, validation_error
from services.query_cache import (
    QueryCache,
    accommodation_keys,
    activity_keys,
    attachment_keys,
    collaborator_keys,
    invite_keys,
    itinerary_keys,
    note_keys,
    stop_keys,
)
from services.storage_service import ObjectStorage, remove_objects_quietly
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)


def list_itineraries(db: Session, cache: QueryCache, user: CurrentUser) -> List[ItineraryRead]:
    """Itineraries owned by or shared with the user, newest first."""

    def load():
        rows = accessible_itineraries(db, user).order_by(Itinerary.created_at.desc(), Itinerary.id).all()
        return [ItineraryRead.model_validate(i) for i in rows]

    return cache.fetch(itinerary_keys.list(user.id), load, retry=1)


def get_itinerary(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> ItineraryRead:
    itinerary = get_itinerary_for(db, itinerary_id, user, READ)
    return cache.fetch(itinerary_keys.detail(itinerary_id), lambda: ItineraryRead.model_validate(itinerary))


def create_itinerary(db: Session, cache: QueryCache, user: CurrentUser, payload: ItineraryWrite) -> ItineraryRead:
    with store_errors(db, "create itinerary"):
        itinerary = Itinerary(**payload.model_dump(), user_id=user.id)
        db.add(itinerary)
        db.commit()
        db.refresh(itinerary)

    logger.info("User %s created itinerary %s", user.id, itinerary.id)
    cache.invalidate(itinerary_keys.lists())
    return ItineraryRead.model_validate(itinerary)


def update_itinerary(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: ItineraryUpdate) -> ItineraryRead:
    itinerary = get_itinerary_for(db, itinerary_id, user, WRITE)
    data = payload.model_dump(exclude_unset=True)
    if "title" in data and data["title"] is None:
        raise validation_error("title", "Title cannot be empty")
    if "is_public" in data and data["is_public"] is None:
        data.pop("is_public")

    start_date = data.get("start_date", itinerary.start_date)
    end_date = data.get("end_date", itinerary.end_date)
    if start_date and end_date and end_date < start_date:
        raise validation_error("end_date", "end_date must be on or after start_date")

    with store_errors(db, "update itinerary"):
        for k, v in data.items():
            setattr(itinerary, k, v)
        db.commit()
        db.refresh(itinerary)

    cache.invalidate(itinerary_keys.lists())
    result = ItineraryRead.model_validate(itinerary)
    cache.set(itinerary_keys.detail(itinerary_id), result)
    return result


def delete_itinerary(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, itinerary_id: str) -> None:
    """Delete an itinerary and everything under it.

    Attachments of the whole tree and the sub-stops are removed explicitly
    since those references do not cascade; the database takes care of the rest.
    """
    get_itinerary_for(db, itinerary_id, user, OWNER)

    stop_ids = [r.id for r in db.query(Stop.id).filter(Stop.itinerary_id == itinerary_id).all()]
    activity_ids = [r.id for r in db.query(Activity.id).filter(Activity.itinerary_id == itinerary_id).all()]
    accommodation_ids = [r.id for r in db.query(Accommodation.id).filter(Accommodation.itinerary_id == itinerary_id).all()]
    note_ids = [
        r.id
        for r in db.query(Note.id).filter(
            or_(
                Note.itinerary_id == itinerary_id,
                Note.stop_id.in_(stop_ids),
                Note.activity_id.in_(activity_ids),
                Note.accommodation_id.in_(accommodation_ids),
            )
        ).all()
    ]
    attachments = db.query(Attachment).filter(
        or_(
            Attachment.itinerary_id == itinerary_id,
            Attachment.stop_id.in_(stop_ids),
            Attachment.activity_id.in_(activity_ids),
            Attachment.accommodation_id.in_(accommodation_ids),
            Attachment.note_id.in_(note_ids),
        )
    )
    urls = [a.url for a in attachments.all()]

    with store_errors(db, "delete itinerary"):
        attachments.delete(synchronize_session=False)
        db.query(Stop).filter(
            Stop.itinerary_id == itinerary_id,
            Stop.parent_stop_id.isnot(None),
        ).delete(synchronize_session=False)
        db.query(Itinerary).filter(Itinerary.id == itinerary_id).delete(synchronize_session=False)
        db.commit()

    logger.info("User %s deleted itinerary %s (%d stops, %d attachments)", user.id, itinerary_id, len(stop_ids), len(urls))
    remove_objects_quietly(storage, urls)

    cache.remove(itinerary_keys.detail(itinerary_id))
    cache.invalidate(itinerary_keys.lists())
    for keys in (stop_keys, accommodation_keys, activity_keys, note_keys, collaborator_keys):
        cache.remove(keys.list(itinerary_id))
    cache.invalidate(stop_keys.details())
    cache.invalidate(accommodation_keys.details())
    cache.invalidate(activity_keys.details())
    cache.invalidate(attachment_keys.lists())
    cache.invalidate(invite_keys.lists())
