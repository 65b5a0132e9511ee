import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.Accommodation import Accommodation
from models.Attachment import Attachment
from models.Stop import Stop
from schemas import AccommodationRead, AccommodationUpdate, AccommodationWrite
from services import link_sync
from services.access import READ, WRITE, get_itinerary_for, store_errors, validation_error
from services.note_service import forget_notes, note_ids_under
from services.query_cache import QueryCache, accommodation_keys, attachment_keys, stop_keys
from services.storage_service import ObjectStorage, remove_objects_quietly
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)


def get_accommodation_for(db: Session, accommodation_id: str, user: CurrentUser, level: str = READ) -> Accommodation:
    accommodation = db.query(Accommodation).filter(Accommodation.id == accommodation_id).first()
    if not accommodation:
        raise HTTPException(status_code=404, detail="Accommodation not found")
    get_itinerary_for(db, accommodation.itinerary_id, user, level)
    return accommodation


def _invalidate(cache: QueryCache, accommodation: Accommodation) -> None:
    # every mutation may have touched a stop's back-reference
    cache.invalidate(accommodation_keys.all())
    cache.invalidate(stop_keys.all())
    cache.set(accommodation_keys.detail(accommodation.id), AccommodationRead.model_validate(accommodation))


def list_accommodations(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[AccommodationRead]:
    get_itinerary_for(db, itinerary_id, user, READ)

    def load():
        rows = (
            db.query(Accommodation)
            .filter(Accommodation.itinerary_id == itinerary_id)
            .order_by(Accommodation.created_at.asc(), Accommodation.id)
            .all()
        )
        return [AccommodationRead.model_validate(a) for a in rows]

    return cache.fetch(accommodation_keys.list(itinerary_id), load, retry=1)


def get_accommodation(db: Session, cache: QueryCache, user: CurrentUser, accommodation_id: str) -> AccommodationRead:
    """Return the accommodation as stored.

    `stop_id` is not re-validated: after a stop deletion it may name a stop
    that no longer exists.
    """
    accommodation = get_accommodation_for(db, accommodation_id, user, READ)
    return cache.fetch(accommodation_keys.detail(accommodation_id), lambda: AccommodationRead.model_validate(accommodation))


def link_accommodation_to_existing_stop(
    db: Session, cache: QueryCache, user: CurrentUser, stop_id: str, payload: AccommodationWrite
) -> AccommodationRead:
    """Create an accommodation for a stop and point the stop at it."""
    stop = db.query(Stop).filter(Stop.id == stop_id).first()
    if not stop:
        raise HTTPException(status_code=404, detail="Stop not found")
    get_itinerary_for(db, stop.itinerary_id, user, WRITE)

    data = payload.model_dump(exclude={"stop_id"})
    with store_errors(db, "create accommodation"):
        accommodation = Accommodation(**data, stop_id=stop.id, itinerary_id=stop.itinerary_id)
        db.add(accommodation)
        db.flush()
        link_sync.sync_stop_side(db, accommodation)
        db.commit()
        db.refresh(accommodation)

    _invalidate(cache, accommodation)
    return AccommodationRead.model_validate(accommodation)


def create_standalone_accommodation(
    db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: AccommodationWrite
) -> AccommodationRead:
    """Create an accommodation in an itinerary, linked to a stop only if `stop_id` is given."""
    get_itinerary_for(db, itinerary_id, user, WRITE)
    if payload.stop_id is not None:
        link_sync.find_stop(db, payload.stop_id, itinerary_id)

    with store_errors(db, "create accommodation"):
        accommodation = Accommodation(**payload.model_dump(), itinerary_id=itinerary_id)
        db.add(accommodation)
        db.flush()
        if accommodation.stop_id is not None:
            link_sync.sync_stop_side(db, accommodation)
        db.commit()
        db.refresh(accommodation)

    _invalidate(cache, accommodation)
    return AccommodationRead.model_validate(accommodation)


def update_accommodation(
    db: Session, cache: QueryCache, user: CurrentUser, accommodation_id: str, payload: AccommodationUpdate
) -> AccommodationRead:
    """Partial update of an accommodation.

    Only when `stop_id` is part of the payload is the stop side touched: a
    stop id links that stop back, null unlinks every stop pointing here.
    """
    accommodation = get_accommodation_for(db, accommodation_id, user, WRITE)
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is None:
        raise validation_error("name", "Name cannot be empty")
    relink = "stop_id" in data
    if relink and data["stop_id"] is not None:
        link_sync.find_stop(db, data["stop_id"], accommodation.itinerary_id)

    with store_errors(db, "update accommodation"):
        for k, v in data.items():
            setattr(accommodation, k, v)
        db.flush()
        if relink:
            link_sync.sync_stop_side(db, accommodation)
        db.commit()
        db.refresh(accommodation)

    _invalidate(cache, accommodation)
    return AccommodationRead.model_validate(accommodation)


def delete_accommodation(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, accommodation_id: str) -> None:
    """Delete an accommodation after unlinking every stop that points at it."""
    accommodation = get_accommodation_for(db, accommodation_id, user, WRITE)
    itinerary_id = accommodation.itinerary_id
    note_ids = note_ids_under(db, accommodation_ids=[accommodation_id])
    urls = [
        a.url
        for a in db.query(Attachment).filter(
            or_(Attachment.accommodation_id == accommodation_id, Attachment.note_id.in_(note_ids))
        ).all()
    ]

    with store_errors(db, "delete accommodation"):
        cleared = link_sync.release_accommodation(db, accommodation.id)
        db.query(Accommodation).filter(Accommodation.id == accommodation.id).delete(synchronize_session=False)
        db.commit()

    logger.info("Deleted accommodation %s (unlinked %d stop(s))", accommodation_id, cleared)
    remove_objects_quietly(storage, urls)
    cache.remove(attachment_keys.list(f"accommodation:{accommodation_id}"))
    forget_notes(cache, itinerary_id, note_ids)
    cache.remove(accommodation_keys.detail(accommodation_id))
    cache.invalidate(accommodation_keys.lists())
    cache.invalidate(stop_keys.all())
