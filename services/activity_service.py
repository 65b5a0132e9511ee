import logging
from datetime import datetime
from typing import List

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.Activity import Activity
from models.Attachment import Attachment
from models.Stop import Stop
from schemas import ActivityRead, ActivityUpdate, ActivityWrite
from services.access import READ, WRITE, get_itinerary_for, store_errors, validation_error
from services.note_service import forget_notes, note_ids_under
from services.query_cache import QueryCache, activity_keys, attachment_keys
from services.stop_service import check_schedule
from services.storage_service import ObjectStorage, remove_objects_quietly
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)


def _stop_in_itinerary(db: Session, stop_id: str, itinerary_id: str) -> Stop:
    stop = db.query(Stop).filter(Stop.id == stop_id, Stop.itinerary_id == itinerary_id).first()
    if not stop:
        raise validation_error("stop_id", "Stop not found in this itinerary")
    return stop


def validate_schedule(stop: Stop, scheduled_at: datetime) -> None:
    """Reject a schedule outside the stop window. Runs right before every write."""
    result = check_schedule(stop, scheduled_at)
    if not result.valid:
        raise validation_error("scheduled_at", result.error)


def get_activity_for(db: Session, activity_id: str, user: CurrentUser, level: str = READ) -> Activity:
    activity = db.query(Activity).filter(Activity.id == activity_id).first()
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    get_itinerary_for(db, activity.itinerary_id, user, level)
    return activity


def list_activities(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[ActivityRead]:
    get_itinerary_for(db, itinerary_id, user, READ)

    def load():
        rows = (
            db.query(Activity)
            .filter(Activity.itinerary_id == itinerary_id)
            .order_by(Activity.scheduled_at.asc(), Activity.id)
            .all()
        )
        return [ActivityRead.model_validate(a) for a in rows]

    return cache.fetch(activity_keys.list(itinerary_id), load, retry=1)


def get_activity(db: Session, cache: QueryCache, user: CurrentUser, activity_id: str) -> ActivityRead:
    activity = get_activity_for(db, activity_id, user, READ)
    return cache.fetch(activity_keys.detail(activity_id), lambda: ActivityRead.model_validate(activity))


def create_activity(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: ActivityWrite) -> ActivityRead:
    get_itinerary_for(db, itinerary_id, user, WRITE)
    stop = _stop_in_itinerary(db, payload.stop_id, itinerary_id)
    data = payload.model_dump()
    data["scheduled_at"] = data["scheduled_at"].replace(tzinfo=None)
    validate_schedule(stop, data["scheduled_at"])

    with store_errors(db, "create activity"):
        activity = Activity(**data, itinerary_id=itinerary_id)
        db.add(activity)
        db.commit()
        db.refresh(activity)

    cache.invalidate(activity_keys.list(itinerary_id))
    return ActivityRead.model_validate(activity)


def update_activity(db: Session, cache: QueryCache, user: CurrentUser, activity_id: str, payload: ActivityUpdate) -> ActivityRead:
    activity = get_activity_for(db, activity_id, user, WRITE)
    data = payload.model_dump(exclude_unset=True)
    if "title" in data and data["title"] is None:
        raise validation_error("title", "Title cannot be empty")
    if data.get("stop_id") is None:
        data.pop("stop_id", None)
    if data.get("scheduled_at") is None:
        data.pop("scheduled_at", None)
    else:
        data["scheduled_at"] = data["scheduled_at"].replace(tzinfo=None)

    # moving to another stop re-validates the (possibly unchanged) schedule
    stop = _stop_in_itinerary(db, data.get("stop_id", activity.stop_id), activity.itinerary_id)
    validate_schedule(stop, data.get("scheduled_at", activity.scheduled_at))

    with store_errors(db, "update activity"):
        for k, v in data.items():
            setattr(activity, k, v)
        db.commit()
        db.refresh(activity)

    cache.invalidate(activity_keys.list(activity.itinerary_id))
    result = ActivityRead.model_validate(activity)
    cache.set(activity_keys.detail(activity.id), result)
    return result


def delete_activity(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, activity_id: str) -> None:
    activity = get_activity_for(db, activity_id, user, WRITE)
    itinerary_id = activity.itinerary_id
    note_ids = note_ids_under(db, activity_ids=[activity_id])
    urls = [
        a.url
        for a in db.query(Attachment).filter(
            or_(Attachment.activity_id == activity_id, Attachment.note_id.in_(note_ids))
        ).all()
    ]

    with store_errors(db, "delete activity"):
        db.query(Activity).filter(Activity.id == activity_id).delete(synchronize_session=False)
        db.commit()

    remove_objects_quietly(storage, urls)
    cache.remove(activity_keys.detail(activity_id))
    cache.remove(attachment_keys.list(f"activity:{activity_id}"))
    forget_notes(cache, itinerary_id, note_ids)
    cache.invalidate(activity_keys.list(itinerary_id))
