import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import settings
from models.Activity import Activity
from models.Attachment import Attachment
from models.Itinerary import Itinerary
from models.Stop import Stop
from schemas import StopRead, StopUpdate, StopWrite, ScheduleCheckResult
from services import link_sync
from services.access import READ, WRITE, get_itinerary_for, store_errors, validation_error
from services.note_service import forget_notes, note_ids_under
from services.query_cache import QueryCache, accommodation_keys, activity_keys, attachment_keys, stop_keys
from services.storage_service import ObjectStorage, remove_objects_quietly
from utils.auth import CurrentUser
from utils.date_range import describe_stop_window, is_within_stop_range
from utils.geocoding_helpers import geocode_place_to_coords

logger = logging.getLogger(__name__)


# ---------- Tree placement ----------
@dataclass(frozen=True)
class RootStop:
    pass


@dataclass(frozen=True)
class ChildStop:
    parent_id: str


StopPlacement = Union[RootStop, ChildStop]


def resolve_placement(db: Session, itinerary_id: str, parent_stop_id: Optional[str], stop_id: Optional[str] = None) -> StopPlacement:
    """Validate where a stop sits in the two-level tree.

    A child's parent must be a root stop of the same itinerary, and a stop that
    already has children cannot become a child itself.
    """
    if parent_stop_id is None:
        return RootStop()

    if stop_id is not None and parent_stop_id == stop_id:
        raise validation_error("parent_stop_id", "A stop cannot be its own parent")

    parent = db.query(Stop).filter(Stop.id == parent_stop_id, Stop.itinerary_id == itinerary_id).first()
    if not parent:
        raise validation_error("parent_stop_id", "Parent stop not found in this itinerary")
    if parent.parent_stop_id is not None:
        raise validation_error("parent_stop_id", "Sub-stops cannot contain further sub-stops")

    if stop_id is not None:
        has_children = db.query(Stop.id).filter(Stop.parent_stop_id == stop_id).first()
        if has_children:
            raise validation_error("parent_stop_id", "A stop with sub-stops cannot become a sub-stop")

    return ChildStop(parent_id=parent.id)


def _check_dates(itinerary: Itinerary, start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise validation_error("end_date", "end_date must be on or after start_date")
    for field, value in (("start_date", start_date), ("end_date", end_date)):
        if value is None:
            continue
        if itinerary.start_date and value < itinerary.start_date:
            raise validation_error(field, "Stop dates must fall within the itinerary dates")
        if itinerary.end_date and value > itinerary.end_date:
            raise validation_error(field, "Stop dates must fall within the itinerary dates")


def _fill_coordinates(data: dict) -> None:
    if not settings.geocoding_enabled or not data.get("location_name"):
        return
    if data.get("lat") is not None and data.get("lng") is not None:
        return
    result = geocode_place_to_coords(data["location_name"])
    if result:
        data["lat"], data["lng"], _ = result


def _get_stop(db: Session, stop_id: str) -> Stop:
    stop = db.query(Stop).filter(Stop.id == stop_id).first()
    if not stop:
        raise HTTPException(status_code=404, detail="Stop not found")
    return stop


def get_stop_for(db: Session, stop_id: str, user: CurrentUser, level: str = READ) -> Stop:
    stop = _get_stop(db, stop_id)
    get_itinerary_for(db, stop.itinerary_id, user, level)
    return stop


def _invalidate(cache: QueryCache, itinerary_id: str, with_accommodations: bool = False) -> None:
    cache.invalidate(stop_keys.list(itinerary_id))
    if with_accommodations:
        # other stops may have lost their accommodation
        cache.invalidate(stop_keys.details())
        cache.invalidate(accommodation_keys.all())


# ---------- Queries ----------
def list_stops(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[StopRead]:
    get_itinerary_for(db, itinerary_id, user, READ)

    def load():
        stops = (
            db.query(Stop)
            .filter(Stop.itinerary_id == itinerary_id)
            .order_by(Stop.created_at.desc(), Stop.id)
            .all()
        )
        return [StopRead.model_validate(s) for s in stops]

    return cache.fetch(stop_keys.list(itinerary_id), load, retry=1)


def get_stop(db: Session, cache: QueryCache, user: CurrentUser, stop_id: str) -> StopRead:
    stop = get_stop_for(db, stop_id, user, READ)
    return cache.fetch(stop_keys.detail(stop_id), lambda: StopRead.model_validate(stop))


# ---------- Mutations ----------
def create_stop(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: StopWrite) -> StopRead:
    itinerary = get_itinerary_for(db, itinerary_id, user, WRITE)
    resolve_placement(db, itinerary_id, payload.parent_stop_id)
    _check_dates(itinerary, payload.start_date, payload.end_date)

    data = payload.model_dump()
    _fill_coordinates(data)

    with store_errors(db, "create stop"):
        stop = Stop(**data, itinerary_id=itinerary_id)
        db.add(stop)
        db.commit()
        db.refresh(stop)

    _invalidate(cache, itinerary_id)
    return StopRead.model_validate(stop)


def update_stop(db: Session, cache: QueryCache, user: CurrentUser, stop_id: str, payload: StopUpdate) -> StopRead:
    """Partial update of a stop.

    When `accommodation_id` is part of the payload the stop row is written
    first and the accommodation side is brought in line afterwards, in the
    same transaction.
    """
    stop = get_stop_for(db, stop_id, user, WRITE)
    itinerary = db.query(Itinerary).filter(Itinerary.id == stop.itinerary_id).first()
    data = payload.model_dump(exclude_unset=True)
    if "title" in data and data["title"] is None:
        raise validation_error("title", "Title cannot be empty")

    if "parent_stop_id" in data:
        resolve_placement(db, stop.itinerary_id, data["parent_stop_id"], stop_id=stop.id)
    _check_dates(
        itinerary,
        data.get("start_date", stop.start_date),
        data.get("end_date", stop.end_date),
    )
    relink = "accommodation_id" in data
    if relink and data["accommodation_id"] is not None:
        link_sync.find_accommodation(db, data["accommodation_id"], stop.itinerary_id)
    if "location_name" in data and "lat" not in data and "lng" not in data:
        _fill_coordinates(data)

    with store_errors(db, "update stop"):
        for k, v in data.items():
            setattr(stop, k, v)
        db.flush()
        if relink:
            link_sync.sync_accommodation_side(db, stop)
        db.commit()
        db.refresh(stop)

    _invalidate(cache, stop.itinerary_id, with_accommodations=relink)
    result = StopRead.model_validate(stop)
    cache.set(stop_keys.detail(stop.id), result)
    return result


def delete_stop(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, stop_id: str) -> None:
    """Delete a stop together with its attachments and direct sub-stops.

    Order matters because none of these references cascade:
    attachments, then sub-stops, then the stop itself. Activities and notes
    under the removed stops go with the cascade, but the stored files of
    their attachments are collected first. Accommodations that pointed at
    the stop keep their `stop_id`.
    """
    stop = get_stop_for(db, stop_id, user, WRITE)
    itinerary_id = stop.itinerary_id

    child_ids = [row.id for row in db.query(Stop.id).filter(Stop.parent_stop_id == stop_id).all()]
    stop_ids = [stop_id] + child_ids
    activity_ids = [row.id for row in db.query(Activity.id).filter(Activity.stop_id.in_(stop_ids)).all()]
    note_ids = note_ids_under(db, stop_ids=stop_ids, activity_ids=activity_ids)
    doomed = db.query(Attachment).filter(
        or_(
            Attachment.stop_id.in_(stop_ids),
            Attachment.activity_id.in_(activity_ids),
            Attachment.note_id.in_(note_ids),
        )
    )
    urls = [a.url for a in doomed.all()]

    with store_errors(db, "delete stop"):
        doomed.delete(synchronize_session=False)
        db.query(Stop).filter(Stop.parent_stop_id == stop_id).delete(synchronize_session=False)
        db.query(Stop).filter(Stop.id == stop_id).delete(synchronize_session=False)
        db.commit()

    logger.info("Deleted stop %s with %d sub-stop(s) and %d attachment(s)", stop_id, len(child_ids), len(urls))
    remove_objects_quietly(storage, urls)

    for removed in stop_ids:
        cache.remove(stop_keys.detail(removed))
        cache.remove(attachment_keys.list(f"stop:{removed}"))
    for activity_id in activity_ids:
        cache.remove(attachment_keys.list(f"activity:{activity_id}"))
    forget_notes(cache, itinerary_id, note_ids)
    cache.invalidate(stop_keys.list(itinerary_id))
    cache.invalidate(activity_keys.list(itinerary_id))
    cache.invalidate(activity_keys.details())


# ---------- Scheduling ----------
def check_schedule(stop: Stop, scheduled_at) -> ScheduleCheckResult:
    if is_within_stop_range(stop.start_date, stop.end_date, scheduled_at):
        return ScheduleCheckResult(valid=True)
    return ScheduleCheckResult(
        valid=False,
        error=f"The activity must be scheduled {describe_stop_window(stop.start_date, stop.end_date)}",
    )
