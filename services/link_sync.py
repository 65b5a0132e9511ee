"""
Stop <-> Accommodation back-reference maintenance.

``Stop.accommodation_id`` and ``Accommodation.stop_id`` must point at each
other, and an accommodation belongs to at most one stop. The schema does not
enforce either rule, so every write path goes through the helpers below.

The helpers only stage changes on the session. Callers write the entity the
request was about first (and flush it), then call the matching helper for the
other side, then commit once: either both sides are stored or neither is.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.Accommodation import Accommodation
from models.Stop import Stop
from services.access import validation_error

logger = logging.getLogger(__name__)


def find_stop(db: Session, stop_id: str, itinerary_id: str) -> Stop:
    stop = db.query(Stop).filter(Stop.id == stop_id).first()
    if not stop:
        raise validation_error("stop_id", "Stop not found")
    if stop.itinerary_id != itinerary_id:
        raise validation_error("stop_id", "Stop belongs to a different itinerary")
    return stop


def find_accommodation(db: Session, accommodation_id: str, itinerary_id: str) -> Accommodation:
    accommodation = db.query(Accommodation).filter(Accommodation.id == accommodation_id).first()
    if not accommodation:
        raise validation_error("accommodation_id", "Accommodation not found")
    if accommodation.itinerary_id != itinerary_id:
        raise validation_error("accommodation_id", "Accommodation belongs to a different itinerary")
    return accommodation


def release_accommodation(db: Session, accommodation_id: str, keep_stop_id: Optional[str] = None) -> int:
    """Clear `accommodation_id` on every stop pointing at the accommodation."""
    query = db.query(Stop).filter(Stop.accommodation_id == accommodation_id)
    if keep_stop_id is not None:
        query = query.filter(Stop.id != keep_stop_id)
    return query.update({Stop.accommodation_id: None}, synchronize_session="fetch")


def release_stop(db: Session, stop_id: str, keep_accommodation_id: Optional[str] = None) -> int:
    """Clear `stop_id` on every accommodation pointing at the stop."""
    query = db.query(Accommodation).filter(Accommodation.stop_id == stop_id)
    if keep_accommodation_id is not None:
        query = query.filter(Accommodation.id != keep_accommodation_id)
    return query.update({Accommodation.stop_id: None}, synchronize_session="fetch")


def sync_stop_side(db: Session, accommodation: Accommodation) -> None:
    """Make the stop side agree with `accommodation.stop_id` (already written)."""
    if accommodation.stop_id is None:
        cleared = release_accommodation(db, accommodation.id)
        logger.info("Unlinked accommodation %s from %d stop(s)", accommodation.id, cleared)
        return

    stop = find_stop(db, accommodation.stop_id, accommodation.itinerary_id)
    release_accommodation(db, accommodation.id, keep_stop_id=stop.id)
    release_stop(db, stop.id, keep_accommodation_id=accommodation.id)
    stop.accommodation_id = accommodation.id
    logger.info("Linked accommodation %s to stop %s", accommodation.id, stop.id)


def sync_accommodation_side(db: Session, stop: Stop) -> None:
    """Make the accommodation side agree with `stop.accommodation_id` (already written)."""
    if stop.accommodation_id is None:
        cleared = release_stop(db, stop.id)
        logger.info("Unlinked stop %s from %d accommodation(s)", stop.id, cleared)
        return

    accommodation = find_accommodation(db, stop.accommodation_id, stop.itinerary_id)
    release_stop(db, stop.id, keep_accommodation_id=accommodation.id)
    release_accommodation(db, accommodation.id, keep_stop_id=stop.id)
    accommodation.stop_id = stop.id
    logger.info("Linked stop %s to accommodation %s", stop.id, accommodation.id)
