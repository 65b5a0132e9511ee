import logging
from typing import Iterable, List

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.Accommodation import Accommodation
from models.Activity import Activity
from models.Attachment import Attachment
from models.Note import Note
from models.Stop import Stop
from schemas import NoteRead, NoteWrite
from services.access import READ, WRITE, get_itinerary_for, store_errors, validation_error
from services.query_cache import QueryCache, attachment_keys, note_keys
from services.storage_service import ObjectStorage, remove_objects_quietly
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)

# field -> model a note may be pinned to
ANCHORS = (
    ("stop_id", Stop),
    ("activity_id", Activity),
    ("accommodation_id", Accommodation),
)


def note_ids_under(
    db: Session,
    stop_ids: Iterable[str] = (),
    activity_ids: Iterable[str] = (),
    accommodation_ids: Iterable[str] = (),
) -> List[str]:
    """Ids of the notes the store will cascade away with these parents."""
    rows = db.query(Note.id).filter(
        or_(
            Note.stop_id.in_(list(stop_ids)),
            Note.activity_id.in_(list(activity_ids)),
            Note.accommodation_id.in_(list(accommodation_ids)),
        )
    ).all()
    return [r.id for r in rows]


def forget_notes(cache: QueryCache, itinerary_id: str, note_ids: Iterable[str]) -> None:
    for note_id in note_ids:
        cache.remove(attachment_keys.list(f"note:{note_id}"))
    cache.invalidate(note_keys.list(itinerary_id))


def list_notes(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[NoteRead]:
    get_itinerary_for(db, itinerary_id, user, READ)

    def load():
        rows = (
            db.query(Note)
            .filter(Note.itinerary_id == itinerary_id)
            .order_by(Note.created_at.desc(), Note.id)
            .all()
        )
        return [NoteRead.model_validate(n) for n in rows]

    return cache.fetch(note_keys.list(itinerary_id), load, retry=1)


def create_note(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: NoteWrite) -> NoteRead:
    """Create a note in an itinerary, optionally pinned to one of its stops, activities or accommodations."""
    get_itinerary_for(db, itinerary_id, user, WRITE)
    data = payload.model_dump()
    for field, model in ANCHORS:
        if data[field] is None:
            continue
        found = db.query(model.id).filter(model.id == data[field], model.itinerary_id == itinerary_id).first()
        if not found:
            raise validation_error(field, f"{model.__name__} not found in this itinerary")

    with store_errors(db, "create note"):
        note = Note(**data, itinerary_id=itinerary_id, user_id=user.id)
        db.add(note)
        db.commit()
        db.refresh(note)

    cache.invalidate(note_keys.list(itinerary_id))
    return NoteRead.model_validate(note)


def delete_note(db: Session, cache: QueryCache, storage: ObjectStorage, user: CurrentUser, note_id: str) -> None:
    note = db.query(Note).filter(Note.id == note_id).first()
    if not note or note.itinerary_id is None:
        raise HTTPException(status_code=404, detail="Note not found")
    itinerary_id = note.itinerary_id
    get_itinerary_for(db, itinerary_id, user, WRITE)
    urls = [a.url for a in db.query(Attachment).filter(Attachment.note_id == note_id).all()]

    with store_errors(db, "delete note"):
        db.query(Note).filter(Note.id == note_id).delete(synchronize_session=False)
        db.commit()

    remove_objects_quietly(storage, urls)
    forget_notes(cache, itinerary_id, [note_id])
