"""
Invitations and collaborator management.

An invite moves from ``pending`` to ``accepted`` or ``declined`` exactly once.
Accepting grants collaborator access in a second, best-effort step: the
invite stays accepted even when the collaborator row cannot be written, and
the failure is reported back as a warning.
"""
import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.ItineraryCollaborator import ItineraryCollaborator
from models.ItineraryInvite import InviteStatus, ItineraryInvite
from schemas import CollaboratorRead, InviteRead, InviteWrite
from services.access import OWNER, get_itinerary_for, store_errors
from services.query_cache import QueryCache, collaborator_keys, invite_keys, itinerary_keys
from utils.auth import CurrentUser

logger = logging.getLogger(__name__)

PENDING_SCOPE = "pending"


def pending_key(email: str):
    return invite_keys.list(f"{PENDING_SCOPE}:{email.lower()}")


def _get_invite(db: Session, invite_id: str) -> ItineraryInvite:
    invite = db.query(ItineraryInvite).filter(ItineraryInvite.id == invite_id).first()
    if not invite:
        raise HTTPException(status_code=404, detail="Invitation not found")
    return invite


def _invalidate(cache: QueryCache, itinerary_id: str, email: str) -> None:
    cache.invalidate(invite_keys.list(itinerary_id))
    cache.invalidate(pending_key(email))


# ---------- Inviter side ----------
def create_invite(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, payload: InviteWrite) -> InviteRead:
    get_itinerary_for(db, itinerary_id, user, OWNER)
    email = payload.email.lower()

    if email == user.email.lower():
        raise HTTPException(status_code=409, detail="You cannot invite yourself")

    existing = db.query(ItineraryInvite).filter(
        ItineraryInvite.itinerary_id == itinerary_id,
        ItineraryInvite.email == email,
        ItineraryInvite.status == InviteStatus.PENDING.value,
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="A pending invitation already exists for this email")

    with store_errors(db, "create invitation"):
        invite = ItineraryInvite(
            itinerary_id=itinerary_id,
            inviter_id=user.id,
            email=email,
            from_email=user.email,
            role=payload.role,
            message=payload.message,
            status=InviteStatus.PENDING.value,
        )
        db.add(invite)
        db.commit()
        db.refresh(invite)

    logger.info("User %s invited %s to itinerary %s as %s", user.id, email, itinerary_id, invite.role)
    _invalidate(cache, invite.itinerary_id, invite.email)
    return InviteRead.model_validate(invite)


def list_invites(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[InviteRead]:
    get_itinerary_for(db, itinerary_id, user, OWNER)

    def load():
        rows = (
            db.query(ItineraryInvite)
            .filter(ItineraryInvite.itinerary_id == itinerary_id)
            .order_by(ItineraryInvite.created_at.desc(), ItineraryInvite.id)
            .all()
        )
        return [InviteRead.model_validate(i) for i in rows]

    return cache.fetch(invite_keys.list(itinerary_id), load, retry=1)


def delete_invite(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, invite_id: str) -> None:
    invite = _get_invite(db, invite_id)
    if invite.itinerary_id != itinerary_id or invite.inviter_id != user.id:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invite.status != InviteStatus.PENDING.value:
        raise HTTPException(status_code=409, detail=f"Invitation already {invite.status}")

    email = invite.email
    with store_errors(db, "delete invitation"):
        db.delete(invite)
        db.commit()

    _invalidate(cache, itinerary_id, email)


# ---------- Invitee side ----------
def list_pending_invites(db: Session, cache: QueryCache, user: CurrentUser) -> List[InviteRead]:
    email = user.email.lower()

    def load():
        rows = (
            db.query(ItineraryInvite)
            .filter(
                ItineraryInvite.email == email,
                ItineraryInvite.status == InviteStatus.PENDING.value,
            )
            .order_by(ItineraryInvite.created_at.desc(), ItineraryInvite.id)
            .all()
        )
        return [InviteRead.model_validate(i) for i in rows]

    return cache.fetch(pending_key(email), load, retry=1)


def _grant_access(db: Session, invite: ItineraryInvite, user: CurrentUser) -> Optional[str]:
    """Insert the collaborator row. Returns a warning message on failure."""
    invite_id, itinerary_id, role = invite.id, invite.itinerary_id, invite.role
    try:
        exists = db.query(ItineraryCollaborator.id).filter(
            ItineraryCollaborator.itinerary_id == itinerary_id,
            ItineraryCollaborator.user_id == user.id,
        ).first()
        if exists:
            return None
        db.add(ItineraryCollaborator(itinerary_id=itinerary_id, user_id=user.id, role=role))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Invitation %s accepted but collaborator could not be added", invite_id)
        return f"Invitation accepted, but access could not be granted: {getattr(e, 'orig', None) or e}"
    return None


def respond_to_invite(db: Session, cache: QueryCache, user: CurrentUser, invite_id: str, new_status: str) -> Tuple[InviteRead, Optional[str]]:
    invite = _get_invite(db, invite_id)
    if invite.email.lower() != user.email.lower():
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invite.status != InviteStatus.PENDING.value:
        raise HTTPException(status_code=409, detail=f"Invitation already {invite.status}")
    if new_status not in (InviteStatus.ACCEPTED.value, InviteStatus.DECLINED.value):
        raise HTTPException(status_code=422, detail={"field": "status", "message": "Invalid status"})

    with store_errors(db, "update invitation"):
        invite.status = new_status
        db.commit()
        db.refresh(invite)

    warning = None
    if new_status == InviteStatus.ACCEPTED.value:
        warning = _grant_access(db, invite, user)
        cache.invalidate(itinerary_keys.lists())
        cache.invalidate(collaborator_keys.list(invite.itinerary_id))

    logger.info("User %s %s invitation %s", user.id, new_status, invite.id)
    _invalidate(cache, invite.itinerary_id, invite.email)
    return InviteRead.model_validate(invite), warning


# ---------- Collaborators ----------
def list_collaborators(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str) -> List[CollaboratorRead]:
    get_itinerary_for(db, itinerary_id, user)

    def load():
        rows = (
            db.query(ItineraryCollaborator)
            .filter(ItineraryCollaborator.itinerary_id == itinerary_id)
            .order_by(ItineraryCollaborator.created_at.asc(), ItineraryCollaborator.id)
            .all()
        )
        return [CollaboratorRead.model_validate(c) for c in rows]

    return cache.fetch(collaborator_keys.list(itinerary_id), load, retry=1)


def remove_collaborator(db: Session, cache: QueryCache, user: CurrentUser, itinerary_id: str, collaborator_user_id: str) -> None:
    get_itinerary_for(db, itinerary_id, user, OWNER)
    collaborator = db.query(ItineraryCollaborator).filter(
        ItineraryCollaborator.itinerary_id == itinerary_id,
        ItineraryCollaborator.user_id == collaborator_user_id,
    ).first()
    if not collaborator:
        raise HTTPException(status_code=404, detail="Collaborator not found")

    with store_errors(db, "remove collaborator"):
        db.delete(collaborator)
        db.commit()

    cache.invalidate(collaborator_keys.list(itinerary_id))
    cache.invalidate(itinerary_keys.lists())
