from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.ItineraryInvite import InviteStatus
from schemas import InviteResponse, InviteStatusUpdate, PendingInvites
from services import invite_service
from services.query_cache import QueryCache, get_query_cache
from services.session_state import SessionRegistry, get_sessions
from utils.auth import CurrentUser, get_current_user

router = APIRouter(prefix="/invitations", tags=["User Invitations"])


def _respond(db: Session, cache: QueryCache, user: CurrentUser, invite_id: str, new_status: str) -> InviteResponse:
    invitation, warning = invite_service.respond_to_invite(db, cache, user, invite_id, new_status)
    verb = "accepted" if new_status == InviteStatus.ACCEPTED.value else "declined"
    return InviteResponse(message=f"Invitation {verb}", invitation=invitation, warning=warning)


@router.get("/pending", response_model=PendingInvites)
def list_pending_invitations(
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    sessions: SessionRegistry = Depends(get_sessions),
    user: CurrentUser = Depends(get_current_user),
):
    """Pending invitations addressed to the current user's email.

    `should_present` is true only the first time invitations show up, so a
    client can open its prompt once per batch.
    """
    invites = invite_service.list_pending_invites(db, cache, user)
    should_present = sessions.invite_presenter(user.id).observe(len(invites))
    return PendingInvites(invites=invites, should_present=should_present)


@router.post("/{invite_id}/accept", response_model=InviteResponse)
def accept_invitation(
    invite_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return _respond(db, cache, user, invite_id, InviteStatus.ACCEPTED.value)


@router.post("/{invite_id}/decline", response_model=InviteResponse)
def decline_invitation(
    invite_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return _respond(db, cache, user, invite_id, InviteStatus.DECLINED.value)


@router.patch("/{invite_id}", response_model=InviteResponse)
def update_invitation_status(
    invite_id: str,
    payload: InviteStatusUpdate,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return _respond(db, cache, user, invite_id, payload.status)
