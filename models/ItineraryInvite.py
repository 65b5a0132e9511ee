import enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, func
from database import Base
from models.Itinerary import new_id


class InviteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class CollaboratorRole(str, enum.Enum):
    VIEWER = "viewer"
    EDITOR = "editor"


class ItineraryInvite(Base):
    __tablename__ = "itinerary_invites"

    id = Column(String(36), primary_key=True, default=new_id)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    inviter_id = Column(String(128), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    from_email = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=CollaboratorRole.EDITOR.value)
    status = Column(String(20), nullable=False, default=InviteStatus.PENDING.value, index=True)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
