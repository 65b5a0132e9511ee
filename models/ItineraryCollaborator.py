from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base
from models.Itinerary import new_id


class ItineraryCollaborator(Base):
    __tablename__ = "itinerary_collaborators"
    __table_args__ = (
        UniqueConstraint("itinerary_id", "user_id", name="uq_itinerary_collaborator"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    itinerary = relationship("Itinerary", back_populates="collaborators")
