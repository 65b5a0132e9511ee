from sqlalchemy import Column, String, DateTime, ForeignKey, func
from database import Base
from models.Itinerary import new_id

ENTITY_TYPES = ("itinerary", "stop", "activity", "accommodation", "note")


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=True)
    # exactly one owner column is set
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=True, index=True)
    stop_id = Column(String(36), ForeignKey("stops.id"), nullable=True, index=True)
    activity_id = Column(String(36), ForeignKey("activities.id", ondelete="CASCADE"), nullable=True, index=True)
    accommodation_id = Column(String(36), ForeignKey("accommodations.id", ondelete="CASCADE"), nullable=True, index=True)
    note_id = Column(String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=True, index=True)
    url = Column(String(1000), nullable=False)
    type = Column(String(10), nullable=False)  # image | pdf | file
    filename = Column(String(255), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
