from sqlalchemy import Column, String, Text, DateTime, ForeignKey, func
from database import Base
from models.Itinerary import new_id


class Note(Base):
    __tablename__ = "notes"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=True)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=True, index=True)
    stop_id = Column(String(36), ForeignKey("stops.id", ondelete="CASCADE"), nullable=True, index=True)
    activity_id = Column(String(36), ForeignKey("activities.id", ondelete="CASCADE"), nullable=True, index=True)
    accommodation_id = Column(String(36), ForeignKey("accommodations.id", ondelete="CASCADE"), nullable=True, index=True)
    title = Column(String(150), nullable=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
