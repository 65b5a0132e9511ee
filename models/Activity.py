from sqlalchemy import Column, String, Text, DateTime, Float, ForeignKey, func
from database import Base
from models.Itinerary import new_id


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=new_id)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    stop_id = Column(String(36), ForeignKey("stops.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(DateTime, nullable=False)
    location_name = Column(String(250), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    external_link = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
