from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, ForeignKey, func
from database import Base
from models.Itinerary import new_id


class Stop(Base):
    __tablename__ = "stops"

    id = Column(String(36), primary_key=True, default=new_id)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    # no cascade: children must be deleted before their parent
    parent_stop_id = Column(String(36), ForeignKey("stops.id"), nullable=True, index=True)
    title = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    location_name = Column(String(250), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    order = Column(Integer, nullable=True)
    # back-reference kept in sync with Accommodation.stop_id by the services, no FK
    accommodation_id = Column(String(36), nullable=True, index=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
