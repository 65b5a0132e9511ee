from sqlalchemy import Column, String, Text, DateTime, ForeignKey, func
from database import Base
from models.Itinerary import new_id


class Accommodation(Base):
    __tablename__ = "accommodations"

    id = Column(String(36), primary_key=True, default=new_id)
    itinerary_id = Column(String(36), ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    # may outlive the stop it points at
    stop_id = Column(String(36), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    address = Column(String(250), nullable=True)
    external_link = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
