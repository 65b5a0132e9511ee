# schemas.py (Pydantic v2)
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime


def _check_date_order(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValueError("end_date must be on or after start_date")


# ---------- Itineraries ----------
class ItineraryBase(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_public: bool = False

class ItineraryWrite(ItineraryBase):
    @model_validator(mode="after")
    def check_dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self

class ItineraryUpdate(BaseModel):
    """Partial update - only the fields sent are written"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_public: Optional[bool] = None

class ItineraryRead(ItineraryBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------- Stops ----------
class StopBase(BaseModel):
    title: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    location_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    order: Optional[int] = None
    image_url: Optional[str] = None

class StopWrite(StopBase):
    parent_stop_id: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self

class StopUpdate(BaseModel):
    """Partial update. Sending `accommodation_id` (even null) re-links the accommodation"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    location_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    order: Optional[int] = None
    image_url: Optional[str] = None
    parent_stop_id: Optional[str] = None
    accommodation_id: Optional[str] = None

class StopRead(StopBase):
    id: str
    itinerary_id: str
    parent_stop_id: Optional[str] = None
    accommodation_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ScheduleCheck(BaseModel):
    scheduled_at: datetime

class ScheduleCheckResult(BaseModel):
    valid: bool
    error: Optional[str] = None


# ---------- Accommodations ----------
class AccommodationBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: Optional[str] = None
    external_link: Optional[str] = None
    notes: Optional[str] = None

class AccommodationWrite(AccommodationBase):
    stop_id: Optional[str] = None

class AccommodationUpdate(BaseModel):
    """Partial update. Sending `stop_id` (even null) re-links the stop"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = None
    external_link: Optional[str] = None
    notes: Optional[str] = None
    stop_id: Optional[str] = None

class AccommodationRead(AccommodationBase):
    id: str
    itinerary_id: str
    stop_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- Activities ----------
class ActivityBase(BaseModel):
    title: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    scheduled_at: datetime
    location_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    external_link: Optional[str] = None

class ActivityWrite(ActivityBase):
    stop_id: str

class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    location_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    external_link: Optional[str] = None
    stop_id: Optional[str] = None

class ActivityRead(ActivityBase):
    id: str
    itinerary_id: str
    stop_id: str
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- Invites & Collaborators ----------
Role = Literal["viewer", "editor"]

class InviteWrite(BaseModel):
    email: EmailStr
    role: Role = "editor"
    message: Optional[str] = None

class InviteStatusUpdate(BaseModel):
    status: Literal["accepted", "declined"]

class InviteRead(BaseModel):
    id: str
    itinerary_id: str
    inviter_id: str
    email: str
    from_email: str
    role: Role
    status: Literal["pending", "accepted", "declined"]
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class InviteResponse(BaseModel):
    message: str
    invitation: InviteRead
    warning: Optional[str] = None  # collaborator access could not be granted

class PendingInvites(BaseModel):
    invites: List[InviteRead] = []
    should_present: bool = False

class CollaboratorRead(BaseModel):
    id: str
    itinerary_id: str
    user_id: str
    role: Role
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- Notes ----------
class NoteWrite(BaseModel):
    title: Optional[str] = None
    content: str = Field(min_length=1)
    stop_id: Optional[str] = None
    activity_id: Optional[str] = None
    accommodation_id: Optional[str] = None

class NoteRead(NoteWrite):
    id: str
    user_id: Optional[str] = None
    itinerary_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- Attachments ----------
EntityType = Literal["itinerary", "stop", "activity", "accommodation", "note"]

class AttachmentRead(BaseModel):
    id: str
    user_id: Optional[str] = None
    itinerary_id: Optional[str] = None
    stop_id: Optional[str] = None
    activity_id: Optional[str] = None
    accommodation_id: Optional[str] = None
    note_id: Optional[str] = None
    url: str
    type: Literal["image", "pdf", "file"]
    filename: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


# ---------- Session ----------
class CurrentItinerarySelect(BaseModel):
    itinerary_id: str

class CurrentItineraryRead(BaseModel):
    itinerary: Optional[ItineraryRead] = None
