from datetime import datetime
from typing import Optional, List, Literal

from pydantic import BaseModel

from models import Event, Attendee, User
from utils import availability


# -------------------------------
# Requests
# -------------------------------
class EventCreate(BaseModel):
    name: str
    location: str
    date: str
    description: str
    category: str
    limit: int
    price: float = 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Advanced React Workshop",
                "location": "Convention Center - Sao Paulo",
                "date": "2030-02-15T14:00:00",
                "description": "Custom hooks and performance tuning.",
                "category": "technology",
                "limit": 50,
                "price": 0,
            }
        }


class EventUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None

    class Config:
        extra = "forbid"


class RegistrationCreate(BaseModel):
    phone: Optional[str] = None


class UserCreate(BaseModel):
    name: str
    email: str
    password: str


class UserLogin(BaseModel):
    email: str
    password: str


# -------------------------------
# Responses
# -------------------------------
class TokenResponse(BaseModel):
    token: str
    refresh_token: Optional[str] = None


class CheckAuthResponse(BaseModel):
    userID: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, name=user.name, email=user.email, created_at=user.created_at)


class AttendeeOut(BaseModel):
    id: str
    event_id: str
    name: str
    email: str
    phone: Optional[str] = None
    registration_date: datetime
    status: Literal["confirmed", "waitlist"]
    user_type: Literal["participant", "organizer"]

    @classmethod
    def from_attendee(cls, attendee: Attendee) -> "AttendeeOut":
        return cls(
            id=attendee.id,
            event_id=attendee.event_id,
            name=attendee.name,
            email=attendee.email,
            phone=attendee.phone,
            registration_date=attendee.registration_date,
            status=attendee.status,
            user_type=attendee.user_type,
        )


class EventBase(BaseModel):
    id: str
    name: str
    description: str
    location: str
    category: str
    date: datetime
    time: str
    limit: int
    registered: int
    price: float
    organizer_id: str
    organizer_name: str
    organizer_email: str
    status: Literal["upcoming", "ongoing", "completed"]
    availability: str
    created_at: datetime

    @staticmethod
    def event_fields(event: Event) -> dict:
        return dict(
            id=event.id,
            name=event.title,
            description=event.description,
            location=event.location,
            category=event.category,
            date=event.starts_at,
            time=event.time.strftime("%H:%M"),
            limit=event.capacity,
            registered=event.registered_count,
            price=event.price,
            organizer_id=event.organizer_id,
            organizer_name=event.organizer_name,
            organizer_email=event.organizer_email,
            status=event.status,
            availability=availability(event.capacity, event.registered_count),
            created_at=event.created_at,
        )


class EventOut(EventBase):
    attendees: List[str] = []

    @classmethod
    def from_event(cls, event: Event, attendees: List[Attendee]) -> "EventOut":
        return cls(attendees=[a.id for a in attendees], **cls.event_fields(event))


class EventWithAttendees(EventBase):
    attendees: List[AttendeeOut] = []
    confirmed: int = 0
    waitlist: int = 0

    @classmethod
    def from_event(cls, event: Event, attendees: List[Attendee]) -> "EventWithAttendees":
        return cls(
            attendees=[AttendeeOut.from_attendee(a) for a in attendees],
            confirmed=sum(1 for a in attendees if a.status == "confirmed"),
            waitlist=sum(1 for a in attendees if a.status == "waitlist"),
            **cls.event_fields(event),
        )


class OrganizerStats(BaseModel):
    total_events: int
    upcoming_events: int
    total_attendees: int
    confirmed: int
    waitlist: int


class RegistrationStatus(BaseModel):
    registered: bool
    status: Optional[Literal["confirmed", "waitlist"]] = None
