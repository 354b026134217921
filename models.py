from dataclasses import dataclass
from datetime import datetime, date as date_type, time as time_type
from typing import Optional, Literal

EventStatus = Literal["upcoming", "ongoing", "completed"]
AttendeeStatus = Literal["confirmed", "waitlist"]
UserType = Literal["participant", "organizer"]


@dataclass
class Event:
    id: str
    title: str
    description: str
    date: date_type
    time: time_type
    location: str
    category: str
    capacity: int
    price: float
    organizer_id: str
    organizer_name: str
    organizer_email: str
    status: EventStatus = "upcoming"
    registered_count: int = 0
    created_at: Optional[datetime] = None

    @property
    def starts_at(self) -> datetime:
        """Single instant used for every date comparison."""
        return datetime.combine(self.date, self.time)

    def display_details(self) -> str:
        """Return a string representation of the event details."""
        return f"Event: {self.title}, Date: {self.starts_at}, Capacity: {self.capacity}, Registered: {self.registered_count}"


@dataclass
class Attendee:
    id: str
    event_id: str
    name: str
    email: str
    registration_date: datetime
    status: AttendeeStatus
    user_type: UserType = "participant"
    phone: Optional[str] = None


@dataclass
class User:
    id: str
    name: str
    email: str
    password: str  # bcrypt hash
    created_at: Optional[datetime] = None


@dataclass
class AuthSession:
    id: str  # token jti
    user_id: str
    expires_at: datetime
    revoked: bool = False
