import logging
import sqlite3
from datetime import datetime, date, time

from models import Event, Attendee
from database import Database
from errors import ConflictError, NotFoundError, ValidationError
from utils import generate_id, derive_status

logger = logging.getLogger(__name__)

EDITABLE_EVENT_FIELDS = ("title", "description", "location", "category", "starts_at", "price")


def registration_status(capacity: int, current_count: int) -> str:
    """Confirmed while the count before this registration is below capacity, waitlist after."""
    return "confirmed" if current_count < capacity else "waitlist"


class EventManager:
    def __init__(self, db: Database):
        """Event store operations on top of the database."""
        self.db = db

    def _to_event(self, row: dict, now: datetime | None = None) -> Event:
        event = Event(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            date=date.fromisoformat(row["date"]),
            time=time.fromisoformat(row["time"]),
            location=row["location"],
            category=row["category"],
            capacity=row["capacity"],
            price=row["price"],
            organizer_id=row["organizer_id"],
            organizer_name=row["organizer_name"],
            organizer_email=row["organizer_email"],
            status=row["status"],
            registered_count=row["registered_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
        status = derive_status(event.starts_at, now)
        if status != event.status:
            self.db.update_event(event.id, status=status)
            event.status = status
        return event

    def create_event(self, *, title: str, description: str, starts_at: datetime, location: str,
                     category: str, capacity: int, organizer_id: str, organizer_name: str,
                     organizer_email: str, price: float = 0) -> Event:
        """Persist a new event. Field validation is the caller's job."""
        row = {
            "id": generate_id(),
            "title": title,
            "description": description,
            "date": starts_at.date().isoformat(),
            "time": starts_at.strftime("%H:%M"),
            "location": location,
            "category": category,
            "capacity": capacity,
            "price": price,
            "organizer_id": organizer_id,
            "organizer_name": organizer_name,
            "organizer_email": organizer_email,
            "status": derive_status(starts_at),
            "registered_count": 0,
            "created_at": datetime.now().isoformat(),
        }
        try:
            self.db.add_event(row)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed: events.id" in str(exc):
                raise ConflictError("Event ID already exists")
            raise ValidationError("Invalid event data")
        logger.debug(f"Stored event {row['id']} for organizer {organizer_id}")
        return self._to_event(row)

    def get_event(self, event_id: str) -> Event:
        """Retrieve an event by ID."""
        row = self.db.get_event(event_id)
        if row is None:
            raise NotFoundError("Event not found")
        return self._to_event(row)

    def list_events(self) -> list[Event]:
        """Retrieve all events in creation order."""
        now = datetime.now()
        return [self._to_event(r, now) for r in self.db.list_events()]

    def list_events_by_organizer(self, organizer_id: str) -> list[Event]:
        now = datetime.now()
        return [self._to_event(r, now) for r in self.db.list_events_by_organizer(organizer_id)]

    def list_events_for_attendee(self, email: str) -> list[Event]:
        now = datetime.now()
        return [self._to_event(r, now) for r in self.db.list_events_for_attendee(email)]

    def update_event(self, event_id: str, **fields) -> Event:
        """Merge fields into an event. Capacity, counters and ownership stay as they are."""
        unknown = set(fields) - set(EDITABLE_EVENT_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        self.get_event(event_id)
        starts_at = fields.pop("starts_at", None)
        if starts_at is not None:
            fields["date"] = starts_at.date().isoformat()
            fields["time"] = starts_at.strftime("%H:%M")
            fields["status"] = derive_status(starts_at)
        self.db.update_event(event_id, **fields)
        return self.get_event(event_id)

    def search_events(self, term: str, category: str | None = None) -> list[Event]:
        """Case-insensitive substring match on title, description and location.

        A non-empty category narrows the result the same way filter_by_category does.
        """
        needle = (term or "").strip().casefold()
        wanted = (category or "").strip().casefold()
        return [
            e for e in self.list_events()
            if (needle in e.title.casefold()
                or needle in e.description.casefold()
                or needle in e.location.casefold())
            and (not wanted or e.category.casefold() == wanted)
        ]

    def filter_by_category(self, category: str) -> list[Event]:
        wanted = (category or "").strip().casefold()
        return [e for e in self.list_events() if e.category.casefold() == wanted]

    def organizer_stats(self, organizer_id: str) -> dict:
        events = self.list_events_by_organizer(organizer_id)
        by_status = self.db.count_attendees_by_status([e.id for e in events])
        return {
            "total_events": len(events),
            "upcoming_events": sum(1 for e in events if e.status == "upcoming"),
            "total_attendees": sum(e.registered_count for e in events),
            "confirmed": by_status["confirmed"],
            "waitlist": by_status["waitlist"],
        }


class RegistrationManager:
    def __init__(self, db: Database, events: EventManager | None = None):
        """Attendee store operations. Event counters are updated by the database in the same transaction."""
        self.db = db
        self.events = events or EventManager(db)

    def _to_attendee(self, row: dict) -> Attendee:
        return Attendee(
            id=row["id"],
            event_id=row["event_id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            registration_date=datetime.fromisoformat(row["registration_date"]),
            status=row["status"],
            user_type=row["user_type"],
        )

    def register_attendee(self, event_id: str, name: str, email: str, phone: str | None = None,
                          user_type: str = "participant") -> Attendee:
        """Register a person for an event; confirmed or waitlisted depending on capacity."""
        self.events.get_event(event_id)
        if self.db.get_attendee(event_id, email):
            raise ConflictError("Already registered for this event")
        attendee = {
            "id": generate_id(),
            "event_id": event_id,
            "name": name,
            "email": email,
            "phone": phone,
            "registration_date": datetime.now().isoformat(),
            "status": None,
            "user_type": user_type,
        }
        try:
            row = self.db.register_attendee(attendee, registration_status)
        except sqlite3.IntegrityError:
            raise ConflictError("Already registered for this event")
        if row is None:
            raise NotFoundError("Event not found")
        return self._to_attendee(row)

    def cancel_attendee(self, event_id: str, email: str) -> None:
        """Remove a registration. Waitlisted attendees are not promoted."""
        self.events.get_event(event_id)
        if self.db.cancel_attendee(event_id, email) == 0:
            raise NotFoundError("Registration not found")

    def list_attendees_by_event(self, event_id: str) -> list[Attendee]:
        self.events.get_event(event_id)
        return [self._to_attendee(r) for r in self.db.list_attendees_for_event(event_id)]

    def list_attendees_by_user(self, email: str) -> list[Attendee]:
        return [self._to_attendee(r) for r in self.db.list_attendees_by_email(email)]

    def is_registered(self, event_id: str, email: str) -> bool:
        return any(a.event_id == event_id for a in self.list_attendees_by_user(email))
