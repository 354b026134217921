from datetime import datetime
from io import StringIO
import csv
import math
import secrets
import string
import time

from errors import ValidationError, ForbiddenError

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Millisecond clock followed by random characters, both base36."""
    millis = int(time.time() * 1000)
    return _to_base36(millis) + "".join(secrets.choice(_BASE36) for _ in range(11))


def parse_date(date_str: str) -> datetime:
    """Parse a date string into a naive local datetime."""
    try:
        parsed = datetime.fromisoformat(date_str)
    except ValueError:
        try:
            parsed = datetime.strptime(date_str, "%Y-%m-%d %H:%M")
        except ValueError:
            raise ValidationError("Invalid date format")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def derive_status(starts_at: datetime, now: datetime | None = None) -> str:
    """upcoming before the start instant, ongoing for the rest of that day, completed afterwards."""
    now = now or datetime.now()
    if starts_at > now:
        return "upcoming"
    if starts_at.date() == now.date():
        return "ongoing"
    return "completed"


def availability(capacity: int, registered: int) -> str:
    """Availability label shown next to the registered/capacity counter."""
    percentage = registered / capacity * 100 if capacity else 100
    if percentage >= 100:
        return "full"
    if percentage >= 80:
        return "few spots"
    return "available"


def validate_event_fields(title, description, location, category, starts_at, capacity, price=0, now=None):
    """Checks run by callers before handing fields to the event store."""
    text_fields = (title, description, location, category)
    if any(not (v and v.strip()) for v in text_fields) or starts_at is None or capacity is None:
        raise ValidationError("Please fill in all required fields")
    if capacity <= 0:
        raise ValidationError("Capacity must be positive")
    if price is not None and not math.isfinite(price):
        raise ValidationError("Price must be a number")
    if price is not None and price < 0:
        raise ValidationError("Price cannot be negative")
    if starts_at <= (now or datetime.now()):
        raise ValidationError("Event date and time must be in the future")


def check_event_permission(event, current_user):
    """Check if the user is the organizer of an event."""
    if event.organizer_id != current_user.id:
        raise ForbiddenError("Access denied: you are not the event organizer")


def filter_attendees(attendees, term: str | None):
    """Case-insensitive match on name or email."""
    if not term:
        return list(attendees)
    term = term.lower()
    return [a for a in attendees if term in a.name.lower() or term in a.email.lower()]


def generate_csv(attendees):
    """Generate a CSV string from a list of attendees."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Name", "Email", "Phone", "Registration Date", "Status"])
    for a in attendees:
        writer.writerow([a.name, a.email, a.phone or "", a.registration_date.date().isoformat(), a.status])
    buffer.seek(0)
    return buffer
