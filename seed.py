"""Sample events and participants for local development.

Run directly (``python seed.py``) or start the API with ``SEED_MOCK_DATA=1``.
"""
import logging
import random
from datetime import datetime, timedelta

import config
from database import Database
from manager import EventManager, RegistrationManager

logger = logging.getLogger(__name__)

MOCK_EVENTS = [
    {
        "title": "Advanced React Workshop",
        "description": "Advanced React techniques with custom hooks and performance tuning.",
        "days_ahead": 14, "at": (14, 0),
        "location": "Convention Center - Sao Paulo",
        "category": "technology",
        "capacity": 50,
        "organizer_id": "mock-org-1",
        "organizer_name": "Tech Academy",
        "organizer_email": "contact@techacademy.com",
    },
    {
        "title": "Talk: The Future of AI",
        "description": "Trends and market impact of artificial intelligence.",
        "days_ahead": 19, "at": (19, 0),
        "location": "Central Auditorium - Rio de Janeiro",
        "category": "technology",
        "capacity": 100,
        "organizer_id": "mock-org-2",
        "organizer_name": "AI Institute",
        "organizer_email": "contact@aiinstitute.com",
    },
    {
        "title": "Entrepreneurs Meetup",
        "description": "Networking and experience sharing between founders from many industries.",
        "days_ahead": 24, "at": (18, 30),
        "location": "Innovation Hub - Belo Horizonte",
        "category": "business",
        "capacity": 80,
        "organizer_id": "mock-org-3",
        "organizer_name": "Startup Hub",
        "organizer_email": "contact@startuphub.com",
    },
    {
        "title": "UX/UI Design Workshop",
        "description": "Fundamentals of user experience and interface design.",
        "days_ahead": 29, "at": (9, 0),
        "location": "Design School - Porto Alegre",
        "category": "design",
        "capacity": 30,
        "organizer_id": "mock-org-4",
        "organizer_name": "Design School",
        "organizer_email": "contact@designschool.com",
    },
]


def initialize_mock_data(db: Database, rng: random.Random | None = None) -> int:
    """Create the sample events when the store is empty. Returns the number of events created."""
    events = EventManager(db)
    if events.list_events():
        return 0
    rng = rng or random.Random()
    registrations = RegistrationManager(db, events)
    today = datetime.now().replace(second=0, microsecond=0)
    for mock in MOCK_EVENTS:
        hour, minute = mock["at"]
        starts_at = (today + timedelta(days=mock["days_ahead"])).replace(hour=hour, minute=minute)
        event = events.create_event(
            title=mock["title"],
            description=mock["description"],
            starts_at=starts_at,
            location=mock["location"],
            category=mock["category"],
            capacity=mock["capacity"],
            organizer_id=mock["organizer_id"],
            organizer_name=mock["organizer_name"],
            organizer_email=mock["organizer_email"],
        )
        for i in range(rng.randrange(int(mock["capacity"] * 0.8))):
            registrations.register_attendee(
                event.id,
                f"Participant {i + 1}",
                f"participant{i + 1}@email.com",
                phone=f"(11) 9999{i:04d}",
            )
        logger.info(f"Seeded event {event.id} with {events.get_event(event.id).registered_count} attendees")
    return len(MOCK_EVENTS)


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    database = Database(config.DATABASE_PATH)
    try:
        created = initialize_mock_data(database)
        logger.info(f"Created {created} sample events")
    finally:
        database.close()
