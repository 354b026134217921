from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi import status
from typing import List, Optional
import logging
from datetime import datetime
import re
import sqlite3
from contextlib import asynccontextmanager

import config
from auth import (
    authenticate, create_access_token, create_refresh_token, decode_token, hash_password,
    current_user, oauth2_scheme, require_authenticated, resolve_session, user_from_row,
)
from database import Database, get_db, close_db
from errors import EventHubError, AuthError, ConflictError, NotFoundError, ValidationError
from manager import EventManager, RegistrationManager
from models import Event, User
from schemas import (
    EventCreate, EventUpdate, RegistrationCreate, UserCreate, UserLogin, TokenResponse,
    CheckAuthResponse, UserOut, AttendeeOut, EventOut, EventWithAttendees, OrganizerStats, RegistrationStatus,
)
from utils import parse_date, validate_event_fields, check_event_permission, filter_attendees, generate_csv, generate_id

# Logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


# FastAPI App
@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.SEED_MOCK_DATA:
        from seed import initialize_mock_data
        initialize_mock_data(get_db())
    yield
    logger.info("Closing database connection")
    close_db()

app = FastAPI(title="EventHub", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EventHubError)
async def eventhub_error_handler(request: Request, exc: EventHubError):
    response = JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})
    if isinstance(exc, AuthError):
        response.headers["WWW-Authenticate"] = "Bearer"
        response.delete_cookie(config.SESSION_COOKIE_NAME)
    return response


def get_event_manager(db: Database = Depends(get_db)) -> EventManager:
    return EventManager(db)


def get_registration_manager(db: Database = Depends(get_db)) -> RegistrationManager:
    return RegistrationManager(db)


def _set_session_cookie(response: Response, token: str):
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=config.COOKIE_SECURE,
    )


def _event_out(event: Event, registrations: RegistrationManager) -> EventOut:
    return EventOut.from_event(event, registrations.list_attendees_by_event(event.id))


def _events_out(events: List[Event], registrations: RegistrationManager) -> List[EventOut]:
    return [_event_out(e, registrations) for e in events]


# -------------------------------
# Auth Routes
# -------------------------------
@app.post("/auth/login", response_model=TokenResponse, summary="Login and receive a session token")
def login(credentials: UserLogin, response: Response, db: Database = Depends(get_db)):
    """Authenticate a user, set the session cookie and return the tokens."""
    user = authenticate(db, credentials.email, credentials.password)
    token = create_access_token(db, user.id)
    refresh_token = create_refresh_token(db, user.id)
    _set_session_cookie(response, token)
    logger.info(f"User {user.email} logged in")
    return {"token": token, "refresh_token": refresh_token}


@app.get("/auth/logout", response_model=dict, summary="Revoke the current session")
def logout(request: Request, response: Response, bearer: Optional[str] = Depends(oauth2_scheme),
           db: Database = Depends(get_db)):
    """Revoke the session token server-side and clear the cookie."""
    try:
        user, token_data = resolve_session(request, bearer, db)
    except AuthError:
        logger.info("Logout without a valid session")
    else:
        db.revoke_auth_session(token_data.session_id)
        logger.info(f"User {user.email} logged out")
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@app.get("/auth/check", response_model=CheckAuthResponse, summary="Validate the current session")
def check_auth(user: User = Depends(require_authenticated)):
    return {"userID": user.id}


@app.post("/auth/refresh", response_model=TokenResponse, summary="Refresh access token")
def refresh(response: Response, token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)):
    """Exchange a refresh token (sent as bearer) for a new access token."""
    if not token:
        raise AuthError("Not authenticated")
    token_data = decode_token(db, token, expected_type="refresh")
    if db.get_user(token_data.user_id) is None:
        raise AuthError("User not found")
    access_token = create_access_token(db, token_data.user_id)
    _set_session_cookie(response, access_token)
    logger.info(f"Token refreshed for user {token_data.user_id}")
    return {"token": access_token}


# -------------------------------
# User Routes
# -------------------------------
@app.post("/users/", response_model=UserOut, status_code=status.HTTP_201_CREATED, summary="Register a new user")
def create_user(user: UserCreate, db: Database = Depends(get_db)):
    """Create a user account."""
    email = user.email.strip()
    if not (user.name.strip() and email and user.password):
        raise ValidationError("Please fill in all required fields")
    if db.get_user_by_email(email):
        raise ConflictError("User already exists")
    user_obj = User(generate_id(), user.name.strip(), email, hash_password(user.password), datetime.now())
    try:
        db.add_user(user_obj)
    except sqlite3.IntegrityError:
        raise ConflictError("User already exists")
    logger.info(f"User {user_obj.email} registered")
    return UserOut.from_user(user_obj)


@app.get("/users/{user_id}", response_model=UserOut, summary="Get a user")
def get_user(user_id: str, db: Database = Depends(get_db), current_user: User = Depends(require_authenticated)):
    row = db.get_user(user_id)
    if row is None:
        raise NotFoundError("User not found")
    return UserOut.from_user(user_from_row(row))


# -------------------------------
# Event Routes
# -------------------------------
@app.get("/", response_model=dict, summary="API root endpoint")
def root():
    """Welcome message for the EventHub API."""
    return {"message": "Welcome to EventHub API"}


@app.get("/events/", response_model=List[EventOut], summary="List all events")
def list_events(events: EventManager = Depends(get_event_manager),
                registrations: RegistrationManager = Depends(get_registration_manager)):
    return _events_out(events.list_events(), registrations)


@app.post("/events/", response_model=EventOut, status_code=status.HTTP_201_CREATED, summary="Create a new event")
def create_event(event: EventCreate, current_user: User = Depends(require_authenticated),
                 events: EventManager = Depends(get_event_manager),
                 registrations: RegistrationManager = Depends(get_registration_manager)):
    """Create a new event owned by the current user."""
    starts_at = parse_date(event.date) if event.date else None
    validate_event_fields(event.name, event.description, event.location, event.category,
                          starts_at, event.limit, event.price)
    evt = events.create_event(
        title=event.name.strip(),
        description=event.description.strip(),
        starts_at=starts_at,
        location=event.location.strip(),
        category=event.category.strip(),
        capacity=event.limit,
        price=event.price,
        organizer_id=current_user.id,
        organizer_name=current_user.name,
        organizer_email=current_user.email,
    )
    logger.info(f"Event {evt.id} created by {current_user.id}: {evt.display_details()}")
    return _event_out(evt, registrations)


@app.get("/events/registered", response_model=List[EventOut], summary="Events the caller is registered to")
def registered_events(current_user: User = Depends(require_authenticated),
                      events: EventManager = Depends(get_event_manager),
                      registrations: RegistrationManager = Depends(get_registration_manager)):
    return _events_out(events.list_events_for_attendee(current_user.email), registrations)


@app.get("/events/organizer", response_model=List[EventOut], summary="Events the caller created")
def organizer_events(current_user: User = Depends(require_authenticated),
                     events: EventManager = Depends(get_event_manager),
                     registrations: RegistrationManager = Depends(get_registration_manager)):
    return _events_out(events.list_events_by_organizer(current_user.id), registrations)


@app.get("/events/organizer/stats", response_model=OrganizerStats, summary="Totals over the caller's events")
def organizer_stats(current_user: User = Depends(require_authenticated),
                    events: EventManager = Depends(get_event_manager)):
    return events.organizer_stats(current_user.id)


@app.get("/events/category", response_model=List[EventOut], summary="Filter events by category")
def events_by_category(category: str, events: EventManager = Depends(get_event_manager),
                       registrations: RegistrationManager = Depends(get_registration_manager)):
    return _events_out(events.filter_by_category(category), registrations)


@app.get("/events/search", response_model=List[EventOut], summary="Search events")
def search_events(term: str = "", category: Optional[str] = None,
                  events: EventManager = Depends(get_event_manager),
                  registrations: RegistrationManager = Depends(get_registration_manager)):
    """Case-insensitive match on title, description and location, optionally within one category."""
    return _events_out(events.search_events(term, category), registrations)


@app.get("/events/{event_id}", response_model=EventOut, summary="Get an event")
def get_event(event_id: str, events: EventManager = Depends(get_event_manager),
              registrations: RegistrationManager = Depends(get_registration_manager)):
    return _event_out(events.get_event(event_id), registrations)


@app.put("/events/{event_id}", response_model=EventOut, summary="Update an event")
def update_event(event_id: str, event: EventUpdate, current_user: User = Depends(require_authenticated),
                 events: EventManager = Depends(get_event_manager),
                 registrations: RegistrationManager = Depends(get_registration_manager)):
    """Update an existing event (organizer only). Capacity cannot change."""
    evt = events.get_event(event_id)
    check_event_permission(evt, current_user)
    fields = {
        "title": event.name,
        "description": event.description,
        "location": event.location,
        "category": event.category,
        "starts_at": parse_date(event.date) if event.date else None,
        "price": event.price,
    }
    fields = {k: v.strip() if isinstance(v, str) else v for k, v in fields.items() if v is not None}
    merged = {
        "title": evt.title, "description": evt.description, "location": evt.location,
        "category": evt.category, "price": evt.price, **fields,
    }
    # only a new date has to lie in the future
    validate_event_fields(
        merged["title"], merged["description"], merged["location"], merged["category"],
        fields.get("starts_at", datetime.max), evt.capacity, merged["price"],
    )
    updated = events.update_event(event_id, **fields)
    logger.info(f"Event {event_id} updated by {current_user.id}")
    return _event_out(updated, registrations)


# -------------------------------
# Attendee Routes
# -------------------------------
@app.post("/events/{event_id}/register", response_model=List[str], summary="Register for an event")
def register_attendee(event_id: str, registration: Optional[RegistrationCreate] = None,
                      current_user: User = Depends(require_authenticated),
                      events: EventManager = Depends(get_event_manager),
                      registrations: RegistrationManager = Depends(get_registration_manager)):
    """Register the current user; returns the event's attendee ids."""
    event = events.get_event(event_id)
    user_type = "organizer" if event.organizer_id == current_user.id else "participant"
    att = registrations.register_attendee(
        event_id,
        current_user.name,
        current_user.email,
        phone=registration.phone if registration else None,
        user_type=user_type,
    )
    logger.info(f"Attendee {att.id} registered for event {event_id} ({att.status})")
    return [a.id for a in registrations.list_attendees_by_event(event_id)]


@app.get("/events/{event_id}/registration", response_model=RegistrationStatus,
         summary="Registration state of the caller")
def registration_state(event_id: str, user: Optional[User] = Depends(current_user),
                       registrations: RegistrationManager = Depends(get_registration_manager)):
    """Anonymous callers are reported as not registered."""
    registrations.events.get_event(event_id)
    if user is None or not registrations.is_registered(event_id, user.email):
        return {"registered": False}
    attendee = next(a for a in registrations.list_attendees_by_user(user.email) if a.event_id == event_id)
    return {"registered": True, "status": attendee.status}


@app.delete("/events/{event_id}/register",response_model=List[str], summary="Cancel a registration")
def cancel_registration(event_id: str, current_user: User = Depends(require_authenticated),
                        registrations: RegistrationManager = Depends(get_registration_manager)):
    registrations.cancel_attendee(event_id, current_user.email)
    logger.info(f"Registration of {current_user.email} for event {event_id} cancelled")
    return [a.id for a in registrations.list_attendees_by_event(event_id)]


@app.get("/events/{event_id}/organizer", response_model=EventWithAttendees, summary="Event with its attendees")
def event_with_attendees(event_id: str, current_user: User = Depends(require_authenticated),
                         events: EventManager = Depends(get_event_manager),
                         registrations: RegistrationManager = Depends(get_registration_manager)):
    """Event details plus the full attendee list (organizer only)."""
    event = events.get_event(event_id)
    check_event_permission(event, current_user)
    return EventWithAttendees.from_event(event, registrations.list_attendees_by_event(event_id))


@app.get("/events/{event_id}/attendees", response_model=List[AttendeeOut], summary="List attendees")
def list_attendees(event_id: str, search: Optional[str] = None,
                   current_user: User = Depends(require_authenticated),
                   events: EventManager = Depends(get_event_manager),
                   registrations: RegistrationManager = Depends(get_registration_manager)):
    """Attendees of an event, optionally filtered by name or email (organizer only)."""
    event = events.get_event(event_id)
    check_event_permission(event, current_user)
    attendees = filter_attendees(registrations.list_attendees_by_event(event_id), search)
    return [AttendeeOut.from_attendee(a) for a in attendees]


@app.get("/events/{event_id}/attendees/export", response_model=None, summary="Export attendees as CSV")
def export_attendees(event_id: str, search: Optional[str] = None,
                     current_user: User = Depends(require_authenticated),
                     events: EventManager = Depends(get_event_manager),
                     registrations: RegistrationManager = Depends(get_registration_manager)):
    """Export the attendees of an event as a CSV file (organizer only)."""
    event = events.get_event(event_id)
    check_event_permission(event, current_user)
    attendees = filter_attendees(registrations.list_attendees_by_event(event_id), search)
    csv_data = generate_csv(attendees)
    slug = re.sub(r"[^a-z0-9]+", "-", event.title.lower()).strip("-") or event.id
    filename = f"attendees-{slug}.csv"
    logger.info(f"Attendees exported for event {event_id} by {current_user.id}")
    return StreamingResponse(csv_data, media_type="text/csv",
                             headers={"Content-Disposition": f"attachment; filename={filename}"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
