import csv
import io
import inspect
import json

from auth import current_user, require_authenticated
from conftest import add_user, event_payload, login


def create_event(client, headers, **overrides):
    response = client.post("/events/", json=event_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "Welcome to EventHub API"


# -------------------------------
# Auth and users
# -------------------------------
def test_register_user(client):
    response = client.post("/users/", json={
        "name": "Test User",
        "email": "test@example.com",
        "password": "password123",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "test@example.com"
    assert "password" not in body


def test_register_existing_user(client, organizer_user):
    response = client.post("/users/", json={
        "name": "Again",
        "email": "ORGANIZER@example.com",
        "password": "password123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "User already exists"


def test_register_existing_user_with_padded_email(client, organizer_user):
    response = client.post("/users/", json={
        "name": "Again",
        "email": "  organizer@example.com ",
        "password": "password123",
    })
    assert response.status_code == 409
    assert response.json() == {"error": "conflict", "detail": "User already exists"}


def test_register_user_insert_conflict(client, db, organizer_user, monkeypatch):
    # another signup took the email between the lookup and the insert
    monkeypatch.setattr(db, "get_user_by_email", lambda email: None)
    response = client.post("/users/", json={
        "name": "Racer",
        "email": "organizer@example.com",
        "password": "password123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "User already exists"


def test_register_user_missing_fields(client):
    response = client.post("/users/", json={"name": " ", "email": "x@example.com", "password": "pw"})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_login_success(client, organizer_user):
    response = client.post("/auth/login", json={"email": "organizer@example.com", "password": "password123"})
    assert response.status_code == 200
    assert "token" in response.json()
    assert "refresh_token" in response.json()
    assert "token" in response.cookies


def test_login_invalid_credentials(client, organizer_user):
    response = client.post("/auth/login", json={"email": "organizer@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_check_auth(client, organizer_user, auth_headers):
    response = client.get("/auth/check", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"userID": organizer_user.id}


def test_check_auth_with_cookie(client, organizer_user):
    client.post("/auth/login", json={"email": "organizer@example.com", "password": "password123"})
    response = client.get("/auth/check")
    assert response.status_code == 200
    assert response.json()["userID"] == organizer_user.id


def test_auth_dependencies_run_in_threadpool():
    assert not inspect.iscoroutinefunction(current_user)
    assert not inspect.iscoroutinefunction(require_authenticated)


def test_check_auth_anonymous(client):
    response = client.get("/auth/check")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_check_auth_garbage_token(client):
    response = client.get("/auth/check", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_logout_revokes_token(client, auth_headers):
    assert client.get("/auth/logout", headers=auth_headers).status_code == 200
    response = client.get("/auth/check", headers=auth_headers)
    assert response.status_code == 401
    assert response.json()["detail"] == "Session has been revoked"


def test_logout_without_session(client):
    response = client.get("/auth/logout")
    assert response.status_code == 200


def test_refresh_token(client, organizer_user):
    tokens = client.post("/auth/login", json={"email": "organizer@example.com", "password": "password123"}).json()
    client.cookies.clear()
    response = client.post("/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 200
    new_token = response.json()["token"]
    client.cookies.clear()
    assert client.get("/auth/check", headers={"Authorization": f"Bearer {new_token}"}).status_code == 200


def test_access_token_cannot_refresh(client, auth_headers):
    response = client.post("/auth/refresh", headers=auth_headers)
    assert response.status_code == 401


def test_get_user(client, organizer_user, auth_headers):
    response = client.get(f"/users/{organizer_user.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Test Organizer"


def test_get_user_not_found(client, auth_headers):
    response = client.get("/users/missing", headers=auth_headers)
    assert response.status_code == 404


# -------------------------------
# Events
# -------------------------------
def test_create_event(auth_headers, client, organizer_user):
    event = create_event(client, auth_headers, price=25.5)
    assert event["name"] == "Test Event"
    assert event["limit"] == 50
    assert event["registered"] == 0
    assert event["price"] == 25.5
    assert event["status"] == "upcoming"
    assert event["availability"] == "available"
    assert event["organizer_id"] == organizer_user.id
    assert event["organizer_email"] == "organizer@example.com"
    assert event["attendees"] == []
    assert event["time"] == "10:00"


def test_create_event_requires_login(client):
    response = client.post("/events/", json=event_payload())
    assert response.status_code == 401


def test_invalid_capacity(auth_headers, client):
    response = client.post("/events/", json=event_payload(limit=0), headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Capacity must be positive"


def test_nan_price_rejected(auth_headers, client):
    body = json.dumps(event_payload(price=float("nan")))
    response = client.post("/events/", content=body,
                           headers={**auth_headers, "Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"error": "validation_error", "detail": "Price must be a number"}
    assert client.get("/events/").json() == []


def test_past_event_rejected(auth_headers, client):
    response = client.post("/events/", json=event_payload(date="2020-01-01T10:00:00"), headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Event date and time must be in the future"


def test_missing_required_field(auth_headers, client):
    response = client.post("/events/", json=event_payload(location="  "), headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Please fill in all required fields"


def test_invalid_date_format(auth_headers, client):
    response = client.post("/events/", json=event_payload(date="next tuesday"), headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid date format"


def test_list_events(client, auth_headers):
    first = create_event(client, auth_headers, name="First")
    second = create_event(client, auth_headers, name="Second")
    response = client.get("/events/")
    assert response.status_code == 200
    assert [e["id"] for e in response.json()] == [first["id"], second["id"]]


def test_get_event_not_found(client):
    response = client.get("/events/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "not_found", "detail": "Event not found"}


def test_search_and_category(client, auth_headers):
    react = create_event(client, auth_headers, name="React Workshop", category="Technology")
    create_event(client, auth_headers, name="Pottery", description="Clay and wheels", category="art")
    found = client.get("/events/search", params={"term": "REACT"}).json()
    assert [e["id"] for e in found] == [react["id"]]
    by_category = client.get("/events/category", params={"category": "technology"}).json()
    assert [e["id"] for e in by_category] == [react["id"]]


def test_search_within_category(client, auth_headers):
    talk = create_event(client, auth_headers, name="Design Talk", category="Technology")
    create_event(client, auth_headers, name="Design Fair", category="art")
    found = client.get("/events/search", params={"term": "design", "category": "TECHNOLOGY"}).json()
    assert [e["id"] for e in found] == [talk["id"]]
    assert len(client.get("/events/search", params={"term": "design"}).json()) == 2


def test_update_event(client, auth_headers):
    event = create_event(client, auth_headers)
    response = client.put(f"/events/{event['id']}", json={"name": "Renamed", "price": 10}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["price"] == 10
    assert response.json()["limit"] == 50


def test_update_event_capacity_is_immutable(client, auth_headers):
    event = create_event(client, auth_headers)
    response = client.put(f"/events/{event['id']}", json={"limit": 500}, headers=auth_headers)
    assert response.status_code == 422


def test_update_event_by_other_user(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    response = client.put(f"/events/{event['id']}", json={"name": "Mine now"}, headers=participant_headers)
    assert response.status_code == 403


# -------------------------------
# Registrations
# -------------------------------
def test_register_attendee(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    response = client.post(f"/events/{event['id']}/register", json={"phone": "555-0100"},
                           headers=participant_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1
    assert client.get(f"/events/{event['id']}").json()["registered"] == 1
    state = client.get(f"/events/{event['id']}/registration", headers=participant_headers).json()
    assert state == {"registered": True, "status": "confirmed"}


def test_registration_state_anonymous(client, auth_headers):
    event = create_event(client, auth_headers)
    response = client.get(f"/events/{event['id']}/registration")
    assert response.json() == {"registered": False, "status": None}


def test_register_twice_conflicts(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    client.post(f"/events/{event['id']}/register", headers=participant_headers)
    response = client.post(f"/events/{event['id']}/register", headers=participant_headers)
    assert response.status_code == 409
    assert client.get(f"/events/{event['id']}").json()["registered"] == 1


def test_register_unknown_event(client, participant_headers):
    response = client.post("/events/nope/register", headers=participant_headers)
    assert response.status_code == 404


def test_waitlist_and_cancel(client, db, auth_headers, participant_headers):
    event = create_event(client, auth_headers, limit=1)
    add_user(db, "user3", "Late Comer", "late@example.com")
    late_headers = login(client, "late@example.com")

    client.post(f"/events/{event['id']}/register", headers=participant_headers)
    client.post(f"/events/{event['id']}/register", headers=late_headers)
    details = client.get(f"/events/{event['id']}/organizer", headers=auth_headers).json()
    assert [a["status"] for a in details["attendees"]] == ["confirmed", "waitlist"]
    assert details["registered"] == 2
    assert details["confirmed"] == 1 and details["waitlist"] == 1
    assert details["availability"] == "full"

    remaining = client.delete(f"/events/{event['id']}/register", headers=participant_headers)
    assert remaining.status_code == 200
    assert len(remaining.json()) == 1
    details = client.get(f"/events/{event['id']}/organizer", headers=auth_headers).json()
    assert details["registered"] == 1
    assert details["attendees"][0]["status"] == "waitlist"


def test_cancel_without_registration(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    response = client.delete(f"/events/{event['id']}/register", headers=participant_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Registration not found"


def test_organizer_registers_for_own_event(client, auth_headers):
    event = create_event(client, auth_headers)
    client.post(f"/events/{event['id']}/register", headers=auth_headers)
    attendees = client.get(f"/events/{event['id']}/attendees", headers=auth_headers).json()
    assert attendees[0]["user_type"] == "organizer"


def test_my_events(client, auth_headers, participant_headers):
    mine = create_event(client, auth_headers, name="Mine")
    create_event(client, participant_headers, name="Theirs")
    client.post(f"/events/{mine['id']}/register", headers=participant_headers)

    organized = client.get("/events/organizer", headers=auth_headers).json()
    assert [e["name"] for e in organized] == ["Mine"]
    registered = client.get("/events/registered", headers=participant_headers).json()
    assert [e["id"] for e in registered] == [mine["id"]]


def test_organizer_stats(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers, limit=1)
    create_event(client, auth_headers)
    client.post(f"/events/{event['id']}/register", headers=participant_headers)
    client.post(f"/events/{event['id']}/register", headers=auth_headers)
    stats = client.get("/events/organizer/stats", headers=auth_headers).json()
    assert stats == {"total_events": 2, "upcoming_events": 2, "total_attendees": 2, "confirmed": 1, "waitlist": 1}


def test_attendee_list_requires_organizer(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    assert client.get(f"/events/{event['id']}/organizer", headers=participant_headers).status_code == 403
    assert client.get(f"/events/{event['id']}/attendees", headers=participant_headers).status_code == 403


def test_attendee_search(client, db, auth_headers, participant_headers):
    event = create_event(client, auth_headers)
    add_user(db, "user3", "Ana Souza", "ana@example.com")
    client.post(f"/events/{event['id']}/register", headers=participant_headers)
    client.post(f"/events/{event['id']}/register", headers=login(client, "ana@example.com"))
    response = client.get(f"/events/{event['id']}/attendees", params={"search": "SOUZA"}, headers=auth_headers)
    assert [a["email"] for a in response.json()] == ["ana@example.com"]


def test_export_attendees(client, auth_headers, participant_headers):
    event = create_event(client, auth_headers, name="CSV Night")
    client.post(f"/events/{event['id']}/register", json={"phone": "555-0100"}, headers=participant_headers)
    response = client.get(f"/events/{event['id']}/attendees/export", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attendees-csv-night.csv" in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == ["Name", "Email", "Phone", "Registration Date", "Status"]
    assert rows[1][:3] == ["Test Participant", "participant@example.com", "555-0100"]
    assert rows[1][4] == "confirmed"


def test_export_filename_falls_back_to_event_id(client, auth_headers):
    event = create_event(client, auth_headers, name="Café ☕")
    response = client.get(f"/events/{event['id']}/attendees/export", headers=auth_headers)
    assert response.status_code == 200
    assert "attendees-caf.csv" in response.headers["content-disposition"]
    untitled = create_event(client, auth_headers, name="☕☕")
    response = client.get(f"/events/{untitled['id']}/attendees/export", headers=auth_headers)
    assert f"attendees-{untitled['id']}.csv" in response.headers["content-disposition"]
