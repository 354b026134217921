"""HTTP client for the EventHub API.

Every call returns the decoded JSON body. HTTP failures are raised as the
matching ``errors`` class; transport failures become ``NetworkError`` and are
never retried here.
"""
import logging

import requests

import config
from errors import AuthError, NetworkError, error_for_status

logger = logging.getLogger(__name__)


class ApiService:
    def __init__(self, base_url: str = config.API_BASE_URL, session=None, timeout: float = config.REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        # anything with a requests-style request() works, e.g. a TestClient
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token: str | None = None

    @staticmethod
    def _error_message(response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("error")
            if isinstance(detail, list):
                return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
            if detail:
                return str(detail)
        return str(data)

    def _send(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Request {method} {url} failed: {e}")
            raise NetworkError("Could not reach the event service, please try again") from e
        if response.status_code >= 400:
            message = self._error_message(response)
            logger.warning(f"API error {response.status_code} on {method} {path}: {message}")
            raise error_for_status(response.status_code, message)
        return response

    def _request(self, method: str, path: str, **kwargs):
        response = self._send(method, path, **kwargs)
        return response.json() if response.content else None

    # Auth endpoints
    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data

    def logout(self) -> None:
        try:
            self._request("GET", "/auth/logout")
        finally:
            self.token = None

    def validate_auth(self) -> dict | None:
        """{"userID": ...} for a valid session, None when the server rejects it."""
        try:
            return self._request("GET", "/auth/check")
        except AuthError as e:
            logger.info(f"Auth validation failed: {e}")
            return None

    def refresh(self, refresh_token: str) -> dict:
        self.token = refresh_token
        try:
            data = self._request("POST", "/auth/refresh")
        except AuthError:
            self.token = None
            raise
        self.token = data["token"]
        return data

    # User endpoints
    def get_current_user(self) -> dict | None:
        auth_check = self.validate_auth()
        if not auth_check or not auth_check.get("userID"):
            return None
        return self.get_user(auth_check["userID"])

    def get_user(self, user_id: str) -> dict:
        return self._request("GET", f"/users/{user_id}")

    def create_user(self, name: str, email: str, password: str) -> dict:
        return self._request("POST", "/users/", json={"name": name, "email": email, "password": password})

    # Event endpoints
    def get_all_events(self) -> list[dict]:
        return self._request("GET", "/events/")

    def get_event_by_id(self, event_id: str) -> dict:
        return self._request("GET", f"/events/{event_id}")

    def create_event(self, event_data: dict) -> dict:
        logger.info(f"Creating event {event_data.get('name')!r}")
        return self._request("POST", "/events/", json=event_data)

    def update_event(self, event_id: str, changes: dict) -> dict:
        return self._request("PUT", f"/events/{event_id}", json=changes)

    def get_events_by_user(self) -> list[dict]:
        return self._request("GET", "/events/registered")

    def get_events_by_organizer(self) -> list[dict]:
        return self._request("GET", "/events/organizer")

    def get_organizer_stats(self) -> dict:
        return self._request("GET", "/events/organizer/stats")

    def get_events_by_category(self, category: str) -> list[dict]:
        return self._request("GET", "/events/category", params={"category": category})

    def search_events(self, term: str, category: str | None = None) -> list[dict]:
        params = {"term": term}
        if category:
            params["category"] = category
        return self._request("GET", "/events/search", params=params)

    def register_to_event(self, event_id: str, phone: str | None = None) -> list[str]:
        body = {"phone": phone} if phone else None
        return self._request("POST", f"/events/{event_id}/register", json=body)

    def is_registered(self, event_id: str) -> bool:
        return self._request("GET", f"/events/{event_id}/registration")["registered"]

    def cancel_registration(self, event_id: str) -> list[str]:
        return self._request("DELETE", f"/events/{event_id}/register")

    def get_event_with_attendees(self, event_id: str) -> dict:
        return self._request("GET", f"/events/{event_id}/organizer")

    def list_attendees(self, event_id: str, search: str | None = None) -> list[dict]:
        params = {"search": search} if search else None
        return self._request("GET", f"/events/{event_id}/attendees", params=params)

    def export_attendees(self, event_id: str, search: str | None = None) -> str:
        """CSV text of the attendee list."""
        params = {"search": search} if search else None
        return self._send("GET", f"/events/{event_id}/attendees/export", params=params).text
