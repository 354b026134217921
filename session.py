"""Client-side session handling.

The server-validated token is the source of truth. The local cache only keeps
the flat session keys around between runs and is dropped as soon as the server
rejects the session or cannot be asked.
"""
import json
import logging
import os
from dataclasses import dataclass

import config
from client import ApiService
from errors import AuthError, EventHubError

logger = logging.getLogger(__name__)

SESSION_KEYS = ("isLoggedIn", "userEmail", "userId", "userName", "userType")


class LocalStorage:
    """String key/value store persisted as one JSON object; in memory only when path is None."""

    def __init__(self, path: str | None = None):
        self.path = path
        self._items: dict[str, str] = {}
        if path and os.path.exists(path):
            with open(path, encoding="utf-8") as f:
                self._items = json.load(f)

    def _flush(self):
        if not self.path:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._items, f)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str):
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str):
        if self._items.pop(key, None) is not None:
            self._flush()

    def clear(self):
        self._items = {}
        self._flush()


@dataclass
class ClientSession:
    user: dict | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class SessionGateway:
    def __init__(self, api: ApiService, storage: LocalStorage | None = None):
        self.api = api
        self.storage = storage if storage is not None else LocalStorage(config.SESSION_CACHE_PATH)
        self.session = ClientSession()

    def _remember(self, user: dict):
        self.session = ClientSession(user=user)
        self.storage.set_item("isLoggedIn", "true")
        self.storage.set_item("userEmail", user["email"])
        self.storage.set_item("userId", user["id"])
        self.storage.set_item("userName", user.get("name") or user["email"].split("@")[0])
        self.storage.set_item("userType", "organizer")

    def _forget(self):
        self.session = ClientSession()
        for key in SESSION_KEYS:
            self.storage.remove_item(key)

    def cached_user(self) -> dict | None:
        """Identity from the local cache. Not validated; use check_auth() before trusting it."""
        if self.storage.get_item("isLoggedIn") != "true" or not self.storage.get_item("userEmail"):
            return None
        return {
            "id": self.storage.get_item("userId"),
            "email": self.storage.get_item("userEmail"),
            "name": self.storage.get_item("userName"),
        }

    def check_auth(self) -> ClientSession:
        """Re-validate with the server; the cache is cleared whenever that fails."""
        try:
            user = self.api.get_current_user()
        except EventHubError as e:
            logger.error(f"Auth check failed: {e}")
            self._forget()
            return self.session
        if user:
            self._remember(user)
        else:
            if self.cached_user():
                logger.info("Discarding cached session rejected by the server")
            self._forget()
        return self.session

    def login(self, email: str, password: str) -> ClientSession:
        response = self.api.login(email, password)
        if response.get("token"):
            user = self.api.get_current_user()
            if user:
                self._remember(user)
        return self.session

    def logout(self):
        try:
            self.api.logout()
        except EventHubError as e:
            logger.error(f"Logout failed: {e}")
            self.storage.clear()
        finally:
            self._forget()

    def current_user(self) -> dict | None:
        return self.session.user

    def require_authenticated(self) -> dict:
        if self.session.user is None:
            raise AuthError("Login required")
        return self.session.user
