"""
Admin console helpers: HTTP calls to the /users REST API.

The console never touches Cognito directly. Every operation is an HTTP call
to the same API other clients use, authorized with the signed-in user's id
token.
"""

import logging
from typing import Optional
from urllib.parse import quote

import requests
from flask import current_app, request

from usermanager.core.rbac import current_id_token

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds


class ConsoleApiError(Exception):
    """The user API answered with an error (or could not be reached)."""

    def __init__(self, status: int, message: str, details: Optional[dict] = None):
        self.status = status
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConsoleApiClient:
    """Thin requests wrapper around the /users endpoints."""

    def __init__(self, base_url: str, token: str, timeout: int = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _user_url(self, username: str = "") -> str:
        if not username:
            return f"{self.base_url}/users"
        return f"{self.base_url}/users/{quote(username, safe='@')}"

    def _handle(self, response: requests.Response, expected: tuple[int, ...]) -> dict | list:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code in expected:
            return payload
        message = payload.get("message") if isinstance(payload, dict) else None
        raise ConsoleApiError(
            response.status_code,
            message or f"User API returned HTTP {response.status_code}",
            payload if isinstance(payload, dict) else None,
        )

    def list_users(self) -> list[dict]:
        try:
            response = requests.get(self._user_url(), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise ConsoleApiError(503, f"User API request failed: {exc}")
        users = self._handle(response, (200,))
        return users if isinstance(users, list) else []

    def create_user(self, payload: dict) -> dict:
        try:
            response = requests.post(self._user_url(), json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise ConsoleApiError(503, f"User API request failed: {exc}")
        return self._handle(response, (200, 201))

    def update_user(self, username: str, payload: dict) -> dict:
        try:
            response = requests.put(
                self._user_url(username), json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ConsoleApiError(503, f"User API request failed: {exc}")
        return self._handle(response, (200,))

    def delete_user(self, username: str) -> dict:
        try:
            response = requests.delete(self._user_url(username), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise ConsoleApiError(503, f"User API request failed: {exc}")
        return self._handle(response, (200,))


def console_client() -> ConsoleApiClient:
    """Client for the current request: API_BASE_URL (or this app) + session id token."""
    cfg = current_app.config["APP_CONFIG"]
    base_url = cfg.api_base_url or request.url_root
    return ConsoleApiClient(base_url, current_id_token())
