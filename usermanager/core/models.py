"""Request and response types for the user API.

Each route gets its own request type, built from the raw JSON body by a
``from_payload`` constructor that raises ValidationError before any provider
call is made.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from .validators import (
    ValidationError,
    require_user_id,
    validate_email,
    validate_group_names,
    validate_name,
)

__all__ = [
    "ValidationError",
    "UserRecord",
    "UserIdentifier",
    "CreateUserRequest",
    "UpdateUserRequest",
    "GROUP_FLAGS",
    "parse_json_body",
]

# POST body flag -> group name
GROUP_FLAGS = {
    "addToAdminGroup": "Admin",
    "addToCreatingBotAllowedGroup": "CreatingBotAllowed",
    "addToPublishAllowedGroup": "PublishAllowed",
}


@dataclass
class UserRecord:
    """A user as returned by GET /users."""
    username: str
    email: Optional[str] = None
    name: Optional[str] = None
    depart: Optional[str] = None
    status: Optional[str] = None
    enabled: Optional[bool] = None
    created_at: Optional[datetime] = None
    groups: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Wire representation; unset optional fields are omitted."""
        data: dict[str, Any] = {"username": self.username}
        for key in ("email", "name", "depart", "status", "enabled"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        data["groups"] = list(self.groups)
        return data


def parse_json_body(body: str | bytes | None) -> dict:
    """Decode a request body that must be a JSON object."""
    if body is None or (isinstance(body, (str, bytes)) and not body.strip()):
        raise ValidationError("Request body is missing.")
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        raise ValidationError("Request body is not valid JSON.")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _flag(payload: dict, key: str) -> bool:
    value = payload.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f"'{key}' must be a boolean")
    return value


@dataclass(frozen=True)
class UserIdentifier:
    """Path identifier of DELETE /users/{id}."""
    user_id: str

    @classmethod
    def from_path(cls, user_id: str | None) -> "UserIdentifier":
        return cls(require_user_id(user_id))


@dataclass(frozen=True)
class CreateUserRequest:
    """Validated POST /users body."""
    email: str
    password: str
    name: str
    depart: str = ""
    groups: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict, catalog: Iterable[str]) -> "CreateUserRequest":
        password = payload.get("password")
        email = payload.get("email")
        name = payload.get("name")
        if not password or not email or not name:
            raise ValidationError("Missing required fields: password, email, and name are required.")
        if not isinstance(password, str):
            raise ValidationError("'password' must be a string")

        requested = [group for flag, group in GROUP_FLAGS.items() if _flag(payload, flag)]
        return cls(
            email=validate_email(email),
            password=password,
            name=validate_name(name, "Name"),
            depart=validate_name(payload.get("depart"), "Department", required=False),
            groups=tuple(validate_group_names(requested, catalog)),
        )


@dataclass(frozen=True)
class UpdateUserRequest:
    """Validated PUT /users/{id} body.

    ``groups_to_set`` is None when the body carries no ``groupsToSet`` key,
    which leaves memberships untouched; an empty set removes every group.
    """
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    depart: Optional[str] = None
    groups_to_set: Optional[frozenset[str]] = None

    @classmethod
    def from_payload(cls, user_id: str | None, payload: dict, catalog: Iterable[str]) -> "UpdateUserRequest":
        user_id = require_user_id(user_id)

        email = payload.get("email")
        name = payload.get("name")
        depart = payload.get("depart")

        groups_to_set = None
        if "groupsToSet" in payload and payload["groupsToSet"] is not None:
            raw_groups = payload["groupsToSet"]
            if not isinstance(raw_groups, list):
                raise ValidationError("'groupsToSet' must be an array of group names")
            groups_to_set = frozenset(validate_group_names(raw_groups, catalog))

        return cls(
            user_id=user_id,
            email=validate_email(email) if email else None,
            name=validate_name(name, "Name") if name else None,
            depart=validate_name(depart, "Department") if depart else None,
            groups_to_set=groups_to_set,
        )

    @property
    def has_attribute_updates(self) -> bool:
        return any(value for value in (self.email, self.name, self.depart))
