"""Cognito user management operations."""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from usermanager.core.models import UserRecord

from .client import CognitoClient

logger = logging.getLogger(__name__)


def _attribute_list(attributes: dict[str, str]) -> list[dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in attributes.items()]


def _attribute_map(user: dict) -> dict[str, str]:
    # ListUsers returns "Attributes", AdminGetUser returns "UserAttributes"
    raw = user.get("Attributes") or user.get("UserAttributes") or []
    return {item["Name"]: item.get("Value", "") for item in raw if "Name" in item}


class UserService:
    """Service for managing users in a Cognito user pool."""

    def __init__(
        self,
        client: CognitoClient,
        name_attribute: str = "custom:namex",
        department_attribute: str = "custom:department",
    ):
        """Initialize user service.

        Args:
            client: Pool-bound Cognito client
            name_attribute: Attribute holding the display name
            department_attribute: Attribute holding the department
        """
        self.client = client
        self.name_attribute = name_attribute
        self.department_attribute = department_attribute

    def list_users(self) -> list[dict]:
        """Return every user in the pool, following pagination tokens."""
        return list(self.client.paginate("list_users", "Users"))

    def create_user(
        self,
        username: str,
        temporary_password: str,
        email: str,
        name: str,
        department: str = "",
    ) -> dict:
        """Create a user with a temporary password and a pre-verified email.

        The invitation message is suppressed; the administrator hands the
        temporary password over out of band.

        Returns:
            The created user representation
        """
        attributes = {
            "email": email,
            "email_verified": "true",
            self.name_attribute: name,
            self.department_attribute: department or "",
        }
        resp = self.client.call(
            "admin_create_user",
            Username=username,
            TemporaryPassword=temporary_password,
            UserAttributes=_attribute_list(attributes),
            MessageAction="SUPPRESS",
        )
        logger.info("Created user %s", username)
        return resp.get("User", {})

    def update_attributes(
        self,
        username: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        department: Optional[str] = None,
    ) -> bool:
        """Overwrite the supplied profile attributes.

        Returns:
            True when at least one attribute was sent to the provider
        """
        attributes: dict[str, str] = {}
        if email:
            attributes["email"] = email
            attributes["email_verified"] = "true"
        if name:
            attributes[self.name_attribute] = name
        if department:
            attributes[self.department_attribute] = department
        if not attributes:
            return False
        self.client.call(
            "admin_update_user_attributes",
            Username=username,
            UserAttributes=_attribute_list(attributes),
        )
        logger.info("Updated attributes %s for user %s", sorted(attributes), username)
        return True

    def delete_user(self, username: str) -> None:
        self.client.call("admin_delete_user", Username=username)
        logger.info("Deleted user %s", username)

    def change_password(self, access_token: str, previous_password: str, proposed_password: str) -> None:
        """Change the signed-in user's own password.

        Authorized by the caller's access token rather than pool admin rights.
        """
        self.client.call(
            "change_password",
            pool_scoped=False,
            AccessToken=access_token,
            PreviousPassword=previous_password,
            ProposedPassword=proposed_password,
        )

    def to_record(self, user: dict, groups: list[str]) -> UserRecord:
        """Project a raw Cognito user onto the wire-level UserRecord."""
        attributes = _attribute_map(user)
        created = user.get("UserCreateDate")
        return UserRecord(
            username=user.get("Username", ""),
            email=attributes.get("email"),
            name=attributes.get(self.name_attribute),
            depart=attributes.get(self.department_attribute),
            status=user.get("UserStatus"),
            enabled=user.get("Enabled"),
            created_at=created if isinstance(created, datetime) else None,
            groups=list(groups),
        )
