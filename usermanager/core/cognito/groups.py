"""Cognito group membership operations."""
from __future__ import annotations
import logging

from .client import CognitoClient

logger = logging.getLogger(__name__)


class GroupService:
    """Service for managing group membership in a Cognito user pool."""

    def __init__(self, client: CognitoClient):
        """Initialize group service.

        Args:
            client: Pool-bound Cognito client
        """
        self.client = client

    def list_groups_for_user(self, username: str) -> list[str]:
        """Return the names of the groups the user belongs to."""
        return [
            group["GroupName"]
            for group in self.client.paginate("admin_list_groups_for_user", "Groups", Username=username)
            if group.get("GroupName")
        ]

    def add_user_to_group(self, username: str, group_name: str) -> None:
        """Add a user to a group.

        Raises:
            GroupNotFoundError: If the group does not exist in the pool
            UserNotFoundError: If the user does not exist
        """
        self.client.call("admin_add_user_to_group", Username=username, GroupName=group_name)
        logger.info("Added %s to group %s", username, group_name)

    def remove_user_from_group(self, username: str, group_name: str) -> None:
        self.client.call("admin_remove_user_from_group", Username=username, GroupName=group_name)
        logger.info("Removed %s from group %s", username, group_name)
