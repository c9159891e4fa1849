"""Cognito user pool admin client library.

Architecture:
- client.py: boto3 wrapper bound to one pool, with error translation
- users.py: User lifecycle operations (list, create, update, delete, password)
- groups.py: Group membership
- exceptions.py: Typed exceptions for error handling

Usage:
    from usermanager.core.cognito import CognitoClient, UserService, GroupService

    client = CognitoClient("ap-northeast-1_AbCd1234", "ap-northeast-1")
    users = UserService(client)
    groups = GroupService(client)
    print(groups.list_groups_for_user("alice@example.com"))
"""
from .client import CognitoClient, translate_client_error, REQUEST_TIMEOUT, MAX_ATTEMPTS
from .exceptions import (
    CognitoError,
    CognitoAPIError,
    UserNotFoundError,
    UserAlreadyExistsError,
    GroupNotFoundError,
    InvalidPasswordError,
    NotAuthorizedError,
    TooManyRequestsError,
    ProviderUnavailableError,
)
from .users import UserService
from .groups import GroupService

__all__ = [
    # Client
    "CognitoClient",
    "translate_client_error",
    "REQUEST_TIMEOUT",
    "MAX_ATTEMPTS",

    # Exceptions
    "CognitoError",
    "CognitoAPIError",
    "UserNotFoundError",
    "UserAlreadyExistsError",
    "GroupNotFoundError",
    "InvalidPasswordError",
    "NotAuthorizedError",
    "TooManyRequestsError",
    "ProviderUnavailableError",

    # Services
    "UserService",
    "GroupService",
]
