"""Cognito-specific exceptions for error handling."""
from __future__ import annotations


class CognitoError(Exception):
    """Base exception for all Cognito operations."""
    pass


class CognitoAPIError(CognitoError):
    """Error returned by the Cognito admin API.

    The provider's message is kept verbatim so the request handler can pass
    it through to the caller.

    Attributes:
        code: Cognito error code (e.g. UserNotFoundException)
        message: Error message from the provider
        operation: SDK operation that failed
    """

    def __init__(self, code: str, message: str, operation: str = ""):
        self.code = code
        self.message = message
        self.operation = operation
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, operation={self.operation!r}, message={self.message!r})"


class UserNotFoundError(CognitoAPIError):
    """User lookup failed - username does not exist in the pool."""
    pass


class UserAlreadyExistsError(CognitoAPIError):
    """User creation failed - username already exists."""
    pass


class GroupNotFoundError(CognitoAPIError):
    """Group does not exist in the pool."""
    pass


class InvalidPasswordError(CognitoAPIError):
    """Password rejected by the pool's password policy."""
    pass


class NotAuthorizedError(CognitoAPIError):
    """Caller credentials or token rejected (e.g. wrong current password)."""
    pass


class TooManyRequestsError(CognitoAPIError):
    """Rate or attempt limit exceeded."""
    pass


class ProviderUnavailableError(CognitoError):
    """Cognito could not be reached (connection failure, timeout, missing credentials)."""
    pass


ERROR_CODE_MAP: dict[str, type[CognitoAPIError]] = {
    "UserNotFoundException": UserNotFoundError,
    "UsernameExistsException": UserAlreadyExistsError,
    "ResourceNotFoundException": GroupNotFoundError,
    "InvalidPasswordException": InvalidPasswordError,
    "NotAuthorizedException": NotAuthorizedError,
    "TooManyRequestsException": TooManyRequestsError,
    "LimitExceededException": TooManyRequestsError,
}
