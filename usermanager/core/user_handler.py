"""User request handler: the single entry point for /users operations.

Framework-neutral. The Flask blueprint and the Lambda entry point both turn
their request into ``handle(method, user_id, body, origin)`` and render the
returned HandlerResponse.
"""
from __future__ import annotations
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Any, Optional

from usermanager.config import AppConfig
from usermanager.core.cognito import (
    CognitoClient,
    CognitoError,
    GroupService,
    ProviderUnavailableError,
    UserService,
)
from usermanager.core.models import (
    CreateUserRequest,
    UpdateUserRequest,
    UserIdentifier,
    ValidationError,
    parse_json_body,
)
from usermanager.core.reconciler import (
    GroupDelta,
    GroupReconciliationError,
    apply_group_delta,
    reconcile_groups,
)

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = "GET,PUT,DELETE,POST,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token"


class ConfigurationError(Exception):
    """Deployment is missing required configuration (mapped to HTTP 500)."""
    pass


@dataclass
class HandlerResponse:
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)

    def body_json(self) -> str:
        return json.dumps(self.body)

    def to_api_gateway(self) -> dict:
        """API Gateway proxy integration response."""
        return {
            "statusCode": self.status_code,
            "headers": {"Content-Type": "application/json", **self.headers},
            "body": self.body_json(),
        }


def cors_headers(allowed_origins: list[str], origin: Optional[str] = None) -> dict[str, str]:
    """Build the CORS headers carried by every response.

    A literal ``*`` entry allows any origin. Otherwise the request origin is
    echoed back when it matches one of the (shell-style) patterns.
    """
    headers = {
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    }
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and any(fnmatchcase(origin, pattern) for pattern in allowed_origins):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


class UserRequestHandler:
    """Dispatch /users requests onto the Cognito services.

    Usage:
        handler = UserRequestHandler.from_config(load_settings())
        response = handler.handle("GET")
    """

    def __init__(
        self,
        config: AppConfig,
        users: Optional[UserService] = None,
        groups: Optional[GroupService] = None,
    ):
        self.config = config
        self.users = users
        self.groups = groups
        self._routes = {
            "GET": self._list_users,
            "POST": self._create_user,
            "PUT": self._update_user,
            "DELETE": self._delete_user,
        }

    @classmethod
    def from_config(cls, config: AppConfig) -> "UserRequestHandler":
        """Build a handler with Cognito services for the configured pool.

        Services are left unset when no pool is configured; every request is
        then answered with 500.
        """
        if not config.is_configured:
            return cls(config)
        client = CognitoClient(
            config.user_pool_id,
            config.aws_region,
            timeout=config.provider_timeout,
            max_attempts=config.provider_max_attempts,
        )
        users = UserService(client, config.name_attribute, config.department_attribute)
        return cls(config, users, GroupService(client))

    # ─────────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────────
    def handle(
        self,
        method: str,
        user_id: Optional[str] = None,
        body: str | bytes | None = None,
        origin: Optional[str] = None,
    ) -> HandlerResponse:
        headers = cors_headers(self.config.cors_allowed_origins, origin)
        method = (method or "").upper()

        try:
            self._check_configuration()
        except ConfigurationError as exc:
            logger.error("Rejecting %s request: %s", method, exc)
            return HandlerResponse(500, {"message": "Internal configuration error."}, headers)

        if method == "OPTIONS":
            return HandlerResponse(200, {"message": "CORS Preflight Success"}, headers)

        route = self._routes.get(method)
        if route is None:
            return HandlerResponse(405, {"message": f"Unsupported method: {method or 'UNKNOWN'}"}, headers)

        try:
            status, payload = route(user_id, body)
        except ValidationError as exc:
            return HandlerResponse(400, {"message": str(exc)}, headers)
        except GroupReconciliationError as exc:
            return HandlerResponse(400, exc.to_dict(), headers)
        except ProviderUnavailableError as exc:
            logger.error("%s /users: identity provider unavailable: %s", method, exc)
            status = 500 if method == "GET" else 400
            return HandlerResponse(status, {"message": str(exc)}, headers)
        except CognitoError as exc:
            logger.warning("%s /users rejected by identity provider: %r", method, exc)
            return HandlerResponse(400, {"message": str(exc) or "An unknown error occurred."}, headers)
        except Exception as exc:
            logger.exception("%s /users failed", method)
            return HandlerResponse(400, {"message": str(exc) or "An unknown error occurred."}, headers)

        return HandlerResponse(status, payload, headers)

    def _check_configuration(self) -> None:
        if not self.config.user_pool_id:
            raise ConfigurationError("USER_POOL_ID is not set")
        if self.users is None or self.groups is None:
            raise ConfigurationError("Cognito services are not initialized")

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────
    def _list_users(self, user_id: Optional[str], body: Any) -> tuple[int, list[dict]]:
        raw_users = self.users.list_users()
        usernames = [user.get("Username", "") for user in raw_users]

        memberships: list[list[str]] = []
        if usernames:
            workers = min(self.config.group_lookup_workers, len(usernames))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                memberships = list(executor.map(self.groups.list_groups_for_user, usernames))

        by_username = dict(zip(usernames, memberships))
        records = [self.users.to_record(user, by_username.get(user.get("Username", ""), [])) for user in raw_users]
        logger.info("Listed %d users", len(records))
        return 200, [record.to_dict() for record in records]

    def _create_user(self, user_id: Optional[str], body: Any) -> tuple[int, dict]:
        request = CreateUserRequest.from_payload(parse_json_body(body), self.config.group_catalog)

        self.users.create_user(
            username=request.email,
            temporary_password=request.password,
            email=request.email,
            name=request.name,
            department=request.depart,
        )
        report = apply_group_delta(request.email, reconcile_groups((), request.groups), self.groups)

        return 201, {
            "message": f"User {request.email} created successfully.",
            "username": request.email,
            "groups": report.added,
        }

    def _update_user(self, user_id: Optional[str], body: Any) -> tuple[int, dict]:
        identifier = UserIdentifier.from_path(user_id)
        request = UpdateUserRequest.from_payload(identifier.user_id, parse_json_body(body), self.config.group_catalog)

        if request.has_attribute_updates:
            self.users.update_attributes(
                request.user_id,
                email=request.email,
                name=request.name,
                department=request.depart,
            )

        delta = GroupDelta()
        if request.groups_to_set is not None:
            current = self.groups.list_groups_for_user(request.user_id)
            delta = reconcile_groups(current, request.groups_to_set)
        report = apply_group_delta(request.user_id, delta, self.groups)

        return 200, {
            "message": f"User {request.user_id} updated successfully.",
            "username": request.user_id,
            "added": report.added,
            "removed": report.removed,
        }

    def _delete_user(self, user_id: Optional[str], body: Any) -> tuple[int, dict]:
        identifier = UserIdentifier.from_path(user_id)
        self.users.delete_user(identifier.user_id)
        return 200, {"message": f"User {identifier.user_id} deleted successfully."}
