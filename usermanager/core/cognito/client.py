"""Low-level client for the Cognito user pool admin API.

Wraps a boto3 ``cognito-idp`` client: binds the user pool, applies timeouts
and retry limits, and translates SDK failures into typed exceptions.
"""
from __future__ import annotations
import logging
from typing import Any, Iterator, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ERROR_CODE_MAP, CognitoAPIError, ProviderUnavailableError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5
MAX_ATTEMPTS = 3


def translate_client_error(exc: ClientError, operation: str) -> CognitoAPIError:
    """Map a botocore ClientError onto the Cognito exception hierarchy."""
    error = exc.response.get("Error", {}) if hasattr(exc, "response") else {}
    code = error.get("Code", "Unknown")
    message = error.get("Message") or str(exc)
    error_cls = ERROR_CODE_MAP.get(code, CognitoAPIError)
    return error_cls(code, message, operation)


class CognitoClient:
    """Cognito admin client bound to one user pool.

    Usage:
        client = CognitoClient("ap-northeast-1_AbCd1234")
        client.call("admin_delete_user", Username="alice@example.com")
        for user in client.paginate("list_users", "Users"):
            ...
    """

    def __init__(
        self,
        user_pool_id: str,
        region: Optional[str] = None,
        *,
        timeout: int = REQUEST_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        sdk_client: Any = None,
    ):
        """Initialize the client.

        Args:
            user_pool_id: Cognito user pool id
            region: AWS region (boto3 default chain when omitted)
            timeout: Connect/read timeout in seconds
            max_attempts: Total attempts including retries
            sdk_client: Pre-built boto3 client (tests pass a stubbed one)
        """
        if not user_pool_id:
            raise ValueError("user_pool_id is required")
        self.user_pool_id = user_pool_id
        if sdk_client is None:
            config = Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": max_attempts, "mode": "standard"},
            )
            sdk_client = boto3.client("cognito-idp", region_name=region or None, config=config)
        self._client = sdk_client

    def call(self, operation: str, *, pool_scoped: bool = True, **params: Any) -> dict:
        """Invoke an SDK operation, injecting UserPoolId for pool-scoped calls.

        Raises:
            CognitoAPIError: The provider rejected the call
            ProviderUnavailableError: The provider could not be reached
        """
        if pool_scoped:
            params.setdefault("UserPoolId", self.user_pool_id)
        method = getattr(self._client, operation)
        try:
            return method(**params)
        except ClientError as exc:
            raise translate_client_error(exc, operation) from exc
        except BotoCoreError as exc:
            logger.error("Cognito %s failed before reaching the provider: %s", operation, exc)
            raise ProviderUnavailableError(f"Identity provider unavailable: {exc}") from exc

    def paginate(self, operation: str, result_key: str, **params: Any) -> Iterator[dict]:
        """Iterate over every item of a paginated, pool-scoped operation."""
        params.setdefault("UserPoolId", self.user_pool_id)
        paginator = self._client.get_paginator(operation)
        try:
            for page in paginator.paginate(**params):
                yield from page.get(result_key, [])
        except ClientError as exc:
            raise translate_client_error(exc, operation) from exc
        except BotoCoreError as exc:
            logger.error("Cognito %s failed before reaching the provider: %s", operation, exc)
            raise ProviderUnavailableError(f"Identity provider unavailable: {exc}") from exc
