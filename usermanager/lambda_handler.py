"""AWS Lambda entry point for API Gateway proxy events.

The managed Cognito authorizer runs upstream in this deployment, so no token
validation happens here.
"""
from __future__ import annotations
import base64
import binascii
import logging
import os
from typing import Any, Optional

from usermanager.config import load_settings
from usermanager.core.user_handler import HandlerResponse, UserRequestHandler, cors_headers

logger = logging.getLogger(__name__)
logging.getLogger("usermanager").setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

_HANDLER: Optional[UserRequestHandler] = None


def get_handler() -> UserRequestHandler:
    """Return the process-wide handler, building it on the first invocation."""
    global _HANDLER
    if _HANDLER is None:
        _HANDLER = UserRequestHandler.from_config(load_settings())
    return _HANDLER


def _header(event: dict, name: str) -> Optional[str]:
    headers = event.get("headers") or {}
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _method(event: dict) -> str:
    method = event.get("httpMethod")
    if not method:
        # HTTP API (payload v2) events
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method", "")
    return method


def _body(event: dict) -> Optional[str]:
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    return body


def handler(event: dict, context: Any = None) -> dict:
    method = _method(event)
    user_id = (event.get("pathParameters") or {}).get("id")
    logger.info("%s %s", method, event.get("path") or event.get("rawPath") or "/users")

    origin = _header(event, "origin")
    request_handler = get_handler()

    try:
        body = _body(event)
    except (binascii.Error, UnicodeDecodeError) as exc:
        logger.warning("Undecodable %s body: %s", method, exc)
        headers = cors_headers(request_handler.config.cors_allowed_origins, origin)
        return HandlerResponse(400, {"message": "Request body is not valid JSON."}, headers).to_api_gateway()

    response = request_handler.handle(method, user_id, body, origin=origin)
    return response.to_api_gateway()
