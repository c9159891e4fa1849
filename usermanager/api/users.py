"""REST surface for user administration (/users).

Thin adapter: authorizes the caller, then hands method, path id and raw body
to the shared UserRequestHandler and renders its response.
"""
from __future__ import annotations

from flask import Blueprint, Response, current_app, request

from usermanager.api.decorators import require_admin_token
from usermanager.core.user_handler import UserRequestHandler

bp = Blueprint("users", __name__)

HANDLER_EXTENSION = "user_handler"


def get_user_handler() -> UserRequestHandler:
    return current_app.extensions[HANDLER_EXTENSION]


def _dispatch(user_id: str | None = None) -> Response:
    handler_response = get_user_handler().handle(
        request.method,
        user_id,
        request.get_data(as_text=True) or None,
        origin=request.headers.get("Origin"),
    )
    return Response(
        handler_response.body_json(),
        status=handler_response.status_code,
        headers=handler_response.headers,
        mimetype="application/json",
    )


@bp.route("/users", methods=["GET", "POST", "OPTIONS"])
@require_admin_token
def users_collection():
    """List or create users."""
    return _dispatch()


@bp.route("/users/<path:user_id>", methods=["PUT", "DELETE", "OPTIONS"])
@require_admin_token
def user_item(user_id: str):
    """Update or delete one user."""
    return _dispatch(user_id)
