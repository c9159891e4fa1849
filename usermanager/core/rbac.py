"""Session and group-claim helpers for the admin console."""
from __future__ import annotations
import time
from typing import Optional

import jwt
import requests
from flask import session, current_app

TOKEN_REFRESH_TIMEOUT = 10


def claim_groups(claims: dict) -> list[str]:
    """Group names from a Cognito ``cognito:groups`` claim."""
    groups = (claims or {}).get("cognito:groups") or []
    if isinstance(groups, str):
        groups = [part for part in groups.replace(",", " ").split() if part]
    return list(groups)


def has_admin_group(groups: list[str], admin_group: str) -> bool:
    return admin_group in groups


def is_authenticated() -> bool:
    """Check if user is authenticated."""
    return bool(session.get("token"))


def current_claims() -> dict:
    """Parsed id-token claims of the signed-in user ({} when signed out)."""
    if not is_authenticated():
        return {}
    return session.get("id_claims") or {}


def current_groups() -> list[str]:
    return claim_groups(current_claims())


def is_admin() -> bool:
    """Whether the signed-in user carries the admin group claim.

    Only drives what the console displays; the API authorizer enforces access.
    """
    if not is_authenticated():
        return False
    cfg = current_app.config["APP_CONFIG"]
    return has_admin_group(current_groups(), cfg.admin_group)


def current_username() -> str:
    """Get current user's username."""
    claims = current_claims()
    for key in ("cognito:username", "email", "sub"):
        value = claims.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def display_name(claims: dict, name_attribute: str = "custom:namex") -> str:
    """Human-readable name: custom name attribute, then email, then username."""
    for key in (name_attribute, "email", "cognito:username"):
        value = (claims or {}).get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def current_id_token() -> str:
    token = session.get("token") or {}
    return token.get("id_token") or ""


def current_access_token() -> str:
    token = session.get("token") or {}
    return token.get("access_token") or ""


def decode_id_claims(id_token: str) -> dict:
    """Read id-token claims without verification.

    Used for display only; the API validates the token on every call.
    """
    if not id_token:
        return {}
    try:
        return jwt.decode(id_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return {}


def refresh_session_token() -> Optional[bool]:
    """Refresh user's session token if needed.

    Returns:
        None if no token or not expired
        True if refresh successful
        False if refresh failed
    """
    cfg = current_app.config["APP_CONFIG"]

    token = session.get("token") or {}
    if not token:
        return None

    now = time.time()
    expires_at = token.get("expires_at")

    if expires_at is None:
        expires_in = token.get("expires_in")
        if expires_in is not None:
            try:
                expires_at = now + int(expires_in)
                token["expires_at"] = expires_at
                session["token"] = token
            except (TypeError, ValueError):
                pass

    if expires_at is None:
        return None

    token_refresh_leeway = int(current_app.config.get("OIDC_TOKEN_REFRESH_LEEWAY", 60))
    if expires_at - token_refresh_leeway > now:
        return None

    refresh_token = token.get("refresh_token")
    if not refresh_token:
        current_app.logger.warning("Session token expired without refresh token; clearing session.")
        clear_session_tokens()
        return False

    if not cfg.cognito_domain:
        current_app.logger.warning("COGNITO_DOMAIN not set; cannot refresh session token.")
        clear_session_tokens()
        return False

    data = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": cfg.cognito_client_id,
    }
    auth = (cfg.cognito_client_id, cfg.cognito_client_secret) if cfg.cognito_client_secret else None

    try:
        response = requests.post(
            f"{cfg.cognito_domain}/oauth2/token",
            data=data,
            auth=auth,
            timeout=TOKEN_REFRESH_TIMEOUT,
        )
        response.raise_for_status()
        new_token = response.json()
    except (requests.RequestException, ValueError) as exc:
        current_app.logger.warning("Token refresh failed: %s", exc)
        clear_session_tokens()
        return False

    if not new_token:
        clear_session_tokens()
        return False

    # Cognito does not rotate refresh tokens
    if "refresh_token" not in new_token:
        new_token["refresh_token"] = refresh_token

    expires_in = new_token.get("expires_in")
    if expires_in is not None:
        try:
            new_token["expires_at"] = time.time() + int(expires_in)
        except (TypeError, ValueError):
            new_token.pop("expires_at", None)

    session["token"] = new_token
    session["id_claims"] = decode_id_claims(new_token.get("id_token", ""))
    return True


def clear_session_tokens() -> None:
    """Clear all session tokens."""
    session.pop("token", None)
    session.pop("id_claims", None)
