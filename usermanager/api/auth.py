"""Authentication routes and OIDC helpers.

Login is delegated to the Cognito hosted UI (authorization code + PKCE).
The id token returned there is also the bearer token the console presents to
the /users API.
"""
from __future__ import annotations
import hashlib
import base64
import secrets
import string
from urllib.parse import urlencode

from flask import Blueprint, session, redirect, url_for, request, current_app, render_template
from authlib.integrations.flask_client import OAuth

from usermanager.core.rbac import (
    is_authenticated,
    is_admin,
    current_claims,
    display_name,
    clear_session_tokens,
)

bp = Blueprint("auth", __name__)

OIDC_EXTENSION = "cognito_oidc"


def init_oauth(app, cfg):
    """Register the Cognito OIDC client on the app.

    Skipped when the pool or the app client is not configured; /login then
    fails with a RuntimeError.
    """
    if not (cfg.issuer and cfg.cognito_client_id):
        app.logger.warning("Cognito app client not configured; console login disabled")
        app.extensions[OIDC_EXTENSION] = None
        return None

    oauth = OAuth(app)
    client = oauth.register(
        name="cognito",
        server_metadata_url=cfg.server_metadata_url,
        client_id=cfg.cognito_client_id,
        client_secret=cfg.cognito_client_secret or None,
        client_kwargs={"scope": "openid email profile"},
        fetch_token=lambda: session.get("token"),
    )
    app.extensions[OIDC_EXTENSION] = client
    return client


def get_oidc_client():
    """Get the registered Cognito OIDC client."""
    client = current_app.extensions.get(OIDC_EXTENSION)
    if client is None:
        raise RuntimeError("OIDC provider not initialized (set USER_POOL_ID and COGNITO_CLIENT_ID)")
    return client


# ─────────────────────────────────────────────────────────────────────────────
# PKCE Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _generate_code_verifier(length: int = 64) -> str:
    """Generate PKCE code verifier."""
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _build_code_challenge(code_verifier: str) -> str:
    """Build PKCE code challenge from verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/login")
def login():
    """Initiate OIDC login flow with PKCE."""
    cfg = current_app.config["APP_CONFIG"]
    client = get_oidc_client()

    code_verifier = _generate_code_verifier()
    session["pkce_code_verifier"] = code_verifier

    return client.authorize_redirect(
        redirect_uri=cfg.oidc_redirect_uri,
        code_challenge=_build_code_challenge(code_verifier),
        code_challenge_method="S256",
    )


@bp.route("/callback")
def callback():
    """Handle OIDC callback after successful authentication."""
    client = get_oidc_client()

    code_verifier = session.pop("pkce_code_verifier", None)
    if not code_verifier:
        return redirect(url_for("auth.login"))

    token = client.authorize_access_token(code_verifier=code_verifier)
    claims = dict(token.pop("userinfo", None) or {})
    session["token"] = token
    session["id_claims"] = claims

    current_app.logger.info(
        "[Auth] Signed in %s (groups: %s)",
        claims.get("cognito:username") or claims.get("sub"),
        claims.get("cognito:groups", []),
    )

    if is_admin():
        return redirect(url_for("admin.list_users"))
    return redirect(url_for("auth.index"))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    """Clear the session and sign out of the hosted UI."""
    cfg = current_app.config["APP_CONFIG"]
    clear_session_tokens()
    session.clear()

    if not cfg.cognito_domain:
        return redirect(url_for("auth.index"))

    params = {"client_id": cfg.cognito_client_id, "logout_uri": cfg.post_logout_redirect_uri}
    return redirect(f"{cfg.cognito_domain}/logout?{urlencode(params)}")


@bp.route("/")
def index():
    """Home page."""
    cfg = current_app.config["APP_CONFIG"]
    claims = current_claims()
    return render_template(
        "index.html",
        title="Welcome",
        display_name=display_name(claims, cfg.name_attribute),
        is_admin=is_admin(),
        demo_mode=cfg.demo_mode,
    )
