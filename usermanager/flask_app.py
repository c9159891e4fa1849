"""Flask application factory and bootstrap.

This module provides the create_app() factory for the web deployment: the
/users REST surface, the admin console, login and the health/docs routes.

Gunicorn loads it as ``usermanager.flask_app:create_app()``.
"""
from __future__ import annotations
import hmac
import logging
import os
import secrets
from tempfile import gettempdir
from typing import Optional

from flask import Flask, session, request, g, abort, redirect, url_for
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from usermanager.config import AppConfig, load_settings
from usermanager.core.user_handler import UserRequestHandler


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(config: Optional[AppConfig] = None, user_handler: Optional[UserRequestHandler] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        config: Settings to use (loaded from the environment when omitted)
        user_handler: Request handler for /users (built from config when omitted)
    """
    cfg = config or load_settings()
    if not cfg.secret_key:
        raise RuntimeError("FLASK_SECRET_KEY is required (or set DEMO_MODE=true).")

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg

    logging.getLogger("usermanager").setLevel(cfg.log_level)

    # Flask session configuration
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "usermanager_flask_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = cfg.session_cookie_secure
    app.config["OIDC_TOKEN_REFRESH_LEEWAY"] = int(os.environ.get("OIDC_TOKEN_REFRESH_LEEWAY", "60"))
    app.config["CSRF_SESSION_KEY"] = "_csrf_token"

    Session(app)

    # Trust X-Forwarded-* headers from the load balancer
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    app.extensions["user_handler"] = user_handler or UserRequestHandler.from_config(cfg)

    from usermanager.api import auth
    auth.init_oauth(app, cfg)

    # Register blueprints
    from usermanager.api import account, admin, errors, health, users
    from usermanager.api import docs as docs_routes

    app.register_blueprint(auth.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(admin.bp, url_prefix="/admin")
    app.register_blueprint(account.bp)
    app.register_blueprint(docs_routes.bp)

    errors.register_error_handlers(app)
    _register_middleware(app)
    _register_context_processors(app, cfg)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print("[flask_app] User API registered at /users")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo settings")

    return app


def _is_api_path(path: str) -> bool:
    return path == "/users" or path.startswith("/users/")


def _register_middleware(app: Flask):
    """Register before_request middleware."""

    @app.before_request
    def enforce_csrf() -> None:
        """Validate CSRF token for state-changing console requests.

        The /users API is bearer-token authorized and exempt.
        """
        if _is_api_path(request.path):
            return

        g.csrf_token = _generate_csrf_token()

        if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
            return

        submitted_token = request.form.get("csrf_token") or request.headers.get("X-CSRF-Token", "")
        session_token = session.get(app.config["CSRF_SESSION_KEY"], "")

        if not session_token or not submitted_token or not hmac.compare_digest(session_token, submitted_token):
            abort(400, description="CSRF validation failed")

    @app.before_request
    def ensure_fresh_token():
        """Refresh the session token if expiring soon."""
        from usermanager.core.rbac import is_authenticated, refresh_session_token

        if _is_api_path(request.path) or not is_authenticated():
            return

        endpoint = (request.endpoint or "").rsplit(".", 1)[-1]
        skip_endpoints = {"login", "logout", "callback", "health_check", "readiness_check", "static"}
        if endpoint in skip_endpoints:
            return

        outcome = refresh_session_token()
        if outcome is False and not is_authenticated():
            return redirect(url_for("auth.login"))


def _register_context_processors(app: Flask, cfg: AppConfig):
    """Register context processors for templates."""

    @app.context_processor
    def inject_global_context():
        """Inject global variables into all templates."""
        from usermanager.core.rbac import is_authenticated, is_admin

        return {
            "csrf_token": g.get("csrf_token") or _generate_csrf_token(),
            "is_authenticated": is_authenticated(),
            "is_admin_user": is_admin(),
            "admin_group": cfg.admin_group,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _generate_csrf_token() -> str:
    """Generate or retrieve CSRF token for current session."""
    csrf_session_key = "_csrf_token"
    token = session.get(csrf_session_key)
    if not token:
        token = secrets.token_urlsafe(32)
        session[csrf_session_key] = token
    return token


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
