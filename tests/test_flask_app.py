"""Application factory wiring."""
import pytest

from tests.conftest import make_config
from usermanager.core.user_handler import UserRequestHandler
from usermanager.flask_app import create_app


def test_secret_key_required(fake_idp):
    cfg = make_config(secret_key="")
    with pytest.raises(RuntimeError, match="FLASK_SECRET_KEY"):
        create_app(cfg, user_handler=UserRequestHandler(cfg, fake_idp, fake_idp))


def test_blueprints_registered(flask_app):
    rules = {rule.rule for rule in flask_app.url_map.iter_rules()}
    for expected in ("/users", "/users/<path:user_id>", "/admin/users", "/account/password",
                     "/login", "/callback", "/logout", "/health", "/ready", "/openapi.json", "/docs"):
        assert expected in rules


def test_handler_built_from_config_without_pool():
    app = create_app(make_config(user_pool_id=""))
    handler = app.extensions["user_handler"]
    assert handler.users is None
    assert handler.groups is None


def test_session_cookie_settings(flask_app):
    assert flask_app.config["SESSION_COOKIE_HTTPONLY"] is True
    assert flask_app.config["SESSION_COOKIE_SAMESITE"] == "Lax"
    assert flask_app.config["SESSION_COOKIE_SECURE"] is False


def test_csrf_token_issued_on_page_views(client):
    client.get("/")
    with client.session_transaction() as sess:
        assert sess.get("_csrf_token")


@pytest.mark.critical
def test_console_post_without_csrf_rejected(client):
    response = client.post("/logout")
    assert response.status_code == 400


def test_csrf_header_accepted(client):
    client.get("/")
    with client.session_transaction() as sess:
        token = sess["_csrf_token"]
    response = client.post("/logout", headers={"X-CSRF-Token": token})
    assert response.status_code == 302
