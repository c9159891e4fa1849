"""Pytest shared fixtures."""
import os
import pathlib
import sys
import tempfile
import time
from datetime import datetime, timezone
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("FLASK_SESSION_DIR", tempfile.mkdtemp(prefix="usermanager-test-sessions-"))

import jwt
import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives import serialization

from usermanager.config import AppConfig
from usermanager.core.cognito import (
    GroupNotFoundError,
    UserAlreadyExistsError,
    UserNotFoundError,
    UserService,
)
from usermanager.core.user_handler import UserRequestHandler
from usermanager.flask_app import create_app

POOL_ID = "ap-northeast-1_TestPool"
REGION = "ap-northeast-1"
CLIENT_ID = "console-client"
ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{POOL_ID}"


def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        secret_key="test-secret-key",
        session_cookie_secure=False,
        user_pool_id=POOL_ID,
        aws_region=REGION,
        cognito_client_id=CLIENT_ID,
        cognito_domain="https://auth.example.com",
        oidc_redirect_uri="http://localhost/callback",
        post_logout_redirect_uri="http://localhost/",
        api_base_url="http://api.test",
    )
    base.update(overrides)
    return AppConfig(**base)


# ─────────────────────────────────────────────────────────────────────────────
# In-memory identity provider
# ─────────────────────────────────────────────────────────────────────────────
class FakeIdentityProvider:
    """Stands in for both UserService and GroupService.

    ``failures`` maps ("add"|"remove"|"create"|"update"|"delete"|"list_groups", name)
    to an exception raised when that call is made.
    """

    def __init__(self, known_groups=("Admin", "CreatingBotAllowed", "PublishAllowed")):
        self.users: dict[str, dict] = {}
        self.memberships: dict[str, set[str]] = {}
        self.known_groups = set(known_groups)
        self.calls: list[tuple] = []
        self.failures: dict[tuple, Exception] = {}
        self._records = UserService(client=None)

    def _maybe_fail(self, *key):
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]

    def seed(self, username: str, groups=(), **attributes):
        attrs = {"email": username, **attributes}
        self.users[username] = {
            "Username": username,
            "Attributes": [{"Name": k, "Value": v} for k, v in attrs.items()],
            "UserStatus": "CONFIRMED",
            "Enabled": True,
            "UserCreateDate": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        }
        self.memberships[username] = set(groups)

    # UserService surface
    def list_users(self):
        self._maybe_fail("list_users", "")
        return list(self.users.values())

    def create_user(self, username, temporary_password, email, name, department=""):
        self._maybe_fail("create", username)
        if username in self.users:
            raise UserAlreadyExistsError("UsernameExistsException", "User account already exists", "admin_create_user")
        self.seed(username, (), **{"custom:namex": name, "custom:department": department})
        self.users[username]["UserStatus"] = "FORCE_CHANGE_PASSWORD"
        return self.users[username]

    def update_attributes(self, username, email=None, name=None, department=None):
        self._maybe_fail("update", username)
        if username not in self.users:
            raise UserNotFoundError("UserNotFoundException", "User does not exist.", "admin_update_user_attributes")
        return True

    def delete_user(self, username):
        self._maybe_fail("delete", username)
        if username not in self.users:
            raise UserNotFoundError("UserNotFoundException", "User does not exist.", "admin_delete_user")
        del self.users[username]
        self.memberships.pop(username, None)

    def change_password(self, access_token, previous_password, proposed_password):
        self._maybe_fail("change_password", access_token)

    def to_record(self, user, groups):
        return self._records.to_record(user, groups)

    # GroupService surface
    def list_groups_for_user(self, username):
        self._maybe_fail("list_groups", username)
        if username not in self.users:
            raise UserNotFoundError("UserNotFoundException", "User does not exist.", "admin_list_groups_for_user")
        return sorted(self.memberships.get(username, set()))

    def add_user_to_group(self, username, group_name):
        self._maybe_fail("add", group_name)
        if group_name not in self.known_groups:
            raise GroupNotFoundError("ResourceNotFoundException", "Group not found.", "admin_add_user_to_group")
        self.memberships.setdefault(username, set()).add(group_name)

    def remove_user_from_group(self, username, group_name):
        self._maybe_fail("remove", group_name)
        self.memberships.setdefault(username, set()).discard(group_name)


@pytest.fixture()
def fake_idp():
    return FakeIdentityProvider()


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Fail loudly if a unit test reaches for the network."""

    def _guard(method):
        def _blocked(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _blocked

    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(requests, method, _guard(method.upper()))


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app_config():
    return make_config()


@pytest.fixture()
def flask_app(app_config, fake_idp):
    handler = UserRequestHandler(app_config, fake_idp, fake_idp)
    app = create_app(app_config, user_handler=handler)
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(flask_app):
    with flask_app.test_client() as client:
        with flask_app.app_context():
            yield client


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": private_key.public_key(),
    }


class StubSigningKey:
    def __init__(self, key):
        self.key = key


class StubJWKSClient:
    """Replaces PyJWKClient: always returns the test public key."""

    def __init__(self, public_key):
        self.public_key = public_key
        self.calls = 0

    def get_signing_key_from_jwt(self, token):
        self.calls += 1
        return StubSigningKey(self.public_key)


@pytest.fixture()
def jwks_client(flask_app, rsa_key_pair):
    stub = StubJWKSClient(rsa_key_pair["public_key"])
    flask_app.extensions["jwks_client"] = stub
    return stub


# ─────────────────────────────────────────────────────────────────────────────
# JWT Token Helpers
# ─────────────────────────────────────────────────────────────────────────────
def create_cognito_jwt(
    rsa_key_pair: dict,
    groups: Optional[list[str]] = None,
    token_use: str = "id",
    issuer: str = ISSUER,
    client_id: str = CLIENT_ID,
    username: str = "alice@example.com",
    exp_offset: int = 3600,
    extra: Optional[dict] = None,
) -> str:
    """Create an RS256-signed token shaped like a Cognito id/access token."""
    now = int(time.time())
    payload = {
        "iss": issuer,
        "sub": "11111111-2222-3333-4444-555555555555",
        "token_use": token_use,
        "iat": now,
        "exp": now + exp_offset,
        "cognito:username": username,
        "cognito:groups": groups if groups is not None else ["Admin"],
    }
    if token_use == "id":
        payload["aud"] = client_id
        payload["email"] = username
    else:
        payload["client_id"] = client_id
    payload.update(extra or {})
    return jwt.encode(payload, rsa_key_pair["private_pem"], algorithm="RS256", headers={"kid": "test-key"})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ─────────────────────────────────────────────────────────────────────────────
# Authentication Helpers
# ─────────────────────────────────────────────────────────────────────────────
def authenticate_with_groups(client, groups: list[str], username: str = "alice@example.com", **claims):
    """Put a signed-in console session with the given group claim on the client."""
    with client.session_transaction() as session:
        session["token"] = {
            "access_token": "access-stub",
            "id_token": "id-stub",
            "expires_at": time.time() + 3600,
        }
        session["id_claims"] = {
            "cognito:username": username,
            "email": username,
            "cognito:groups": groups,
            **claims,
        }


def get_csrf_token(client) -> str:
    """Get CSRF token from session."""
    client.get("/")
    with client.session_transaction() as session:
        return session.get("_csrf_token", "")


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "critical: marks tests as critical security tests (P0 priority)"
    )
