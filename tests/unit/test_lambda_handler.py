"""Tests for the API Gateway proxy entry point."""
import base64
import json

import pytest

from tests.conftest import FakeIdentityProvider, make_config
from usermanager import lambda_handler
from usermanager.core.user_handler import UserRequestHandler


@pytest.fixture()
def idp(monkeypatch):
    fake = FakeIdentityProvider()
    fake.seed("bob@example.com", ["Admin"])
    handler = UserRequestHandler(make_config(cors_allowed_origins=["https://*.example.com"]), fake, fake)
    monkeypatch.setattr(lambda_handler, "_HANDLER", handler)
    return fake


def test_get_event(idp):
    result = lambda_handler.handler({"httpMethod": "GET", "path": "/users", "headers": {"Origin": "https://app.example.com"}}, None)
    assert result["statusCode"] == 200
    assert json.loads(result["body"])[0]["username"] == "bob@example.com"
    assert result["headers"]["Access-Control-Allow-Origin"] == "https://app.example.com"


def test_put_event_with_path_parameter(idp):
    event = {
        "httpMethod": "PUT",
        "pathParameters": {"id": "bob@example.com"},
        "body": json.dumps({"groupsToSet": ["PublishAllowed"]}),
    }
    result = lambda_handler.handler(event, None)
    body = json.loads(result["body"])
    assert result["statusCode"] == 200
    assert body["added"] == ["PublishAllowed"]
    assert body["removed"] == ["Admin"]


def test_base64_body_is_decoded(idp):
    raw = json.dumps({"email": "carol@example.com", "password": "Temp#1234", "name": "Carol"})
    event = {
        "httpMethod": "POST",
        "body": base64.b64encode(raw.encode()).decode(),
        "isBase64Encoded": True,
    }
    result = lambda_handler.handler(event, None)
    assert result["statusCode"] == 201


def test_undecodable_body_is_400_with_cors(idp):
    event = {
        "httpMethod": "POST",
        "headers": {"origin": "https://app.example.com"},
        "body": base64.b64encode(b"\xff\xfe{").decode(),
        "isBase64Encoded": True,
    }
    result = lambda_handler.handler(event, None)
    assert result["statusCode"] == 400
    assert json.loads(result["body"]) == {"message": "Request body is not valid JSON."}
    assert result["headers"]["Access-Control-Allow-Origin"] == "https://app.example.com"
    assert idp.calls == []


def test_bad_base64_padding_is_400(idp):
    event = {"httpMethod": "PUT", "pathParameters": {"id": "bob@example.com"}, "body": "abc", "isBase64Encoded": True}
    assert lambda_handler.handler(event, None)["statusCode"] == 400


def test_http_api_v2_method(idp):
    event = {"requestContext": {"http": {"method": "OPTIONS"}}, "rawPath": "/users"}
    assert lambda_handler.handler(event, None)["statusCode"] == 200


def test_delete_without_path_parameter(idp):
    result = lambda_handler.handler({"httpMethod": "DELETE", "pathParameters": None}, None)
    assert result["statusCode"] == 400


def test_handler_built_once_from_environment(monkeypatch):
    monkeypatch.setattr(lambda_handler, "_HANDLER", None)
    monkeypatch.delenv("USER_POOL_ID", raising=False)

    first = lambda_handler.get_handler()
    assert lambda_handler.get_handler() is first

    result = lambda_handler.handler({"httpMethod": "GET"}, None)
    assert result["statusCode"] == 500
    assert json.loads(result["body"]) == {"message": "Internal configuration error."}
