"""Unit tests for request parsing and the user record."""
from datetime import datetime, timezone

import pytest

from usermanager.core.models import (
    CreateUserRequest,
    UpdateUserRequest,
    UserIdentifier,
    UserRecord,
    ValidationError,
    parse_json_body,
)

CATALOG = ["Admin", "CreatingBotAllowed", "PublishAllowed"]


class TestParseJsonBody:
    @pytest.mark.parametrize("body", [None, "", "   "])
    def test_missing_body(self, body):
        with pytest.raises(ValidationError, match="Request body is missing"):
            parse_json_body(body)

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            parse_json_body("{not json")

    def test_non_object(self):
        with pytest.raises(ValidationError, match="JSON object"):
            parse_json_body("[1, 2]")

    def test_object(self):
        assert parse_json_body('{"a": 1}') == {"a": 1}


class TestCreateUserRequest:
    def test_flags_become_groups(self):
        request = CreateUserRequest.from_payload(
            {
                "email": "Carol@Example.com",
                "password": "Temp#1234",
                "name": "Carol",
                "addToAdminGroup": True,
                "addToPublishAllowedGroup": True,
                "addToCreatingBotAllowedGroup": False,
            },
            CATALOG,
        )
        assert request.email == "carol@example.com"
        assert request.groups == ("Admin", "PublishAllowed")
        assert request.depart == ""

    @pytest.mark.parametrize("missing", ["email", "password", "name"])
    def test_required_fields(self, missing):
        payload = {"email": "carol@example.com", "password": "Temp#1234", "name": "Carol"}
        payload.pop(missing)
        with pytest.raises(ValidationError, match="Missing required fields"):
            CreateUserRequest.from_payload(payload, CATALOG)

    def test_non_boolean_flag_rejected(self):
        with pytest.raises(ValidationError, match="addToAdminGroup"):
            CreateUserRequest.from_payload(
                {"email": "c@example.com", "password": "x" * 8, "name": "C", "addToAdminGroup": "yes"},
                CATALOG,
            )

    def test_flag_for_group_outside_catalog_rejected(self):
        with pytest.raises(ValidationError, match="Unknown group 'PublishAllowed'"):
            CreateUserRequest.from_payload(
                {"email": "c@example.com", "password": "x" * 8, "name": "C", "addToPublishAllowedGroup": True},
                ["Admin"],
            )


class TestUpdateUserRequest:
    def test_groups_absent_means_untouched(self):
        request = UpdateUserRequest.from_payload("bob@example.com", {"name": "Bob"}, CATALOG)
        assert request.groups_to_set is None
        assert request.has_attribute_updates

    def test_empty_groups_list_is_kept(self):
        request = UpdateUserRequest.from_payload("bob@example.com", {"groupsToSet": []}, CATALOG)
        assert request.groups_to_set == frozenset()
        assert not request.has_attribute_updates

    def test_unknown_group_rejected(self):
        with pytest.raises(ValidationError, match="Unknown group 'Superuser'"):
            UpdateUserRequest.from_payload("bob@example.com", {"groupsToSet": ["Admin", "Superuser"]}, CATALOG)

    def test_groups_must_be_list(self):
        with pytest.raises(ValidationError, match="array"):
            UpdateUserRequest.from_payload("bob@example.com", {"groupsToSet": "Admin"}, CATALOG)

    def test_missing_user_id(self):
        with pytest.raises(ValidationError, match="User ID is missing"):
            UpdateUserRequest.from_payload(None, {"name": "Bob"}, CATALOG)


def test_user_identifier_requires_value():
    assert UserIdentifier.from_path(" bob ").user_id == "bob"
    with pytest.raises(ValidationError):
        UserIdentifier.from_path("")


def test_user_record_omits_unset_fields():
    record = UserRecord(username="bob", groups=["Admin"])
    assert record.to_dict() == {"username": "bob", "groups": ["Admin"]}


def test_user_record_serializes_created_at():
    record = UserRecord(
        username="bob",
        email="bob@example.com",
        enabled=False,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    data = record.to_dict()
    assert data["createdAt"] == "2024-05-01T12:00:00+00:00"
    assert data["enabled"] is False
    assert data["groups"] == []
