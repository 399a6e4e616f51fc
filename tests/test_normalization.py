"""Tests for the normalization layer and the storage-shape mappers."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from unitylink.core.roles import Role
from unitylink.schemas.user import User
from unitylink.services.normalization import (
    from_storage_shape,
    normalize_role,
    normalize_user,
    to_raw,
    to_storage_shape,
)


@pytest.mark.parametrize(
    "aliases, expected",
    [
        (("superadmin", "super_admin"), Role.SUPER_ADMIN),
        (("board", "board_member"), Role.BOARD_MEMBER),
        (("member", "community_member"), Role.COMMUNITY_MEMBER),
    ],
)
def test_known_aliases(aliases, expected):
    legacy, canonical = aliases
    assert normalize_user({"role": legacy}).role == normalize_user({"role": canonical}).role == expected


def test_unknown_or_missing_role_is_least_privileged():
    assert normalize_user({"role": "nonsense"}).role == Role.COMMUNITY_MEMBER
    assert normalize_user({}).role == Role.COMMUNITY_MEMBER
    assert normalize_user(None).role == Role.COMMUNITY_MEMBER
    assert normalize_role(42) == Role.COMMUNITY_MEMBER


def test_alias_matching_is_case_sensitive():
    assert normalize_role("SuperAdmin") == Role.COMMUNITY_MEMBER
    assert normalize_role("BOARD") == Role.COMMUNITY_MEMBER


@pytest.mark.parametrize(
    "raw",
    [
        {"id": "7", "name": "Jane", "role": "board"},
        {"role": "superadmin"},
        {"role": "garbage", "email": "x@y.z"},
        {},
    ],
)
def test_normalization_is_idempotent(raw):
    once = normalize_user(raw)
    twice = normalize_user(to_raw(once))
    assert twice == once


def test_defaults_for_missing_fields():
    user = normalize_user({})
    assert user.name == "Unknown"
    assert user.email == "unknown@example.com"
    assert user.avatar == ""
    assert user.id
    assert user.created_at is None


def test_generated_id_is_stable():
    raw = {"name": "Mary Ann"}
    assert normalize_user(raw).id == normalize_user(dict(raw)).id
    assert normalize_user(raw).id != normalize_user({"name": "Someone Else"}).id


def test_email_synthesized_from_name():
    assert normalize_user({"name": "Alice"}).email == "alice@example.com"
    assert normalize_user({"name": "Mary Ann"}).email == "maryann@example.com"


def test_legacy_shapes():
    user = normalize_user(
        {
            "id": 3,
            "firstName": "Admin",
            "lastName": "User",
            "email": "admin@example.com",
            "role": "superadmin",
            "avatar": None,
            "createdAt": "2024-01-15T10:00:00Z",
        }
    )
    assert user.id == "3"
    assert user.name == "Admin User"
    assert user.role == Role.SUPER_ADMIN
    assert user.avatar == ""
    assert user.created_at == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def test_unparsable_timestamp_becomes_none():
    assert normalize_user({"createdAt": "yesterday"}).created_at is None


@pytest.mark.parametrize("name", ["Alice", "Mary Ann Smith", "Unknown", " Alice", "Alice ", "Mary  Ann"])
def test_storage_shape_round_trip(name):
    user = User(
        id="u-1",
        name=name,
        email="someone@example.com",
        role=Role.BOARD_MEMBER,
        avatar="https://img.example.com/a.png",
        created_at=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 5, 2, 9, 45, 12, 5000, tzinfo=timezone.utc),
    )
    assert user.name == name.strip()
    data = to_storage_shape(user)
    assert data.first_name == user.name.split(" ")[0]
    assert from_storage_shape(data) == user


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_name_is_not_a_valid_user(name):
    with pytest.raises(ValidationError):
        User(id="u-1", name=name, email="someone@example.com", role=Role.COMMUNITY_MEMBER)


def test_remote_names_are_trimmed():
    user = normalize_user({"name": "  Alice  ", "email": " alice@example.com "})
    assert user.name == "Alice"
    assert user.email == "alice@example.com"
    assert normalize_user({"name": "   "}).name == "Unknown"


def test_storage_shape_heals_legacy_role():
    data = to_storage_shape(User(id="1", name="A", email="a@b.c", role=Role.BOARD_MEMBER))
    legacy = data.model_copy(update={"role": "superadmin"})
    assert from_storage_shape(legacy).role == Role.SUPER_ADMIN
