"""Pydantic schemas for users: canonical model, storage shape, request bodies."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from unitylink.core.roles import Role, label_for


class User(BaseModel):
    """Canonical user. ``role`` is always a :class:`Role` past normalization."""

    id: str
    name: str
    email: str
    role: Role
    avatar: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v


class UserData(BaseModel):
    """User as persisted in the secure store (name split into first/last)."""

    id: str
    email: str
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    # Kept as a raw string: legacy rows may hold aliases, healed on read.
    role: str = Role.COMMUNITY_MEMBER.value
    avatar: str | None = None
    created_at: str | None = Field(None, alias="createdAt")
    updated_at: str | None = Field(None, alias="updatedAt")
    phone: str | None = None
    community_id: str | None = Field(None, alias="communityId")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: object) -> object:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("id", "email")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class UserRead(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    role_label: str
    avatar: str
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_user(cls, user: User) -> "UserRead":
        return cls(**user.model_dump(), role_label=label_for(user.role))


# ── Request bodies ──────────────────────────────────────────────────
class LoginRequest(BaseModel):
    credential: str
    password: str

    @field_validator("credential")
    @classmethod
    def _normalise_credential(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Credential must not be empty")
        return v


class RegisterRequest(LoginRequest):
    name: str | None = None


class RoleUpdate(BaseModel):
    role: Role


class ProfileUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    avatar: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def _normalise_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v
