"""Pydantic schemas for app settings, stored auth state and session views."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from unitylink.core.roles import Role
from unitylink.schemas.user import UserData, UserRead

Theme = Literal["light", "dark", "auto"]


# ── App settings ────────────────────────────────────────────────────
class AppSettings(BaseModel):
    theme: Theme = "auto"
    notifications: bool = True
    language: str = "en"
    last_sync: str | None = Field(None, alias="lastSync")
    biometric_auth: bool = Field(False, alias="biometricAuth")

    model_config = {"populate_by_name": True}


class AppSettingsUpdate(BaseModel):
    theme: Theme | None = None
    notifications: bool | None = None
    language: str | None = None
    last_sync: str | None = Field(None, alias="lastSync")
    biometric_auth: bool | None = Field(None, alias="biometricAuth")

    model_config = {"populate_by_name": True, "extra": "forbid"}

    @field_validator("theme", "notifications", "language", "biometric_auth")
    @classmethod
    def _not_null(cls, v: object) -> object:
        # Omit a field to keep it; null is only meaningful for lastSync.
        if v is None:
            raise ValueError("must not be null")
        return v


# ── Stored auth state ───────────────────────────────────────────────
class AuthState(BaseModel):
    is_authenticated: bool
    has_token: bool
    has_user_data: bool
    user_data: UserData | None = None


# ── Session views ───────────────────────────────────────────────────
class Capabilities(BaseModel):
    is_super_admin: bool = False
    is_board_member: bool = False
    is_community_member: bool = False

    model_config = {"frozen": True}

    @property
    def is_admin_or_board(self) -> bool:
        return self.is_board_member


class SessionRead(BaseModel):
    state: str
    user: UserRead | None
    role: Role | None
    error: str | None
    capabilities: Capabilities


class StorageStatusRead(BaseModel):
    """What the secure store currently holds, for diagnostics."""

    auth_state: AuthState
    keys: dict[str, bool]


class RoleRead(BaseModel):
    value: Role
    label: str
    rank: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str
