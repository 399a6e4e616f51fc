"""
Normalization layer — turns untrusted user payloads into canonical users.

Remote services and legacy storage disagree on role names ("board" vs
"board_member", "superadmin" vs "super_admin", ...). Everything past this
module sees only :class:`Role` values. Every function here is pure.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from unitylink.core.roles import Role
from unitylink.schemas.user import User, UserData

# Exact, case-sensitive. "SuperAdmin" is deliberately not listed.
ROLE_ALIASES: dict[str, Role] = {
    "superadmin": Role.SUPER_ADMIN,
    "super_admin": Role.SUPER_ADMIN,
    "board": Role.BOARD_MEMBER,
    "board_member": Role.BOARD_MEMBER,
    "member": Role.COMMUNITY_MEMBER,
    "community_member": Role.COMMUNITY_MEMBER,
}

DEFAULT_ROLE = Role.COMMUNITY_MEMBER
DEFAULT_NAME = "Unknown"
SYNTHETIC_EMAIL_DOMAIN = "example.com"

_USER_ID_NAMESPACE = uuid.UUID("6f1c2b9e-3a44-5d7e-9b1a-2c4e6f8a0b13")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_role(value: object) -> Role:
    """Resolve a role alias; anything unknown gets the least privileged role."""
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        return ROLE_ALIASES.get(value, DEFAULT_ROLE)
    return DEFAULT_ROLE


def _text(raw: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _timestamp(raw: Mapping[str, Any], *keys: str) -> datetime | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
    return None


def _name(raw: Mapping[str, Any]) -> str:
    name = _text(raw, "name")
    if name is not None:
        return name
    parts = [p for p in (_text(raw, "firstName"), _text(raw, "lastName")) if p]
    return " ".join(parts) if parts else DEFAULT_NAME


def synthesize_email(name: str) -> str:
    local = _WHITESPACE_RE.sub("", name.lower())
    return f"{local}@{SYNTHETIC_EMAIL_DOMAIN}"


def _user_id(raw: Mapping[str, Any], name: str, email: str) -> str:
    value = raw.get("id")
    if isinstance(value, bool):
        value = None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    # Stable for identical payloads so the function stays pure.
    return str(uuid.uuid5(_USER_ID_NAMESPACE, f"{name}\x00{email}"))


def normalize_user(raw: Mapping[str, Any] | None) -> User:
    """Build a canonical :class:`User` from any raw record, filling defaults."""
    if not isinstance(raw, Mapping):
        raw = {}

    name = _name(raw)
    email = _text(raw, "email") or synthesize_email(name)
    avatar = raw.get("avatar")

    return User(
        id=_user_id(raw, name, email),
        name=name,
        email=email,
        role=normalize_role(raw.get("role")),
        avatar=avatar if isinstance(avatar, str) else "",
        created_at=_timestamp(raw, "createdAt", "created_at"),
        updated_at=_timestamp(raw, "updatedAt", "updated_at"),
    )


def to_raw(user: User) -> dict[str, Any]:
    """Canonical user back to a JSON-able raw record."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "avatar": user.avatar,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


# ── Storage shape ───────────────────────────────────────────────────
def to_storage_shape(user: User) -> UserData:
    first_name, _, last_name = user.name.partition(" ")
    return UserData(
        id=user.id,
        email=user.email,
        first_name=first_name,
        last_name=last_name,
        role=user.role.value,
        avatar=user.avatar or None,
        created_at=user.created_at.isoformat() if user.created_at else None,
        updated_at=user.updated_at.isoformat() if user.updated_at else None,
    )


def from_storage_shape(data: UserData) -> User:
    """Rebuild a canonical user; legacy role aliases are healed here."""
    if data.first_name and data.last_name:
        name = f"{data.first_name} {data.last_name}"
    else:
        name = data.first_name or data.last_name
    return normalize_user(
        {
            "id": data.id,
            "name": name,
            "email": data.email,
            "role": data.role,
            "avatar": data.avatar,
            "createdAt": data.created_at,
            "updatedAt": data.updated_at,
        }
    )
