"""
User management endpoints — list community users and change their roles.

- GET /roles is open: it only describes the role model.
- GET /users and PUT /users/{id}/role require the super admin role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from unitylink.api.v1.deps import get_role_directory, require_super_admin
from unitylink.core.roles import Role, label_for, rank_for
from unitylink.schemas.session import RoleRead
from unitylink.schemas.user import RoleUpdate, User, UserRead
from unitylink.services.role_directory import RoleDirectory

router = APIRouter(tags=["users"])
logger = logging.getLogger(__name__)


@router.get("/roles", response_model=list[RoleRead])
async def list_roles() -> list[RoleRead]:
    """Roles in rank order with their display labels."""
    return [
        RoleRead(value=role, label=label_for(role), rank=rank_for(role))
        for role in sorted(Role, key=rank_for)
    ]


@router.get("/users", response_model=list[UserRead])
async def list_users(
    directory: RoleDirectory = Depends(get_role_directory),
    _admin: User = Depends(require_super_admin),
) -> list[UserRead]:
    """All community users, super admins first, then by name."""
    users = await directory.refresh()
    return [UserRead.from_user(u) for u in users]


@router.put("/users/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    directory: RoleDirectory = Depends(get_role_directory),
    _admin: User = Depends(require_super_admin),
) -> UserRead:
    """Promote or demote a community member."""
    updated = await directory.update_user_role(user_id, body.role)
    return UserRead.from_user(updated)
