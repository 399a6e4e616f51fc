"""
Role directory — community user list and role promotion / demotion.

Only a super admin may change roles. When the changed user is the one
signed in, the session manager adopts and persists the new record; other
users' changes never touch the current session's stored data.
"""

from __future__ import annotations

import logging

from unitylink.core.exceptions import PermissionDenied
from unitylink.core.roles import Role, sort_users
from unitylink.schemas.user import User
from unitylink.services.auth_session import AuthSessionManager
from unitylink.services.normalization import normalize_user
from unitylink.services.remote import UserService

logger = logging.getLogger(__name__)


class RoleDirectory:
    def __init__(self, service: UserService, manager: AuthSessionManager):
        self._service = service
        self._manager = manager
        self.users: list[User] = []
        self.error: str | None = None

    async def refresh(self) -> list[User]:
        self.error = None
        try:
            records = await self._service.list_users()
        except Exception as exc:
            logger.warning("Failed to load users: %s", exc)
            self.error = str(exc) or "Failed to load users"
            raise
        self.users = sort_users(normalize_user(r) for r in records)
        return self.users

    async def update_user_role(self, user_id: str, role: Role) -> User:
        if not self._manager.capabilities.is_super_admin:
            raise PermissionDenied("Only a super admin can change roles")

        try:
            record = await self._service.update_user_role(user_id, Role(role).value)
        except Exception as exc:
            logger.warning("Failed to update role of user %s: %s", user_id, exc)
            self.error = str(exc) or "Failed to update user role"
            raise

        updated = normalize_user(record)
        self.users = sort_users(updated if u.id == updated.id else u for u in self.users)
        logger.info("User %s is now %s", updated.id, updated.role.value)

        await self._manager.apply_remote_user(record)
        return updated
