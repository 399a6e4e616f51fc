"""
FastAPI dependencies — session collaborators and role guards.

The collaborators live on ``app.state`` and are built once by the
lifespan in ``unitylink.main``.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from unitylink.schemas.user import User
from unitylink.services.auth_session import AuthSessionManager
from unitylink.services.role_directory import RoleDirectory
from unitylink.services.storage import SecureSessionStore


# ── Collaborators ───────────────────────────────────────────────────
def get_session_manager(request: Request) -> AuthSessionManager:
    return request.app.state.session_manager


def get_store(request: Request) -> SecureSessionStore:
    return request.app.state.session_store


def get_role_directory(request: Request) -> RoleDirectory:
    return request.app.state.role_directory


# ── Role guards ─────────────────────────────────────────────────────
async def get_current_user(
    manager: AuthSessionManager = Depends(get_session_manager),
) -> User:
    """Reject requests while nobody is signed in."""
    if manager.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )
    return manager.user


async def require_super_admin(
    current_user: User = Depends(get_current_user),
    manager: AuthSessionManager = Depends(get_session_manager),
) -> User:
    """Only allow the super admin role to proceed."""
    if not manager.capabilities.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return current_user
