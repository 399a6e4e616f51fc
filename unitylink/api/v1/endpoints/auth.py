"""
Auth endpoints — login, register, logout and the current session.
"""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from unitylink.api.v1.deps import get_current_user, get_session_manager, get_store
from unitylink.schemas.session import MessageResponse, SessionRead, StorageStatusRead
from unitylink.schemas.user import LoginRequest, ProfileUpdate, RegisterRequest, RoleUpdate, User, UserRead
from unitylink.services.auth_session import AuthSessionManager
from unitylink.services.storage import SecureSessionStore

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])


def session_view(manager: AuthSessionManager) -> SessionRead:
    snapshot = manager.snapshot()
    return SessionRead(
        state=snapshot.state.value,
        user=UserRead.from_user(snapshot.user) if snapshot.user else None,
        role=snapshot.role,
        error=snapshot.error,
        capabilities=snapshot.capabilities,
    )


@router.post("/login", response_model=SessionRead)
@limiter.limit("5/minute")
async def login(
    request: Request,
    body: LoginRequest,
    manager: AuthSessionManager = Depends(get_session_manager),
) -> SessionRead:
    """Sign in against the remote user service and persist the session."""
    await manager.login(body.credential, body.password)
    return session_view(manager)


@router.post("/register", response_model=SessionRead, status_code=201)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    manager: AuthSessionManager = Depends(get_session_manager),
) -> SessionRead:
    await manager.register(body.credential, body.password, body.name)
    return session_view(manager)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    manager: AuthSessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Sign out locally first, then clear stored credentials."""
    await manager.logout()
    return MessageResponse(message="Logged out")


@router.get("/session", response_model=SessionRead)
async def read_session(
    manager: AuthSessionManager = Depends(get_session_manager),
) -> SessionRead:
    return session_view(manager)


@router.put("/role", response_model=SessionRead)
async def switch_role(
    body: RoleUpdate,
    manager: AuthSessionManager = Depends(get_session_manager),
) -> SessionRead:
    """Local role override for the in-app role switcher."""
    await manager.set_role(body.role)
    return session_view(manager)


@router.patch("/me", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    _user: User = Depends(get_current_user),
    manager: AuthSessionManager = Depends(get_session_manager),
) -> UserRead:
    updated = await manager.update_user(**body.model_dump(exclude_none=True))
    return UserRead.from_user(updated)


@router.delete("/error", response_model=SessionRead)
async def acknowledge_error(
    manager: AuthSessionManager = Depends(get_session_manager),
) -> SessionRead:
    manager.clear_error()
    return session_view(manager)


@router.get("/storage", response_model=StorageStatusRead)
async def read_storage_status(
    store: SecureSessionStore = Depends(get_store),
) -> StorageStatusRead:
    """Which session keys are stored, and whether they form a signed-in session."""
    return StorageStatusRead(
        auth_state=await store.get_auth_state(),
        keys=await store.get_storage_status(),
    )
