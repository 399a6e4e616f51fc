"""
Auth session manager — sole owner of the in-memory current user and role.

The manager orchestrates login / register / logout against the remote user
service, mirrors every change into the secure session store, keeps a
human-readable error for observers, and publishes a :class:`SessionSnapshot`
to subscribers after each state change.

Ordering inside one call is fixed: remote result → normalize → memory →
storage. Memory is updated before the write is issued, so observers may see
a new user slightly before it is durable. Independent calls are not
serialized; by default the last write to memory wins. With
``guard_stale_results`` enabled, a login/register result that arrives after
a newer login, register or logout started is discarded instead.

Logout is optimistic: memory is reset first, so the user is signed out of
the UI even when remote or storage cleanup fails afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from unitylink.core.exceptions import InvalidArgument, RemoteServiceError, StorageError
from unitylink.core.roles import Role
from unitylink.schemas.session import Capabilities
from unitylink.schemas.user import User
from unitylink.services.capabilities import resolve_capabilities
from unitylink.services.normalization import from_storage_shape, normalize_user, to_storage_shape
from unitylink.services.remote import RemoteAuthResult, UserService
from unitylink.services.storage import SecureSessionStore

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"name", "email", "avatar"}


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    AUTHENTICATING_LOGIN = "authenticating_login"
    AUTHENTICATING_REGISTER = "authenticating_register"
    LOGGING_OUT = "logging_out"


_TRANSIENT_STATES = {
    SessionState.AUTHENTICATING_LOGIN,
    SessionState.AUTHENTICATING_REGISTER,
    SessionState.LOGGING_OUT,
}


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    user: User | None
    role: Role | None
    error: str | None
    capabilities: Capabilities


Listener = Callable[[SessionSnapshot], None]


class AuthSessionManager:
    def __init__(
        self,
        service: UserService,
        store: SecureSessionStore,
        *,
        guard_stale_results: bool = False,
    ):
        self._service = service
        self._store = store
        self.guard_stale_results = guard_stale_results

        self._state = SessionState.INITIALIZING
        self._user: User | None = None
        self._role: Role | None = None
        self._error: str | None = None
        self._auth_seq = 0
        self._listeners: list[Listener] = []

    # ── Read-only view ──────────────────────────────────────────────
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def role(self) -> Role | None:
        return self._role

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def capabilities(self) -> Capabilities:
        return resolve_capabilities(self._role)

    @property
    def is_loading(self) -> bool:
        return self._state is SessionState.INITIALIZING

    @property
    def auth_loading(self) -> bool:
        return self._state in _TRANSIENT_STATES

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            user=self._user,
            role=self._role,
            error=self._error,
            capabilities=self.capabilities,
        )

    # ── Observation ─────────────────────────────────────────────────
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    def _set_user(self, user: User | None) -> None:
        self._user = user
        self._role = user.role if user is not None else None

    def _settle(self) -> None:
        self._state = SessionState.AUTHENTICATED if self._user else SessionState.UNAUTHENTICATED

    async def _persist_user(self, user: User) -> None:
        try:
            await self._store.set_user_data(to_storage_shape(user))
        except StorageError as exc:
            self._error = str(exc)
            self._notify()
            raise

    # ── Startup ─────────────────────────────────────────────────────
    async def initialize(self) -> None:
        """Seed memory from the store once. Read failures are reported, not raised."""
        try:
            user_data = await self._store.get_user_data()
            self._set_user(from_storage_shape(user_data) if user_data is not None else None)
            if self._user is not None:
                logger.info("Session restored for user %s (%s)", self._user.id, self._user.role.value)
        except StorageError as exc:
            logger.error("Failed to load user session during %s: %s", exc.operation, exc)
            self._set_user(None)
            self._error = str(exc) or "Failed to load user session"
        finally:
            self._settle()
            self._notify()

    # ── Login / register ────────────────────────────────────────────
    async def login(self, credential: str, password: str) -> User | None:
        """Sign in. Returns ``None`` if the result was superseded (stale guard)."""
        return await self._authenticate(
            SessionState.AUTHENTICATING_LOGIN,
            "Login failed",
            lambda: self._service.login(credential, password),
        )

    async def register(self, credential: str, password: str, name: str | None = None) -> User | None:
        return await self._authenticate(
            SessionState.AUTHENTICATING_REGISTER,
            "Registration failed",
            lambda: self._service.register(credential, password, name),
        )

    def _is_stale(self, seq: int) -> bool:
        return self.guard_stale_results and seq != self._auth_seq

    async def _authenticate(
        self,
        state: SessionState,
        failure_message: str,
        call: Callable[[], Awaitable[RemoteAuthResult]],
    ) -> User | None:
        self._auth_seq += 1
        seq = self._auth_seq
        self._state = state
        self._error = None
        self._notify()

        try:
            result = await call()
        except Exception as exc:
            if self._is_stale(seq):
                raise
            logger.warning("%s: %s", failure_message, exc)
            self._error = str(exc) or failure_message
            self._settle()
            self._notify()
            raise

        if self._is_stale(seq):
            logger.info("Discarding superseded %s result", state.value)
            return None

        user = normalize_user(result.record)
        self._set_user(user)
        self._state = SessionState.AUTHENTICATED
        self._notify()
        logger.info("User %s authenticated as %s", user.id, user.role.value)

        try:
            await self._store.set_token(result.token)
        except (StorageError, InvalidArgument) as exc:
            self._error = str(exc)
            self._notify()
            raise
        await self._persist_user(user)
        return user

    # ── Logout ──────────────────────────────────────────────────────
    async def logout(self) -> None:
        self._auth_seq += 1
        self._state = SessionState.LOGGING_OUT
        self._set_user(None)
        self._error = None
        self._notify()

        try:
            try:
                await self._service.logout()
            except RemoteServiceError as exc:
                logger.warning("Remote logout failed: %s", exc)
                self._error = str(exc) or "Logout failed"
            await self._store.clear_all()
            logger.info("Session cleared")
        except StorageError as exc:
            logger.error("Failed to clear session storage: %s", exc)
            self._error = str(exc) or "Logout failed"
            raise
        finally:
            self._state = SessionState.UNAUTHENTICATED
            self._notify()

    # ── Local mutations ─────────────────────────────────────────────
    async def set_role(self, role: Role | str) -> None:
        """Local-only role override (role switcher); no remote call."""
        try:
            role = Role(role)
        except ValueError as exc:
            raise InvalidArgument(f"Unknown role: {role!r}") from exc

        if self._user is None:
            logger.debug("set_role(%s) ignored: no current user", role.value)
            return

        self._set_user(self._user.model_copy(update={"role": role}))
        self._notify()
        await self._persist_user(self._user)

    async def update_user(self, **fields: Any) -> User | None:
        """Shallow-merge profile fields (name, email, avatar) into the current user."""
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidArgument(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in fields.items() if v is not None}
        for key, value in changes.items():
            if not isinstance(value, str):
                raise InvalidArgument(f"{key} must be a string")
        for key in ("name", "email"):
            if key in changes:
                changes[key] = changes[key].strip()
                if not changes[key]:
                    raise InvalidArgument(f"{key} must not be empty")
        if "email" in changes and "@" not in changes["email"]:
            raise InvalidArgument("Invalid email address")

        if self._user is None or not changes:
            return self._user

        changes["updated_at"] = datetime.now(timezone.utc)
        self._set_user(self._user.model_copy(update=changes))
        self._notify()
        await self._persist_user(self._user)
        return self._user

    async def apply_remote_user(self, record: dict[str, Any]) -> User | None:
        """Adopt a fresh remote record if it describes the signed-in user."""
        updated = normalize_user(record)
        if self._user is None or updated.id != self._user.id:
            return None

        self._set_user(updated)
        self._notify()
        await self._persist_user(updated)
        return updated

    def clear_error(self) -> None:
        self._error = None
        self._notify()
