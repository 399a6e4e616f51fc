"""
Remote user service — login / register / logout / list users / update role.

``HttpUserService`` talks to the community backend. ``MockUserService``
answers from an in-memory dataset shaped like the backend's payloads,
including its legacy role names. ``FallbackUserService`` uses the backend
and drops to the mock on timeouts or transport failures, so callers only
ever see a raw record or an :class:`AuthError`.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple, Protocol

import httpx

from unitylink.core.config import Settings
from unitylink.core.exceptions import AuthError, RemoteServiceError
from unitylink.core.security import create_session_token, get_password_hash, verify_password
from unitylink.services.normalization import normalize_role

logger = logging.getLogger(__name__)

RawUserRecord = dict[str, Any]
TokenProvider = Callable[[], Awaitable[str | None]]

_PLACEHOLDER_MARKERS = ("your-", "your_", "changeme", "change-me", "example.invalid", "<")


class RemoteAuthResult(NamedTuple):
    token: str
    record: RawUserRecord


class UserService(Protocol):
    async def login(self, credential: str, password: str) -> RemoteAuthResult: ...

    async def register(self, credential: str, password: str, name: str | None = None) -> RemoteAuthResult: ...

    async def logout(self) -> None: ...

    async def list_users(self) -> list[RawUserRecord]: ...

    async def update_user_role(self, user_id: str, role: str) -> RawUserRecord: ...


# ── HTTP backend ────────────────────────────────────────────────────
class HttpUserService:
    def __init__(
        self,
        base_url: str,
        timeout: float,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token_provider = token_provider
        self._transport = transport

    async def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        headers = {"Content-Type": "application/json"}
        if self._token_provider is not None:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}{path}"
        logger.debug("API call: %s %s", method, url)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, url, json=json, headers=headers)
        logger.debug("API response: %s for %s", response.status_code, url)

        if response.is_error:
            raise _error_for(path, response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Non-JSON response from %s: %s", url, exc)
            raise RemoteServiceError("Malformed response") from exc

    async def _auth(self, path: str, body: dict) -> RemoteAuthResult:
        payload = await self._request("POST", path, json=body)
        if not isinstance(payload, dict) or not payload.get("token"):
            raise AuthError("Malformed authentication response")
        user = payload.get("user")
        return RemoteAuthResult(payload["token"], user if isinstance(user, dict) else {})

    async def login(self, credential: str, password: str) -> RemoteAuthResult:
        return await self._auth("/auth/login", {"email": credential, "password": password})

    async def register(self, credential: str, password: str, name: str | None = None) -> RemoteAuthResult:
        return await self._auth(
            "/auth/register", {"email": credential, "password": password, "name": name}
        )

    async def logout(self) -> None:
        # The backend keeps no server-side session; nothing to revoke.
        return None

    async def list_users(self) -> list[RawUserRecord]:
        payload = await self._request("GET", "/users")
        if not isinstance(payload, list):
            raise RemoteServiceError("Malformed user list response")
        return [u for u in payload if isinstance(u, dict)]

    async def update_user_role(self, user_id: str, role: str) -> RawUserRecord:
        payload = await self._request("PUT", f"/users/{user_id}", json={"role": role})
        if not isinstance(payload, dict):
            raise RemoteServiceError("Malformed user response")
        return payload


def _error_for(path: str, response: httpx.Response) -> RemoteServiceError:
    detail = None
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message") or body.get("detail")
    except ValueError:
        pass
    message = str(detail) if detail else f"API error: {response.status_code} {response.reason_phrase}"
    if path.startswith("/auth/") and response.status_code in (400, 401, 403, 409):
        return AuthError(message)
    return RemoteServiceError(message)


# ── Offline dataset ─────────────────────────────────────────────────
MOCK_USERS: list[RawUserRecord] = [
    {"id": 1, "name": "John Doe", "email": "john@example.com", "role": "member", "avatar": "https://i.pravatar.cc/150?u=john"},
    {"id": 2, "name": "Jane Smith", "email": "jane@example.com", "role": "board", "avatar": "https://i.pravatar.cc/150?u=jane"},
    {"id": 3, "name": "Admin User", "email": "admin@example.com", "role": "superadmin", "avatar": "https://i.pravatar.cc/150?u=admin"},
    {"id": 4, "name": "Bob Wilson", "email": "bob@example.com", "role": "member", "avatar": "https://i.pravatar.cc/150?u=bob"},
    {"id": 5, "name": "Alice Johnson", "email": "alice@example.com", "role": "member", "avatar": "https://i.pravatar.cc/150?u=alice"},
]


class MockUserService:
    """In-memory stand-in for the backend, for offline development."""

    def __init__(self, default_password: str, users: list[RawUserRecord] | None = None):
        self._users = copy.deepcopy(MOCK_USERS if users is None else users)
        self._default_password = default_password
        self._password_hashes: dict[str, str] = {}

    def _find_by_email(self, email: str) -> RawUserRecord | None:
        wanted = email.strip().lower()
        for user in self._users:
            if str(user.get("email", "")).lower() == wanted:
                return user
        return None

    def _issue(self, user: RawUserRecord) -> RemoteAuthResult:
        token = create_session_token(user["id"], str(normalize_role(user.get("role")).value))
        return RemoteAuthResult(token, copy.deepcopy(user))

    async def login(self, credential: str, password: str) -> RemoteAuthResult:
        user = self._find_by_email(credential)
        if user is None:
            raise AuthError("Invalid credentials")
        hashed = self._password_hashes.get(str(user["id"]))
        valid = verify_password(password, hashed) if hashed else password == self._default_password
        if not valid:
            raise AuthError("Invalid credentials")
        return self._issue(user)

    async def register(self, credential: str, password: str, name: str | None = None) -> RemoteAuthResult:
        email = credential.strip().lower()
        if not email or not password:
            raise AuthError("Email and password are required")
        if self._find_by_email(email) is not None:
            raise AuthError("Email already in use")

        user = {
            "id": uuid.uuid4().hex,
            "name": name or email.split("@")[0],
            "email": email,
            "role": "member",
            "avatar": "",
        }
        self._users.append(user)
        self._password_hashes[user["id"]] = get_password_hash(password)
        logger.info("Mock account registered: %s", email)
        return self._issue(user)

    async def logout(self) -> None:
        return None

    async def list_users(self) -> list[RawUserRecord]:
        return copy.deepcopy(self._users)

    async def update_user_role(self, user_id: str, role: str) -> RawUserRecord:
        for user in self._users:
            if str(user.get("id")) == str(user_id):
                user["role"] = role
                return copy.deepcopy(user)
        raise RemoteServiceError("User not found")


# ── Fallback wrapper ────────────────────────────────────────────────
class FallbackUserService:
    """Backend first; the mock answers when the backend is unreachable."""

    def __init__(self, primary: HttpUserService | None, fallback: MockUserService):
        self.primary = primary
        self.fallback = fallback

    @property
    def offline(self) -> bool:
        return self.primary is None

    async def _call(self, name: str, *args: Any) -> Any:
        if self.primary is None:
            return await getattr(self.fallback, name)(*args)
        try:
            return await getattr(self.primary, name)(*args)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            logger.warning("Remote %s failed (%s), using mock data", name, type(exc).__name__)
            return await getattr(self.fallback, name)(*args)

    async def login(self, credential: str, password: str) -> RemoteAuthResult:
        return await self._call("login", credential, password)

    async def register(self, credential: str, password: str, name: str | None = None) -> RemoteAuthResult:
        return await self._call("register", credential, password, name)

    async def logout(self) -> None:
        await self._call("logout")

    async def list_users(self) -> list[RawUserRecord]:
        return await self._call("list_users")

    async def update_user_role(self, user_id: str, role: str) -> RawUserRecord:
        return await self._call("update_user_role", user_id, role)


def is_placeholder_url(url: str | None) -> bool:
    if not url:
        return True
    lowered = url.lower()
    return any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


def build_user_service(settings: Settings, token_provider: TokenProvider | None = None) -> FallbackUserService:
    """Pick the backend once at startup; a missing base URL means mock only."""
    mock = MockUserService(settings.MOCK_DEFAULT_PASSWORD)
    if is_placeholder_url(settings.API_BASE_URL):
        logger.warning("API_BASE_URL is not configured, using the offline mock user service")
        return FallbackUserService(None, mock)

    logger.info("Remote user service: %s", settings.API_BASE_URL)
    primary = HttpUserService(
        settings.API_BASE_URL,
        timeout=settings.REMOTE_TIMEOUT_SECONDS,
        token_provider=token_provider,
    )
    return FallbackUserService(primary, mock)
