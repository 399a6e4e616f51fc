"""Tests for the remote user service, its offline mock and the fallback."""

import httpx
import pytest
from jose import jwt

from unitylink.core.config import Settings, settings
from unitylink.core.exceptions import AuthError, RemoteServiceError
from unitylink.services.remote import (
    FallbackUserService,
    HttpUserService,
    build_user_service,
    is_placeholder_url,
)

MOCK_PASSWORD = "password123"


def _http(handler) -> HttpUserService:
    return HttpUserService(
        "http://backend.test/api",
        timeout=1.0,
        token_provider=_token,
        transport=httpx.MockTransport(handler),
    )


async def _token():
    return "stored-token"


# ── Mock dataset ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_mock_login_returns_legacy_record_and_token(mock_service):
    result = await mock_service.login("Jane@Example.com", MOCK_PASSWORD)
    assert result.record["role"] == "board"
    payload = jwt.decode(result.token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == "2"
    assert payload["role"] == "board_member"


@pytest.mark.asyncio
async def test_mock_login_rejects_bad_credentials(mock_service):
    with pytest.raises(AuthError):
        await mock_service.login("jane@example.com", "nope")
    with pytest.raises(AuthError):
        await mock_service.login("nobody@example.com", MOCK_PASSWORD)


@pytest.mark.asyncio
async def test_mock_register_then_login(mock_service):
    result = await mock_service.register("new@example.com", "s3cret!", "New Neighbour")
    assert result.record["role"] == "member"
    again = await mock_service.login("new@example.com", "s3cret!")
    assert again.record["id"] == result.record["id"]

    with pytest.raises(AuthError):
        await mock_service.register("new@example.com", "other")


@pytest.mark.asyncio
async def test_mock_update_role(mock_service):
    updated = await mock_service.update_user_role("4", "board_member")
    assert updated["role"] == "board_member"
    with pytest.raises(RemoteServiceError):
        await mock_service.update_user_role("999", "board_member")


# ── HTTP backend ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_http_login_sends_credentials_and_bearer():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"token": "t-1", "user": {"id": "u1", "role": "board"}})

    result = await _http(handler).login("a@b.c", "pw")
    assert seen["url"] == "http://backend.test/api/auth/login"
    assert seen["auth"] == "Bearer stored-token"
    assert result.token == "t-1"
    assert result.record["id"] == "u1"


@pytest.mark.asyncio
async def test_http_rejected_credentials_raise_auth_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid credentials"})

    with pytest.raises(AuthError, match="Invalid credentials"):
        await _http(handler).login("a@b.c", "bad")


@pytest.mark.asyncio
async def test_http_server_error_on_users_is_remote_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(RemoteServiceError) as excinfo:
        await _http(handler).list_users()
    assert not isinstance(excinfo.value, AuthError)


@pytest.mark.asyncio
async def test_http_non_json_body_is_remote_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway page</html>")

    with pytest.raises(RemoteServiceError, match="Malformed response"):
        await _http(handler).list_users()
    with pytest.raises(RemoteServiceError, match="Malformed response"):
        await _http(handler).login("a@b.c", "pw")


# ── Fallback ────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_transport_failure_falls_back_to_mock(mock_service):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    service = FallbackUserService(_http(handler), mock_service)
    users = await service.list_users()
    assert len(users) == 5
    result = await service.login("admin@example.com", MOCK_PASSWORD)
    assert result.record["role"] == "superadmin"


@pytest.mark.asyncio
async def test_timeout_falls_back_to_mock(mock_service):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    service = FallbackUserService(_http(handler), mock_service)
    assert len(await service.list_users()) == 5


@pytest.mark.asyncio
async def test_auth_errors_do_not_fall_back(mock_service):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid credentials"})

    service = FallbackUserService(_http(handler), mock_service)
    with pytest.raises(AuthError):
        await service.login("admin@example.com", MOCK_PASSWORD)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("", True),
        (None, True),
        ("https://your-api-url.com/api", True),
        ("http://192.168.12.125:3000/api", False),
        ("https://api.unitylink.app", False),
    ],
)
def test_placeholder_detection(url, expected):
    assert is_placeholder_url(url) is expected


def test_missing_base_url_selects_mock_permanently():
    service = build_user_service(Settings(API_BASE_URL=""))
    assert service.offline is True

    online = build_user_service(Settings(API_BASE_URL="http://backend.test/api/"))
    assert online.offline is False
    assert online.primary.base_url == "http://backend.test/api"
