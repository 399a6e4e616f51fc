"""
Secure session store — encrypted, durable key-value persistence for the
auth token, the user data and the app settings.

Three independent keys back the store. Every value is Fernet ciphertext in
the ``secure_items`` table. Corrupt user data or settings are deleted on
read instead of crashing the caller; any other storage fault surfaces as
:class:`StorageError` carrying the operation name.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unitylink.core.exceptions import InvalidArgument, StorageError
from unitylink.core.security import DecryptionError, SecretBox
from unitylink.models.secure_item import SecureItem
from unitylink.schemas.session import AppSettings, AppSettingsUpdate, AuthState
from unitylink.schemas.user import UserData

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"
USER_DATA_KEY = "user_data"
APP_SETTINGS_KEY = "app_settings"

STORAGE_KEYS: dict[str, str] = {
    "AUTH_TOKEN": AUTH_TOKEN_KEY,
    "USER_DATA": USER_DATA_KEY,
    "APP_SETTINGS": APP_SETTINGS_KEY,
}

_THEMES = {"light", "dark", "auto"}


class SecureSessionStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], box: SecretBox):
        self._session_factory = session_factory
        self._box = box

    # ── Raw access ──────────────────────────────────────────────────
    async def _read(self, key: str, operation: str) -> str | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(SecureItem.value).where(SecureItem.key == key))
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key}: {exc}", operation) from exc

    async def _write(self, key: str, plaintext: str, operation: str) -> None:
        ciphertext = self._box.encrypt(plaintext)
        try:
            async with self._session_factory() as session:
                item = await session.get(SecureItem, key)
                if item is None:
                    session.add(SecureItem(key=key, value=ciphertext))
                else:
                    item.value = ciphertext
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to store {key}: {exc}", operation) from exc

    async def _delete(self, keys: list[str], operation: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(delete(SecureItem).where(SecureItem.key.in_(keys)))
                await session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to remove {', '.join(keys)}: {exc}", operation) from exc

    async def _read_json(self, key: str, operation: str) -> Any:
        """Decrypt and parse a stored value. Raises ``ValueError`` if corrupt."""
        stored = await self._read(key, operation)
        if stored is None:
            return None
        return json.loads(self._box.decrypt(stored))

    # ── Token ───────────────────────────────────────────────────────
    async def set_token(self, token: str) -> None:
        if not isinstance(token, str) or not token:
            raise InvalidArgument("Token cannot be empty")
        await self._write(AUTH_TOKEN_KEY, token, "setToken")

    async def get_token(self) -> str | None:
        stored = await self._read(AUTH_TOKEN_KEY, "getToken")
        if stored is None:
            return None
        try:
            return self._box.decrypt(stored) or None
        except DecryptionError:
            logger.warning("Stored auth token is unreadable, clearing...")
            await self.remove_token()
            return None

    async def remove_token(self) -> None:
        await self._delete([AUTH_TOKEN_KEY], "removeToken")

    # ── User data ───────────────────────────────────────────────────
    async def set_user_data(self, data: UserData | Mapping[str, Any]) -> None:
        if isinstance(data, BaseModel) and not isinstance(data, UserData):
            data = data.model_dump(by_alias=True)
        if not isinstance(data, (UserData, Mapping)):
            raise InvalidArgument("User data must be a valid object")
        try:
            user_data = data if isinstance(data, UserData) else UserData.model_validate(data)
        except ValidationError as exc:
            raise InvalidArgument(f"User data is malformed: {exc.error_count()} invalid field(s)") from exc

        payload = user_data.model_dump(by_alias=True, exclude_none=True)
        await self._write(USER_DATA_KEY, json.dumps(payload), "setUserData")

    async def get_user_data(self) -> UserData | None:
        try:
            parsed = await self._read_json(USER_DATA_KEY, "getUserData")
            if parsed is None:
                return None
            if not isinstance(parsed, dict) or not parsed.get("id") or not parsed.get("email"):
                raise ValueError("missing identity fields")
            return UserData.model_validate(parsed)
        except (ValueError, ValidationError):
            # DecryptionError, JSONDecodeError and ValidationError all land here
            logger.warning("Stored user data is invalid, clearing...")
            await self.remove_user_data()
            return None

    async def remove_user_data(self) -> None:
        await self._delete([USER_DATA_KEY], "removeUserData")

    # ── App settings ────────────────────────────────────────────────
    async def set_app_settings(self, partial: AppSettingsUpdate | Mapping[str, Any]) -> AppSettings:
        """Merge *partial* into the stored settings and return the result."""
        try:
            update = (
                partial
                if isinstance(partial, AppSettingsUpdate)
                else AppSettingsUpdate.model_validate(partial)
            )
        except ValidationError as exc:
            raise InvalidArgument(f"App settings are malformed: {exc.error_count()} invalid field(s)") from exc

        current = await self.get_app_settings()
        merged = current.model_dump(by_alias=True) | update.model_dump(by_alias=True, exclude_unset=True)
        settings = AppSettings.model_validate(_lenient_settings(merged))
        await self._write(APP_SETTINGS_KEY, settings.model_dump_json(by_alias=True), "setAppSettings")
        return settings

    async def get_app_settings(self) -> AppSettings:
        try:
            parsed = await self._read_json(APP_SETTINGS_KEY, "getAppSettings")
        except ValueError:
            logger.warning("Stored app settings are invalid, restoring defaults...")
            await self.remove_app_settings()
            return AppSettings()
        if not isinstance(parsed, dict):
            if parsed is not None:
                await self.remove_app_settings()
            return AppSettings()
        return AppSettings.model_validate(_lenient_settings(parsed))

    async def remove_app_settings(self) -> None:
        await self._delete([APP_SETTINGS_KEY], "removeAppSettings")

    # ── Whole-session helpers ───────────────────────────────────────
    async def clear_all(self) -> None:
        """Remove token, user data and settings in one transaction."""
        await self._delete([AUTH_TOKEN_KEY, USER_DATA_KEY, APP_SETTINGS_KEY], "clearAll")

    async def is_authenticated(self) -> bool:
        try:
            token = await self.get_token()
            user_data = await self.get_user_data()
        except StorageError as exc:
            logger.error("Authentication check failed during %s: %s", exc.operation, exc)
            return False
        return bool(token and user_data)

    async def get_auth_state(self) -> AuthState:
        token = await self.get_token()
        user_data = await self.get_user_data()
        return AuthState(
            is_authenticated=bool(token and user_data),
            has_token=token is not None,
            has_user_data=user_data is not None,
            user_data=user_data,
        )

    async def get_storage_status(self) -> dict[str, bool]:
        """Which logical keys currently hold a value (diagnostics only)."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(SecureItem.key))
                present = set(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to inspect storage: {exc}", "getStorageStatus") from exc
        return {name: key in present for name, key in STORAGE_KEYS.items()}


def _lenient_settings(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Field-by-field fallback to defaults for anything malformed."""
    theme = raw.get("theme")
    language = raw.get("language")
    last_sync = raw.get("lastSync")
    return {
        "theme": theme if theme in _THEMES else "auto",
        "notifications": raw.get("notifications") is not False,
        "language": language if isinstance(language, str) and language else "en",
        "lastSync": last_sync if isinstance(last_sync, str) else None,
        "biometricAuth": raw.get("biometricAuth") is True,
    }
