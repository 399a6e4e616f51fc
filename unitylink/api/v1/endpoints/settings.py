"""
App settings endpoints — theme, notifications, language, sync and biometrics.

Settings live in the secure session store. PUT merges the given fields into
what is stored; fields never set fall back to their defaults.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from unitylink.api.v1.deps import get_store
from unitylink.schemas.session import AppSettings, AppSettingsUpdate
from unitylink.services.storage import SecureSessionStore

router = APIRouter(tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("/settings", response_model=AppSettings, response_model_by_alias=True)
async def get_settings(
    store: SecureSessionStore = Depends(get_store),
) -> AppSettings:
    """Get the current app settings."""
    return await store.get_app_settings()


@router.put("/settings", response_model=AppSettings, response_model_by_alias=True)
async def update_settings(
    body: AppSettingsUpdate,
    store: SecureSessionStore = Depends(get_store),
) -> AppSettings:
    """Merge the given fields into the stored app settings."""
    settings = await store.set_app_settings(body)
    logger.info("App settings updated: %s", sorted(body.model_dump(exclude_unset=True)))
    return settings
