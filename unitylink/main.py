"""
UnityLink Session — application entry point and composition root.

This is the **only** place that builds the session collaborators (store,
remote user service, session manager, role directory) and assembles the
app. Everything else receives them through ``app.state``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncEngine

from unitylink.api.v1.api import api_router
from unitylink.api.v1.endpoints.auth import limiter
from unitylink.core.config import Settings, settings
from unitylink.core.exceptions import register_exception_handlers
from unitylink.core.security import SecretBox
from unitylink.db.session import build_engine, build_session_factory, create_tables
from unitylink.services.auth_session import AuthSessionManager
from unitylink.services.remote import UserService, build_user_service
from unitylink.services.role_directory import RoleDirectory
from unitylink.services.storage import SecureSessionStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class SessionContainer:
    engine: AsyncEngine
    store: SecureSessionStore
    service: UserService
    manager: AuthSessionManager
    directory: RoleDirectory


async def build_session(config: Settings, service: UserService | None = None) -> SessionContainer:
    """Create storage, pick the user service and restore the saved session."""
    engine = build_engine(config.SESSION_DB_URL)
    await create_tables(engine)
    store = SecureSessionStore(
        build_session_factory(engine),
        SecretBox(config.STORAGE_ENCRYPTION_KEY or None),
    )
    if service is None:
        service = build_user_service(config, token_provider=store.get_token)

    manager = AuthSessionManager(
        service,
        store,
        guard_stale_results=config.AUTH_GUARD_STALE_RESULTS,
    )
    await manager.initialize()
    return SessionContainer(
        engine=engine,
        store=store,
        service=service,
        manager=manager,
        directory=RoleDirectory(service, manager),
    )


def attach_session(application: FastAPI, container: SessionContainer) -> None:
    application.state.session_store = container.store
    application.state.session_manager = container.manager
    application.state.role_directory = container.directory


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    container = await build_session(settings)
    attach_session(application, container)
    logger.info(
        "🚀 %s v%s started (session state: %s)",
        settings.PROJECT_NAME,
        settings.VERSION,
        container.manager.state.value,
    )
    yield
    await container.engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Role-based authentication and session core",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting on login / register
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
