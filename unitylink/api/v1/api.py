"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from unitylink.api.v1.endpoints import auth, settings, users

api_router = APIRouter()

# Auth (login, register, logout, session, role switcher)
api_router.include_router(auth.router)

# Roles and user management
api_router.include_router(users.router)

# App settings
api_router.include_router(settings.router)
