"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from campusdash.api.v1.endpoints import auth, dashboard, health, profile, users

api_router = APIRouter()

# Registration, login, current user
api_router.include_router(auth.router)

# Own profile, password, avatar
api_router.include_router(profile.router)

# User lookup & admin management
api_router.include_router(users.router)

# Role-scoped dashboards & activity feed
api_router.include_router(dashboard.router)

# Health
api_router.include_router(health.router)
