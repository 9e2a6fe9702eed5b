"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import users, trips, matches

router = APIRouter()

router.include_router(users.router)
router.include_router(trips.router)
router.include_router(matches.router)
