"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, trips, trucks, users

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Transportation
router.include_router(trips.router)

# Inventory
router.include_router(trucks.router)

# User management
router.include_router(users.router)
