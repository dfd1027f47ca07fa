"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    auth, donations, map_discovery, admin, users, volunteers, contact,
)

router = APIRouter()

router.include_router(auth.router)
router.include_router(donations.router)
router.include_router(map_discovery.router)
router.include_router(users.router)
router.include_router(volunteers.router)
router.include_router(contact.router)
router.include_router(admin.router)
