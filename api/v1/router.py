"""
API v1 router.

Aggregates all v1 endpoints.
"""

from fastapi import APIRouter

from . import flows, system

router = APIRouter()

# Include all route modules
router.include_router(flows.router, prefix="/flows", tags=["Flows"])
router.include_router(system.router, prefix="/system", tags=["System"])
