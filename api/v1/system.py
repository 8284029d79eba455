"""
System endpoints.

Health checks and system status.
"""

from fastapi import APIRouter

from ..deps import ServicesDep

router = APIRouter()


@router.get("/status")
async def get_status(services: ServicesDep):
    """
    Health check endpoint.

    Returns system status and the number of live flows.
    """
    return {
        "status": "healthy",
        "service": "authflow-api",
        "active_flows": services.flows.active_count()
    }
