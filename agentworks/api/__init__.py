"""API router aggregation."""

from fastapi import APIRouter

from agentworks.api.agencies import router as agencies_router
from agentworks.api.customer_talents import router as customer_talents_router
from agentworks.api.health import router as health_router
from agentworks.api.talents import router as talents_router

# Main API router (for /api/* endpoints)
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(talents_router)
api_router.include_router(agencies_router)
api_router.include_router(customer_talents_router)

__all__ = ["api_router"]
