"""
SolBridge - Main API Router
Combines all endpoint routers
"""
from fastapi import APIRouter

from .deps import ApiAuth
from .v1.endpoints import health, positions, monitor

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["Health"]
)

api_router.include_router(
    positions.router,
    prefix="/positions",
    tags=["Positions"],
    dependencies=[ApiAuth]
)

api_router.include_router(
    monitor.router,
    prefix="/monitor",
    tags=["Position Monitor"],
    dependencies=[ApiAuth]
)
