"""
SolBridge - Health Check Endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from sqlalchemy import text
import redis.asyncio as redis

from api.deps import DbSession
from core.config import settings
from engine.runtime import get_position_monitor

router = APIRouter()


@router.get("/")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/detailed")
async def detailed_health_check(db: DbSession):
    """Detailed health check with all service statuses"""
    results = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {}
    }

    # Check Database
    try:
        await db.execute(text("SELECT 1"))
        results["services"]["database"] = {"status": "healthy"}
    except Exception as e:
        results["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        results["status"] = "degraded"

    # Check Redis (position locks)
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        results["services"]["redis"] = {"status": "healthy"}
    except Exception as e:
        results["services"]["redis"] = {"status": "unhealthy", "error": str(e)}
        if settings.POSITION_LOCK_ENABLED:
            results["status"] = "degraded"

    # Monitor status
    monitor = get_position_monitor()
    if monitor is not None:
        results["monitor"] = monitor.get_status().model_dump(mode="json")
    else:
        results["monitor"] = {"is_running": False, "message": "Position monitor not started"}
        if settings.MONITOR_ENABLED:
            results["status"] = "degraded"

    return results
