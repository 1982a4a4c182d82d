"""
SolBridge - Monitoring Tasks
Celery tasks for system health and the position sweep backstop
"""
from workers.celery_app import celery_app
from core.config import settings
import logging
import redis
import asyncio

logger = logging.getLogger(__name__)


async def _sweep_once() -> dict:
    # Imported here so the worker only builds engines when the task runs
    from db.session import close_db
    from engine.runtime import build_monitor_runtime

    runtime = build_monitor_runtime()
    try:
        summary = await runtime.monitor.run_cycle()
        return summary.model_dump(mode="json")
    finally:
        await runtime.close()
        # Pool connections belong to this event loop
        await close_db()


@celery_app.task(name="workers.tasks.monitoring.sweep_positions")
def sweep_positions():
    """
    Run one monitor cycle every minute.
    Redundant with the API-process loop; double closure is prevented by
    the position locks and the conditional close in the repository.
    """
    try:
        summary = asyncio.run(_sweep_once())
    except Exception as e:
        logger.error(f"Position sweep failed: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}

    if summary["closed"] or summary["close_failed"]:
        logger.info(f"Sweep closed {summary['closed']} positions, {summary['close_failed']} failures")
    return {"status": "success", **summary}


async def _check_database() -> None:
    from sqlalchemy import text
    from db.session import engine, close_db

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    finally:
        await close_db()


@celery_app.task(name="workers.tasks.monitoring.system_health_check")
def system_health_check():
    """
    Check system health every 5 minutes.
    Verifies the services the monitor depends on.
    """
    results = {
        "redis": False,
        "database": False,
        "telegram": bool(settings.TELEGRAM_BOT_TOKEN),
    }

    # Check Redis
    try:
        r = redis.from_url(settings.REDIS_URL)
        r.ping()
        r.close()
        results["redis"] = True
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")

    # Check Database
    try:
        asyncio.run(_check_database())
        results["database"] = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")

    # Log results
    if all(results.values()):
        logger.info("Health check passed")
    else:
        logger.warning(f"Health check issues: {results}")

    return results
