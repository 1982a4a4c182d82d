"""
SolBridge - Celery Application Configuration
"""
import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from core.config import settings

# Create Celery app
celery_app = Celery(
    "solbridge",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "workers.tasks.monitoring",
    ]
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit at 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,  # One task at a time
    worker_concurrency=2,

    # Result settings
    result_expires=3600,  # 1 hour
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    # Backstop for the in-process monitor loop
    "sweep-positions-every-minute": {
        "task": "workers.tasks.monitoring.sweep_positions",
        "schedule": crontab(minute="*"),
        "args": ()
    },

    # Health check every 5 minutes
    "health-check-every-5-min": {
        "task": "workers.tasks.monitoring.system_health_check",
        "schedule": crontab(minute="*/5"),
        "args": ()
    },
}


@setup_logging.connect
def configure_logging(**kwargs):
    """Same log format as the API process"""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
