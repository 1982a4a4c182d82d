"""
SolBridge - Monitor Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CycleSummary(BaseModel):
    """Counters of one monitor cycle"""
    started_at: datetime
    duration_seconds: float
    positions: int
    evaluated: int
    skipped_in_flight: int
    price_unavailable: int
    closed: int
    close_failed: int
    errors: int


class MonitorStatus(BaseModel):
    """Position monitor status"""
    is_running: bool
    message: str
    interval_seconds: float
    max_concurrency: int
    cycles_completed: int
    in_flight: int
    quarantined: int
    last_cycle: Optional[CycleSummary] = None
