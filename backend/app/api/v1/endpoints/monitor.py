"""
SolBridge - Position Monitor Endpoints
"""
from fastapi import APIRouter, HTTPException, status

from engine.runtime import get_position_monitor
from schemas.monitor import CycleSummary, MonitorStatus

router = APIRouter()


def _require_monitor():
    monitor = get_position_monitor()
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Position monitor is not enabled in this process"
        )
    return monitor


@router.get("/status", response_model=MonitorStatus)
async def get_monitor_status():
    """Loop state and counters of the last cycle"""
    return _require_monitor().get_status()


@router.post("/run", response_model=CycleSummary)
async def run_monitor_cycle():
    """Run one cycle now; positions already in flight are skipped"""
    return await _require_monitor().run_cycle()
