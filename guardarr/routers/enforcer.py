"""Enforcer control routes."""
from fastapi import APIRouter, Depends

from guardarr.dependencies import get_enforcer, get_scheduler
from guardarr.schemas.enforcer import EnforcerStatus, TickReportOut
from guardarr.services.enforcer import Enforcer, EnforcementScheduler

router = APIRouter()


@router.post("/run", response_model=TickReportOut)
def run_enforcement(enforcer: Enforcer = Depends(get_enforcer)):
    """Run one reconciliation pass now."""
    return TickReportOut.from_report(enforcer.run_tick())


@router.get("/status", response_model=EnforcerStatus)
def enforcer_status(
    enforcer: Enforcer = Depends(get_enforcer),
    scheduler: EnforcementScheduler = Depends(get_scheduler),
):
    last = enforcer.last_report
    return EnforcerStatus(
        running=scheduler.running,
        interval_seconds=scheduler.interval_seconds,
        applied_count=len(enforcer.tracker),
        last_tick=TickReportOut.from_report(last) if last else None,
    )
