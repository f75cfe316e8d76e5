"""FastAPI dependencies shared by the routers."""
from fastapi import Request

from guardarr.services.enforcer import Enforcer, EnforcementScheduler


def get_enforcer(request: Request) -> Enforcer:
    return request.app.state.enforcer


def get_scheduler(request: Request) -> EnforcementScheduler:
    return request.app.state.scheduler
