"""Runtime settings routes (admin token, timezone)."""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from guardarr.database import get_db
from guardarr.dependencies import get_enforcer
from guardarr.models.activity import ActivityAction
from guardarr.schemas.settings import SettingsOut, SettingsUpdate
from guardarr.services import settings_service
from guardarr.services.activity_service import record_activity
from guardarr.services.enforcer import Enforcer

logger = logging.getLogger(__name__)
router = APIRouter()


def _settings_out(db: Session) -> SettingsOut:
    token = settings_service.get_admin_token(db)
    return SettingsOut(
        plex_admin_token=settings_service.mask_token(token),
        token_configured=bool(token),
        timezone=settings_service.get_timezone(db),
    )


@router.get("/", response_model=SettingsOut)
def get_settings(db: Session = Depends(get_db)):
    return _settings_out(db)


@router.put("/", response_model=SettingsOut)
def update_settings(
    payload: SettingsUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Save the token and/or timezone, then run a pass against the new values."""
    changed = []
    if payload.timezone is not None:
        settings_service.validate_timezone(payload.timezone)
        settings_service.set_setting(db, settings_service.TIMEZONE_KEY, payload.timezone)
        changed.append(f"timezone={payload.timezone}")
    if payload.plex_admin_token is not None:
        settings_service.set_setting(db, settings_service.ADMIN_TOKEN_KEY, payload.plex_admin_token.strip())
        changed.append("plex_admin_token")
    if changed:
        record_activity(db, ActivityAction.settings_updated, "System", details=", ".join(changed))
        background_tasks.add_task(enforcer.run_tick)
    return _settings_out(db)
