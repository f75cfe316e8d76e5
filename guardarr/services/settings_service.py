"""Runtime settings: the ``settings`` table, falling back to the environment."""
import logging
from typing import Optional

import pytz
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from guardarr.config import settings
from guardarr.models.setting import Setting

logger = logging.getLogger(__name__)

ADMIN_TOKEN_KEY = "plex_admin_token"
TIMEZONE_KEY = "timezone"

# settings-table key → Settings attribute used when the row is missing or blank
ENV_FALLBACK = {
    ADMIN_TOKEN_KEY: "PLEX_ADMIN_TOKEN",
    TIMEZONE_KEY: "TIMEZONE",
}


def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.get(Setting, key)
    if row is not None and row.value:
        return row.value
    fallback = ENV_FALLBACK.get(key)
    if fallback:
        return getattr(settings, fallback) or None
    return None


def set_setting(db: Session, key: str, value: str) -> Setting:
    row = db.get(Setting, key)
    if row is None:
        row = Setting(key=key, value=value)
        db.add(row)
    else:
        row.value = value
    db.commit()
    db.refresh(row)
    logger.info("Setting %s updated", key)
    return row


def get_admin_token(db: Session) -> Optional[str]:
    return get_setting(db, ADMIN_TOKEN_KEY)


def get_timezone(db: Session) -> Optional[str]:
    return get_setting(db, TIMEZONE_KEY)


def validate_timezone(name: str) -> str:
    if name not in pytz.all_timezones_set:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown timezone: {name}",
        )
    return name


def mask_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return f"{token[:4]}***" if len(token) > 8 else "***"
