"""Bypass store: temporary per-user suspension of all enforcement.

Only the persistence half lives here. The side effects of granting and
cancelling (clearing remote filters, re-applying rules) touch the remote API
and the applied-state tracker, so they are orchestrated by the Enforcer.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from guardarr.models.bypass import TemporaryBypass

logger = logging.getLogger(__name__)

BYPASS_DURATIONS = (15, 30, 60, 120, 240)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def validate_minutes(minutes: int) -> int:
    if minutes not in BYPASS_DURATIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid duration. Use 15, 30, 60, 120, or 240 minutes.",
        )
    return minutes


def format_duration(minutes: int) -> str:
    if minutes >= 60:
        return f"{minutes // 60} hour(s)"
    return f"{minutes} minutes"


def get_active(db: Session, user_id: str, now: datetime) -> Optional[TemporaryBypass]:
    """Return the user's bypass only while ``expires_at > now``. Never deletes."""
    return (
        db.query(TemporaryBypass)
        .filter(TemporaryBypass.user_id == user_id, TemporaryBypass.expires_at > now)
        .first()
    )


def list_active(db: Session, now: datetime) -> list[TemporaryBypass]:
    return (
        db.query(TemporaryBypass)
        .filter(TemporaryBypass.expires_at > now)
        .order_by(TemporaryBypass.expires_at)
        .all()
    )


def active_user_ids(db: Session, now: datetime) -> set[str]:
    return {b.user_id for b in list_active(db, now)}


def grant(
    db: Session,
    user_id: str,
    minutes: int,
    now: datetime,
    created_by: str = "admin",
) -> TemporaryBypass:
    """Replace any existing bypass for the user with a new one, in one transaction."""
    validate_minutes(minutes)
    db.query(TemporaryBypass).filter(TemporaryBypass.user_id == user_id).delete(
        synchronize_session=False
    )
    bypass = TemporaryBypass(
        user_id=user_id,
        minutes=minutes,
        expires_at=now + timedelta(minutes=minutes),
        created_by=created_by,
    )
    db.add(bypass)
    db.commit()
    db.refresh(bypass)
    logger.info("Bypass granted to user %s for %d minutes", user_id, minutes)
    return bypass


def cancel(db: Session, user_id: str) -> bool:
    """Delete the user's bypass. Returns True if one existed."""
    deleted = db.query(TemporaryBypass).filter(TemporaryBypass.user_id == user_id).delete(
        synchronize_session=False
    )
    db.commit()
    if deleted:
        logger.info("Bypass cancelled for user %s", user_id)
    return bool(deleted)


def purge_expired(db: Session, now: datetime) -> int:
    deleted = db.query(TemporaryBypass).filter(TemporaryBypass.expires_at <= now).delete(
        synchronize_session=False
    )
    db.commit()
    if deleted:
        logger.debug("Purged %d expired bypass(es)", deleted)
    return deleted
