"""Activity log writer: shared by the enforcer and the CRUD routers."""
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from guardarr.models.activity import ActivityAction, ActivityLog

logger = logging.getLogger(__name__)


def record_activity(
    db: Session,
    action: Union[ActivityAction, str],
    username: Optional[str] = None,
    rule_name: Optional[str] = None,
    details: Optional[str] = None,
    commit: bool = True,
) -> ActivityLog:
    entry = ActivityLog(
        plex_username=username,
        rule_name=rule_name,
        action=ActivityAction(action).value,
        details=details,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry


def list_activity(db: Session, limit: int = 100, action: Optional[str] = None) -> list[ActivityLog]:
    query = db.query(ActivityLog)
    if action:
        query = query.filter(ActivityLog.action == action)
    return query.order_by(ActivityLog.activity_id.desc()).limit(limit).all()
