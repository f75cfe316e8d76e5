"""ActivityLog ORM model: append-only audit trail."""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from guardarr.database import Base


class ActivityAction(str, enum.Enum):
    rule_applied = "rule_applied"
    restriction_lifted = "restriction_lifted"
    bypass_granted = "bypass_granted"
    bypass_cancelled = "bypass_cancelled"
    rule_created = "rule_created"
    rule_updated = "rule_updated"
    rule_deleted = "rule_deleted"
    user_sync = "user_sync"
    users_purge = "users_purge"
    settings_updated = "settings_updated"


class ActivityLog(Base):
    __tablename__ = "activity_log"

    activity_id = Column(Integer, primary_key=True, autoincrement=True)
    plex_username = Column(String(255), nullable=True)
    rule_name = Column(String(150), nullable=True)
    action = Column(String(50), nullable=False)  # kept as text: the CRUD layer shares this log
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
