"""Rule and UserRule (assignment) ORM models."""
import uuid
from datetime import time
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Time, JSON, ForeignKey
from sqlalchemy.sql import func
from guardarr.database import Base


class Rule(Base):
    __tablename__ = "rules"

    rule_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    days = Column(JSON, nullable=False, default=lambda: ["all"])  # "sun".."sat" or "all"
    start_time = Column(Time, nullable=False, default=time(0, 0))  # civil, configured tz
    end_time = Column(Time, nullable=False, default=time(23, 59))
    allowed_ratings = Column(JSON, nullable=False, default=list)
    blocked_ratings = Column(JSON, nullable=False, default=list)
    allowed_tv_ratings = Column(JSON, nullable=False, default=list)
    blocked_tv_ratings = Column(JSON, nullable=False, default=list)
    include_labels = Column(JSON, nullable=False, default=list)
    exclude_labels = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserRule(Base):
    __tablename__ = "user_rules"

    user_id = Column(String(36), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True)
    rule_id = Column(String(36), ForeignKey("rules.rule_id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
