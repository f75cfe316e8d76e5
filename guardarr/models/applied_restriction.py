"""AppliedRestriction ORM model: durable backing for the applied-state tracker.

No foreign keys: the snapshot must outlive a deleted user or rule so the
enforcer can still lift the filter it pushed.
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from guardarr.database import Base


class AppliedRestriction(Base):
    __tablename__ = "applied_restrictions"

    user_id = Column(String(36), primary_key=True)
    rule_id = Column(String(36), primary_key=True)
    plex_id = Column(String(64), nullable=False)
    username = Column(String(255), nullable=False)
    rule_name = Column(String(150), nullable=False)
    movie_filter = Column(Text, nullable=False, default="")  # as last pushed
    tv_filter = Column(Text, nullable=False, default="")
    applied_at = Column(DateTime(timezone=True), server_default=func.now())
