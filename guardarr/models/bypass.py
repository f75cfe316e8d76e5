"""TemporaryBypass ORM model: at most one row per user."""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from guardarr.database import Base


class TemporaryBypass(Base):
    __tablename__ = "temporary_bypasses"

    bypass_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, unique=True)
    minutes = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)  # UTC
    created_by = Column(String(100), nullable=False, default="admin")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
