"""Setting ORM model: runtime key/value configuration."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from guardarr.database import Base


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
