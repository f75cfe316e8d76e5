"""User ORM model: media-server accounts synced from the server."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from guardarr.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    plex_id = Column(String(64), nullable=False, unique=True)  # remote account id
    plex_username = Column(String(255), nullable=False)
    plex_email = Column(String(255), nullable=True)
    plex_thumb = Column(String(500), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_home = Column(Boolean, nullable=False, default=False)
    is_restricted = Column(Boolean, nullable=False, default=False)
    deactivated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
