"""Pydantic schemas for Users."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserSync(BaseModel):
    """One account as reported by the media server; upserted by plex_id."""

    plex_id: str
    plex_username: str
    plex_email: Optional[str] = None
    plex_thumb: Optional[str] = None
    is_admin: bool = False
    is_home: bool = False
    is_restricted: bool = False
    deactivated: bool = False


class UserOut(BaseModel):
    user_id: str
    plex_id: str
    plex_username: str
    plex_email: Optional[str] = None
    plex_thumb: Optional[str] = None
    is_admin: bool
    is_home: bool
    is_restricted: bool
    deactivated: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RuleAssign(BaseModel):
    rule_id: str


class PurgeResult(BaseModel):
    deleted: int
    users: list[str]
