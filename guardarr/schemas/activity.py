"""Pydantic schemas for the activity feed and active restrictions."""
from __future__ import annotations
from datetime import datetime, time
from typing import Optional
from pydantic import BaseModel


class ActivityOut(BaseModel):
    activity_id: int
    plex_username: Optional[str] = None
    rule_name: Optional[str] = None
    action: str
    details: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ActiveRestrictionOut(BaseModel):
    user_id: str
    username: str
    thumb: Optional[str] = None
    is_home: bool
    rule_id: str
    rule_name: str
    allowed_ratings: list[str]
    blocked_ratings: list[str]
    allowed_tv_ratings: list[str]
    blocked_tv_ratings: list[str]
    start_time: time
    end_time: time
    minutes_remaining: int
    priority: int
    has_bypass: bool
    is_applied: bool


class ActiveRestrictionsOut(BaseModel):
    restrictions: list[ActiveRestrictionOut]
    current_day: str
    current_time: str
    timezone: str
