"""Pydantic schemas for temporary bypasses."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_serializer

from guardarr.schemas.enforcer import TickReportOut
from guardarr.services.bypass_service import as_utc


class BypassCreate(BaseModel):
    minutes: int
    created_by: str = "admin"


class BypassOut(BaseModel):
    bypass_id: str
    user_id: str
    minutes: int
    expires_at: datetime
    created_by: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_serializer("expires_at", "created_at")
    def _utc(self, value: Optional[datetime]):
        return as_utc(value)


class BypassStatus(BaseModel):
    active: bool
    bypass: Optional[BypassOut] = None


class ActiveBypassOut(BypassOut):
    plex_username: Optional[str] = None


class BypassCancelResult(BaseModel):
    cancelled: bool
    report: TickReportOut
