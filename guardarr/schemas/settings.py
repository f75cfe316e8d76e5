"""Pydantic schemas for runtime settings."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel


class SettingsUpdate(BaseModel):
    plex_admin_token: Optional[str] = None
    timezone: Optional[str] = None


class SettingsOut(BaseModel):
    plex_admin_token: Optional[str] = None  # masked
    token_configured: bool
    timezone: Optional[str] = None
