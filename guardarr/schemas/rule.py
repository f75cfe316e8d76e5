"""Pydantic schemas for Rules."""
from __future__ import annotations
from datetime import datetime, time
from typing import Optional, Union
from pydantic import BaseModel, field_validator

from guardarr.services.rating_filter import split_ratings
from guardarr.services.schedule import ALL_DAYS, WEEKDAYS

RatingList = Union[list[str], str]


def _clean_days(value):
    if value is None:
        return value
    days = [d.strip().lower() for d in (value.split(",") if isinstance(value, str) else value) if d.strip()]
    unknown = [d for d in days if d not in WEEKDAYS and d != ALL_DAYS]
    if unknown:
        raise ValueError(f"Unknown day(s): {', '.join(unknown)}")
    if not days:
        raise ValueError("At least one day (or 'all') is required")
    return days


class RuleCreate(BaseModel):
    name: str
    is_active: bool = True
    days: list[str] = ["all"]
    start_time: time = time(0, 0)
    end_time: time = time(23, 59)
    allowed_ratings: RatingList = []
    blocked_ratings: RatingList = []
    allowed_tv_ratings: RatingList = []
    blocked_tv_ratings: RatingList = []
    include_labels: RatingList = []
    exclude_labels: RatingList = []
    priority: int = 0

    @field_validator("days", mode="before")
    @classmethod
    def _days(cls, value):
        return _clean_days(value)

    @field_validator(
        "allowed_ratings", "blocked_ratings", "allowed_tv_ratings",
        "blocked_tv_ratings", "include_labels", "exclude_labels",
    )
    @classmethod
    def _split(cls, value):
        return split_ratings(value)


class RuleUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    days: Optional[list[str]] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    allowed_ratings: Optional[RatingList] = None
    blocked_ratings: Optional[RatingList] = None
    allowed_tv_ratings: Optional[RatingList] = None
    blocked_tv_ratings: Optional[RatingList] = None
    include_labels: Optional[RatingList] = None
    exclude_labels: Optional[RatingList] = None
    priority: Optional[int] = None

    @field_validator("days", mode="before")
    @classmethod
    def _days(cls, value):
        return _clean_days(value)

    @field_validator(
        "allowed_ratings", "blocked_ratings", "allowed_tv_ratings",
        "blocked_tv_ratings", "include_labels", "exclude_labels",
    )
    @classmethod
    def _split(cls, value):
        return None if value is None else split_ratings(value)


class RuleOut(BaseModel):
    rule_id: str
    name: str
    is_active: bool
    days: list[str]
    start_time: time
    end_time: time
    allowed_ratings: list[str]
    blocked_ratings: list[str]
    allowed_tv_ratings: list[str]
    blocked_tv_ratings: list[str]
    include_labels: list[str]
    exclude_labels: list[str]
    priority: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
