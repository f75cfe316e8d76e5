"""Pydantic schemas for enforcer reports and status."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class PairChangeOut(BaseModel):
    kind: str
    user_id: str
    rule_id: str
    username: str
    rule_name: str
    success: bool
    detail: str

    @classmethod
    def from_change(cls, change) -> "PairChangeOut":
        return cls(
            kind=change.kind.value,
            user_id=change.user_id,
            rule_id=change.rule_id,
            username=change.username,
            rule_name=change.rule_name,
            success=change.success,
            detail=change.detail,
        )


class TickReportOut(BaseModel):
    started_at: datetime
    current_day: Optional[str] = None
    current_time: Optional[str] = None
    skipped: Optional[str] = None
    applied: list[PairChangeOut] = []
    lifted: list[PairChangeOut] = []
    failed: list[PairChangeOut] = []

    @classmethod
    def from_report(cls, report) -> "TickReportOut":
        reference = report.reference
        return cls(
            started_at=report.started_at,
            current_day=reference.weekday if reference else None,
            current_time=reference.clock if reference else None,
            skipped=report.skipped,
            applied=[PairChangeOut.from_change(c) for c in report.applied],
            lifted=[PairChangeOut.from_change(c) for c in report.lifted],
            failed=[PairChangeOut.from_change(c) for c in report.failed],
        )


class AssignmentResult(BaseModel):
    applied: bool
    removed: bool
    report: TickReportOut


class EnforcerStatus(BaseModel):
    running: bool
    interval_seconds: float
    applied_count: int
    last_tick: Optional[TickReportOut] = None
