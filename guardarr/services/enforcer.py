"""Rule enforcement: reconcile assigned rules against the remote account API.

Every (user, rule) assignment is either NOT_APPLIED or APPLIED in the
applied-state tracker. Each tick:

1. snapshots rules, users, assignments and active bypasses,
2. classifies every pair as desired (rule on, window open, user not admin,
   no bypass) or not,
3. diffs that against the tracker,
4. pushes the deltas through the Plex client, grouped per account so one
   account never sees two concurrent calls,
5. commits the outcomes: tracker updates and activity entries.

Pairs already in the right state cost nothing: no remote call, no log
entry. A pair counts as applied only while the filters last pushed for it
match what its rule compiles to now, so an edited rule is pushed again.
Failures leave the tracker untouched so the next tick retries.

Each push overwrites the account's filters, and a clear wipes them all.
Whenever an account needs any call, every desired pair of that account is
pushed in ascending priority so the highest-priority rule lands last. If the
clear fails nothing is pushed; the next tick retries the whole account.

Manual actions (bypass grant/cancel, immediate assign/unassign) share the
enforcer lock with ticks.
"""
import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import pytz
from fastapi import HTTPException
from sqlalchemy.orm import Session

from guardarr.config import settings
from guardarr.models.activity import ActivityAction
from guardarr.models.bypass import TemporaryBypass
from guardarr.models.rule import Rule, UserRule
from guardarr.models.user import User
from guardarr.services import activity_service, bypass_service, settings_service
from guardarr.services.applied_state import AppliedRecord, AppliedStateTracker
from guardarr.services.plex_client import PlexClient
from guardarr.services.rating_filter import RatingFilters, compile_rule_filters, describe_restriction
from guardarr.services.schedule import CivilTime, is_rule_active, resolve_civil_time

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChangeKind(str, enum.Enum):
    apply = "apply"
    lift = "lift"
    reapply = "reapply"


@dataclass
class PairChange:
    """Outcome of one remote push or clear for a (user, rule) pair."""

    kind: ChangeKind
    user_id: str
    rule_id: str
    plex_id: str
    username: str
    rule_name: str
    success: bool
    detail: str
    movie_filter: str = ""
    tv_filter: str = ""


@dataclass
class TickReport:
    started_at: datetime
    reference: Optional[CivilTime] = None
    skipped: Optional[str] = None
    applied: list[PairChange] = field(default_factory=list)
    lifted: list[PairChange] = field(default_factory=list)
    failed: list[PairChange] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied or self.lifted or self.failed)


@dataclass
class _Push:
    rule_id: str
    rule_name: str
    priority: int
    filters: RatingFilters
    description: str
    already_applied: bool


@dataclass
class _AccountJob:
    """All remote work for one account in one reconciliation pass."""

    user_id: str
    plex_id: str
    username: str
    lifts: list[tuple[AppliedRecord, str]] = field(default_factory=list)
    pushes: list[_Push] = field(default_factory=list)


class Enforcer:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        client: PlexClient,
        tracker: AppliedStateTracker,
        clock: Callable[[], datetime] = utc_now,
        max_workers: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._client = client
        self.tracker = tracker
        self._clock = clock
        self.max_workers = max(1, max_workers or settings.ENFORCER_MAX_WORKERS)
        # re-entrant: cancel/assign actions reconcile while holding it
        self._lock = threading.RLock()
        self.last_report: Optional[TickReport] = None

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def run_tick(self) -> TickReport:
        """One full pass over every assignment. Never raises."""
        with self._lock:
            try:
                report = self._reconcile()
            except Exception:
                logger.exception("Enforcement tick failed")
                report = TickReport(started_at=self._clock(), skipped="error")
            self.last_report = report
            return report

    def reconcile_user(self, user_id: str) -> TickReport:
        """Reconcile one user's pairs now instead of waiting for the next tick."""
        with self._lock:
            return self._reconcile(only_user_id=user_id)

    def reconcile_users(self, user_ids: Iterable[str]) -> None:
        """Background-task entry point: outcomes are logged, never raised."""
        for user_id in user_ids:
            try:
                report = self.reconcile_user(user_id)
            except Exception:
                logger.exception("Immediate reconciliation for user %s failed", user_id)
                continue
            logger.info(
                "Immediate reconciliation for user %s: %d applied, %d lifted, %d failed",
                user_id, len(report.applied), len(report.lifted), len(report.failed),
            )

    def _reconcile(self, only_user_id: Optional[str] = None) -> TickReport:
        now = self._clock()
        report = TickReport(started_at=now)
        db = self._session_factory()
        try:
            token = settings_service.get_admin_token(db)
            if not token:
                logger.warning("No Plex admin token configured; skipping enforcement")
                report.skipped = "missing_token"
                return report

            tz_name = settings_service.get_timezone(db)
            try:
                if not tz_name:
                    raise pytz.UnknownTimeZoneError(tz_name)
                report.reference = resolve_civil_time(now, tz_name)
            except pytz.UnknownTimeZoneError:
                logger.warning("Invalid timezone setting %r; skipping enforcement", tz_name)
                report.skipped = "invalid_timezone"
                return report

            jobs = self._plan(db, report.reference, now, only_user_id)
            changes = self._execute(jobs, token)
            self._commit(db, changes, report)

            if only_user_id is None:
                bypass_service.purge_expired(db, now)
        finally:
            db.close()
        return report

    @staticmethod
    def _blocking_reason(
        user: Optional[User],
        rule: Optional[Rule],
        reference: CivilTime,
        bypassed: set[str],
    ) -> Optional[str]:
        """None when the pair should be enforced, otherwise why not."""
        if rule is None:
            return "Rule deleted"
        if user is None:
            return "User removed"
        if user.is_admin:
            return "User is an administrator"
        if not rule.is_active:
            return "Rule deactivated"
        if not is_rule_active(rule, reference):
            return "Rule time window ended"
        if user.user_id in bypassed:
            return "Temporary bypass active"
        return None

    def _plan(
        self,
        db: Session,
        reference: CivilTime,
        now: datetime,
        only_user_id: Optional[str],
    ) -> list[_AccountJob]:
        query = db.query(UserRule)
        if only_user_id is not None:
            query = query.filter(UserRule.user_id == only_user_id)
        assignments = query.all()

        applied = self.tracker.records()
        if only_user_id is not None:
            applied = [r for r in applied if r.user_id == only_user_id]

        user_ids = {a.user_id for a in assignments} | {r.user_id for r in applied}
        rule_ids = {a.rule_id for a in assignments} | {r.rule_id for r in applied}
        users = {u.user_id: u for u in db.query(User).filter(User.user_id.in_(user_ids))} if user_ids else {}
        rules = {r.rule_id: r for r in db.query(Rule).filter(Rule.rule_id.in_(rule_ids))} if rule_ids else {}
        bypassed = bypass_service.active_user_ids(db, now)

        jobs: dict[str, _AccountJob] = {}
        desired: set[tuple[str, str]] = set()

        for assignment in assignments:
            user = users.get(assignment.user_id)
            rule = rules.get(assignment.rule_id)
            if self._blocking_reason(user, rule, reference, bypassed) is not None:
                continue
            pair = (assignment.user_id, assignment.rule_id)
            filters = compile_rule_filters(rule)
            if filters.is_empty:
                # nothing to enforce: the pair stays NOT_APPLIED, silently
                continue
            desired.add(pair)
            job = jobs.setdefault(
                user.user_id,
                _AccountJob(user_id=user.user_id, plex_id=user.plex_id, username=user.plex_username),
            )
            job.pushes.append(_Push(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                priority=rule.priority or 0,
                filters=filters,
                description=describe_restriction(rule),
                already_applied=self._is_current(pair, filters),
            ))

        assigned = {(a.user_id, a.rule_id) for a in assignments}
        for record in applied:
            if record.pair in desired:
                continue
            if record.pair in assigned:
                reason = self._blocking_reason(
                    users.get(record.user_id), rules.get(record.rule_id), reference, bypassed
                ) or "No ratings configured"
            elif record.rule_id not in rules:
                reason = "Rule deleted"
            else:
                reason = "Rule unassigned"
            job = jobs.setdefault(
                record.user_id,
                _AccountJob(user_id=record.user_id, plex_id=record.plex_id, username=record.username),
            )
            job.lifts.append((record, reason))

        planned = []
        for job in jobs.values():
            if not job.lifts and all(p.already_applied for p in job.pushes):
                # steady state: no call at all
                continue
            planned.append(job)
            # every push overwrites the last one; re-send them all in priority order
            job.pushes.sort(key=lambda p: (p.priority, p.rule_name))
        return planned

    def _is_current(self, pair: tuple[str, str], filters: RatingFilters) -> bool:
        record = self.tracker.get(*pair)
        return record is not None and record.matches(filters.movie_filter, filters.tv_filter)

    def _execute(self, jobs: list[_AccountJob], token: str) -> list[PairChange]:
        if not jobs:
            return []
        changes: list[PairChange] = []
        workers = min(self.max_workers, len(jobs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enforcer") as pool:
            futures = {pool.submit(self._run_job, job, token): job for job in jobs}
            for future in as_completed(futures):
                job = futures[future]
                try:
                    changes.extend(future.result())
                except Exception:
                    logger.exception("Remote update for %s failed", job.username)
        return changes

    def _run_job(self, job: _AccountJob, token: str) -> list[PairChange]:
        """Remote calls only; runs on a worker thread and touches no session."""
        changes = []
        cleared = False
        if job.lifts:
            cleared = self._client.clear_filter(job.plex_id, token)
            for record, reason in job.lifts:
                changes.append(PairChange(
                    kind=ChangeKind.lift,
                    user_id=record.user_id,
                    rule_id=record.rule_id,
                    plex_id=job.plex_id,
                    username=record.username,
                    rule_name=record.rule_name,
                    success=cleared,
                    detail=reason,
                ))

        if job.lifts and not cleared:
            return changes

        for push in job.pushes:
            ok = self._client.apply_filter(
                job.plex_id, push.filters.movie_filter, push.filters.tv_filter, token
            )
            changes.append(PairChange(
                kind=ChangeKind.reapply if push.already_applied else ChangeKind.apply,
                user_id=job.user_id,
                rule_id=push.rule_id,
                plex_id=job.plex_id,
                username=job.username,
                rule_name=push.rule_name,
                success=ok,
                detail=push.description,
                movie_filter=push.filters.movie_filter,
                tv_filter=push.filters.tv_filter,
            ))
        return changes

    def _commit(self, db: Session, changes: list[PairChange], report: TickReport) -> None:
        for change in changes:
            try:
                self._commit_change(db, change, report)
            except Exception:
                db.rollback()
                logger.exception(
                    "Recording %s of '%s' for %s failed", change.kind.value, change.rule_name, change.username
                )
        db.commit()

    def _commit_change(self, db: Session, change: PairChange, report: TickReport) -> None:
        if not change.success:
            report.failed.append(change)
            if change.kind is ChangeKind.reapply:
                # the clear went through but the re-push did not: start over next tick
                self.tracker.clear(change.user_id, change.rule_id)
            logger.warning(
                "Failed to %s '%s' for %s; will retry next tick",
                change.kind.value, change.rule_name, change.username,
            )
            return

        if change.kind is ChangeKind.apply:
            self.tracker.mark_applied(change.user_id, change.rule_id, AppliedRecord(
                user_id=change.user_id,
                rule_id=change.rule_id,
                plex_id=change.plex_id,
                username=change.username,
                rule_name=change.rule_name,
                movie_filter=change.movie_filter,
                tv_filter=change.tv_filter,
                applied_at=self._clock(),
            ))
            activity_service.record_activity(
                db, ActivityAction.rule_applied, change.username, change.rule_name, change.detail
            )
            report.applied.append(change)
            logger.info("Applied '%s' to %s: %s", change.rule_name, change.username, change.detail)
        elif change.kind is ChangeKind.lift:
            self.tracker.clear(change.user_id, change.rule_id)
            activity_service.record_activity(
                db, ActivityAction.restriction_lifted, change.username, change.rule_name, change.detail
            )
            report.lifted.append(change)
            logger.info("Lifted '%s' from %s (%s)", change.rule_name, change.username, change.detail)
        else:
            logger.info("Re-pushed '%s' to %s after clearing filters", change.rule_name, change.username)

    # ------------------------------------------------------------------
    # Manual actions
    # ------------------------------------------------------------------
    def grant_bypass(self, db: Session, user_id: str, minutes: int, created_by: str = "admin") -> TemporaryBypass:
        """Suspend enforcement for a user and lift their filters right away.

        The user's applied pairs are reset only once the remote clear
        succeeds; otherwise they stay APPLIED and the next tick retries the
        clear, since a bypassed pair is never desired.
        """
        bypass_service.validate_minutes(minutes)
        with self._lock:
            user = db.get(User, user_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")

            bypass = bypass_service.grant(db, user_id, minutes, self._clock(), created_by=created_by)

            applied = self.tracker.records_for_user(user_id)
            token = settings_service.get_admin_token(db)
            if token and self._client.clear_filter(user.plex_id, token):
                try:
                    for record in applied:
                        self.tracker.clear(record.user_id, record.rule_id)
                        activity_service.record_activity(
                            db, ActivityAction.restriction_lifted, user.plex_username, record.rule_name,
                            "Temporary bypass granted", commit=False,
                        )
                    db.commit()
                except Exception:
                    # pairs still marked APPLIED are lifted again by the next tick
                    db.rollback()
                    logger.exception("Resetting applied state for %s after bypass failed", user.plex_username)
            elif applied:
                logger.warning(
                    "Could not clear filters for %s on bypass; the next tick will retry", user.plex_username
                )

            activity_service.record_activity(
                db, ActivityAction.bypass_granted, user.plex_username,
                details=f"Temporary bypass granted for {bypass_service.format_duration(minutes)}",
                commit=False,
            )
            db.commit()
            db.refresh(bypass)
            return bypass

    def cancel_bypass(self, db: Session, user_id: str) -> tuple[bool, TickReport]:
        """End a bypass early and re-apply the user's open rule windows immediately."""
        with self._lock:
            user = db.get(User, user_id)
            if not user:
                raise HTTPException(status_code=404, detail="User not found")
            cancelled = bypass_service.cancel(db, user_id)
            if cancelled:
                activity_service.record_activity(
                    db, ActivityAction.bypass_cancelled, user.plex_username,
                    details="Temporary bypass cancelled early",
                )
            return cancelled, self._reconcile(only_user_id=user_id)

    def assign_rule(self, db: Session, user_id: str, rule_id: str) -> TickReport:
        with self._lock:
            if not db.get(User, user_id):
                raise HTTPException(status_code=404, detail="User not found")
            if not db.get(Rule, rule_id):
                raise HTTPException(status_code=404, detail="Rule not found")
            if not db.get(UserRule, (user_id, rule_id)):
                db.add(UserRule(user_id=user_id, rule_id=rule_id))
                db.commit()
                logger.info("Assigned rule %s to user %s", rule_id, user_id)
            return self._reconcile(only_user_id=user_id)

    def unassign_rule(self, db: Session, user_id: str, rule_id: str) -> TickReport:
        with self._lock:
            assignment = db.get(UserRule, (user_id, rule_id))
            if not assignment:
                raise HTTPException(status_code=404, detail="Assignment not found")
            db.delete(assignment)
            db.commit()
            logger.info("Unassigned rule %s from user %s", rule_id, user_id)
            return self._reconcile(only_user_id=user_id)


class EnforcementScheduler:
    """Runs Enforcer.run_tick on a fixed interval in a background thread.

    A single thread drives every tick, so ticks never overlap.
    """

    def __init__(self, enforcer: Enforcer, interval_seconds: Optional[float] = None):
        self.enforcer = enforcer
        self.interval_seconds = interval_seconds or settings.ENFORCER_INTERVAL_SECONDS
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Enforcement scheduler is already running.")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="guardarr-enforcer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if not self.running:
            return
        logger.info("Stopping enforcement scheduler...")
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        logger.info("Enforcer started (checking every %ss)", self.interval_seconds)
        while not self._stop_event.is_set():
            started = time.monotonic()
            self.enforcer.run_tick()
            remaining = max(0.0, self.interval_seconds - (time.monotonic() - started))
            if self._stop_event.wait(timeout=remaining):
                break
        logger.info("Enforcer stopped.")
