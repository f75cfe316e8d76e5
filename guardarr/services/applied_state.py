"""Applied-state tracker: which (user, rule) filters the enforcer believes are live.

The tracker is a membership set over (user_id, rule_id) pairs. It is never
re-verified against the remote API; the loop re-evaluates every tick and the
remote calls are idempotent. Storage is pluggable:

- InMemoryAppliedStateBackend: process-lifetime only (tests, dry runs)
- SqlAppliedStateBackend: the ``applied_restrictions`` table, so a restart
  resumes from the last committed belief instead of re-applying everything
  or forgetting stale filters.

The in-memory view is loaded from the backend when the tracker is built.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from guardarr.models.applied_restriction import AppliedRestriction

logger = logging.getLogger(__name__)

Pair = tuple[str, str]  # (user_id, rule_id)


@dataclass(frozen=True)
class AppliedRecord:
    user_id: str
    rule_id: str
    plex_id: str
    username: str
    rule_name: str
    movie_filter: str = ""
    tv_filter: str = ""
    applied_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pair(self) -> Pair:
        return (self.user_id, self.rule_id)

    def matches(self, movie_filter: str, tv_filter: str) -> bool:
        """True when these are the filters last pushed for the pair."""
        return (self.movie_filter, self.tv_filter) == (movie_filter, tv_filter)


class AppliedStateBackend(Protocol):
    def load(self) -> list[AppliedRecord]: ...

    def upsert(self, record: AppliedRecord) -> None: ...

    def delete(self, user_id: str, rule_id: str) -> None: ...


class InMemoryAppliedStateBackend:
    def __init__(self, records: Optional[list[AppliedRecord]] = None):
        self._records: dict[Pair, AppliedRecord] = {r.pair: r for r in records or []}

    def load(self) -> list[AppliedRecord]:
        return list(self._records.values())

    def upsert(self, record: AppliedRecord) -> None:
        self._records[record.pair] = record

    def delete(self, user_id: str, rule_id: str) -> None:
        self._records.pop((user_id, rule_id), None)


class SqlAppliedStateBackend:
    """Upsert/delete keyed by the composite (user_id, rule_id) primary key."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load(self) -> list[AppliedRecord]:
        db = self._session_factory()
        try:
            return [
                AppliedRecord(
                    user_id=row.user_id,
                    rule_id=row.rule_id,
                    plex_id=row.plex_id,
                    username=row.username,
                    rule_name=row.rule_name,
                    movie_filter=row.movie_filter or "",
                    tv_filter=row.tv_filter or "",
                    applied_at=row.applied_at,
                )
                for row in db.query(AppliedRestriction).all()
            ]
        finally:
            db.close()

    def upsert(self, record: AppliedRecord) -> None:
        db = self._session_factory()
        try:
            row = db.get(AppliedRestriction, (record.user_id, record.rule_id))
            if row is None:
                row = AppliedRestriction(user_id=record.user_id, rule_id=record.rule_id)
                db.add(row)
            row.plex_id = record.plex_id
            row.username = record.username
            row.rule_name = record.rule_name
            row.movie_filter = record.movie_filter
            row.tv_filter = record.tv_filter
            row.applied_at = record.applied_at
            db.commit()
        finally:
            db.close()

    def delete(self, user_id: str, rule_id: str) -> None:
        db = self._session_factory()
        try:
            db.query(AppliedRestriction).filter(
                AppliedRestriction.user_id == user_id,
                AppliedRestriction.rule_id == rule_id,
            ).delete(synchronize_session=False)
            db.commit()
        finally:
            db.close()


class AppliedStateTracker:
    """In-memory view of applied pairs, written through to a backend."""

    def __init__(self, backend: Optional[AppliedStateBackend] = None):
        self._backend = backend or InMemoryAppliedStateBackend()
        self._records: dict[Pair, AppliedRecord] = {}
        self._lock = threading.Lock()
        self.reload()

    def reload(self) -> None:
        records = self._backend.load()
        with self._lock:
            self._records = {r.pair: r for r in records}
        logger.info("Applied-state tracker loaded %d record(s)", len(records))

    def is_applied(self, user_id: str, rule_id: str) -> bool:
        with self._lock:
            return (user_id, rule_id) in self._records

    def get(self, user_id: str, rule_id: str) -> Optional[AppliedRecord]:
        with self._lock:
            return self._records.get((user_id, rule_id))

    def mark_applied(self, user_id: str, rule_id: str, metadata: AppliedRecord) -> AppliedRecord:
        record = replace(metadata, user_id=user_id, rule_id=rule_id)
        # write through first so a backend failure leaves the pair NOT_APPLIED
        self._backend.upsert(record)
        with self._lock:
            self._records[record.pair] = record
        return record

    def clear(self, user_id: str, rule_id: str) -> None:
        self._backend.delete(user_id, rule_id)
        with self._lock:
            self._records.pop((user_id, rule_id), None)

    def records(self) -> list[AppliedRecord]:
        with self._lock:
            return list(self._records.values())

    def records_for_user(self, user_id: str) -> list[AppliedRecord]:
        return [r for r in self.records() if r.user_id == user_id]

    def clear_user(self, user_id: str) -> list[AppliedRecord]:
        """Reset every applied pair of one user; returns what was cleared."""
        cleared = self.records_for_user(user_id)
        for record in cleared:
            self.clear(record.user_id, record.rule_id)
        return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
