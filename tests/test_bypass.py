"""Tests for the bypass store and the enforcer's bypass actions."""
from datetime import timedelta
from unittest import mock

import pytest
from fastapi import HTTPException

from guardarr.models.activity import ActivityLog
from guardarr.models.bypass import TemporaryBypass
from guardarr.services import bypass_service
from guardarr.services.bypass_service import as_utc
from tests.conftest import MONDAY_2100, assign, configure, create_rule, create_user


class TestStore:
    def test_grant_sets_expiry(self, db):
        user = create_user(db)
        bypass = bypass_service.grant(db, user.user_id, 30, MONDAY_2100)
        assert as_utc(bypass.expires_at) == MONDAY_2100 + timedelta(minutes=30)
        assert bypass.created_by == "admin"

    def test_invalid_duration_rejected(self, db):
        user = create_user(db)
        with pytest.raises(HTTPException) as exc:
            bypass_service.grant(db, user.user_id, 45, MONDAY_2100)
        assert exc.value.status_code == 400
        assert db.query(TemporaryBypass).count() == 0

    def test_grant_replaces_existing(self, db):
        user = create_user(db)
        bypass_service.grant(db, user.user_id, 15, MONDAY_2100)
        bypass_service.grant(db, user.user_id, 240, MONDAY_2100)
        rows = db.query(TemporaryBypass).all()
        assert len(rows) == 1
        assert rows[0].minutes == 240

    def test_expired_bypass_is_inactive_but_kept(self, db):
        user = create_user(db)
        bypass_service.grant(db, user.user_id, 15, MONDAY_2100)
        later = MONDAY_2100 + timedelta(minutes=15)
        assert bypass_service.get_active(db, user.user_id, later) is None
        assert db.query(TemporaryBypass).count() == 1
        assert bypass_service.purge_expired(db, later) == 1
        assert db.query(TemporaryBypass).count() == 0

    def test_cancel(self, db):
        user = create_user(db)
        assert not bypass_service.cancel(db, user.user_id)
        bypass_service.grant(db, user.user_id, 60, MONDAY_2100)
        assert bypass_service.cancel(db, user.user_id)

    def test_format_duration(self):
        assert bypass_service.format_duration(30) == "30 minutes"
        assert bypass_service.format_duration(120) == "2 hour(s)"


class TestEnforcerBypass:
    """A bypassed user is never restricted; live filters are lifted."""

    def _applied_user(self, db, enforcer):
        configure(db)
        user = create_user(db)
        rule = create_rule(db)
        assign(db, user, rule)
        enforcer.run_tick()
        assert enforcer.tracker.is_applied(user.user_id, rule.rule_id)
        return user, rule

    def test_tick_lifts_and_does_not_apply(self, db, enforcer, plex):
        user, rule = self._applied_user(db, enforcer)
        bypass_service.grant(db, user.user_id, 60, MONDAY_2100)
        plex.reset()

        report = enforcer.run_tick()

        assert plex.calls == [("clear", user.plex_id)]
        assert not enforcer.tracker.is_applied(user.user_id, rule.rule_id)
        assert report.lifted[0].detail == "Temporary bypass active"

    def test_grant_clears_immediately(self, db, enforcer, plex):
        user, rule = self._applied_user(db, enforcer)
        plex.reset()

        bypass = enforcer.grant_bypass(db, user.user_id, 30)

        assert bypass.minutes == 30
        assert plex.calls == [("clear", user.plex_id)]
        assert not enforcer.tracker.is_applied(user.user_id, rule.rule_id)
        actions = [a.action for a in db.query(ActivityLog).order_by(ActivityLog.activity_id)]
        assert actions[-2:] == ["restriction_lifted", "bypass_granted"]
        # nothing left to do for the next tick
        plex.reset()
        enforcer.run_tick()
        assert plex.calls == []

    def test_grant_keeps_record_when_clear_fails(self, db, enforcer, plex):
        user, rule = self._applied_user(db, enforcer)
        plex.failing.add(user.plex_id)
        enforcer.grant_bypass(db, user.user_id, 15)
        assert enforcer.tracker.is_applied(user.user_id, rule.rule_id)

        plex.failing.clear()
        enforcer.run_tick()
        assert not enforcer.tracker.is_applied(user.user_id, rule.rule_id)

    def test_grant_unknown_user(self, db, enforcer):
        with pytest.raises(HTTPException) as exc:
            enforcer.grant_bypass(db, "missing", 15)
        assert exc.value.status_code == 404

    def test_cancel_reapplies_open_windows(self, db, enforcer, plex):
        user, rule = self._applied_user(db, enforcer)
        enforcer.grant_bypass(db, user.user_id, 60)
        plex.reset()

        cancelled, report = enforcer.cancel_bypass(db, user.user_id)

        assert cancelled
        assert [c.rule_id for c in report.applied] == [rule.rule_id]
        assert plex.calls[0][0] == "apply"
        assert enforcer.tracker.is_applied(user.user_id, rule.rule_id)

    def test_expired_bypass_purged_on_tick(self, db, enforcer, clock):
        configure(db)
        user = create_user(db)
        bypass_service.grant(db, user.user_id, 15, MONDAY_2100)
        clock.set(MONDAY_2100 + timedelta(minutes=20))
        enforcer.run_tick()
        assert db.query(TemporaryBypass).count() == 0

    def test_grant_survives_tracker_failure(self, db, enforcer, plex):
        user, rule = self._applied_user(db, enforcer)

        with mock.patch.object(enforcer.tracker, "clear", side_effect=RuntimeError("backend down")):
            bypass = enforcer.grant_bypass(db, user.user_id, 60)

        assert bypass.minutes == 60
        assert enforcer.tracker.is_applied(user.user_id, rule.rule_id)
        actions = [a.action for a in db.query(ActivityLog).order_by(ActivityLog.activity_id)]
        assert actions == ["rule_applied", "bypass_granted"]

        # the next tick finishes the reset
        enforcer.run_tick()
        assert not enforcer.tracker.is_applied(user.user_id, rule.rule_id)
