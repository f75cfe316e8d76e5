"""Tests for the enforcer, activity, active-restriction and settings endpoints."""
from datetime import time

from tests.conftest import TOKEN, assign, configure, create_rule, create_user


class TestEnforcerEndpoints:
    def test_run_reports_changes(self, client, db):
        configure(db)
        user = create_user(db)
        assign(db, user, create_rule(db))

        resp = client.post("/api/enforcer/run")

        assert resp.status_code == 200
        body = resp.json()
        assert body["current_day"] == "mon"
        assert body["current_time"] == "21:00"
        assert [c["username"] for c in body["applied"]] == ["kid"]

    def test_run_without_token(self, client):
        assert client.post("/api/enforcer/run").json()["skipped"] == "missing_token"

    def test_status(self, client, db):
        configure(db)
        user = create_user(db)
        assign(db, user, create_rule(db))
        client.post("/api/enforcer/run")

        status = client.get("/api/enforcer/status").json()

        assert status["running"] is False
        assert status["applied_count"] == 1
        assert status["last_tick"]["applied"][0]["rule_name"] == "School night"


class TestActivity:
    def test_newest_first_and_filter(self, client, db):
        configure(db)
        user = create_user(db)
        assign(db, user, create_rule(db))
        client.post("/api/enforcer/run")
        client.post(f"/api/users/{user.user_id}/bypass", json={"minutes": 15})

        entries = client.get("/api/activity/").json()
        assert entries[0]["action"] == "bypass_granted"
        assert entries[-1]["action"] == "rule_applied"

        applied = client.get("/api/activity/", params={"action": "rule_applied"}).json()
        assert len(applied) == 1
        assert applied[0]["details"] == "Movies blocked: R,NC-17 | TV blocked: TV-MA"

        assert len(client.get("/api/activity/", params={"limit": 1}).json()) == 1

    def test_unknown_action_rejected(self, client):
        assert client.get("/api/activity/", params={"action": "nope"}).status_code == 422


class TestActiveRestrictions:
    def test_lists_open_windows(self, client, db):
        configure(db)
        user = create_user(db)
        rule = create_rule(db)
        assign(db, user, rule)
        closed = create_rule(db, name="Mornings", start=time(6, 0), end=time(8, 0))
        assign(db, user, closed)
        client.post("/api/enforcer/run")

        body = client.get("/api/active-restrictions/").json()

        assert (body["current_day"], body["current_time"], body["timezone"]) == ("mon", "21:00", "UTC")
        assert len(body["restrictions"]) == 1
        entry = body["restrictions"][0]
        assert entry["rule_id"] == rule.rule_id
        assert entry["minutes_remaining"] == 600
        assert entry["is_applied"] is True
        assert entry["has_bypass"] is False


class TestSettings:
    def test_token_is_masked(self, client, db):
        configure(db)
        body = client.get("/api/settings/").json()
        assert body["token_configured"] is True
        assert body["plex_admin_token"] == TOKEN[:4] + "***"
        assert body["timezone"] == "UTC"

    def test_update_timezone(self, client):
        resp = client.put("/api/settings/", json={"timezone": "Europe/London"})
        assert resp.status_code == 200
        assert resp.json()["timezone"] == "Europe/London"

    def test_invalid_timezone(self, client):
        resp = client.put("/api/settings/", json={"timezone": "Mars/Olympus_Mons"})
        assert resp.status_code == 400

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}
