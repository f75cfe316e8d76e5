"""Tests for Rule CRUD endpoints."""
from tests.conftest import configure, create_user

RULE = {
    "name": "School night",
    "days": "mon,tue,wed,thu,sun",
    "start_time": "20:00",
    "end_time": "07:00",
    "blocked_ratings": "R, NC-17",
    "blocked_tv_ratings": ["TV-MA"],
    "priority": 5,
}


def create_test_rule(client, **overrides) -> dict:
    """Helper — POST /api/rules and return response JSON."""
    resp = client.post("/api/rules/", json={**RULE, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRuleCRUD:
    def test_create_rule(self, client):
        data = create_test_rule(client)
        assert data["days"] == ["mon", "tue", "wed", "thu", "sun"]
        assert data["blocked_ratings"] == ["R", "NC-17"]
        assert data["start_time"] == "20:00:00"
        assert data["is_active"] is True

    def test_defaults(self, client):
        resp = client.post("/api/rules/", json={"name": "Always"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["days"] == ["all"]
        assert (data["start_time"], data["end_time"]) == ("00:00:00", "23:59:00")

    def test_unknown_day_rejected(self, client):
        resp = client.post("/api/rules/", json={**RULE, "days": ["funday"]})
        assert resp.status_code == 422

    def test_list_highest_priority_first(self, client):
        create_test_rule(client, name="Low", priority=1)
        create_test_rule(client, name="High", priority=9)
        names = [r["name"] for r in client.get("/api/rules/").json()]
        assert names == ["High", "Low"]

    def test_get_rule_not_found(self, client):
        assert client.get("/api/rules/missing").status_code == 404

    def test_update_reconciles_assigned_users(self, client, db, plex, enforcer):
        configure(db)
        user = create_user(db)
        rule = create_test_rule(client)
        client.post(f"/api/users/{user.user_id}/rules", json={"rule_id": rule["rule_id"]})
        assert enforcer.tracker.is_applied(user.user_id, rule["rule_id"])

        resp = client.patch(f"/api/rules/{rule['rule_id']}", json={"is_active": False})

        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert resp.json()["name"] == "School night"
        assert plex.calls[-1] == ("clear", user.plex_id)
        assert not enforcer.tracker.is_applied(user.user_id, rule["rule_id"])

    def test_rating_edit_is_pushed_to_assigned_users(self, client, db, plex, enforcer):
        configure(db)
        user = create_user(db)
        rule = create_test_rule(client, blocked_ratings=["R"], blocked_tv_ratings=[])
        client.post(f"/api/users/{user.user_id}/rules", json={"rule_id": rule["rule_id"]})
        assert plex.calls == [("apply", user.plex_id, "contentRating!=R", "")]

        resp = client.patch(f"/api/rules/{rule['rule_id']}", json={"blocked_ratings": ["PG-13", "R"]})

        assert resp.status_code == 200
        assert plex.calls[-1] == ("apply", user.plex_id, "contentRating!=PG-13,R", "")
        record = enforcer.tracker.get(user.user_id, rule["rule_id"])
        assert record.movie_filter == "contentRating!=PG-13,R"

        # the next tick sees nothing left to do
        calls = len(plex.calls)
        client.post("/api/enforcer/run")
        assert len(plex.calls) == calls

    def test_delete_lifts_and_logs(self, client, db, plex, enforcer):
        configure(db)
        user = create_user(db)
        rule = create_test_rule(client)
        client.post(f"/api/users/{user.user_id}/rules", json={"rule_id": rule["rule_id"]})

        resp = client.delete(f"/api/rules/{rule['rule_id']}")

        assert resp.status_code == 204
        assert client.get(f"/api/rules/{rule['rule_id']}").status_code == 404
        assert plex.calls[-1] == ("clear", user.plex_id)
        assert len(enforcer.tracker) == 0
        actions = [a["action"] for a in client.get("/api/activity/").json()]
        assert actions[:2] == ["restriction_lifted", "rule_deleted"]
