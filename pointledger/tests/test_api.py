import pytest
from fastapi.testclient import TestClient

from pointledger.api import app, get_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _as(actor):
    return {"X-Member-Id": str(actor.member_id)}


class TestIdentity:
    """Tests for actor resolution."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_member_is_unauthorized(self, client):
        response = client.get("/rewards", headers={"X-Member-Id": "00000000-0000-0000-0000-000000000000"})

        assert response.status_code == 401

    def test_missing_header_is_rejected(self, client):
        assert client.get("/rewards").status_code == 422

    def test_member_cannot_view_another_balance(self, client, member, other):
        response = client.get(f"/members/{other.member_id}/balance", headers=_as(member))

        assert response.status_code == 403
        assert response.json()["error"] == "NotAuthorizedError"


class TestRedemptionFlow:
    """End-to-end approval flow over HTTP."""

    def test_request_and_approve(self, client, admin, member):
        reward = client.post(
            "/rewards", json={"name": "周末看电影", "cost": 80, "requires_approval": True}, headers=_as(admin),
        )
        assert reward.status_code == 201

        funded = client.post(
            f"/members/{member.member_id}/adjustments",
            json={"amount": "100", "polarity": "earn", "reason": "零花钱"},
            headers=_as(admin),
        )
        assert funded.status_code == 201
        assert funded.json()["amount"] == 100

        created = client.post(f"/rewards/{reward.json()['id']}/redeem", headers=_as(member))
        assert created.status_code == 201
        request_id = created.json()["request"]["id"]
        assert created.json()["request"]["status"] == "pending"

        assert client.get("/redemptions", params={"status": "pending"}, headers=_as(member)).status_code == 403
        pending = client.get("/redemptions", params={"status": "pending"}, headers=_as(admin))
        assert [r["id"] for r in pending.json()] == [request_id]

        approved = client.post(f"/redemptions/{request_id}/approve", headers=_as(admin))
        assert approved.status_code == 200
        assert approved.json()["request"]["status"] == "approved"

        balance = client.get(f"/members/{member.member_id}/balance", headers=_as(member))
        assert balance.json()["current_balance"] == 20

        again = client.post(f"/redemptions/{request_id}/approve", headers=_as(admin))
        assert again.status_code == 409

    def test_insufficient_balance(self, client, admin, member):
        reward = client.post("/rewards", json={"name": "看电视30分钟", "cost": 30}, headers=_as(admin))

        response = client.post(f"/rewards/{reward.json()['id']}/redeem", headers=_as(member))

        assert response.status_code == 409
        assert response.json()["error"] == "InsufficientBalanceError"


class TestPointsEndpoints:
    """Tests for self-scoring, adjustments and stats."""

    def test_self_score_twice(self, client, member, reading_action):
        first = client.post(f"/self-score/{reading_action.id}", headers=_as(member))
        second = client.post(f"/self-score/{reading_action.id}", headers=_as(member))

        assert first.status_code == 201
        assert first.json()["reason"] == "自我加分：晨读"
        assert second.status_code == 409
        assert second.json()["reason"] == "ALREADY_CLAIMED_TODAY"

    def test_invalid_custom_amount(self, client, admin, member):
        response = client.post(
            f"/members/{member.member_id}/adjustments",
            json={"amount": "abc", "polarity": "spend", "reason": "没写作业"},
            headers=_as(admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidAmountError"

    def test_stats_and_history(self, client, admin, member, reading_action):
        client.post(f"/members/{member.member_id}/quick-actions/{reading_action.id}", headers=_as(admin))

        stats = client.get(f"/members/{member.member_id}/stats", headers=_as(member)).json()
        history = client.get(f"/members/{member.member_id}/ledger", headers=_as(member)).json()

        assert len(stats["days"]) == 7
        assert stats["days"][-1]["net_total"] == 10
        assert history["entries"][0]["title"] == "管理员奖励：晨读"

    def test_inactive_catalog_is_admin_only(self, client, admin, member, reading_action):
        client.put(f"/quick-actions/{reading_action.id}/active", json={"active": False}, headers=_as(admin))

        assert client.get("/quick-actions", headers=_as(member)).json() == []
        assert client.get("/quick-actions", params={"include_inactive": True}, headers=_as(member)).status_code == 403
        listed = client.get("/quick-actions", params={"include_inactive": True}, headers=_as(admin)).json()
        assert [a["id"] for a in listed] == [str(reading_action.id)]

    def test_consistency_report(self, client, admin, member):
        assert client.get("/admin/consistency", headers=_as(member)).status_code == 403
        report = client.get("/admin/consistency", headers=_as(admin))
        assert report.status_code == 200
        assert report.json()["issues"] == []

    def test_zero_day_stats_window_is_bad_request(self, client, member):
        response = client.get(f"/members/{member.member_id}/stats", params={"days": 0}, headers=_as(member))

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
