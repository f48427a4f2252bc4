"""
Tests for invite code endpoints.
"""

import pytest

ADMIN = {"X-User-Id": "admin"}
USER = {"X-User-Id": "user-1"}


@pytest.fixture(autouse=True)
def admin_profile(set_profile):
    set_profile("admin", role="admin")


def create_code(client, plan="monthly"):
    response = client.post("/invites", headers=ADMIN, json={"plan": plan})
    assert response.status_code == 201
    return response.json()


class TestInvites:

    def test_create_returns_unused_code(self, client):
        data = create_code(client, "annual")

        assert len(data["code"]) == 8
        assert data["plan"] == "annual"
        assert data["status"] == "unused"
        assert data["created_by"] == "admin"

    def test_check_does_not_redeem(self, client):
        code = create_code(client)["code"]

        response = client.get(f"/invites/{code.lower()}/check", headers=USER)

        assert response.status_code == 200
        assert response.json()["ok"] is True
        listed = client.get("/invites", headers=ADMIN, params={"status": "unused"}).json()
        assert [i["code"] for i in listed] == [code]

    def test_redeem_grants_plan(self, client):
        code = create_code(client, "semiannual")["code"]

        response = client.post("/invites/redeem", headers=USER, json={"code": code})

        assert response.status_code == 200
        assert response.json()["plan"] == "semiannual"
        assert response.json()["code"] == code

    def test_rejected_redeem_returns_reason_and_attempts(self, client):
        response = client.post("/invites/redeem", headers=USER, json={"code": "NOPE2345"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["detail"] == "errors.invite.not_found"
        assert detail["reason"] == "not_found"
        assert detail["attempts_left"] == 4
        assert detail["blocked_until"] is None

    def test_invalidated_code_cannot_be_redeemed(self, client):
        code = create_code(client)["code"]
        invalidated = client.post(f"/invites/{code}/invalidate", headers=ADMIN)
        assert invalidated.json()["status"] == "expired"

        response = client.post("/invites/redeem", headers=USER, json={"code": code})

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "expired"

    def test_invalidate_unknown_returns_404(self, client):
        response = client.post("/invites/NOPE2345/invalidate", headers=ADMIN)
        assert response.status_code == 404


class TestInviteAdminGate:

    def test_user_cannot_mint_codes(self, client):
        response = client.post("/invites", headers=USER, json={"plan": "annual"})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "Unauthorized"
        assert client.get("/invites", headers=ADMIN).json() == []

    def test_user_cannot_list_or_invalidate(self, client):
        code = create_code(client)["code"]

        assert client.get("/invites", headers=USER).status_code == 403
        response = client.post(f"/invites/{code}/invalidate", headers=USER)
        assert response.status_code == 403

        check = client.get(f"/invites/{code}/check", headers=USER).json()
        assert check["ok"] is True

    def test_missing_user_header_is_refused(self, client):
        response = client.post("/invites", json={"plan": "monthly"})
        assert response.status_code == 403
