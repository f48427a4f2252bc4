"""
Tests for account, transaction and transfer endpoints.

These test the HTTP layer: status codes, response format and
error mapping. Business rules are tested in tests/services.
"""

from decimal import Decimal

USER = {"X-User-Id": "user-1"}


def open_account(client, name="Main", balance="1000", currency="COP"):
    response = client.post("/accounts", headers=USER, json={
        "name": name, "balance": balance, "currency": currency,
    })
    assert response.status_code == 201
    return response.json()


def post_expense(client, account_id, amount):
    return client.post("/transactions", headers=USER, json={
        "type": "expense",
        "amount": amount,
        "account_id": account_id,
        "date": "2026-10-10",
    })


class TestAccounts:

    def test_create_returns_data(self, client):
        data = open_account(client)
        assert data["name"] == "Main"
        assert Decimal(str(data["balance"])) == Decimal("1000")
        assert Decimal(str(data["opening_balance"])) == Decimal("1000")

    def test_missing_user_header_returns_403(self, client):
        response = client.get("/accounts")
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "Unauthorized"

    def test_unknown_account_returns_404(self, client):
        response = client.get("/accounts/nope", headers=USER)
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "AccountNotFound"

    def test_delete_account_with_transactions_returns_400(self, client):
        account = open_account(client)
        post_expense(client, account["id"], "10")

        response = client.delete(f"/accounts/{account['id']}", headers=USER)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "AccountHasTransactions"


class TestTransactions:

    def test_create_moves_balance(self, client):
        account = open_account(client)

        response = post_expense(client, account["id"], "250.50")

        assert response.status_code == 201
        assert response.json()["type"] == "expense"
        balance = client.get(f"/accounts/{account['id']}", headers=USER).json()["balance"]
        assert Decimal(str(balance)) == Decimal("749.50")

    def test_overdraft_returns_400_with_code(self, client):
        account = open_account(client, balance="10")

        response = post_expense(client, account["id"], "10.01")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "BalanceNegative"

    def test_owner_change_rejected_by_schema(self, client):
        account = open_account(client)
        tx = post_expense(client, account["id"], "1").json()

        response = client.patch(
            f"/transactions/{tx['id']}", headers=USER, json={"owner_id": "someone"},
        )

        assert response.status_code == 422

    def test_list_filters_by_account(self, client):
        a = open_account(client, name="A")
        b = open_account(client, name="B")
        post_expense(client, a["id"], "1")
        post_expense(client, b["id"], "2")

        response = client.get("/transactions", headers=USER, params={"account_id": a["id"]})

        assert response.status_code == 200
        assert [t["account_id"] for t in response.json()] == [a["id"]]

    def test_delete_restores_balance(self, client):
        account = open_account(client)
        tx = post_expense(client, account["id"], "100").json()

        response = client.delete(f"/transactions/{tx['id']}", headers=USER)

        assert response.status_code == 200
        assert response.json() == {"id": tx["id"]}
        balance = client.get(f"/accounts/{account['id']}", headers=USER).json()["balance"]
        assert Decimal(str(balance)) == Decimal("1000")

    def test_unknown_transaction_returns_404(self, client):
        response = client.get("/transactions/nope", headers=USER)
        assert response.status_code == 404

    def test_read_only_user_gets_202(self, client, set_profile):
        account = open_account(client)
        set_profile("user-1", is_active=False)

        response = post_expense(client, account["id"], "1")

        assert response.status_code == 202
        assert response.json() == {"detail": "access.readOnly"}
        assert client.get("/transactions", headers=USER).json() == []


class TestTransfers:

    def test_transfer_round_trip(self, client):
        a = open_account(client, name="A")
        b = open_account(client, name="B", balance="0")

        response = client.post("/transfers", headers=USER, json={
            "from_account_id": a["id"],
            "to_account_id": b["id"],
            "amount_from": "300",
            "date": "2026-10-10",
        })
        assert response.status_code == 201
        transfer_id = response.json()["transfer_id"]

        fetched = client.get(f"/transfers/{transfer_id}", headers=USER)
        assert fetched.status_code == 200
        assert fetched.json()["in_leg"]["account_id"] == b["id"]

        deleted = client.delete(f"/transfers/{transfer_id}", headers=USER)
        assert deleted.json() == {"transfer_id": transfer_id}

    def test_same_account_returns_400(self, client):
        a = open_account(client)

        response = client.post("/transfers", headers=USER, json={
            "from_account_id": a["id"],
            "to_account_id": a["id"],
            "amount_from": "1",
        })

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "SameAccount"
