"""
Tests for exporting, importing and deleting a user's data.
"""

from decimal import Decimal

import pytest

from fincontrol.errors import InvalidPayload
from fincontrol.schemas.account import AccountCreate
from fincontrol.schemas.currency import CurrencyCreate
from fincontrol.schemas.transaction import TransactionCreate
from fincontrol.services.account_service import AccountService
from fincontrol.services.currency_service import CurrencyService
from fincontrol.services.data_service import USER_COLLECTIONS, DataService
from fincontrol.services.ledger_service import LedgerService


@pytest.fixture
def filled(ctx):
    account = AccountService(ctx).create_account(AccountCreate(
        name="Wallet", balance=Decimal("100"),
    ))
    LedgerService(ctx).create(TransactionCreate(
        type="expense", amount=Decimal("25"), account_id=account.id, date="2026-10-02",
    ))
    CurrencyService(ctx).create_currency(CurrencyCreate(code="USD"))
    return account


def export_json(ctx):
    return DataService(ctx).export_all().model_dump(mode="json")


class TestExport:

    def test_every_collection_listed(self, ctx, filled):
        exported = DataService(ctx).export_all()

        assert exported.version == 1
        assert set(exported.collections) == set(USER_COLLECTIONS)
        assert len(exported.collections["accounts"]) == 1
        assert len(exported.collections["transactions"]) == 1
        assert {d.id for d in exported.collections["currencies"]} == {"COP", "USD"}
        assert exported.collections["goals"] == []

    def test_documents_exported_without_id_in_data(self, ctx, filled):
        account = DataService(ctx).export_all().collections["accounts"][0]

        assert account.id == filled.id
        assert "id" not in account.data
        assert account.data["balance"] == 7500
        assert account.data["owner_id"] == "user-1"


class TestImport:

    def test_export_restores_into_another_user(self, ctx, filled, make_ctx):
        payload = export_json(ctx)
        other = make_ctx("user-2")

        result = DataService(other).import_all(payload)

        assert result.counts["accounts"] == 1
        assert result.counts["currencies"] == 2
        account = AccountService(other).get_account(filled.id)
        assert account.balance == Decimal("75.00")
        stored = other.store.get(other.path("accounts", filled.id))
        assert stored["owner_id"] == "user-2"

    def test_merge_keeps_existing_documents(self, ctx, filled):
        payload = {"collections": {"goals": [
            {"id": "g1", "data": {"name": "Trip", "target_amount": 100000}},
        ]}}

        DataService(ctx).import_all(payload, "merge")

        assert AccountService(ctx).get_account(filled.id).name == "Wallet"
        assert ctx.store.get(ctx.path("goals", "g1"))["name"] == "Trip"

    def test_replace_wipes_first(self, ctx, filled):
        payload = {"collections": {"goals": [
            {"id": "g1", "data": {"name": "Trip"}},
        ]}}

        result = DataService(ctx).import_all(payload, "replace")

        assert result.mode.value == "replace"
        assert AccountService(ctx).list_accounts() == []
        assert ctx.store.get(ctx.path("goals", "g1")) is not None

    def test_bad_entries_and_unknown_collections_skipped(self, ctx):
        payload = {"collections": {
            "goals": [
                {"id": "ok", "data": {"name": "A"}},
                {"id": "", "data": {}},
                {"id": "a/b", "data": {}},
                {"data": {"name": "no id"}},
                {"id": "nodata"},
                "garbage",
            ],
            "secrets": [{"id": "x", "data": {}}],
        }}

        result = DataService(ctx).import_all(payload)

        assert result.counts["goals"] == 1
        assert "secrets" not in result.counts
        assert ctx.store.query("secrets") == []

    @pytest.mark.parametrize("payload", [None, [], {"version": 1}, {"collections": []}])
    def test_invalid_payload(self, ctx, payload):
        with pytest.raises(InvalidPayload):
            DataService(ctx).import_all(payload)

    def test_unknown_mode(self, ctx):
        with pytest.raises(InvalidPayload):
            DataService(ctx).import_all({"collections": {}}, "append")

    def test_read_only_user_imports_nothing(self, ctx, notifier, set_profile):
        set_profile("user-1", is_active=False)

        result = DataService(ctx).import_all({"collections": {"goals": [
            {"id": "g1", "data": {}},
        ]}})

        assert result is None
        assert ctx.store.get(ctx.path("goals", "g1")) is None
        assert "access.readOnly" in notifier.keys()


class TestCleanup:

    def test_delete_all_user_data(self, ctx, filled, make_ctx, set_profile):
        set_profile("user-1", plan="monthly")
        neighbour = make_ctx("user-2")
        AccountService(neighbour).create_account(AccountCreate(name="Theirs"))

        result = DataService(ctx).delete_all_user_data()

        assert result.counts["accounts"] == 1
        assert result.counts["transactions"] == 1
        assert all(
            docs == [] for docs in DataService(ctx).export_all().collections.values()
        )
        assert ctx.profile()["plan"] == "monthly"
        assert len(AccountService(neighbour).list_accounts()) == 1
