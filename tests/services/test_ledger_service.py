"""
Tests for the LedgerService.

Tests cover:
- Income, expense and debt-payment posting
- Validation errors and their order
- Non-negativity of balances and debt remaining amounts
- Debt payoff and status
- Update revert/apply, on the same and on different accounts
- Conservation of account balances
- The read-only write gate
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from fincontrol.context import UserContext
from fincontrol.money import to_minor
from fincontrol.errors import (
    AccountNotFound,
    AccountRequired,
    BalanceNegative,
    DebtRemainingNegative,
    DebtRequired,
    InvalidAmount,
    InvalidDate,
    InvalidType,
    TxNotFound,
    Unauthorized,
)
from fincontrol.schemas.account import AccountCreate
from fincontrol.schemas.debt import DebtCreate
from fincontrol.schemas.transaction import (
    TransactionCreate,
    TransactionFilters,
    TransactionPatch,
)
from fincontrol.schemas.transfer import TransferCreate
from fincontrol.services.account_service import AccountService
from fincontrol.services.debt_service import DebtService
from fincontrol.services.ledger_service import (
    LedgerService,
    signed_effect,
    validate_transaction_payload,
)
from fincontrol.services.transfer_service import TransferService


# --- Helpers to reduce repetition ---

def open_account(ctx, balance="0", currency="COP", name="Cash"):
    return AccountService(ctx).create_account(AccountCreate(
        name=name,
        balance=Decimal(balance),
        currency=currency,
    ))


def open_debt(ctx, amount, name="Loan"):
    return DebtService(ctx).create_debt(DebtCreate(name=name, amount=Decimal(amount)))


def post(ctx, tx_type, amount, account_id, date="2026-10-01", **kwargs):
    return LedgerService(ctx).create(TransactionCreate(
        type=tx_type,
        amount=Decimal(amount),
        account_id=account_id,
        date=date,
        **kwargs,
    ))


def balance(ctx, account_id):
    return AccountService(ctx).get_account(account_id).balance


# --- Create Tests ---

class TestCreate:

    def test_income_raises_balance(self, ctx):
        account = open_account(ctx, "100")
        tx = post(ctx, "income", "50.25", account.id)

        assert tx.amount == Decimal("50.25")
        assert tx.currency == "COP"
        assert balance(ctx, account.id) == Decimal("150.25")

    def test_expense_lowers_balance(self, ctx):
        account = open_account(ctx, "100")
        post(ctx, "expense", "40", account.id)
        assert balance(ctx, account.id) == Decimal("60.00")

    def test_expense_beyond_balance_rejected_and_nothing_written(self, ctx):
        account = open_account(ctx, "100")

        with pytest.raises(BalanceNegative):
            post(ctx, "expense", "100.01", account.id)

        assert balance(ctx, account.id) == Decimal("100.00")
        assert LedgerService(ctx).list_transactions() == []

    def test_expense_to_exactly_zero_allowed(self, ctx):
        account = open_account(ctx, "100")
        post(ctx, "expense", "100", account.id)
        assert balance(ctx, account.id) == Decimal("0.00")

    def test_zero_amount_rejected(self, ctx):
        account = open_account(ctx, "100")
        with pytest.raises(InvalidAmount):
            post(ctx, "expense", "0", account.id)

    def test_amount_rounding_to_zero_rejected(self, ctx):
        account = open_account(ctx, "100")
        with pytest.raises(InvalidAmount):
            post(ctx, "expense", "0.004", account.id)

    def test_transfer_type_rejected(self, ctx):
        account = open_account(ctx, "100")
        with pytest.raises(InvalidType):
            post(ctx, "transfer-in", "10", account.id)

    def test_account_required(self, ctx):
        with pytest.raises(AccountRequired):
            post(ctx, "income", "10", None)

    def test_malformed_date_rejected(self, ctx):
        account = open_account(ctx, "100")
        with pytest.raises(InvalidDate):
            post(ctx, "income", "10", account.id, date="01/10/2026")

    def test_debt_payment_requires_debt(self, ctx):
        account = open_account(ctx, "100")
        with pytest.raises(DebtRequired):
            post(ctx, "debtPayment", "10", account.id)

    def test_unknown_account_rejected(self, ctx):
        with pytest.raises(AccountNotFound):
            post(ctx, "income", "10", "missing")

    def test_explicit_currency_kept(self, ctx):
        account = open_account(ctx, "100")
        tx = post(ctx, "income", "10", account.id, currency="USD")
        assert tx.currency == "USD"

    def test_no_user_is_unauthorized(self, store):
        anonymous = UserContext(store, lambda: None)
        with pytest.raises(Unauthorized):
            post(anonymous, "income", "10", "any")


class TestValidatePayload:

    def test_errors_reported_in_order(self):
        payload = TransactionCreate(type="bogus", amount=Decimal("0"))
        assert validate_transaction_payload(payload) == [
            "InvalidAmount", "InvalidType", "AccountRequired", "InvalidDate",
        ]

    def test_valid_payload_has_no_errors(self):
        payload = TransactionCreate(
            type="expense", amount=Decimal("1"), account_id="a", date="2026-01-01"
        )
        assert validate_transaction_payload(payload) == []

    def test_signed_effect(self):
        assert signed_effect("income", 500) == 500
        assert signed_effect("transfer-in", 500) == 500
        assert signed_effect("expense", 500) == -500
        assert signed_effect("debtPayment", 500) == -500
        assert signed_effect("transfer-out", 500) == -500


# --- Debt Payment Tests ---

class TestDebtPayoff:

    def test_payments_reach_paid_at_exactly_zero(self, ctx):
        account = open_account(ctx, "500")
        debt = open_debt(ctx, "100")
        debts = DebtService(ctx)

        post(ctx, "debtPayment", "60", account.id, debt_id=debt.id)
        partial = debts.get_debt(debt.id)
        assert partial.remaining_amount == Decimal("40.00")
        assert partial.status == "active"

        post(ctx, "debtPayment", "40", account.id, debt_id=debt.id)
        paid = debts.get_debt(debt.id)
        assert paid.remaining_amount == Decimal("0.00")
        assert paid.status == "paid"

        with pytest.raises(DebtRemainingNegative):
            post(ctx, "debtPayment", "1", account.id, debt_id=debt.id)

        assert balance(ctx, account.id) == Decimal("400.00")

    def test_deleting_payment_reopens_debt(self, ctx):
        account = open_account(ctx, "500")
        debt = open_debt(ctx, "100")
        tx = post(ctx, "debtPayment", "100", account.id, debt_id=debt.id)

        LedgerService(ctx).delete(tx.id)

        reopened = DebtService(ctx).get_debt(debt.id)
        assert reopened.remaining_amount == Decimal("100.00")
        assert reopened.status == "active"
        assert balance(ctx, account.id) == Decimal("500.00")

    def test_debt_id_dropped_for_non_payments(self, ctx):
        account = open_account(ctx, "500")
        debt = open_debt(ctx, "100")
        tx = post(ctx, "expense", "10", account.id, debt_id=debt.id)

        assert tx.debt_id is None
        assert DebtService(ctx).get_debt(debt.id).remaining_amount == Decimal("100.00")


# --- Delete Tests ---

class TestDelete:

    def test_create_then_delete_restores_balance(self, ctx):
        account = open_account(ctx, "250.50")
        ledger = LedgerService(ctx)
        tx = post(ctx, "expense", "99.99", account.id)

        ledger.delete(tx.id)

        assert balance(ctx, account.id) == Decimal("250.50")
        with pytest.raises(TxNotFound):
            ledger.get(tx.id)

    def test_delete_refused_when_revert_goes_negative(self, ctx):
        account = open_account(ctx)
        income = post(ctx, "income", "100", account.id)
        post(ctx, "expense", "80", account.id)

        with pytest.raises(BalanceNegative):
            LedgerService(ctx).delete(income.id)
        assert balance(ctx, account.id) == Decimal("20.00")

    def test_transfer_leg_cannot_be_deleted_directly(self, ctx):
        a = open_account(ctx, "100", name="A")
        b = open_account(ctx, name="B")
        transfer = TransferService(ctx).create_transfer(TransferCreate(
            from_account_id=a.id, to_account_id=b.id, amount_from=Decimal("10"),
        ))
        with pytest.raises(InvalidType):
            LedgerService(ctx).delete(transfer.out_leg.id)


# --- Update Tests ---

class TestUpdate:

    def test_amount_change_on_same_account(self, ctx):
        account = open_account(ctx, "1000")
        tx = post(ctx, "expense", "300", account.id)

        LedgerService(ctx).update(tx.id, TransactionPatch(amount=Decimal("500")))

        assert balance(ctx, account.id) == Decimal("500.00")

    def test_move_to_another_account(self, ctx):
        a = open_account(ctx, "1000", name="A")
        b = open_account(ctx, "200", name="B")
        tx = post(ctx, "expense", "300", a.id)

        updated = LedgerService(ctx).update(
            tx.id, TransactionPatch(account_id=b.id, amount=Decimal("100"))
        )

        assert updated.account_id == b.id
        assert balance(ctx, a.id) == Decimal("1000.00")
        assert balance(ctx, b.id) == Decimal("100.00")

    def test_move_that_overdraws_target_changes_nothing(self, ctx):
        a = open_account(ctx, "1000", name="A")
        b = open_account(ctx, "200", name="B")
        tx = post(ctx, "expense", "300", a.id)
        ledger = LedgerService(ctx)

        with pytest.raises(BalanceNegative):
            ledger.update(tx.id, TransactionPatch(account_id=b.id))

        assert balance(ctx, a.id) == Decimal("700.00")
        assert balance(ctx, b.id) == Decimal("200.00")
        assert ledger.get(tx.id).account_id == a.id

    def test_type_change_reverts_then_applies(self, ctx):
        account = open_account(ctx, "1000")
        tx = post(ctx, "expense", "300", account.id)

        LedgerService(ctx).update(tx.id, TransactionPatch(type="income"))

        assert balance(ctx, account.id) == Decimal("1300.00")

    def test_reverted_balance_checked_before_apply(self, ctx):
        account = open_account(ctx)
        income = post(ctx, "income", "500", account.id)
        post(ctx, "expense", "400", account.id)

        with pytest.raises(BalanceNegative):
            LedgerService(ctx).update(income.id, TransactionPatch(amount=Decimal("50")))
        assert balance(ctx, account.id) == Decimal("100.00")

    def test_payment_moved_between_debts(self, ctx):
        account = open_account(ctx, "1000")
        first = open_debt(ctx, "100", name="First")
        second = open_debt(ctx, "100", name="Second")
        tx = post(ctx, "debtPayment", "100", account.id, debt_id=first.id)

        LedgerService(ctx).update(tx.id, TransactionPatch(debt_id=second.id))

        debts = DebtService(ctx)
        assert debts.get_debt(first.id).status == "active"
        assert debts.get_debt(second.id).status == "paid"
        assert balance(ctx, account.id) == Decimal("900.00")

    def test_patch_rejects_owner_change(self):
        with pytest.raises(ValidationError):
            TransactionPatch(owner_id="someone-else")

    def test_unknown_transaction(self, ctx):
        with pytest.raises(TxNotFound):
            LedgerService(ctx).update("missing", TransactionPatch(note="x"))

    def test_transfer_leg_rejected(self, ctx):
        a = open_account(ctx, "100", name="A")
        b = open_account(ctx, name="B")
        transfer = TransferService(ctx).create_transfer(TransferCreate(
            from_account_id=a.id, to_account_id=b.id, amount_from=Decimal("10"),
        ))
        with pytest.raises(InvalidType):
            LedgerService(ctx).update(
                transfer.in_leg.id, TransactionPatch(amount=Decimal("5"))
            )


# --- Listing and Conservation ---

class TestListAndConservation:

    def test_list_filters_and_orders_newest_first(self, ctx):
        account = open_account(ctx, "1000")
        post(ctx, "expense", "1", account.id, date="2026-09-01", category_id="food")
        post(ctx, "expense", "2", account.id, date="2026-10-05", category_id="food")
        post(ctx, "income", "3", account.id, date="2026-10-06")
        ledger = LedgerService(ctx)

        dates = [t.date for t in ledger.list_transactions()]
        assert dates == ["2026-10-06", "2026-10-05", "2026-09-01"]

        food = ledger.list_transactions(TransactionFilters(category_id="food"))
        assert len(food) == 2

        october = ledger.list_transactions(TransactionFilters(
            date_from="2026-10-01", date_to="2026-10-31", type="expense",
        ))
        assert [t.amount for t in october] == [Decimal("2.00")]

    def test_balance_equals_opening_plus_effects(self, ctx):
        a = open_account(ctx, "1000", name="A")
        b = open_account(ctx, "50", name="B")
        debt = open_debt(ctx, "300")
        ledger = LedgerService(ctx)

        post(ctx, "income", "120.10", a.id)
        spent = post(ctx, "expense", "45.55", a.id)
        post(ctx, "debtPayment", "200", a.id, debt_id=debt.id)
        ledger.update(spent.id, TransactionPatch(account_id=b.id, amount=Decimal("20")))
        TransferService(ctx).create_transfer(TransferCreate(
            from_account_id=a.id, to_account_id=b.id, amount_from=Decimal("33.33"),
        ))
        removable = post(ctx, "expense", "5", b.id)
        ledger.delete(removable.id)

        for account in AccountService(ctx).list_accounts():
            effects = sum(
                signed_effect(t.type, to_minor(t.amount))
                for t in ledger.list_transactions(TransactionFilters(account_id=account.id))
            )
            assert to_minor(account.balance) == to_minor(account.opening_balance) + effects


# --- Ownership Tests ---

def stamp_owner(ctx, tx_id, owner):
    """Rewrite a stored transaction's owner_id behind the service's back."""
    path = ctx.path("transactions", tx_id)

    def body(txn):
        txn.get(path)
        txn.update(path, {"owner_id": owner})

    ctx.store.atomic(body)


class TestOwnership:

    def test_foreign_owner_refused_everywhere(self, ctx):
        account = open_account(ctx, "100")
        tx = post(ctx, "expense", "30", account.id)
        stamp_owner(ctx, tx.id, "intruder")
        ledger = LedgerService(ctx)

        with pytest.raises(Unauthorized):
            ledger.get(tx.id)
        with pytest.raises(Unauthorized):
            ledger.update(tx.id, TransactionPatch(amount=Decimal("5")))
        with pytest.raises(Unauthorized):
            ledger.delete(tx.id)
        assert balance(ctx, account.id) == Decimal("70.00")

    def test_missing_owner_is_accepted(self, ctx):
        account = open_account(ctx, "100")
        tx = post(ctx, "expense", "30", account.id)
        stamp_owner(ctx, tx.id, None)

        LedgerService(ctx).delete(tx.id)

        assert balance(ctx, account.id) == Decimal("100.00")


# --- Write Gate ---

class TestWriteGate:

    def test_read_only_user_gets_notification_and_nothing_written(
        self, ctx, notifier, set_profile
    ):
        account = open_account(ctx, "100")
        set_profile("user-1", is_active=False)

        result = post(ctx, "expense", "10", account.id)

        assert result is None
        assert "access.readOnly" in notifier.keys()
        assert balance(ctx, account.id) == Decimal("100.00")

    def test_expired_plan_is_read_only(self, ctx, notifier, set_profile):
        account = open_account(ctx, "100")
        set_profile("user-1", plan_expires_at="2026-10-01T00:00:00+00:00")

        assert post(ctx, "income", "10", account.id) is None
        assert notifier.keys() == ["access.readOnly"]

    def test_active_plan_can_write(self, ctx, set_profile):
        account = open_account(ctx, "100")
        set_profile("user-1", is_active=True, plan_expires_at="2027-01-01T00:00:00+00:00")

        assert post(ctx, "income", "10", account.id) is not None
