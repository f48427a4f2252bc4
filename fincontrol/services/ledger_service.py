"""
Ledger service: the core of the system.

Account balances and debt remaining amounts are stored on
their documents and must always agree with the transactions
that reference them. This service enforces:

1. Every create/update/delete changes the transaction and the
   balances it affects in one atomic call
2. No operation leaves an account balance or a debt's
   remaining amount below zero
3. A debt is "paid" exactly when its remaining amount is 0
4. All money math happens in integer minor units

Transfers use the same BalanceSheet from transfer_service.
"""

import structlog

from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date
from fincontrol.errors import (
    AccountNotFound,
    AccountRequired,
    BalanceNegative,
    DebtNotFound,
    DebtRemainingNegative,
    DebtRequired,
    InvalidAmount,
    InvalidDate,
    InvalidType,
    TxNotFound,
    Unauthorized,
    first_error,
)
from fincontrol.models.enums import (
    DebtStatus,
    SIMPLE_TRANSACTION_TYPES,
    TransactionType,
)
from fincontrol.money import to_minor
from fincontrol.schemas.transaction import (
    TransactionCreate,
    TransactionFilters,
    TransactionPatch,
    TransactionResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

CREDIT_TYPES = frozenset({
    TransactionType.INCOME.value,
    TransactionType.TRANSFER_IN.value,
})


def signed_effect(tx_type: str, amount: int) -> int:
    """Effect of a transaction on its account balance, in minor units."""
    return amount if tx_type in CREDIT_TYPES else -amount


def validate_transaction_payload(payload: TransactionCreate) -> list[str]:
    """
    Return the error codes for a create payload, empty when valid.

    Used both before posting and by the scheduler to skip
    occurrences that could never be posted.
    """
    errors = []
    if payload.amount is None or payload.amount <= 0:
        errors.append(InvalidAmount.code)
    if payload.type not in SIMPLE_TRANSACTION_TYPES:
        errors.append(InvalidType.code)
    if not payload.account_id:
        errors.append(AccountRequired.code)
    if not is_iso_date(payload.date):
        errors.append(InvalidDate.code)
    if payload.type == TransactionType.DEBT_PAYMENT.value and not payload.debt_id:
        errors.append(DebtRequired.code)
    return errors


def check_owner(doc: dict, uid: str) -> None:
    owner = doc.get("owner_id")
    if owner and owner != uid:
        raise Unauthorized(f"Document {doc.get('id')} belongs to another user")


class BalanceSheet:
    """
    Working copy of balances inside one atomic attempt.

    Each account or debt document is read at most once, and
    every revert/apply step adjusts that single figure. When an
    update moves a transaction between documents, or leaves it
    on the same one, the arithmetic is the same and nothing is
    counted twice.
    """

    def __init__(self, txn, ctx: UserContext):
        self._txn = txn
        self._ctx = ctx
        self.accounts: dict[str, dict] = {}
        self.balances: dict[str, int] = {}
        self.debts: dict[str, dict] = {}
        self.remaining: dict[str, int] = {}

    def account(self, account_id: str) -> dict:
        if account_id not in self.accounts:
            doc = self._txn.get(self._ctx.path("accounts", account_id))
            if doc is None:
                raise AccountNotFound(f"Account {account_id} not found")
            self.accounts[account_id] = doc
            self.balances[account_id] = int(doc.get("balance") or 0)
        return self.accounts[account_id]

    def debt(self, debt_id: str) -> dict:
        if debt_id not in self.debts:
            doc = self._txn.get(self._ctx.path("debts", debt_id))
            if doc is None:
                raise DebtNotFound(f"Debt {debt_id} not found")
            self.debts[debt_id] = doc
            self.remaining[debt_id] = int(doc.get("remaining_amount") or 0)
        return self.debts[debt_id]

    def adjust_balance(self, account_id: str, delta: int) -> None:
        self.account(account_id)
        self.balances[account_id] += delta
        if self.balances[account_id] < 0:
            raise BalanceNegative(
                f"Account {account_id} balance would be negative"
            )

    def adjust_remaining(self, debt_id: str, delta: int) -> None:
        self.debt(debt_id)
        self.remaining[debt_id] += delta
        if self.remaining[debt_id] < 0:
            raise DebtRemainingNegative(
                f"Debt {debt_id} remaining amount would be negative"
            )

    def write(self) -> None:
        """Buffer updates for every document whose figure changed."""
        for account_id, balance in self.balances.items():
            if balance != int(self.accounts[account_id].get("balance") or 0):
                self._txn.update(self._ctx.path("accounts", account_id), {
                    "balance": balance,
                    "updated_at": SERVER_TIMESTAMP,
                })
        for debt_id, remaining in self.remaining.items():
            if remaining != int(self.debts[debt_id].get("remaining_amount") or 0):
                self._txn.update(self._ctx.path("debts", debt_id), {
                    "remaining_amount": remaining,
                    "status": (
                        DebtStatus.PAID.value if remaining == 0
                        else DebtStatus.ACTIVE.value
                    ),
                    "updated_at": SERVER_TIMESTAMP,
                })


class LedgerService:
    """
    Income, expense and debt-payment transactions.

    The service takes a UserContext; all writes go through
    the context's store and are owned by the context's user.
    """

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _tx_path(self, tx_id: str) -> str:
        return self.ctx.path("transactions", tx_id)

    @write_gated
    def create(self, payload: TransactionCreate) -> TransactionResponse:
        """
        Post a new transaction.

        The account balance moves by +amount (income) or -amount
        (expense, debtPayment). A debt payment also lowers the
        debt's remaining amount and marks it paid at exactly 0.
        Rejected with nothing written if either figure would go
        negative.
        """
        errors = validate_transaction_payload(payload)
        if errors:
            raise first_error(errors)
        amount = to_minor(payload.amount)
        if amount <= 0:
            raise InvalidAmount("Amount rounds to zero")

        uid = self.ctx.uid
        tx_id = self.ctx.store.new_id()
        tx_path = self._tx_path(tx_id)
        debt_id = (
            payload.debt_id
            if payload.type == TransactionType.DEBT_PAYMENT.value
            else None
        )

        def body(txn):
            sheet = BalanceSheet(txn, self.ctx)
            account = sheet.account(payload.account_id)
            sheet.adjust_balance(
                payload.account_id, signed_effect(payload.type, amount)
            )
            if debt_id:
                sheet.adjust_remaining(debt_id, -amount)
            sheet.write()
            txn.set(tx_path, {
                "owner_id": uid,
                "type": payload.type,
                "amount": amount,
                "currency": payload.currency or account.get("currency"),
                "account_id": payload.account_id,
                "debt_id": debt_id,
                "category_id": payload.category_id or "",
                "goal_id": payload.goal_id,
                "date": payload.date,
                "note": payload.note or "",
                "meta": payload.meta.model_dump() if payload.meta else None,
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            })

        self.ctx.store.atomic(body)

        logger.info(
            "transaction_created",
            user_id=uid,
            tx_id=tx_id,
            type=payload.type,
            amount=amount,
            account_id=payload.account_id,
        )
        return self.get(tx_id)

    @write_gated
    def update(self, tx_id: str, patch: TransactionPatch) -> TransactionResponse:
        """
        Change a transaction and rebalance everything it touches.

        Inside one atomic call the old effect is reverted from
        the old account (and debt), the reverted figures are
        checked, then the new effect is applied to the new
        account (and debt) and checked again.
        """
        changes = patch.model_dump(exclude_unset=True)
        if "amount" in changes and (
            changes["amount"] is None or to_minor(changes["amount"]) <= 0
        ):
            raise InvalidAmount()
        if "type" in changes and changes["type"] not in SIMPLE_TRANSACTION_TYPES:
            raise InvalidType()
        if "date" in changes and not is_iso_date(changes["date"]):
            raise InvalidDate()
        if "account_id" in changes and not changes["account_id"]:
            raise AccountRequired()

        uid = self.ctx.uid
        tx_path = self._tx_path(tx_id)

        def body(txn):
            prev = txn.get(tx_path)
            if prev is None:
                raise TxNotFound(f"Transaction {tx_id} not found")
            check_owner(prev, uid)
            if prev.get("type") not in SIMPLE_TRANSACTION_TYPES:
                raise InvalidType("Transfer legs change through transfers")

            new_type = changes.get("type") or prev["type"]
            new_amount = (
                to_minor(changes["amount"]) if "amount" in changes
                else int(prev["amount"])
            )
            new_account_id = changes.get("account_id") or prev["account_id"]
            new_debt_id = changes.get("debt_id", prev.get("debt_id"))
            if new_type != TransactionType.DEBT_PAYMENT.value:
                new_debt_id = None
            elif not new_debt_id:
                raise DebtRequired()

            sheet = BalanceSheet(txn, self.ctx)

            # Revert
            sheet.adjust_balance(
                prev["account_id"],
                -signed_effect(prev["type"], int(prev["amount"])),
            )
            if prev["type"] == TransactionType.DEBT_PAYMENT.value and prev.get("debt_id"):
                sheet.adjust_remaining(prev["debt_id"], int(prev["amount"]))

            # Apply
            account = sheet.account(new_account_id)
            sheet.adjust_balance(new_account_id, signed_effect(new_type, new_amount))
            if new_debt_id:
                sheet.adjust_remaining(new_debt_id, -new_amount)

            if changes.get("currency"):
                currency = changes["currency"]
            elif new_account_id == prev["account_id"]:
                currency = prev.get("currency")
            else:
                currency = account.get("currency")

            sheet.write()
            fields = {
                "type": new_type,
                "amount": new_amount,
                "account_id": new_account_id,
                "debt_id": new_debt_id,
                "currency": currency,
                "updated_at": SERVER_TIMESTAMP,
            }
            for key in ("category_id", "goal_id", "date", "note"):
                if key in changes:
                    fields[key] = changes[key]
            txn.update(tx_path, fields)

        self.ctx.store.atomic(body)

        logger.info(
            "transaction_updated",
            user_id=uid,
            tx_id=tx_id,
            fields=sorted(changes),
        )
        return self.get(tx_id)

    @write_gated
    def delete(self, tx_id: str) -> str:
        """
        Remove a transaction and revert its effect.

        A revert that would drive a balance negative means the
        stored figures are already inconsistent; it is refused
        rather than written.
        """
        uid = self.ctx.uid
        tx_path = self._tx_path(tx_id)

        def body(txn):
            prev = txn.get(tx_path)
            if prev is None:
                raise TxNotFound(f"Transaction {tx_id} not found")
            check_owner(prev, uid)
            if prev.get("type") not in SIMPLE_TRANSACTION_TYPES:
                raise InvalidType("Transfer legs are deleted through transfers")

            sheet = BalanceSheet(txn, self.ctx)
            sheet.adjust_balance(
                prev["account_id"],
                -signed_effect(prev["type"], int(prev["amount"])),
            )
            if prev["type"] == TransactionType.DEBT_PAYMENT.value and prev.get("debt_id"):
                sheet.adjust_remaining(prev["debt_id"], int(prev["amount"]))
            sheet.write()
            txn.delete(tx_path)

        self.ctx.store.atomic(body)

        logger.info("transaction_deleted", user_id=uid, tx_id=tx_id)
        return tx_id

    def get(self, tx_id: str) -> TransactionResponse:
        doc = self.ctx.store.get(self._tx_path(tx_id))
        if doc is None:
            raise TxNotFound(f"Transaction {tx_id} not found")
        check_owner(doc, self.ctx.uid)
        return TransactionResponse.from_document(doc)

    def list_transactions(
        self, filters: TransactionFilters | None = None
    ) -> list[TransactionResponse]:
        """Transactions newest first, optionally filtered."""
        filters = filters or TransactionFilters()
        clauses = []
        if filters.type:
            clauses.append(("type", "==", filters.type))
        if filters.account_id:
            clauses.append(("account_id", "==", filters.account_id))
        if filters.category_id:
            clauses.append(("category_id", "==", filters.category_id))
        if filters.goal_id:
            clauses.append(("goal_id", "==", filters.goal_id))
        if filters.date_from:
            clauses.append(("date", ">=", filters.date_from))
        if filters.date_to:
            clauses.append(("date", "<=", filters.date_to))

        docs = self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=clauses,
            order_by=[("date", "desc"), ("created_at", "desc")],
            limit=filters.limit,
        )
        return [TransactionResponse.from_document(d) for d in docs]
