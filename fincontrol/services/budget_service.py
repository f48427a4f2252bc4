"""
Budget service: spending targets and their progress.

Progress is read-side only. Spent is the sum of expense and
debt-payment transactions in the period, minus income marked as
a refund, converted into the budget currency. Nothing here
touches balances.
"""

from decimal import Decimal

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date, month_bounds
from fincontrol.errors import BudgetNotFound, InvalidDate
from fincontrol.models.enums import PeriodType, TransactionType
from fincontrol.money import from_minor, round2, to_minor
from fincontrol.schemas.budget import (
    BudgetCreate,
    BudgetPatch,
    BudgetProgress,
    BudgetResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

SPENDING_TYPES = frozenset({
    TransactionType.EXPENSE.value,
    TransactionType.DEBT_PAYMENT.value,
})

REFUND_MARKERS = ("refund", "reembolso")


def is_refund(tx: dict) -> bool:
    meta = tx.get("meta") or {}
    if meta.get("is_refund") or tx.get("is_refund"):
        return True
    note = str(tx.get("note") or "").lower()
    return any(marker in note for marker in REFUND_MARKERS)


def convert(
    amount: Decimal, currency: str | None, target: str, rates: dict
) -> tuple[Decimal, bool]:
    """
    Convert amount into the target currency.

    rates maps a currency to its value in the target currency.
    Returns (value, missing_rate); a missing rate leaves the
    amount unconverted.
    """
    if not currency or currency == target:
        return amount, False
    rate = rates.get(currency)
    if not rate or Decimal(str(rate)) <= 0:
        return amount, True
    return round2(amount * Decimal(str(rate))), False


def period_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _dump_rates(rates: dict) -> dict:
    return {currency: str(rate) for currency, rate in rates.items()}


class BudgetService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _path(self, budget_id: str) -> str:
        return self.ctx.path("budgets", budget_id)

    @staticmethod
    def _check_period(period_from: str | None, period_to: str | None) -> None:
        for value in (period_from, period_to):
            if value and not is_iso_date(value):
                raise InvalidDate()

    # --- CRUD ---

    @write_gated
    def create_budget(self, request: BudgetCreate) -> BudgetResponse:
        self._check_period(request.period_from, request.period_to)
        uid = self.ctx.uid
        budget_id = self.ctx.store.new_id()
        path = self._path(budget_id)
        data = {
            "owner_id": uid,
            "name": request.name,
            "target_amount": to_minor(request.target_amount),
            "currency": request.currency or get_settings().DEFAULT_CURRENCY,
            "period_type": request.period_type.value,
            "period_from": request.period_from or None,
            "period_to": request.period_to or None,
            "categories": list(request.categories),
            "exclude_accounts": list(request.exclude_accounts),
            "alert_threshold_pct": str(request.alert_threshold_pct),
            "carryover": request.carryover,
            "carryover_balance": to_minor(request.carryover_balance),
            "last_closed_period_key": None,
            "currency_rates": _dump_rates(request.currency_rates),
            "active": request.active,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }

        def body(txn):
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info("budget_created", user_id=uid, budget_id=budget_id)
        return self.get_budget(budget_id)

    @write_gated
    def update_budget(self, budget_id: str, patch: BudgetPatch) -> BudgetResponse:
        changes = patch.model_dump(exclude_unset=True)
        self._check_period(changes.get("period_from"), changes.get("period_to"))
        fields = {}
        for key, value in changes.items():
            if key == "target_amount":
                value = to_minor(value)
            elif key == "currency_rates":
                value = _dump_rates(value or {})
            elif key == "alert_threshold_pct":
                value = str(value) if value is not None else "80"
            elif key == "period_type" and value is not None:
                value = value.value
            fields[key] = value
        fields["updated_at"] = SERVER_TIMESTAMP

        uid = self.ctx.uid
        path = self._path(budget_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise BudgetNotFound(f"Budget {budget_id} not found")
            check_owner(doc, uid)
            txn.update(path, fields)

        self.ctx.store.atomic(body)
        return self.get_budget(budget_id)

    @write_gated
    def delete_budget(self, budget_id: str) -> str:
        uid = self.ctx.uid
        path = self._path(budget_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise BudgetNotFound(f"Budget {budget_id} not found")
            check_owner(doc, uid)
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("budget_deleted", user_id=uid, budget_id=budget_id)
        return budget_id

    def _load(self, budget_id: str) -> dict:
        doc = self.ctx.store.get(self._path(budget_id))
        if doc is None:
            raise BudgetNotFound(f"Budget {budget_id} not found")
        check_owner(doc, self.ctx.uid)
        return doc

    def get_budget(self, budget_id: str) -> BudgetResponse:
        return BudgetResponse.from_document(self._load(budget_id))

    def list_budgets(self, active: bool | None = None) -> list[BudgetResponse]:
        return [BudgetResponse.from_document(d) for d in self._list_docs(active)]

    def _list_docs(self, active: bool | None = None) -> list[dict]:
        filters = [] if active is None else [("active", "==", bool(active))]
        return self.ctx.store.query(
            self.ctx.collection("budgets"),
            filters=filters,
            order_by=[("created_at", "desc")],
        )

    # --- Progress ---

    def _period_for(self, budget: dict, year: int, month: int) -> tuple[str | None, str | None]:
        if budget.get("period_type") == PeriodType.MONTHLY.value:
            return month_bounds(year, month)
        return budget.get("period_from"), budget.get("period_to")

    def _transactions(self, date_from: str, date_to: str) -> list[dict]:
        return self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=[("date", ">=", date_from), ("date", "<=", date_to)],
        )

    def _progress(
        self, budget: dict, date_from: str | None, date_to: str | None
    ) -> BudgetProgress:
        target = from_minor(budget.get("target_amount"))
        effective_target = target
        if budget.get("carryover"):
            effective_target += from_minor(budget.get("carryover_balance"))

        if not date_from or not date_to:
            return BudgetProgress(
                spent=Decimal("0.00"),
                pct=Decimal("0.00"),
                remaining=effective_target,
                effective_target=effective_target,
                date_from=date_from,
                date_to=date_to,
            )

        currency = budget.get("currency") or get_settings().DEFAULT_CURRENCY
        rates = budget.get("currency_rates") or {}
        scope = set(budget.get("categories") or [])
        excluded = set(budget.get("exclude_accounts") or [])

        spent = Decimal("0")
        missing_rates = False
        for tx in self._transactions(date_from, date_to):
            if tx.get("account_id") in excluded:
                continue
            category = tx.get("category_id")
            if scope and category and category not in scope:
                continue

            tx_type = tx.get("type")
            if tx_type == TransactionType.INCOME.value:
                if not is_refund(tx):
                    continue
                sign = -1
            elif tx_type in SPENDING_TYPES:
                sign = 1
            else:
                continue

            value, missing = convert(
                from_minor(tx.get("amount")), tx.get("currency"), currency, rates
            )
            missing_rates = missing_rates or missing
            spent += sign * value

        spent = round2(spent)
        pct = (
            round2(spent / effective_target * 100)
            if effective_target > 0 else Decimal("0.00")
        )
        threshold = Decimal(str(budget.get("alert_threshold_pct") or "80"))
        return BudgetProgress(
            spent=spent,
            pct=pct,
            remaining=round2(effective_target - spent),
            effective_target=effective_target,
            missing_rates=missing_rates,
            over_threshold=effective_target > 0 and pct >= threshold,
            date_from=date_from,
            date_to=date_to,
        )

    def compute(
        self, budget_id: str, period: tuple[str, str] | None = None
    ) -> BudgetProgress:
        """
        Progress of one budget over period, or over the budget's
        own period_from/period_to when none is given.
        """
        budget = self._load(budget_id)
        date_from, date_to = period or (budget.get("period_from"), budget.get("period_to"))
        return self._progress(budget, date_from, date_to)

    def compute_for_month(self, year: int, month: int) -> dict[str, BudgetProgress]:
        """
        Progress of every budget for a calendar month (1-12).

        Monthly budgets use the month; custom budgets keep their
        own period. Keys of the result are budget ids.
        """
        results = {}
        for budget in self._list_docs():
            date_from, date_to = self._period_for(budget, year, month)
            progress = self._progress(budget, date_from, date_to)
            progress.period_key = f"{budget['id']}|{period_key(year, month)}"
            results[budget["id"]] = progress
        return results

    @write_gated
    def close_period(self, budget_id: str, year: int, month: int) -> BudgetResponse:
        """
        Roll the unspent (or overspent) amount of a month into
        carryover_balance. Budgets without carryover are left alone.
        """
        budget = self._load(budget_id)
        if not budget.get("carryover"):
            logger.info("budget_close_skipped", budget_id=budget_id, reason="no_carryover")
            return BudgetResponse.from_document(budget)

        date_from, date_to = self._period_for(budget, year, month)
        progress = self._progress(budget, date_from, date_to)
        delta = to_minor(from_minor(budget.get("target_amount")) - progress.spent)
        key = period_key(year, month)
        uid = self.ctx.uid
        path = self._path(budget_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise BudgetNotFound(f"Budget {budget_id} not found")
            check_owner(doc, uid)
            txn.update(path, {
                "carryover_balance": int(doc.get("carryover_balance") or 0) + delta,
                "last_closed_period_key": key,
                "updated_at": SERVER_TIMESTAMP,
            })

        self.ctx.store.atomic(body)
        logger.info("budget_period_closed", user_id=uid, budget_id=budget_id, period=key, delta=delta)
        self.ctx.notify("budgets.notifications.closed", budget_id=budget_id, period=key)
        return self.get_budget(budget_id)
