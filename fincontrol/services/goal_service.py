"""
Goal service: savings goals and how far along they are.

Transactions count towards a goal when they carry its goal_id.
"""

from decimal import Decimal

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date
from fincontrol.errors import GoalNotFound, InvalidDate, NameRequired
from fincontrol.money import from_minor, round2, to_minor
from fincontrol.schemas.goal import (
    GoalCreate,
    GoalPatch,
    GoalProgress,
    GoalResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.services.budget_service import convert
from fincontrol.services.ledger_service import check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

HUNDRED = Decimal("100")


class GoalService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _path(self, goal_id: str) -> str:
        return self.ctx.path("goals", goal_id)

    @write_gated
    def create_goal(self, request: GoalCreate) -> GoalResponse:
        name = request.name.strip()
        if not name:
            raise NameRequired()
        if request.due_date and not is_iso_date(request.due_date):
            raise InvalidDate()

        uid = self.ctx.uid
        goal_id = self.ctx.store.new_id()
        path = self._path(goal_id)
        data = {
            "owner_id": uid,
            "name": name,
            "target_amount": to_minor(request.target_amount),
            "currency": request.currency or get_settings().DEFAULT_CURRENCY,
            "due_date": request.due_date or None,
            "account_id": request.account_id or "",
            "note": request.note,
            "paused": request.paused,
            "currency_rates": {k: str(v) for k, v in request.currency_rates.items()},
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }

        def body(txn):
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info("goal_created", user_id=uid, goal_id=goal_id)
        return self.get_goal(goal_id)

    @write_gated
    def update_goal(self, goal_id: str, patch: GoalPatch) -> GoalResponse:
        changes = patch.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise NameRequired()
        if changes.get("due_date") and not is_iso_date(changes["due_date"]):
            raise InvalidDate()
        if "target_amount" in changes:
            changes["target_amount"] = to_minor(changes["target_amount"])
        if "currency_rates" in changes:
            changes["currency_rates"] = {
                k: str(v) for k, v in (changes["currency_rates"] or {}).items()
            }
        changes["updated_at"] = SERVER_TIMESTAMP

        uid = self.ctx.uid
        path = self._path(goal_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise GoalNotFound(f"Goal {goal_id} not found")
            check_owner(doc, uid)
            txn.update(path, changes)

        self.ctx.store.atomic(body)
        return self.get_goal(goal_id)

    @write_gated
    def delete_goal(self, goal_id: str) -> str:
        uid = self.ctx.uid
        path = self._path(goal_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise GoalNotFound(f"Goal {goal_id} not found")
            check_owner(doc, uid)
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("goal_deleted", user_id=uid, goal_id=goal_id)
        return goal_id

    def pause(self, goal_id: str) -> GoalResponse | None:
        return self.update_goal(goal_id, GoalPatch(paused=True))

    def resume(self, goal_id: str) -> GoalResponse | None:
        return self.update_goal(goal_id, GoalPatch(paused=False))

    def _load(self, goal_id: str) -> dict:
        doc = self.ctx.store.get(self._path(goal_id))
        if doc is None:
            raise GoalNotFound(f"Goal {goal_id} not found")
        check_owner(doc, self.ctx.uid)
        return doc

    def get_goal(self, goal_id: str) -> GoalResponse:
        return GoalResponse.from_document(self._load(goal_id))

    def list_goals(self, paused: bool | None = None) -> list[GoalResponse]:
        filters = [] if paused is None else [("paused", "==", bool(paused))]
        docs = self.ctx.store.query(
            self.ctx.collection("goals"),
            filters=filters,
            order_by=[("created_at", "desc")],
        )
        return [GoalResponse.from_document(d) for d in docs]

    # --- Progress ---

    def saved(self, goal: dict) -> tuple[Decimal, bool]:
        """Sum of the goal's tagged transactions in the goal currency."""
        currency = goal.get("currency") or get_settings().DEFAULT_CURRENCY
        rates = goal.get("currency_rates") or {}
        txs = self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=[("goal_id", "==", goal["id"])],
        )
        total = Decimal("0")
        missing_rates = False
        for tx in txs:
            value, missing = convert(
                from_minor(tx.get("amount")), tx.get("currency"), currency, rates
            )
            missing_rates = missing_rates or missing
            total += value
        return round2(total), missing_rates

    def progress(self, goal_id: str) -> GoalProgress:
        goal = self._load(goal_id)
        saved, missing_rates = self.saved(goal)
        target = from_minor(goal.get("target_amount"))
        return GoalProgress(
            goal_id=goal_id,
            saved=saved,
            pct=progress_pct(saved, target),
            completed=is_completed(saved, target),
            missing_rates=missing_rates,
        )

    def progress_all(self) -> dict[str, GoalProgress]:
        return {goal.id: self.progress(goal.id) for goal in self.list_goals()}


def progress_pct(saved: Decimal, target: Decimal) -> Decimal:
    """Percentage of target reached, capped at 100."""
    if target <= 0:
        return Decimal("0.00")
    return round2(min(HUNDRED, saved / target * HUNDRED))


def is_completed(saved: Decimal, target: Decimal) -> bool:
    return target > 0 and saved >= target
