"""
Recurring service: templates and the due-occurrence scheduler.

A template describes a transaction that repeats weekly,
biweekly, monthly or yearly. Each pass turns every elapsed
occurrence into a real transaction through the ledger service.

Exactly-once posting rests on run locks: before posting the
occurrence due on `period_key`, the scheduler creates the
document recurringRuns/{template_id}__{period_key} if and only
if it does not exist yet. An existing lock means the
occurrence was already handled (or is being handled) and is
skipped, never retried.

When the app has been away for a while, one pass catches up at
most CATCH_UP_LIMITS occurrences per template (about two
years). The date always advances past an occurrence, even when
posting it fails, so one bad occurrence cannot wedge a
template; the failure stays visible on its lock as "error".
"""

import threading
import time
from typing import Callable

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date, next_from
from fincontrol.errors import (
    AccountRequired,
    DebtRequired,
    FinControlError,
    TemplateNotFound,
)
from fincontrol.models.enums import Frequency, RunStatus, TransactionType
from fincontrol.money import from_minor, to_minor
from fincontrol.schemas.recurring import (
    ProcessResult,
    TemplateCreate,
    TemplatePatch,
    TemplateResponse,
)
from fincontrol.schemas.transaction import RecurringMeta, TransactionCreate
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import (
    LedgerService,
    check_owner,
    validate_transaction_payload,
)
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

TEMPLATES = "recurringTemplates"
RUNS = "recurringRuns"

CATCH_UP_LIMITS = {
    Frequency.WEEKLY.value: 104,
    Frequency.BIWEEKLY.value: 78,
    Frequency.MONTHLY.value: 36,
    Frequency.YEARLY.value: 5,
}


def lock_id(template_id: str, period_key: str) -> str:
    return f"{template_id}__{period_key}"


def catch_up_limit(frequency: str) -> int:
    return CATCH_UP_LIMITS.get(frequency, CATCH_UP_LIMITS[Frequency.MONTHLY.value])


class RecurringService:

    def __init__(self, ctx: UserContext, ledger: LedgerService | None = None):
        self.ctx = ctx
        self.ledger = ledger or LedgerService(ctx)

    def _template_path(self, template_id: str) -> str:
        return self.ctx.path(TEMPLATES, template_id)

    def _run_path(self, template_id: str, period_key: str) -> str:
        return self.ctx.path(RUNS, lock_id(template_id, period_key))

    def _normalize(self, data: dict) -> dict:
        """Apply the template rules to a full set of fields."""
        if not data.get("account_id"):
            raise AccountRequired()
        if data.get("type") == TransactionType.DEBT_PAYMENT.value:
            if not data.get("debt_id"):
                raise DebtRequired()
        else:
            data["debt_id"] = None
        if not is_iso_date(data.get("next_run_at")):
            data["next_run_at"] = self.ctx.today()
        return data

    # --- Templates ---

    @write_gated
    def create_template(self, request: TemplateCreate) -> TemplateResponse:
        uid = self.ctx.uid
        template_id = self.ctx.store.new_id()
        data = self._normalize({
            "owner_id": uid,
            "name": request.name,
            "type": request.type or TransactionType.EXPENSE.value,
            "amount": to_minor(request.amount),
            "account_id": request.account_id,
            "debt_id": request.debt_id,
            "category_id": request.category_id,
            "note": request.note,
            "frequency": request.frequency or Frequency.MONTHLY.value,
            "next_run_at": request.first_run_at or request.next_run_at,
            "last_run_at": None,
            "paused": request.paused,
            "partial_catch_up": False,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })
        path = self._template_path(template_id)

        def body(txn):
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info(
            "recurring_template_created",
            user_id=uid,
            template_id=template_id,
            frequency=data["frequency"],
            next_run_at=data["next_run_at"],
        )
        return self.get_template(template_id)

    @write_gated
    def update_template(self, template_id: str, patch: TemplatePatch) -> TemplateResponse:
        changes = patch.model_dump(exclude_unset=True)
        first_run = changes.pop("first_run_at", None)
        if first_run and not changes.get("next_run_at"):
            changes["next_run_at"] = first_run
        if "amount" in changes:
            changes["amount"] = to_minor(changes["amount"])

        uid = self.ctx.uid
        path = self._template_path(template_id)

        def body(txn):
            current = txn.get(path)
            if current is None:
                raise TemplateNotFound(f"Template {template_id} not found")
            check_owner(current, uid)
            merged = self._normalize({**current, **changes})
            fields = {
                key: merged[key]
                for key in set(changes) | {"debt_id", "next_run_at"}
            }
            fields["updated_at"] = SERVER_TIMESTAMP
            txn.update(path, fields)

        self.ctx.store.atomic(body)
        return self.get_template(template_id)

    @write_gated
    def delete_template(self, template_id: str) -> str:
        uid = self.ctx.uid
        path = self._template_path(template_id)

        def body(txn):
            current = txn.get(path)
            if current is None:
                raise TemplateNotFound(f"Template {template_id} not found")
            check_owner(current, uid)
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("recurring_template_deleted", user_id=uid, template_id=template_id)
        return template_id

    def pause(self, template_id: str) -> TemplateResponse | None:
        return self.update_template(template_id, TemplatePatch(paused=True))

    def resume(self, template_id: str) -> TemplateResponse | None:
        return self.update_template(template_id, TemplatePatch(paused=False))

    def get_template(self, template_id: str) -> TemplateResponse:
        doc = self.ctx.store.get(self._template_path(template_id))
        if doc is None:
            raise TemplateNotFound(f"Template {template_id} not found")
        check_owner(doc, self.ctx.uid)
        return TemplateResponse.from_document(doc)

    def list_templates(self, paused: bool | None = None) -> list[TemplateResponse]:
        filters = [] if paused is None else [("paused", "==", bool(paused))]
        docs = self.ctx.store.query(
            self.ctx.collection(TEMPLATES),
            filters=filters,
            order_by=[("created_at", "desc")],
        )
        return [TemplateResponse.from_document(d) for d in docs]

    def get_run(self, template_id: str, period_key: str) -> dict | None:
        return self.ctx.store.get(self._run_path(template_id, period_key))

    # --- Scheduler ---

    def fetch_due_templates(self, today: str | None = None) -> list[dict]:
        """Unpaused templates whose next_run_at is today or earlier, oldest first."""
        today = today or self.ctx.today()
        return self.ctx.store.query(
            self.ctx.collection(TEMPLATES),
            filters=[
                ("paused", "==", False),
                ("next_run_at", "<=", today),
            ],
            order_by=[("next_run_at", "asc")],
        )

    @write_gated
    def process_due_once(self, today: str | None = None) -> ProcessResult:
        """
        Post every elapsed occurrence of every due template.

        A failure inside one template is logged and counted; the
        remaining templates are still processed.
        """
        today = today or self.ctx.today()
        due = self.fetch_due_templates(today)
        result = ProcessResult(templates=len(due))

        for template in due:
            try:
                self._catch_up(template, today, result)
            except Exception:
                result.failed += 1
                logger.exception(
                    "recurring_template_failed",
                    user_id=self.ctx.uid,
                    template_id=template["id"],
                )

        if result.processed:
            self.ctx.notify(
                "recurring.notifications.processed", count=result.processed
            )
        logger.info(
            "recurring_pass_done",
            user_id=self.ctx.uid,
            today=today,
            **result.model_dump(exclude={"partial_templates"}),
        )
        return result

    def _occurrence(self, template: dict, period_key: str) -> TransactionCreate:
        return TransactionCreate(
            type=template.get("type") or TransactionType.EXPENSE.value,
            amount=from_minor(template.get("amount")),
            account_id=template.get("account_id") or None,
            debt_id=template.get("debt_id") or None,
            category_id=template.get("category_id") or "",
            date=period_key,
            note=template.get("note") or template.get("name") or "",
            meta=RecurringMeta(
                recurring_template_id=template["id"],
                period_key=period_key,
            ),
        )

    def _catch_up(self, template: dict, today: str, result: ProcessResult) -> None:
        template_id = template["id"]
        frequency = template.get("frequency") or Frequency.MONTHLY.value
        limit = catch_up_limit(frequency)
        next_run = template.get("next_run_at")
        if not is_iso_date(next_run):
            # Malformed dates in stored data run today and then move on
            logger.warning(
                "recurring_next_run_malformed",
                template_id=template_id,
                next_run_at=next_run,
            )
            next_run = today
        iterations = 0

        while next_run <= today and iterations < limit:
            iterations += 1
            period_key = next_run
            lock_update = None

            payload = self._occurrence(template, period_key)
            errors = validate_transaction_payload(payload)
            if errors:
                result.skipped += 1
                logger.warning(
                    "recurring_occurrence_invalid",
                    template_id=template_id,
                    period_key=period_key,
                    errors=errors,
                )
            elif not self._claim(template_id, period_key):
                result.skipped += 1
                logger.info(
                    "recurring_occurrence_locked",
                    template_id=template_id,
                    period_key=period_key,
                )
            else:
                lock_update = self._post(payload, template_id, period_key, result)

            next_run = next_from(frequency, period_key)
            self._advance(template_id, period_key, next_run, lock_update)

        behind = next_run <= today
        if behind:
            result.partial_templates.append(template_id)
            self.ctx.notify(
                "recurring.notifications.partialCatchUp",
                template_id=template_id,
                name=template.get("name", ""),
                next_run_at=next_run,
            )
            logger.warning(
                "recurring_partial_catch_up",
                template_id=template_id,
                next_run_at=next_run,
                limit=limit,
            )
        if behind != bool(template.get("partial_catch_up")):
            self._set_partial(template_id, behind)

    def _post(
        self,
        payload: TransactionCreate,
        template_id: str,
        period_key: str,
        result: ProcessResult,
    ) -> dict:
        """Post one claimed occurrence; return the lock's final fields."""
        try:
            tx = self.ledger.create(payload)
        except FinControlError as e:
            result.failed += 1
            logger.warning(
                "recurring_post_failed",
                template_id=template_id,
                period_key=period_key,
                error=e.code,
            )
            return {"status": RunStatus.ERROR.value, "error": f"{e.code}: {e}"}

        if tx is None:
            result.failed += 1
            return {"status": RunStatus.ERROR.value, "error": "access.readOnly"}

        result.processed += 1
        return {"status": RunStatus.DONE.value, "tx_id": tx.id}

    def _claim(self, template_id: str, period_key: str) -> bool:
        """Create the run lock if absent. False means someone already has it."""
        path = self._run_path(template_id, period_key)
        uid = self.ctx.uid

        def body(txn):
            if txn.get(path) is not None:
                return False
            txn.set(path, {
                "owner_id": uid,
                "template_id": template_id,
                "period_key": period_key,
                "status": RunStatus.PENDING.value,
                "created_at": SERVER_TIMESTAMP,
            })
            return True

        return self.ctx.store.atomic(body)

    def _advance(
        self,
        template_id: str,
        period_key: str,
        next_run: str,
        lock_update: dict | None,
    ) -> None:
        template_path = self._template_path(template_id)
        run_path = self._run_path(template_id, period_key)

        def body(txn):
            if txn.get(template_path) is None:
                raise TemplateNotFound(f"Template {template_id} not found")
            fields = {"next_run_at": next_run, "updated_at": SERVER_TIMESTAMP}
            if lock_update and lock_update["status"] == RunStatus.DONE.value:
                fields["last_run_at"] = period_key
            txn.update(template_path, fields)
            if lock_update:
                txn.update(run_path, {**lock_update, "updated_at": SERVER_TIMESTAMP})

        self.ctx.store.atomic(body)

    def _set_partial(self, template_id: str, partial: bool) -> None:
        path = self._template_path(template_id)

        def body(txn):
            if txn.get(path) is None:
                raise TemplateNotFound(f"Template {template_id} not found")
            txn.update(path, {"partial_catch_up": partial, "updated_at": SERVER_TIMESTAMP})

        self.ctx.store.atomic(body)


class RecurringScheduler:
    """
    Guards scheduler passes within one process.

    A pass is skipped while another is still running, and when
    the previous one started less than min_interval seconds ago.
    """

    def __init__(
        self,
        service: RecurringService,
        min_interval: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self.min_interval = (
            get_settings().RECURRING_MIN_INTERVAL_SECONDS
            if min_interval is None else min_interval
        )
        self._monotonic = monotonic
        self._processing = threading.Lock()
        self._last_started: float | None = None

    @property
    def processing(self) -> bool:
        return self._processing.locked()

    def run(self, today: str | None = None) -> ProcessResult | None:
        if not self._processing.acquire(blocking=False):
            logger.debug("recurring_pass_skipped", reason="processing")
            return None
        try:
            now = self._monotonic()
            if (
                self._last_started is not None
                and now - self._last_started < self.min_interval
            ):
                logger.debug("recurring_pass_skipped", reason="min_interval")
                return None
            self._last_started = now
            return self.service.process_due_once(today)
        finally:
            self._processing.release()
