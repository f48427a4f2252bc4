"""
Debt service.

The remaining amount of a debt only moves through debt
payments posted by the ledger service. Here a debt is
created, renamed, re-dated, listed or deleted; deletion is
refused while payments reference it.
"""

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date
from fincontrol.errors import (
    DebtHasPayments,
    DebtNotFound,
    InvalidDate,
    NameRequired,
)
from fincontrol.models.enums import DebtStatus, TransactionType
from fincontrol.money import to_minor
from fincontrol.schemas.debt import DebtCreate, DebtResponse, DebtUpdate
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)


class DebtService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _path(self, debt_id: str) -> str:
        return self.ctx.path("debts", debt_id)

    @write_gated
    def create_debt(self, request: DebtCreate) -> DebtResponse:
        name = request.name.strip()
        if not name:
            raise NameRequired()
        if request.due_date and not is_iso_date(request.due_date):
            raise InvalidDate()

        uid = self.ctx.uid
        debt_id = self.ctx.store.new_id()
        original = to_minor(request.amount)
        path = self._path(debt_id)
        data = {
            "owner_id": uid,
            "name": name,
            "original_amount": original,
            "remaining_amount": original,
            "due_date": request.due_date or None,
            "currency": request.currency or get_settings().DEFAULT_CURRENCY,
            "status": DebtStatus.PAID.value if original == 0 else DebtStatus.ACTIVE.value,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }

        def body(txn):
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info("debt_created", user_id=uid, debt_id=debt_id, amount=original)
        return self.get_debt(debt_id)

    @write_gated
    def update_debt(self, debt_id: str, request: DebtUpdate) -> DebtResponse:
        changes = request.model_dump(exclude_unset=True)
        fields = {"updated_at": SERVER_TIMESTAMP}
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise NameRequired()
            fields["name"] = name
        if "due_date" in changes:
            if changes["due_date"] and not is_iso_date(changes["due_date"]):
                raise InvalidDate()
            fields["due_date"] = changes["due_date"] or None

        uid = self.ctx.uid
        path = self._path(debt_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise DebtNotFound(f"Debt {debt_id} not found")
            check_owner(doc, uid)
            txn.update(path, fields)

        self.ctx.store.atomic(body)
        return self.get_debt(debt_id)

    @write_gated
    def delete_debt(self, debt_id: str) -> str:
        uid = self.ctx.uid
        payments = self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=[
                ("type", "==", TransactionType.DEBT_PAYMENT.value),
                ("debt_id", "==", debt_id),
            ],
            limit=1,
        )
        if payments:
            raise DebtHasPayments(f"Debt {debt_id} has payments")
        path = self._path(debt_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise DebtNotFound(f"Debt {debt_id} not found")
            check_owner(doc, uid)
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("debt_deleted", user_id=uid, debt_id=debt_id)
        return debt_id

    def get_debt(self, debt_id: str) -> DebtResponse:
        doc = self.ctx.store.get(self._path(debt_id))
        if doc is None:
            raise DebtNotFound(f"Debt {debt_id} not found")
        check_owner(doc, self.ctx.uid)
        return DebtResponse.from_document(doc)

    def list_debts(self) -> list[DebtResponse]:
        docs = self.ctx.store.query(
            self.ctx.collection("debts"),
            order_by=[("due_date", "asc"), ("name", "asc")],
        )
        return [DebtResponse.from_document(d) for d in docs]
