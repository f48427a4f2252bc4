"""
Account service: opening, renaming and closing accounts.

Balances are never written here after creation; only the
ledger and transfer services move them. An account cannot be
deleted while any transaction still references it.
"""

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.errors import (
    AccountHasTransactions,
    AccountNotFound,
    NameRequired,
)
from fincontrol.money import to_minor
from fincontrol.schemas.account import (
    AccountCreate,
    AccountRename,
    AccountResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)


class AccountService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _path(self, account_id: str) -> str:
        return self.ctx.path("accounts", account_id)

    @write_gated
    def create_account(self, request: AccountCreate) -> AccountResponse:
        """
        Open an account with an optional opening balance.

        The opening balance is kept separately so that
        balance == opening_balance + sum of transaction effects.
        """
        name = request.name.strip()
        if not name:
            raise NameRequired()

        uid = self.ctx.uid
        account_id = self.ctx.store.new_id()
        opening = to_minor(request.balance)
        path = self._path(account_id)
        data = {
            "owner_id": uid,
            "name": name,
            "balance": opening,
            "opening_balance": opening,
            "currency": request.currency or get_settings().DEFAULT_CURRENCY,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }

        def body(txn):
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info("account_created", user_id=uid, account_id=account_id)
        return self.get_account(account_id)

    @write_gated
    def rename_account(self, account_id: str, request: AccountRename) -> AccountResponse:
        name = request.name.strip()
        if not name:
            raise NameRequired()
        uid = self.ctx.uid
        path = self._path(account_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise AccountNotFound(f"Account {account_id} not found")
            check_owner(doc, uid)
            txn.update(path, {"name": name, "updated_at": SERVER_TIMESTAMP})

        self.ctx.store.atomic(body)
        return self.get_account(account_id)

    @write_gated
    def delete_account(self, account_id: str) -> str:
        """Delete an account that no transaction references."""
        uid = self.ctx.uid
        referencing = self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=[("account_id", "==", account_id)],
            limit=1,
        )
        if referencing:
            raise AccountHasTransactions(
                f"Account {account_id} has transactions"
            )
        path = self._path(account_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise AccountNotFound(f"Account {account_id} not found")
            check_owner(doc, uid)
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("account_deleted", user_id=uid, account_id=account_id)
        return account_id

    def get_account(self, account_id: str) -> AccountResponse:
        doc = self.ctx.store.get(self._path(account_id))
        if doc is None:
            raise AccountNotFound(f"Account {account_id} not found")
        check_owner(doc, self.ctx.uid)
        return AccountResponse.from_document(doc)

    def list_accounts(self) -> list[AccountResponse]:
        docs = self.ctx.store.query(
            self.ctx.collection("accounts"),
            order_by=[("name", "asc")],
        )
        return [AccountResponse.from_document(d) for d in docs]
