"""
Currency service: the per-user catalog of currencies.

Documents live at users/{uid}/currencies/{CODE}. The code is
the document id, so a duplicate is caught inside the same
atomic step that writes it. Exactly one currency is the
default whenever the catalog is not empty.
"""

import re

import structlog

from fincontrol.context import UserContext
from fincontrol.errors import (
    CannotDeleteDefault,
    CurrencyNotFound,
    DuplicateCurrency,
    InvalidCurrencyCode,
)
from fincontrol.schemas.currency import (
    CurrencyCreate,
    CurrencyPatch,
    CurrencyResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

CURRENCIES = "currencies"

CODE_PATTERN = re.compile(r"^[A-Z]{3,5}$")

# Seeded into an empty catalog.
FALLBACK_CURRENCY = {"code": "COP", "symbol": "$", "name": "Peso Colombiano"}


def normalize_currency_code(code: str | None) -> str:
    return (code or "").strip().upper()


class CurrencyService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx

    def _path(self, currency_id: str) -> str:
        return self.ctx.path(CURRENCIES, currency_id)

    def _all(self) -> list[dict]:
        return self.ctx.store.query(
            self.ctx.collection(CURRENCIES),
            order_by=[("code", "asc")],
        )

    # --- Mutations ---

    @write_gated
    def ensure_at_least_one(self) -> list[CurrencyResponse]:
        """Seed an empty catalog and make sure one entry is the default."""
        self._ensure()
        return self.list_currencies()

    @write_gated
    def create_currency(self, request: CurrencyCreate) -> CurrencyResponse:
        code = normalize_currency_code(request.code)
        if not CODE_PATTERN.match(code):
            raise InvalidCurrencyCode(f"Invalid currency code '{request.code}'")

        uid = self.ctx.uid
        path = self._path(code)
        data = {
            "owner_id": uid,
            "code": code,
            "symbol": request.symbol.strip(),
            "name": (request.name or "").strip() or code,
            "is_default": False,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }

        def body(txn):
            if txn.get(path) is not None:
                raise DuplicateCurrency(f"Currency {code} already exists")
            txn.set(path, data)

        self.ctx.store.atomic(body)
        logger.info("currency_created", user_id=uid, code=code)

        if request.is_default:
            self._set_default(code)
        else:
            self._ensure()
        return self.get_currency(code)

    @write_gated
    def update_currency(
        self, currency_id: str, patch: CurrencyPatch
    ) -> CurrencyResponse:
        """
        Change symbol or name. Setting is_default moves the default
        here; clearing it is ignored, since some currency must stay
        the default.
        """
        changes = patch.model_dump(exclude_unset=True)
        make_default = changes.pop("is_default", None)
        if "symbol" in changes:
            changes["symbol"] = (changes["symbol"] or "").strip()
        uid = self.ctx.uid
        path = self._path(currency_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise CurrencyNotFound(f"Currency {currency_id} not found")
            check_owner(doc, uid)
            fields = dict(changes)
            if "name" in fields:
                fields["name"] = (fields["name"] or "").strip() or doc["code"]
            fields["updated_at"] = SERVER_TIMESTAMP
            txn.update(path, fields)

        self.ctx.store.atomic(body)
        if make_default:
            self._set_default(currency_id)
        return self.get_currency(currency_id)

    @write_gated
    def delete_currency(self, currency_id: str) -> str:
        uid = self.ctx.uid
        path = self._path(currency_id)

        def body(txn):
            doc = txn.get(path)
            if doc is None:
                raise CurrencyNotFound(f"Currency {currency_id} not found")
            check_owner(doc, uid)
            if doc.get("is_default"):
                raise CannotDeleteDefault()
            txn.delete(path)

        self.ctx.store.atomic(body)
        logger.info("currency_deleted", user_id=uid, currency_id=currency_id)

        remaining = self._all()
        if remaining and not any(d.get("is_default") for d in remaining):
            self._set_default(remaining[0]["id"])
        return currency_id

    @write_gated
    def set_default(self, currency_id: str) -> CurrencyResponse:
        self._set_default(currency_id)
        return self.get_currency(currency_id)

    def _set_default(self, currency_id: str) -> None:
        uid = self.ctx.uid
        paths = {d["id"]: self._path(d["id"]) for d in self._all()}
        paths.setdefault(currency_id, self._path(currency_id))

        def body(txn):
            docs = {cid: txn.get(path) for cid, path in paths.items()}
            target = docs.get(currency_id)
            if target is None:
                raise CurrencyNotFound(f"Currency {currency_id} not found")
            check_owner(target, uid)
            for cid, doc in docs.items():
                if doc is None:
                    continue
                wanted = cid == currency_id
                if bool(doc.get("is_default")) != wanted:
                    txn.update(paths[cid], {
                        "is_default": wanted,
                        "updated_at": SERVER_TIMESTAMP,
                    })

        self.ctx.store.atomic(body)
        logger.info("currency_default_set", user_id=uid, currency_id=currency_id)

    def _ensure(self) -> None:
        docs = self._all()
        if docs:
            if not any(d.get("is_default") for d in docs):
                self._set_default(docs[0]["id"])
            return

        uid = self.ctx.uid
        code = FALLBACK_CURRENCY["code"]
        path = self._path(code)

        def body(txn):
            if txn.get(path) is None:
                txn.set(path, {
                    **FALLBACK_CURRENCY,
                    "owner_id": uid,
                    "is_default": True,
                    "created_at": SERVER_TIMESTAMP,
                    "updated_at": SERVER_TIMESTAMP,
                })

        self.ctx.store.atomic(body)
        logger.info("currency_catalog_seeded", user_id=uid, code=code)

    # --- Reads ---

    def get_currency(self, currency_id: str) -> CurrencyResponse:
        doc = self.ctx.store.get(self._path(currency_id))
        if doc is None:
            raise CurrencyNotFound(f"Currency {currency_id} not found")
        check_owner(doc, self.ctx.uid)
        return CurrencyResponse.from_document(doc)

    def list_currencies(self) -> list[CurrencyResponse]:
        return [CurrencyResponse.from_document(d) for d in self._all()]

    def get_default(self) -> CurrencyResponse | None:
        docs = self.ctx.store.query(
            self.ctx.collection(CURRENCIES),
            filters=[("is_default", "==", True)],
            order_by=[("code", "asc")],
            limit=1,
        )
        return CurrencyResponse.from_document(docs[0]) if docs else None
