"""
Transfer service: money moving between two of the user's accounts.

A transfer is stored as two transaction documents, a
transfer-out leg on the source account and a transfer-in leg
on the destination, sharing one transfer_id and pointing at
each other through pair_id. Both legs are written, changed
and deleted together in one atomic call.

When currencies differ the destination amount is either given
explicitly or computed as round2(amount_from * rate).
"""

from decimal import Decimal

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.dates import is_iso_date
from fincontrol.errors import (
    AccountsRequired,
    InvalidAmount,
    InvalidDate,
    InvalidRate,
    NotFound,
    SameAccount,
)
from fincontrol.models.enums import TransactionType
from fincontrol.money import from_minor, round2, to_minor
from fincontrol.schemas.transfer import (
    TransferCreate,
    TransferPatch,
    TransferResponse,
)
from fincontrol.services.access_service import write_gated
from fincontrol.services.ledger_service import BalanceSheet, check_owner
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)


def resolve_amount_to(
    amount_from: int,
    currency_from: str,
    currency_to: str,
    amount_to: Decimal | None,
    rate: Decimal | None,
) -> tuple[int, Decimal | None]:
    """
    Destination amount in minor units, and the rate to record.

    Same currency: the amounts match and no rate is kept.
    Different currency: an explicit positive amount_to wins;
    otherwise a positive rate is required.
    """
    if rate is not None and rate <= 0:
        raise InvalidRate("Rate must be positive")
    if currency_from == currency_to:
        return amount_from, None
    if amount_to is not None and amount_to > 0:
        return to_minor(round2(amount_to)), rate
    if rate is None:
        raise InvalidRate(
            f"A rate is required to convert {currency_from} to {currency_to}"
        )
    return to_minor(round2(from_minor(amount_from) * rate)), rate


class TransferService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx
        self.settings = get_settings()

    def _tx_path(self, tx_id: str) -> str:
        return self.ctx.path("transactions", tx_id)

    def _find_pair(self, transfer_id: str) -> tuple[dict, dict]:
        docs = self.ctx.store.query(
            self.ctx.collection("transactions"),
            filters=[
                ("is_transfer", "==", True),
                ("transfer_id", "==", transfer_id),
            ],
        )
        out_leg = next(
            (d for d in docs if d["type"] == TransactionType.TRANSFER_OUT.value),
            None,
        )
        in_leg = next(
            (d for d in docs if d["type"] == TransactionType.TRANSFER_IN.value),
            None,
        )
        if out_leg is None or in_leg is None:
            raise NotFound(f"Transfer {transfer_id} not found")
        return out_leg, in_leg

    @staticmethod
    def _legs(base: dict, out_id: str, in_id: str) -> tuple[dict, dict]:
        out_leg = {
            **base,
            "type": TransactionType.TRANSFER_OUT.value,
            "pair_id": in_id,
            "account_id": base["from_account_id"],
            "amount": base["amount_from"],
            "currency": base["currency_from"],
        }
        in_leg = {
            **base,
            "type": TransactionType.TRANSFER_IN.value,
            "pair_id": out_id,
            "account_id": base["to_account_id"],
            "amount": base["amount_to"],
            "currency": base["currency_to"],
        }
        return out_leg, in_leg

    @write_gated
    def create_transfer(self, payload: TransferCreate) -> TransferResponse:
        """
        Move money from one account to another.

        Debits the source by amount_from and credits the
        destination by amount_to. Refused if the source would go
        negative.
        """
        if not payload.from_account_id or not payload.to_account_id:
            raise AccountsRequired()
        if payload.from_account_id == payload.to_account_id:
            raise SameAccount()
        amount_from = to_minor(payload.amount_from)
        if amount_from <= 0:
            raise InvalidAmount()
        date = payload.date or self.ctx.today()
        if not is_iso_date(date):
            raise InvalidDate()

        uid = self.ctx.uid
        store = self.ctx.store
        transfer_id = store.new_id()
        out_id = store.new_id()
        in_id = store.new_id()
        default_currency = self.settings.DEFAULT_CURRENCY

        def body(txn):
            sheet = BalanceSheet(txn, self.ctx)
            from_acc = sheet.account(payload.from_account_id)
            to_acc = sheet.account(payload.to_account_id)
            currency_from = (
                payload.currency_from or from_acc.get("currency") or default_currency
            )
            currency_to = payload.currency_to or to_acc.get("currency") or currency_from
            amount_to, rate = resolve_amount_to(
                amount_from, currency_from, currency_to,
                payload.amount_to, payload.rate,
            )

            sheet.adjust_balance(payload.from_account_id, -amount_from)
            sheet.adjust_balance(payload.to_account_id, amount_to)
            sheet.write()

            base = {
                "owner_id": uid,
                "is_transfer": True,
                "transfer_id": transfer_id,
                "from_account_id": payload.from_account_id,
                "to_account_id": payload.to_account_id,
                "amount_from": amount_from,
                "amount_to": amount_to,
                "currency_from": currency_from,
                "currency_to": currency_to,
                "rate": str(rate) if rate is not None else None,
                "date": date,
                "note": payload.note or "",
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            }
            out_leg, in_leg = self._legs(base, out_id, in_id)
            txn.set(self._tx_path(out_id), out_leg)
            txn.set(self._tx_path(in_id), in_leg)

        store.atomic(body)

        logger.info(
            "transfer_created",
            user_id=uid,
            transfer_id=transfer_id,
            from_account_id=payload.from_account_id,
            to_account_id=payload.to_account_id,
            amount_from=amount_from,
        )
        return self.get_transfer(transfer_id)

    @write_gated
    def update_transfer(
        self, transfer_id: str, patch: TransferPatch
    ) -> TransferResponse:
        """
        Change a transfer.

        Both legs' old effects are reverted first, on a single
        read of each account, and only then is the new transfer
        applied. Accounts, amounts, currencies, rate, date and
        note may change.
        """
        changes = patch.model_dump(exclude_unset=True)
        if "amount_from" in changes and (
            changes["amount_from"] is None or to_minor(changes["amount_from"]) <= 0
        ):
            raise InvalidAmount()
        if "date" in changes and not is_iso_date(changes["date"]):
            raise InvalidDate()

        uid = self.ctx.uid
        out_doc, in_doc = self._find_pair(transfer_id)
        out_path = self._tx_path(out_doc["id"])
        in_path = self._tx_path(in_doc["id"])
        default_currency = self.settings.DEFAULT_CURRENCY

        def body(txn):
            prev_out = txn.get(out_path)
            prev_in = txn.get(in_path)
            if prev_out is None or prev_in is None:
                raise NotFound(f"Transfer {transfer_id} not found")
            check_owner(prev_out, uid)
            check_owner(prev_in, uid)

            new_from = changes.get("from_account_id") or prev_out["from_account_id"]
            new_to = changes.get("to_account_id") or prev_out["to_account_id"]
            if new_from == new_to:
                raise SameAccount()

            sheet = BalanceSheet(txn, self.ctx)

            # Revert both legs
            sheet.adjust_balance(prev_out["from_account_id"], int(prev_out["amount_from"]))
            sheet.adjust_balance(prev_out["to_account_id"], -int(prev_out["amount_to"]))

            from_acc = sheet.account(new_from)
            to_acc = sheet.account(new_to)
            currency_from = (
                changes.get("currency_from") or prev_out.get("currency_from")
                or from_acc.get("currency") or default_currency
            )
            currency_to = (
                changes.get("currency_to") or prev_out.get("currency_to")
                or to_acc.get("currency") or currency_from
            )
            amount_from = (
                to_minor(changes["amount_from"]) if "amount_from" in changes
                else int(prev_out["amount_from"])
            )
            if "rate" in changes:
                rate = changes["rate"]
            else:
                rate = Decimal(prev_out["rate"]) if prev_out.get("rate") else None
            amount_to_input = changes.get("amount_to")
            if amount_to_input is None and rate is None:
                amount_to_input = from_minor(prev_out["amount_to"])
            amount_to, rate = resolve_amount_to(
                amount_from, currency_from, currency_to, amount_to_input, rate,
            )

            # Apply the new transfer
            sheet.adjust_balance(new_from, -amount_from)
            sheet.adjust_balance(new_to, amount_to)
            sheet.write()

            base = {
                "from_account_id": new_from,
                "to_account_id": new_to,
                "amount_from": amount_from,
                "amount_to": amount_to,
                "currency_from": currency_from,
                "currency_to": currency_to,
                "rate": str(rate) if rate is not None else None,
                "date": changes.get("date") or prev_out.get("date"),
                "note": (
                    changes["note"] if changes.get("note") is not None
                    else prev_out.get("note", "")
                ),
                "updated_at": SERVER_TIMESTAMP,
            }
            out_fields, in_fields = self._legs(base, prev_out["id"], prev_in["id"])
            txn.update(out_path, out_fields)
            txn.update(in_path, in_fields)

        self.ctx.store.atomic(body)

        logger.info(
            "transfer_updated",
            user_id=uid,
            transfer_id=transfer_id,
            fields=sorted(changes),
        )
        return self.get_transfer(transfer_id)

    @write_gated
    def delete_transfer(self, transfer_id: str) -> str:
        """Remove both legs and give the money back to the source."""
        uid = self.ctx.uid
        out_doc, in_doc = self._find_pair(transfer_id)
        out_path = self._tx_path(out_doc["id"])
        in_path = self._tx_path(in_doc["id"])

        def body(txn):
            out_leg = txn.get(out_path)
            in_leg = txn.get(in_path)
            if out_leg is None or in_leg is None:
                raise NotFound(f"Transfer {transfer_id} not found")
            check_owner(out_leg, uid)
            check_owner(in_leg, uid)

            sheet = BalanceSheet(txn, self.ctx)
            sheet.adjust_balance(out_leg["from_account_id"], int(out_leg["amount_from"]))
            sheet.adjust_balance(out_leg["to_account_id"], -int(out_leg["amount_to"]))
            sheet.write()
            txn.delete(out_path)
            txn.delete(in_path)

        self.ctx.store.atomic(body)

        logger.info("transfer_deleted", user_id=uid, transfer_id=transfer_id)
        return transfer_id

    def get_transfer(self, transfer_id: str) -> TransferResponse:
        out_leg, in_leg = self._find_pair(transfer_id)
        check_owner(out_leg, self.ctx.uid)
        return TransferResponse.from_pair(out_leg, in_leg)
