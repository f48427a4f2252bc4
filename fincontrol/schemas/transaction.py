"""
Pydantic schemas for ledger transactions.

Create and patch are separate models: a patch only carries
the fields an update may legally change, and unknown fields
(owner_id included) are rejected before any store access.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.money import from_minor


class RecurringMeta(BaseModel):
    """Origin marker for transactions posted by the scheduler."""
    is_recurring: bool = True
    recurring_template_id: str
    period_key: str
    is_refund: bool = False


class TransactionCreate(BaseModel):
    """
    A simple (income, expense, debtPayment) transaction.

    Type, amount, account and date are checked by the ledger
    engine so failures surface as named errors.
    """
    type: str
    amount: Decimal
    account_id: str | None = None
    debt_id: str | None = None
    category_id: str | None = None
    goal_id: str | None = None
    currency: str | None = None
    date: str | None = None
    note: str = Field(default="", max_length=500)
    meta: RecurringMeta | None = None


class TransactionPatch(BaseModel):
    """Fields an update may change. Unset fields keep their value."""
    model_config = ConfigDict(extra="forbid")

    type: str | None = None
    amount: Decimal | None = None
    account_id: str | None = None
    debt_id: str | None = None
    category_id: str | None = None
    goal_id: str | None = None
    currency: str | None = None
    date: str | None = None
    note: str | None = Field(default=None, max_length=500)


class TransactionFilters(BaseModel):
    type: str | None = None
    account_id: str | None = None
    category_id: str | None = None
    goal_id: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    limit: int | None = Field(default=None, gt=0)


class TransactionResponse(BaseModel):
    id: str
    type: str
    amount: Decimal
    currency: str
    account_id: str
    debt_id: str | None = None
    category_id: str | None = None
    goal_id: str | None = None
    date: str | None = None
    note: str = ""
    transfer_id: str | None = None
    pair_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: dict) -> "TransactionResponse":
        return cls(
            id=doc["id"],
            type=doc["type"],
            amount=from_minor(doc.get("amount")),
            currency=doc.get("currency", ""),
            account_id=doc.get("account_id", ""),
            debt_id=doc.get("debt_id"),
            category_id=doc.get("category_id"),
            goal_id=doc.get("goal_id"),
            date=doc.get("date"),
            note=doc.get("note", ""),
            transfer_id=doc.get("transfer_id"),
            pair_id=doc.get("pair_id"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )
