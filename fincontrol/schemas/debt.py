"""
Pydantic schemas for debts.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.models.enums import DebtStatus
from fincontrol.money import from_minor


class DebtCreate(BaseModel):
    name: str = Field(max_length=100)
    amount: Decimal = Field(ge=0)
    due_date: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=5)


class DebtUpdate(BaseModel):
    """Name and due date only; status follows remaining_amount."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    due_date: str | None = None


class DebtResponse(BaseModel):
    id: str
    name: str
    original_amount: Decimal
    remaining_amount: Decimal
    status: DebtStatus
    due_date: str | None = None
    currency: str

    @classmethod
    def from_document(cls, doc: dict) -> "DebtResponse":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            original_amount=from_minor(doc.get("original_amount")),
            remaining_amount=from_minor(doc.get("remaining_amount")),
            status=doc.get("status", DebtStatus.ACTIVE.value),
            due_date=doc.get("due_date"),
            currency=doc.get("currency", ""),
        )
