"""
Pydantic schemas for savings goals.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.money import from_minor


class GoalCreate(BaseModel):
    name: str = Field(max_length=100)
    target_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str | None = None
    due_date: str | None = None
    account_id: str | None = None
    note: str = Field(default="", max_length=500)
    paused: bool = False
    currency_rates: dict[str, Decimal] = Field(default_factory=dict)


class GoalPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    target_amount: Decimal | None = Field(default=None, ge=0)
    due_date: str | None = None
    account_id: str | None = None
    note: str | None = Field(default=None, max_length=500)
    paused: bool | None = None
    currency_rates: dict[str, Decimal] | None = None


class GoalResponse(BaseModel):
    id: str
    name: str
    target_amount: Decimal
    currency: str
    due_date: str | None = None
    account_id: str | None = None
    note: str = ""
    paused: bool = False

    @classmethod
    def from_document(cls, doc: dict) -> "GoalResponse":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            target_amount=from_minor(doc.get("target_amount")),
            currency=doc.get("currency", ""),
            due_date=doc.get("due_date"),
            account_id=doc.get("account_id") or None,
            note=doc.get("note", ""),
            paused=bool(doc.get("paused")),
        )


class GoalProgress(BaseModel):
    goal_id: str
    saved: Decimal
    pct: Decimal
    completed: bool
    missing_rates: bool = False
