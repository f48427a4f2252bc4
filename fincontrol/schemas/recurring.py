"""
Pydantic schemas for recurring templates and scheduler passes.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.money import from_minor


class TemplateCreate(BaseModel):
    name: str = Field(default="", max_length=100)
    type: str = "expense"
    amount: Decimal = Decimal("0")
    account_id: str | None = None
    debt_id: str | None = None
    category_id: str = ""
    note: str = Field(default="", max_length=500)
    frequency: str = "monthly"
    first_run_at: str | None = None
    next_run_at: str | None = None
    paused: bool = False


class TemplatePatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    type: str | None = None
    amount: Decimal | None = None
    account_id: str | None = None
    debt_id: str | None = None
    category_id: str | None = None
    note: str | None = Field(default=None, max_length=500)
    frequency: str | None = None
    first_run_at: str | None = None
    next_run_at: str | None = None
    paused: bool | None = None


class TemplateResponse(BaseModel):
    id: str
    name: str
    type: str
    amount: Decimal
    account_id: str
    debt_id: str | None = None
    category_id: str = ""
    note: str = ""
    frequency: str
    next_run_at: str
    last_run_at: str | None = None
    paused: bool
    partial_catch_up: bool = False

    @classmethod
    def from_document(cls, doc: dict) -> "TemplateResponse":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            type=doc.get("type", "expense"),
            amount=from_minor(doc.get("amount")),
            account_id=doc.get("account_id", ""),
            debt_id=doc.get("debt_id"),
            category_id=doc.get("category_id", ""),
            note=doc.get("note", ""),
            frequency=doc.get("frequency", "monthly"),
            next_run_at=doc["next_run_at"],
            last_run_at=doc.get("last_run_at"),
            paused=bool(doc.get("paused")),
            partial_catch_up=bool(doc.get("partial_catch_up")),
        )


class ProcessResult(BaseModel):
    """Outcome of one scheduler pass."""
    templates: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    partial_templates: list[str] = Field(default_factory=list)
