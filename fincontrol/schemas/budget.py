"""
Pydantic schemas for budgets.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.models.enums import PeriodType
from fincontrol.money import from_minor


class BudgetCreate(BaseModel):
    name: str = Field(default="", max_length=100)
    target_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str | None = None
    period_type: PeriodType = PeriodType.MONTHLY
    period_from: str | None = None
    period_to: str | None = None
    categories: list[str] = Field(default_factory=list)
    exclude_accounts: list[str] = Field(default_factory=list)
    alert_threshold_pct: Decimal = Decimal("80")
    carryover: bool = False
    carryover_balance: Decimal = Decimal("0")
    # {"USD": 4000} means 1 USD is worth 4000 in the budget currency
    currency_rates: dict[str, Decimal] = Field(default_factory=dict)
    active: bool = True


class BudgetPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    target_amount: Decimal | None = Field(default=None, ge=0)
    currency: str | None = None
    period_type: PeriodType | None = None
    period_from: str | None = None
    period_to: str | None = None
    categories: list[str] | None = None
    exclude_accounts: list[str] | None = None
    alert_threshold_pct: Decimal | None = None
    carryover: bool | None = None
    currency_rates: dict[str, Decimal] | None = None
    active: bool | None = None


class BudgetResponse(BaseModel):
    id: str
    name: str
    target_amount: Decimal
    currency: str
    period_type: PeriodType
    period_from: str | None = None
    period_to: str | None = None
    categories: list[str] = Field(default_factory=list)
    exclude_accounts: list[str] = Field(default_factory=list)
    alert_threshold_pct: Decimal
    carryover: bool
    carryover_balance: Decimal
    last_closed_period_key: str | None = None
    currency_rates: dict[str, Decimal] = Field(default_factory=dict)
    active: bool

    @classmethod
    def from_document(cls, doc: dict) -> "BudgetResponse":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            target_amount=from_minor(doc.get("target_amount")),
            currency=doc.get("currency", ""),
            period_type=doc.get("period_type", PeriodType.MONTHLY.value),
            period_from=doc.get("period_from"),
            period_to=doc.get("period_to"),
            categories=doc.get("categories") or [],
            exclude_accounts=doc.get("exclude_accounts") or [],
            alert_threshold_pct=Decimal(str(doc.get("alert_threshold_pct", "80"))),
            carryover=bool(doc.get("carryover")),
            carryover_balance=from_minor(doc.get("carryover_balance")),
            last_closed_period_key=doc.get("last_closed_period_key"),
            currency_rates={
                k: Decimal(v) for k, v in (doc.get("currency_rates") or {}).items()
            },
            active=doc.get("active", True),
        )


class BudgetProgress(BaseModel):
    spent: Decimal
    pct: Decimal
    remaining: Decimal
    effective_target: Decimal
    missing_rates: bool = False
    over_threshold: bool = False
    date_from: str | None = None
    date_to: str | None = None
    period_key: str | None = None
