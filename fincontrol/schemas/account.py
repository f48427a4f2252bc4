"""
Pydantic schemas for account operations.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from fincontrol.money import from_minor


class AccountCreate(BaseModel):
    """Request to open a new account."""
    name: str = Field(max_length=100)
    balance: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=5)


class AccountRename(BaseModel):
    name: str = Field(max_length=100)


class AccountResponse(BaseModel):
    id: str
    name: str
    balance: Decimal
    opening_balance: Decimal
    currency: str
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_document(cls, doc: dict) -> "AccountResponse":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            balance=from_minor(doc.get("balance")),
            opening_balance=from_minor(doc.get("opening_balance")),
            currency=doc.get("currency", ""),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )
