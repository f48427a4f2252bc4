"""
Pydantic schemas for two-leg transfers.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from fincontrol.schemas.transaction import TransactionResponse


class TransferCreate(BaseModel):
    from_account_id: str | None = None
    to_account_id: str | None = None
    amount_from: Decimal
    amount_to: Decimal | None = None
    currency_from: str | None = None
    currency_to: str | None = None
    rate: Decimal | None = None
    date: str | None = None
    note: str = Field(default="", max_length=500)


class TransferPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    from_account_id: str | None = None
    to_account_id: str | None = None
    amount_from: Decimal | None = None
    amount_to: Decimal | None = None
    currency_from: str | None = None
    currency_to: str | None = None
    rate: Decimal | None = None
    date: str | None = None
    note: str | None = Field(default=None, max_length=500)


class TransferResponse(BaseModel):
    transfer_id: str
    out_leg: TransactionResponse
    in_leg: TransactionResponse
    rate: Decimal | None = None

    @classmethod
    def from_pair(cls, out_doc: dict, in_doc: dict) -> "TransferResponse":
        rate = out_doc.get("rate")
        return cls(
            transfer_id=out_doc["transfer_id"],
            out_leg=TransactionResponse.from_document(out_doc),
            in_leg=TransactionResponse.from_document(in_doc),
            rate=Decimal(rate) if rate is not None else None,
        )
