"""
Pydantic schemas for the per-user currency catalog.
"""

from pydantic import BaseModel, ConfigDict, Field


class CurrencyCreate(BaseModel):
    code: str = Field(max_length=10)
    symbol: str = Field(default="", max_length=8)
    name: str | None = Field(default=None, max_length=100)
    is_default: bool = False


class CurrencyPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    symbol: str | None = Field(default=None, max_length=8)
    name: str | None = Field(default=None, max_length=100)
    is_default: bool | None = None


class CurrencyResponse(BaseModel):
    id: str
    code: str
    symbol: str = ""
    name: str = ""
    is_default: bool = False

    @classmethod
    def from_document(cls, doc: dict) -> "CurrencyResponse":
        return cls(
            id=doc["id"],
            code=doc.get("code", ""),
            symbol=doc.get("symbol", ""),
            name=doc.get("name", ""),
            is_default=bool(doc.get("is_default")),
        )
