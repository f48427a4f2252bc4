"""
Pydantic schemas for invite codes and redemption.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from fincontrol.models.enums import InviteStatus, Plan


class InviteCreate(BaseModel):
    plan: Plan = Plan.MONTHLY


class InviteResponse(BaseModel):
    code: str
    plan: Plan
    status: InviteStatus
    expires_at: datetime
    grace_expires_at: datetime
    created_by: str | None = None
    used_by: str | None = None
    used_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict) -> "InviteResponse":
        return cls(
            code=doc["id"],
            plan=doc["plan"],
            status=doc["status"],
            expires_at=doc["expires_at"],
            grace_expires_at=doc["grace_expires_at"],
            created_by=doc.get("created_by"),
            used_by=doc.get("used_by"),
            used_at=doc.get("used_at"),
        )


class InviteCheck(BaseModel):
    ok: bool
    reason: str | None = None
    invite: InviteResponse | None = None


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)


class RedeemResponse(BaseModel):
    code: str
    plan: Plan
    plan_expires_at: datetime


class RedeemRejection(BaseModel):
    """Body returned by the API when a redemption is refused."""
    detail: str
    reason: str
    attempts_left: int
    blocked_until: datetime | None = None
