"""
Invite code API endpoints.

Creating, listing and invalidating codes are admin operations
(403 for anyone else);
checking and redeeming are done by the signed-in user.
"""

from fastapi import APIRouter, Depends, Query

from fincontrol.api.deps import get_context, http_error
from fincontrol.context import UserContext
from fincontrol.models.enums import InviteStatus, Plan
from fincontrol.schemas.invite import (
    InviteCheck,
    InviteCreate,
    InviteResponse,
    RedeemRequest,
    RedeemResponse,
)
from fincontrol.services.access_service import AccessService

router = APIRouter(prefix="/invites", tags=["Invites"])


@router.post("", response_model=InviteResponse, status_code=201)
def create_invite(request: InviteCreate, ctx: UserContext = Depends(get_context)):
    try:
        return AccessService(ctx).create_invite_code(request.plan)
    except ValueError as e:
        raise http_error(e)


@router.get("", response_model=list[InviteResponse])
def list_invites(
    status: InviteStatus | None = None,
    plan: Plan | None = None,
    limit: int = Query(default=100, gt=0, le=500),
    ctx: UserContext = Depends(get_context),
):
    try:
        return AccessService(ctx).list_invite_codes(status, plan, limit)
    except ValueError as e:
        raise http_error(e)


@router.get("/{code}/check", response_model=InviteCheck)
def check_invite(code: str, ctx: UserContext = Depends(get_context)):
    """Check a code without spending a redemption attempt."""
    try:
        return AccessService(ctx).validate_invite_code(code)
    except ValueError as e:
        raise http_error(e)


@router.post("/{code}/invalidate", response_model=InviteResponse)
def invalidate_invite(code: str, ctx: UserContext = Depends(get_context)):
    try:
        return AccessService(ctx).invalidate_invite_code(code)
    except ValueError as e:
        raise http_error(e)


@router.post("/redeem", response_model=RedeemResponse)
def redeem_invite(request: RedeemRequest, ctx: UserContext = Depends(get_context)):
    """
    Redeem a code and extend the user's plan.

    A refused redemption returns 400 with the reason, the
    attempts left and, when locked out, when the lock ends.
    """
    try:
        return AccessService(ctx).redeem(request.code)
    except ValueError as e:
        raise http_error(e)
