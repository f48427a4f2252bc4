"""
Dependencies and error mapping shared by the routers.

The current user is taken from the X-User-Id header; an
upstream auth proxy is expected to set it.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

from fastapi import Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from fincontrol.context import UserContext
from fincontrol.errors import (
    FinControlError,
    InviteRejected,
    NotFoundError,
    Unauthorized,
)
from fincontrol.models.base import SessionLocal
from fincontrol.schemas.invite import RedeemRejection
from fincontrol.store import DocumentStore

READ_ONLY_KEY = "access.readOnly"


@lru_cache()
def get_store() -> DocumentStore:
    return DocumentStore(SessionLocal)


def get_clock() -> Callable[[], datetime]:
    """Server clock. Request parameters never move "today"."""
    return lambda: datetime.now(timezone.utc)


def get_context(
    x_user_id: str | None = Header(default=None),
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> UserContext:
    return UserContext(store, x_user_id or "", clock=clock)


def http_error(e: ValueError) -> HTTPException:
    """Translate a service error into an HTTPException."""
    if isinstance(e, InviteRejected):
        body = RedeemRejection(
            detail=e.message_key,
            reason=e.reason,
            attempts_left=e.attempts_left,
            blocked_until=e.blocked_until,
        )
        return HTTPException(status_code=400, detail=body.model_dump(mode="json"))
    if isinstance(e, NotFoundError):
        status_code = 404
    elif isinstance(e, Unauthorized):
        status_code = 403
    else:
        status_code = 400
    if isinstance(e, FinControlError):
        return HTTPException(
            status_code=status_code,
            detail={"code": e.code, "message": str(e)},
        )
    return HTTPException(status_code=status_code, detail=str(e))


def read_only() -> JSONResponse:
    """Response for a write skipped because the user is read-only."""
    return JSONResponse(status_code=202, content={"detail": READ_ONLY_KEY})
