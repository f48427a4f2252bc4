"""
Currency catalog API endpoints.
"""

from fastapi import APIRouter, Depends

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.context import UserContext
from fincontrol.schemas.currency import (
    CurrencyCreate,
    CurrencyPatch,
    CurrencyResponse,
)
from fincontrol.services.currency_service import CurrencyService

router = APIRouter(prefix="/currencies", tags=["Currencies"])


@router.post("", response_model=CurrencyResponse, status_code=201)
def create_currency(request: CurrencyCreate, ctx: UserContext = Depends(get_context)):
    try:
        currency = CurrencyService(ctx).create_currency(request)
    except ValueError as e:
        raise http_error(e)
    return currency if currency is not None else read_only()


@router.get("", response_model=list[CurrencyResponse])
def list_currencies(ctx: UserContext = Depends(get_context)):
    try:
        return CurrencyService(ctx).list_currencies()
    except ValueError as e:
        raise http_error(e)


@router.post("/ensure", response_model=list[CurrencyResponse])
def ensure_currencies(ctx: UserContext = Depends(get_context)):
    """Seed an empty catalog with the fallback currency."""
    try:
        currencies = CurrencyService(ctx).ensure_at_least_one()
    except ValueError as e:
        raise http_error(e)
    return currencies if currencies is not None else read_only()


@router.get("/default", response_model=CurrencyResponse | None)
def get_default_currency(ctx: UserContext = Depends(get_context)):
    try:
        return CurrencyService(ctx).get_default()
    except ValueError as e:
        raise http_error(e)


@router.get("/{currency_id}", response_model=CurrencyResponse)
def get_currency(currency_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return CurrencyService(ctx).get_currency(currency_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/{currency_id}", response_model=CurrencyResponse)
def update_currency(
    currency_id: str,
    request: CurrencyPatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        currency = CurrencyService(ctx).update_currency(currency_id, request)
    except ValueError as e:
        raise http_error(e)
    return currency if currency is not None else read_only()


@router.post("/{currency_id}/default", response_model=CurrencyResponse)
def set_default_currency(currency_id: str, ctx: UserContext = Depends(get_context)):
    try:
        currency = CurrencyService(ctx).set_default(currency_id)
    except ValueError as e:
        raise http_error(e)
    return currency if currency is not None else read_only()


@router.delete("/{currency_id}")
def delete_currency(currency_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = CurrencyService(ctx).delete_currency(currency_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()
