"""
Account and debt API endpoints.
"""

from fastapi import APIRouter, Depends

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.context import UserContext
from fincontrol.schemas.account import (
    AccountCreate,
    AccountRename,
    AccountResponse,
)
from fincontrol.schemas.debt import DebtCreate, DebtResponse, DebtUpdate
from fincontrol.services.account_service import AccountService
from fincontrol.services.debt_service import DebtService

router = APIRouter(tags=["Accounts"])


# --- Account Endpoints ---

@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    ctx: UserContext = Depends(get_context),
):
    """Open an account with an optional opening balance."""
    try:
        account = AccountService(ctx).create_account(request)
    except ValueError as e:
        raise http_error(e)
    return account if account is not None else read_only()


@router.get("/accounts", response_model=list[AccountResponse])
def list_accounts(ctx: UserContext = Depends(get_context)):
    try:
        return AccountService(ctx).list_accounts()
    except ValueError as e:
        raise http_error(e)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(account_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return AccountService(ctx).get_account(account_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/accounts/{account_id}", response_model=AccountResponse)
def rename_account(
    account_id: str,
    request: AccountRename,
    ctx: UserContext = Depends(get_context),
):
    try:
        account = AccountService(ctx).rename_account(account_id, request)
    except ValueError as e:
        raise http_error(e)
    return account if account is not None else read_only()


@router.delete("/accounts/{account_id}")
def delete_account(account_id: str, ctx: UserContext = Depends(get_context)):
    """
    Delete an account.

    Refused with 400 while any transaction references it.
    """
    try:
        deleted = AccountService(ctx).delete_account(account_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()


# --- Debt Endpoints ---

@router.post("/debts", response_model=DebtResponse, status_code=201)
def create_debt(request: DebtCreate, ctx: UserContext = Depends(get_context)):
    try:
        debt = DebtService(ctx).create_debt(request)
    except ValueError as e:
        raise http_error(e)
    return debt if debt is not None else read_only()


@router.get("/debts", response_model=list[DebtResponse])
def list_debts(ctx: UserContext = Depends(get_context)):
    try:
        return DebtService(ctx).list_debts()
    except ValueError as e:
        raise http_error(e)


@router.get("/debts/{debt_id}", response_model=DebtResponse)
def get_debt(debt_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return DebtService(ctx).get_debt(debt_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/debts/{debt_id}", response_model=DebtResponse)
def update_debt(
    debt_id: str,
    request: DebtUpdate,
    ctx: UserContext = Depends(get_context),
):
    """Change a debt's name or due date. Amounts move only through payments."""
    try:
        debt = DebtService(ctx).update_debt(debt_id, request)
    except ValueError as e:
        raise http_error(e)
    return debt if debt is not None else read_only()


@router.delete("/debts/{debt_id}")
def delete_debt(debt_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = DebtService(ctx).delete_debt(debt_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()
