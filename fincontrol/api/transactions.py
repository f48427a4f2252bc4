"""
Transaction and transfer API endpoints.

The API layer is thin: it maps service errors to status codes
and delegates every balance change to the ledger and transfer
services.
"""

from fastapi import APIRouter, Depends, Query

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.context import UserContext
from fincontrol.schemas.transaction import (
    TransactionCreate,
    TransactionFilters,
    TransactionPatch,
    TransactionResponse,
)
from fincontrol.schemas.transfer import (
    TransferCreate,
    TransferPatch,
    TransferResponse,
)
from fincontrol.services.ledger_service import LedgerService
from fincontrol.services.transfer_service import TransferService

router = APIRouter(tags=["Transactions"])


# --- Transactions ---

@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request: TransactionCreate,
    ctx: UserContext = Depends(get_context),
):
    """
    Post an income, expense or debt payment.

    The account balance (and the debt, for a payment) changes
    in the same atomic step. 400 if either would go negative.
    """
    try:
        tx = LedgerService(ctx).create(request)
    except ValueError as e:
        raise http_error(e)
    return tx if tx is not None else read_only()


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    type: str | None = None,
    account_id: str | None = None,
    category_id: str | None = None,
    goal_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int | None = Query(default=None, gt=0),
    ctx: UserContext = Depends(get_context),
):
    filters = TransactionFilters(
        type=type,
        account_id=account_id,
        category_id=category_id,
        goal_id=goal_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    try:
        return LedgerService(ctx).list_transactions(filters)
    except ValueError as e:
        raise http_error(e)


@router.get("/transactions/{tx_id}", response_model=TransactionResponse)
def get_transaction(tx_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return LedgerService(ctx).get(tx_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/transactions/{tx_id}", response_model=TransactionResponse)
def update_transaction(
    tx_id: str,
    request: TransactionPatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        tx = LedgerService(ctx).update(tx_id, request)
    except ValueError as e:
        raise http_error(e)
    return tx if tx is not None else read_only()


@router.delete("/transactions/{tx_id}")
def delete_transaction(tx_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = LedgerService(ctx).delete(tx_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()


# --- Transfers ---

@router.post("/transfers", response_model=TransferResponse, status_code=201)
def create_transfer(
    request: TransferCreate,
    ctx: UserContext = Depends(get_context),
):
    """
    Move money between two accounts.

    Cross-currency transfers need either amount_to or a rate.
    """
    try:
        transfer = TransferService(ctx).create_transfer(request)
    except ValueError as e:
        raise http_error(e)
    return transfer if transfer is not None else read_only()


@router.get("/transfers/{transfer_id}", response_model=TransferResponse)
def get_transfer(transfer_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return TransferService(ctx).get_transfer(transfer_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/transfers/{transfer_id}", response_model=TransferResponse)
def update_transfer(
    transfer_id: str,
    request: TransferPatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        transfer = TransferService(ctx).update_transfer(transfer_id, request)
    except ValueError as e:
        raise http_error(e)
    return transfer if transfer is not None else read_only()


@router.delete("/transfers/{transfer_id}")
def delete_transfer(transfer_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = TransferService(ctx).delete_transfer(transfer_id)
    except ValueError as e:
        raise http_error(e)
    return {"transfer_id": deleted} if deleted is not None else read_only()
