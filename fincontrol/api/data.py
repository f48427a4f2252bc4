"""
Export, import and cleanup endpoints for a user's own data.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.context import UserContext
from fincontrol.schemas.data import DataCounts, DataExport, ImportMode
from fincontrol.services.data_service import DataService

router = APIRouter(prefix="/data", tags=["Data"])


@router.get("/export", response_model=DataExport)
def export_data(ctx: UserContext = Depends(get_context)):
    try:
        return DataService(ctx).export_all()
    except ValueError as e:
        raise http_error(e)


@router.post("/import", response_model=DataCounts)
def import_data(
    payload: Any = Body(...),
    mode: ImportMode = ImportMode.MERGE,
    ctx: UserContext = Depends(get_context),
):
    """
    Import an export document.

    mode=replace wipes the user's collections before writing.
    A payload without a collections object is a 400.
    """
    try:
        counts = DataService(ctx).import_all(payload, mode)
    except ValueError as e:
        raise http_error(e)
    return counts if counts is not None else read_only()


@router.delete("", response_model=DataCounts)
def delete_data(ctx: UserContext = Depends(get_context)):
    """Delete every document in the user's collections."""
    try:
        counts = DataService(ctx).delete_all_user_data()
    except ValueError as e:
        raise http_error(e)
    return counts if counts is not None else read_only()
