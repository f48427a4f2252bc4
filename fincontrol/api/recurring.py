"""
Recurring template API endpoints and the on-demand scheduler pass.
"""

import threading
from collections import OrderedDict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.config import get_settings
from fincontrol.context import UserContext
from fincontrol.schemas.recurring import (
    ProcessResult,
    TemplateCreate,
    TemplatePatch,
    TemplateResponse,
)
from fincontrol.services.recurring_service import (
    RecurringScheduler,
    RecurringService,
)

router = APIRouter(prefix="/recurring", tags=["Recurring"])

# One scheduler per user, so the pass gate holds across requests.
# Least recently used users are dropped past RECURRING_SCHEDULER_CACHE_SIZE.
_schedulers: "OrderedDict[str, RecurringScheduler]" = OrderedDict()
_schedulers_lock = threading.Lock()


def get_scheduler(ctx: UserContext) -> RecurringScheduler:
    with _schedulers_lock:
        uid = ctx.uid
        scheduler = _schedulers.get(uid)
        if scheduler is None:
            scheduler = RecurringScheduler(RecurringService(ctx))
            _schedulers[uid] = scheduler
        _schedulers.move_to_end(uid)
        while len(_schedulers) > get_settings().RECURRING_SCHEDULER_CACHE_SIZE:
            _schedulers.popitem(last=False)
        return scheduler


@router.post("/templates", response_model=TemplateResponse, status_code=201)
def create_template(
    request: TemplateCreate,
    ctx: UserContext = Depends(get_context),
):
    """
    Create a recurring template.

    first_run_at (or next_run_at) sets the first occurrence;
    a missing or malformed date means today.
    """
    try:
        template = RecurringService(ctx).create_template(request)
    except ValueError as e:
        raise http_error(e)
    return template if template is not None else read_only()


@router.get("/templates", response_model=list[TemplateResponse])
def list_templates(
    paused: bool | None = None,
    ctx: UserContext = Depends(get_context),
):
    try:
        return RecurringService(ctx).list_templates(paused)
    except ValueError as e:
        raise http_error(e)


@router.get("/templates/{template_id}", response_model=TemplateResponse)
def get_template(template_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return RecurringService(ctx).get_template(template_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/templates/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: str,
    request: TemplatePatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        template = RecurringService(ctx).update_template(template_id, request)
    except ValueError as e:
        raise http_error(e)
    return template if template is not None else read_only()


@router.delete("/templates/{template_id}")
def delete_template(template_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = RecurringService(ctx).delete_template(template_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()


@router.post("/templates/{template_id}/pause", response_model=TemplateResponse)
def pause_template(template_id: str, ctx: UserContext = Depends(get_context)):
    try:
        template = RecurringService(ctx).pause(template_id)
    except ValueError as e:
        raise http_error(e)
    return template if template is not None else read_only()


@router.post("/templates/{template_id}/resume", response_model=TemplateResponse)
def resume_template(template_id: str, ctx: UserContext = Depends(get_context)):
    try:
        template = RecurringService(ctx).resume(template_id)
    except ValueError as e:
        raise http_error(e)
    return template if template is not None else read_only()


@router.post("/process", response_model=ProcessResult)
def process_due(ctx: UserContext = Depends(get_context)):
    """
    Run one scheduler pass for the current user.

    The pass always runs up to the server's today. Returns 202
    when it is skipped, either because the user is read-only or
    because a pass ran moments ago.
    """
    try:
        if not ctx.can_write():
            ctx.notify("access.readOnly")
            return read_only()
        result = get_scheduler(ctx).run()
    except ValueError as e:
        raise http_error(e)
    if result is None:
        return JSONResponse(
            status_code=202, content={"detail": "recurring.passSkipped"}
        )
    return result
