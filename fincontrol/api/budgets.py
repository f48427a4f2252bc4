"""
Budget and goal API endpoints.
"""

from fastapi import APIRouter, Depends, Path

from fincontrol.api.deps import get_context, http_error, read_only
from fincontrol.context import UserContext
from fincontrol.schemas.budget import (
    BudgetCreate,
    BudgetPatch,
    BudgetProgress,
    BudgetResponse,
)
from fincontrol.schemas.goal import (
    GoalCreate,
    GoalPatch,
    GoalProgress,
    GoalResponse,
)
from fincontrol.services.budget_service import BudgetService
from fincontrol.services.goal_service import GoalService

router = APIRouter(tags=["Budgets"])


# --- Budgets ---

@router.post("/budgets", response_model=BudgetResponse, status_code=201)
def create_budget(request: BudgetCreate, ctx: UserContext = Depends(get_context)):
    try:
        budget = BudgetService(ctx).create_budget(request)
    except ValueError as e:
        raise http_error(e)
    return budget if budget is not None else read_only()


@router.get("/budgets", response_model=list[BudgetResponse])
def list_budgets(
    active: bool | None = None,
    ctx: UserContext = Depends(get_context),
):
    try:
        return BudgetService(ctx).list_budgets(active)
    except ValueError as e:
        raise http_error(e)


@router.get(
    "/budgets/progress/{year}/{month}",
    response_model=dict[str, BudgetProgress],
)
def budgets_progress_for_month(
    year: int = Path(ge=1900, le=9999),
    month: int = Path(ge=1, le=12),
    ctx: UserContext = Depends(get_context),
):
    """Progress of every budget for one calendar month."""
    try:
        return BudgetService(ctx).compute_for_month(year, month)
    except ValueError as e:
        raise http_error(e)


@router.get("/budgets/{budget_id}", response_model=BudgetResponse)
def get_budget(budget_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return BudgetService(ctx).get_budget(budget_id)
    except ValueError as e:
        raise http_error(e)


@router.get("/budgets/{budget_id}/progress", response_model=BudgetProgress)
def budget_progress(
    budget_id: str,
    date_from: str | None = None,
    date_to: str | None = None,
    ctx: UserContext = Depends(get_context),
):
    """
    Progress over [date_from, date_to], or over the budget's own
    period when the range is not given.
    """
    period = (date_from, date_to) if date_from and date_to else None
    try:
        return BudgetService(ctx).compute(budget_id, period)
    except ValueError as e:
        raise http_error(e)


@router.patch("/budgets/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: str,
    request: BudgetPatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        budget = BudgetService(ctx).update_budget(budget_id, request)
    except ValueError as e:
        raise http_error(e)
    return budget if budget is not None else read_only()


@router.post(
    "/budgets/{budget_id}/close/{year}/{month}",
    response_model=BudgetResponse,
)
def close_budget_period(
    budget_id: str,
    year: int = Path(ge=1900, le=9999),
    month: int = Path(ge=1, le=12),
    ctx: UserContext = Depends(get_context),
):
    try:
        budget = BudgetService(ctx).close_period(budget_id, year, month)
    except ValueError as e:
        raise http_error(e)
    return budget if budget is not None else read_only()


@router.delete("/budgets/{budget_id}")
def delete_budget(budget_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = BudgetService(ctx).delete_budget(budget_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()


# --- Goals ---

@router.post("/goals", response_model=GoalResponse, status_code=201)
def create_goal(request: GoalCreate, ctx: UserContext = Depends(get_context)):
    try:
        goal = GoalService(ctx).create_goal(request)
    except ValueError as e:
        raise http_error(e)
    return goal if goal is not None else read_only()


@router.get("/goals", response_model=list[GoalResponse])
def list_goals(
    paused: bool | None = None,
    ctx: UserContext = Depends(get_context),
):
    try:
        return GoalService(ctx).list_goals(paused)
    except ValueError as e:
        raise http_error(e)


@router.get("/goals/{goal_id}", response_model=GoalResponse)
def get_goal(goal_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return GoalService(ctx).get_goal(goal_id)
    except ValueError as e:
        raise http_error(e)


@router.get("/goals/{goal_id}/progress", response_model=GoalProgress)
def goal_progress(goal_id: str, ctx: UserContext = Depends(get_context)):
    try:
        return GoalService(ctx).progress(goal_id)
    except ValueError as e:
        raise http_error(e)


@router.patch("/goals/{goal_id}", response_model=GoalResponse)
def update_goal(
    goal_id: str,
    request: GoalPatch,
    ctx: UserContext = Depends(get_context),
):
    try:
        goal = GoalService(ctx).update_goal(goal_id, request)
    except ValueError as e:
        raise http_error(e)
    return goal if goal is not None else read_only()


@router.post("/goals/{goal_id}/pause", response_model=GoalResponse)
def pause_goal(goal_id: str, ctx: UserContext = Depends(get_context)):
    try:
        goal = GoalService(ctx).pause(goal_id)
    except ValueError as e:
        raise http_error(e)
    return goal if goal is not None else read_only()


@router.post("/goals/{goal_id}/resume", response_model=GoalResponse)
def resume_goal(goal_id: str, ctx: UserContext = Depends(get_context)):
    try:
        goal = GoalService(ctx).resume(goal_id)
    except ValueError as e:
        raise http_error(e)
    return goal if goal is not None else read_only()


@router.delete("/goals/{goal_id}")
def delete_goal(goal_id: str, ctx: UserContext = Depends(get_context)):
    try:
        deleted = GoalService(ctx).delete_goal(goal_id)
    except ValueError as e:
        raise http_error(e)
    return {"id": deleted} if deleted is not None else read_only()
