"""Business logic services."""

from fincontrol.services.access_service import AccessService
from fincontrol.services.account_service import AccountService
from fincontrol.services.budget_service import BudgetService
from fincontrol.services.debt_service import DebtService
from fincontrol.services.goal_service import GoalService
from fincontrol.services.ledger_service import LedgerService
from fincontrol.services.recurring_service import (
    RecurringScheduler,
    RecurringService,
)
from fincontrol.services.transfer_service import TransferService

__all__ = [
    "AccessService",
    "AccountService",
    "BudgetService",
    "DebtService",
    "GoalService",
    "LedgerService",
    "RecurringScheduler",
    "RecurringService",
    "TransferService",
]
