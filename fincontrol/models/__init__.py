"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from fincontrol.models.base import Base
from fincontrol.models.enums import (
    TransactionType,
    DebtStatus,
    Frequency,
    RunStatus,
    InviteStatus,
    Plan,
    PeriodType,
)
from fincontrol.models.document import Document

__all__ = [
    "Base",
    "TransactionType",
    "DebtStatus",
    "Frequency",
    "RunStatus",
    "InviteStatus",
    "Plan",
    "PeriodType",
    "Document",
]
