"""
Shared enumerations.

Values are the exact strings stored in documents.
"""

import enum


class TransactionType(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"
    DEBT_PAYMENT = "debtPayment"
    TRANSFER_OUT = "transfer-out"
    TRANSFER_IN = "transfer-in"


# Types the ledger engine posts directly. Transfer legs are
# only created in pairs by the transfer service.
SIMPLE_TRANSACTION_TYPES = frozenset({
    TransactionType.INCOME.value,
    TransactionType.EXPENSE.value,
    TransactionType.DEBT_PAYMENT.value,
})


class DebtStatus(str, enum.Enum):
    ACTIVE = "active"
    PAID = "paid"


class Frequency(str, enum.Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RunStatus(str, enum.Enum):
    """Lifecycle of a recurring run lock."""
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


class InviteStatus(str, enum.Enum):
    UNUSED = "unused"
    USED = "used"
    EXPIRED = "expired"


class Plan(str, enum.Enum):
    MONTHLY = "monthly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


class PeriodType(str, enum.Enum):
    MONTHLY = "monthly"
    CUSTOM = "custom"
