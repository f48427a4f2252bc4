"""
Error taxonomy.

Every failure the engines can report is a named class whose
`code` never changes, so callers can map it to a localized
message without parsing text. All errors are ValueErrors so
the API layer can keep a single `except ValueError` path.
"""

from datetime import datetime


class FinControlError(ValueError):
    """Base class. `code` defaults to the class name."""

    code: str = "FinControlError"

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.code = cls.__name__

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class NotFoundError(FinControlError):
    """Referenced document does not exist."""


# --- Validation ---

class InvalidAmount(FinControlError):
    pass


class InvalidType(FinControlError):
    pass


class InvalidDate(FinControlError):
    pass


class AccountRequired(FinControlError):
    pass


class AccountsRequired(FinControlError):
    pass


class DebtRequired(FinControlError):
    pass


class NameRequired(FinControlError):
    pass


# --- Referential ---

class AccountNotFound(NotFoundError):
    pass


class DebtNotFound(NotFoundError):
    pass


class TxNotFound(NotFoundError):
    pass


class NotFound(NotFoundError):
    """A transfer pair is missing one or both legs."""


class TemplateNotFound(NotFoundError):
    pass


class BudgetNotFound(NotFoundError):
    pass


class GoalNotFound(NotFoundError):
    pass


class InviteNotFound(NotFoundError):
    pass


class CurrencyNotFound(NotFoundError):
    pass


class AccountHasTransactions(FinControlError):
    pass


class DebtHasPayments(FinControlError):
    pass


# --- Invariant violations ---

class BalanceNegative(FinControlError):
    pass


class DebtRemainingNegative(FinControlError):
    pass


class SameAccount(FinControlError):
    pass


class InvalidRate(FinControlError):
    pass


# --- Currencies ---

class InvalidCurrencyCode(FinControlError):
    """Codes are 3 to 5 upper-case letters."""


class DuplicateCurrency(FinControlError):
    pass


class CannotDeleteDefault(FinControlError):
    pass


# --- Import ---

class InvalidPayload(FinControlError):
    """Import payload is not an export document."""


# --- Authorization ---

class Unauthorized(FinControlError):
    pass


# --- Invite codes ---

class InviteCodeCollision(FinControlError):
    pass


class InviteRejected(FinControlError):
    """
    Redemption refused.

    reason is one of not_found, used, expired, blocked.
    """

    def __init__(
        self,
        reason: str,
        attempts_left: int,
        blocked_until: datetime | None = None,
    ):
        self.reason = reason
        self.attempts_left = attempts_left
        self.blocked_until = blocked_until
        super().__init__(self.message_key)

    @property
    def message_key(self) -> str:
        return f"errors.invite.{self.reason}"


# --- Store ---

class TransactionAborted(FinControlError):
    """The atomic body kept conflicting and was given up on."""


def first_error(codes: list[str]) -> FinControlError:
    """Build the exception for the first code of a validation result."""
    return _BY_CODE[codes[0]]()


_BY_CODE = {
    cls.code: cls
    for cls in (
        InvalidAmount, InvalidType, InvalidDate,
        AccountRequired, DebtRequired,
    )
}
