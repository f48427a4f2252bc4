"""
Per-user execution context.

Every service is constructed with a UserContext instead of
reaching for a global store or auth session. It carries the
store handle, the current user id, a clock and a notifier,
so tests can swap any of them for fakes.
"""

from datetime import datetime, timezone
from typing import Callable, Protocol

import structlog

from fincontrol.errors import Unauthorized
from fincontrol.store import DocumentStore

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    def notify(self, key: str, **params) -> None:
        ...


class LogNotifier:
    """Default notifier: user-facing messages become log events."""

    def notify(self, key: str, **params) -> None:
        logger.info("user_notification", key=key, **params)


class RecordingNotifier:
    """Keeps notifications in memory, for callers that render them later."""

    def __init__(self):
        self.messages: list[tuple[str, dict]] = []

    def notify(self, key: str, **params) -> None:
        self.messages.append((key, params))

    def keys(self) -> list[str]:
        return [key for key, _ in self.messages]


def parse_timestamp(value) -> datetime | None:
    """Read a stored ISO timestamp back as an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def can_write(profile: dict | None, now: datetime) -> bool:
    """
    Write access derived from the user profile.

    Blocked when the profile is explicitly inactive or the plan
    has expired. A missing profile or plan date does not block.
    """
    if not profile:
        return True
    if profile.get("is_active") is False:
        return False
    expires = parse_timestamp(profile.get("plan_expires_at"))
    if expires is not None and now >= expires:
        return False
    return True


class UserContext:

    def __init__(
        self,
        store: DocumentStore,
        user_id: str | Callable[[], str | None],
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self._user_id = user_id
        self.notifier = notifier or LogNotifier()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def uid(self) -> str:
        user_id = self._user_id() if callable(self._user_id) else self._user_id
        if not user_id:
            raise Unauthorized("No authenticated user")
        return user_id

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> str:
        return self.now().date().isoformat()

    # --- Paths ---

    @property
    def profile_path(self) -> str:
        return f"users/{self.uid}"

    def collection(self, name: str) -> str:
        return f"users/{self.uid}/{name}"

    def path(self, collection: str, doc_id: str) -> str:
        return f"{self.collection(collection)}/{doc_id}"

    # --- Access ---

    def profile(self) -> dict | None:
        return self.store.get(self.profile_path)

    def can_write(self) -> bool:
        return can_write(self.profile(), self.now())

    def notify(self, key: str, **params) -> None:
        self.notifier.notify(key, **params)
