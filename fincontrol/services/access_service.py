"""
Access service: invite codes, redemption, and the write gate.

Write access is granted by redeeming a single-use invite code,
which extends the user's plan. Failed redemptions are counted
on the user's profile in the same atomic step as the check, and
too many of them lock redemption for a while. Minting, listing
and invalidating codes need role "admin" on the caller's profile.

The write_gated decorator wraps every mutating method of the
other services: a read-only user gets a notification and a
None result instead of an exception.
"""

import functools
import secrets
from datetime import datetime, timedelta
from typing import NamedTuple

import structlog

from fincontrol.config import get_settings
from fincontrol.context import UserContext, parse_timestamp
from fincontrol.errors import (
    InviteCodeCollision,
    InviteNotFound,
    InviteRejected,
    Unauthorized,
)
from fincontrol.models.enums import InviteStatus, Plan
from fincontrol.schemas.invite import (
    InviteCheck,
    InviteResponse,
    RedeemResponse,
)
from fincontrol.store import SERVER_TIMESTAMP

logger = structlog.get_logger(__name__)

INVITES_COLLECTION = "inviteCodes"

ADMIN_ROLE = "admin"

# No 0/O, 1/I/L: codes are read aloud and typed by hand.
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

CODE_GENERATION_ATTEMPTS = 5

# Fixed-day plan lengths.
PLAN_DAYS = {
    Plan.MONTHLY.value: 30,
    Plan.SEMIANNUAL.value: 182,
    Plan.ANNUAL.value: 365,
}


def write_gated(method):
    """Skip a mutating service method when the user is read-only."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if not self.ctx.can_write():
            logger.info(
                "write_blocked",
                operation=method.__qualname__,
                user_id=self.ctx.uid,
            )
            self.ctx.notify("access.readOnly")
            return None
        return method(self, *args, **kwargs)

    return wrapper


def generate_code(length: int | None = None) -> str:
    length = length or get_settings().INVITE_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def rejection_reason(invite: dict | None, now: datetime) -> str | None:
    """Why an invite cannot be redeemed right now, or None if it can."""
    if invite is None:
        return "not_found"
    status = invite.get("status")
    if status == InviteStatus.EXPIRED.value:
        return "expired"
    if status != InviteStatus.UNUSED.value:
        return "used"
    expires = parse_timestamp(invite.get("expires_at"))
    grace = parse_timestamp(invite.get("grace_expires_at"))
    if expires is None or grace is None or now >= min(expires, grace):
        return "expired"
    return None


class _RedeemOutcome(NamedTuple):
    ok: bool
    reason: str | None = None
    attempts_left: int = 0
    blocked_until: datetime | None = None
    plan: str | None = None
    plan_expires_at: datetime | None = None


class AccessService:

    def __init__(self, ctx: UserContext):
        self.ctx = ctx
        self.settings = get_settings()

    def _invite_path(self, code: str) -> str:
        return f"{INVITES_COLLECTION}/{code}"

    # --- Admin operations ---

    def _require_admin(self) -> None:
        profile = self.ctx.profile() or {}
        if profile.get("role") != ADMIN_ROLE:
            logger.warning("admin_required", user_id=self.ctx.uid)
            raise Unauthorized("Only admins can manage invite codes")

    def create_invite_code(
        self, plan: Plan | str, created_by: str | None = None
    ) -> InviteResponse:
        """
        Create a fresh unused code.

        The code's own shelf life is the plan length; the grace
        window is shorter, so an unredeemed code dies after
        INVITE_GRACE_DAYS. A collision with an existing code
        just draws a new one.
        """
        self._require_admin()
        plan = Plan(plan).value
        now = self.ctx.now()
        creator = created_by or self.ctx.uid
        data = {
            "plan": plan,
            "status": InviteStatus.UNUSED.value,
            "created_by": creator,
            "expires_at": (now + timedelta(days=PLAN_DAYS[plan])).isoformat(),
            "grace_expires_at": (
                now + timedelta(days=self.settings.INVITE_GRACE_DAYS)
            ).isoformat(),
            "used_by": None,
            "used_at": None,
            "created_at": SERVER_TIMESTAMP,
        }

        for _ in range(CODE_GENERATION_ATTEMPTS):
            code = generate_code(self.settings.INVITE_CODE_LENGTH)
            path = self._invite_path(code)

            def body(txn, path=path, code=code):
                if txn.get(path) is not None:
                    return False
                txn.set(path, {**data, "code": code})
                return True

            if self.ctx.store.atomic(body):
                logger.info("invite_created", code=code, plan=plan, created_by=creator)
                return InviteResponse.from_document(self.ctx.store.get(path))

        raise InviteCodeCollision(
            f"No free code after {CODE_GENERATION_ATTEMPTS} attempts"
        )

    def invalidate_invite_code(self, code: str) -> InviteResponse:
        self._require_admin()
        path = self._invite_path(normalize_code(code))

        def body(txn):
            if txn.get(path) is None:
                raise InviteNotFound(f"Invite code {code} not found")
            txn.update(path, {"status": InviteStatus.EXPIRED.value})

        self.ctx.store.atomic(body)
        logger.info("invite_invalidated", code=code)
        return InviteResponse.from_document(self.ctx.store.get(path))

    def list_invite_codes(
        self,
        status: InviteStatus | str | None = None,
        plan: Plan | str | None = None,
        limit: int = 100,
    ) -> list[InviteResponse]:
        self._require_admin()
        filters = []
        if status:
            filters.append(("status", "==", InviteStatus(status).value))
        if plan:
            filters.append(("plan", "==", Plan(plan).value))
        docs = self.ctx.store.query(
            INVITES_COLLECTION,
            filters=filters,
            order_by=[("created_at", "desc")],
            limit=limit,
        )
        return [InviteResponse.from_document(d) for d in docs]

    # --- User operations ---

    def validate_invite_code(self, code: str) -> InviteCheck:
        """Check a code without using it. Does not count as an attempt."""
        code = normalize_code(code)
        invite = self.ctx.store.get(self._invite_path(code)) if code else None
        reason = rejection_reason(invite, self.ctx.now())
        if reason:
            return InviteCheck(ok=False, reason=reason)
        return InviteCheck(ok=True, invite=InviteResponse.from_document(invite))

    def redeem(self, code: str) -> RedeemResponse:
        """
        Redeem a code for the current user.

        The code is re-read inside the atomic call, so two users
        racing for the same code cannot both succeed: the loser's
        attempt conflicts, re-runs, and sees the code as used.
        The plan is extended from max(now, current expiry) so
        unexpired time carries over.

        Raises InviteRejected with the reason, the attempts left
        before lockout, and the lockout end when blocked.
        """
        code = normalize_code(code)
        uid = self.ctx.uid
        now = self.ctx.now()
        invite_path = self._invite_path(code) if code else None
        profile_path = self.ctx.profile_path
        max_attempts = self.settings.INVITE_MAX_ATTEMPTS
        lockout = timedelta(hours=self.settings.INVITE_LOCKOUT_HOURS)

        def body(txn):
            profile = txn.get(profile_path) or {}
            blocked_until = parse_timestamp(profile.get("code_redeem_blocked_until"))
            if blocked_until is not None and now < blocked_until:
                return _RedeemOutcome(
                    ok=False, reason="blocked", blocked_until=blocked_until
                )

            invite = txn.get(invite_path) if invite_path else None
            reason = rejection_reason(invite, now)
            if reason:
                attempts = int(profile.get("code_redeem_attempts") or 0) + 1
                if attempts >= max_attempts:
                    until = now + lockout
                    txn.set(profile_path, {
                        "code_redeem_attempts": 0,
                        "code_redeem_blocked_until": until.isoformat(),
                    }, merge=True)
                    return _RedeemOutcome(
                        ok=False, reason=reason, blocked_until=until
                    )
                txn.set(profile_path, {
                    "code_redeem_attempts": attempts,
                    "code_redeem_blocked_until": None,
                }, merge=True)
                return _RedeemOutcome(
                    ok=False, reason=reason, attempts_left=max_attempts - attempts
                )

            plan = invite["plan"]
            current = parse_timestamp(profile.get("plan_expires_at"))
            anchor = max(now, current) if current else now
            expires = anchor + timedelta(days=PLAN_DAYS.get(plan, 30))

            txn.update(invite_path, {
                "status": InviteStatus.USED.value,
                "used_by": uid,
                "used_at": now.isoformat(),
            })
            txn.set(profile_path, {
                "plan": plan,
                "plan_expires_at": expires.isoformat(),
                "code_redeem_attempts": 0,
                "code_redeem_blocked_until": None,
                "updated_at": SERVER_TIMESTAMP,
            }, merge=True)
            return _RedeemOutcome(ok=True, plan=plan, plan_expires_at=expires)

        outcome = self.ctx.store.atomic(body)

        if not outcome.ok:
            logger.info(
                "invite_rejected",
                user_id=uid,
                reason=outcome.reason,
                attempts_left=outcome.attempts_left,
            )
            raise InviteRejected(
                reason=outcome.reason,
                attempts_left=outcome.attempts_left,
                blocked_until=outcome.blocked_until,
            )

        logger.info(
            "invite_redeemed",
            user_id=uid,
            code=code,
            plan=outcome.plan,
            plan_expires_at=outcome.plan_expires_at.isoformat(),
        )
        return RedeemResponse(
            code=code,
            plan=outcome.plan,
            plan_expires_at=outcome.plan_expires_at,
        )
