"""
Entitlement Resolver for the CS Tutor API

Decides, per request, whether a user may receive a given mode/format of
tutor response under the freemium-plus-subscription policy.

Policy:
- Paid plans (active or trialing subscription): always allowed, unbounded.
- Free plan: streaming is refused, Quiz/Mark are refused, and Explain/Hint
  are allowed until the daily limit is reached.
- No store, or a store error: allowed, unbounded.

The resolver is read-only. Usage is incremented by the delivery layer
after a reply has been generated, so failed generations cost nothing.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from cs_tutor.logging_config import get_logger
from cs_tutor.models.curriculum import Mode, PAID_MODES
from cs_tutor.models.entitlement import (
    AccessAllowed,
    AccessDecision,
    AccessDenied,
    DenialCode,
    Plan,
    UsageSnapshot,
)
from cs_tutor.repositories.user_repository import UserRepository
from cs_tutor.services.usage_ledger import UsageLedger


logger = get_logger("entitlements")


class EntitlementResolver:
    """
    Resolves access for tutor requests.

    Attributes:
        users: Subscription lookups, or None when no store is configured
        ledger: Today's usage counter
        daily_limit: Free-plan turns per UTC day
    """

    def __init__(
        self,
        users: Optional[UserRepository],
        ledger: UsageLedger,
        daily_limit: int,
    ):
        self.users = users
        self.ledger = ledger
        self.daily_limit = daily_limit

    def resolve_access(self, user_id: str, mode: Mode, is_streaming: bool) -> AccessDecision:
        """
        Decide whether (mode, streaming) is currently permitted.

        Args:
            user_id: Authenticated user
            mode: Requested tutoring mode
            is_streaming: Whether the streamed format was requested

        Returns:
            AccessAllowed or AccessDenied
        """
        if self.users is None:
            return AccessAllowed(plan=Plan.FREE, usage=UsageSnapshot.unbounded(Plan.FREE))

        try:
            plan = self.users.resolve_plan(user_id)
            if plan is not Plan.FREE:
                return AccessAllowed(plan=plan, usage=UsageSnapshot.unbounded(plan))
            used = self.ledger.get_today_count(user_id)
        except SQLAlchemyError as e:
            logger.warning(
                f"Entitlement store unavailable, allowing request: {e}",
                extra={
                    "component": "entitlements",
                    "event": "store_unavailable",
                    "user_id": user_id,
                    "error": str(e),
                },
            )
            return AccessAllowed(plan=Plan.FREE, usage=UsageSnapshot.unbounded(Plan.FREE))

        usage = UsageSnapshot.limited(Plan.FREE, self.daily_limit, used)

        if is_streaming:
            return self._deny(
                user_id,
                DenialCode.PAID_FEATURE,
                "Streaming responses are a paid feature. Upgrade to unlock live replies.",
                usage,
                feature="streaming",
            )

        if mode in PAID_MODES:
            return self._deny(
                user_id,
                DenialCode.PAID_FEATURE,
                f"{mode.value} mode is a paid feature. Upgrade to unlock it.",
                usage,
                feature=f"mode:{mode.value}",
            )

        if used >= self.daily_limit:
            return self._deny(
                user_id,
                DenialCode.LIMIT_REACHED,
                f"Daily limit of {self.daily_limit} free tutor requests reached. "
                "Upgrade or come back tomorrow.",
                usage,
            )

        return AccessAllowed(plan=Plan.FREE, usage=usage)

    def billing_snapshot(self, user_id: str) -> UsageSnapshot:
        """Current plan and usage, for display."""
        if self.users is None:
            return UsageSnapshot.unbounded(Plan.FREE, used=self.ledger.get_today_count(user_id))
        try:
            plan = self.users.resolve_plan(user_id)
            used = self.ledger.get_today_count(user_id)
        except SQLAlchemyError as e:
            logger.warning(
                f"Usage lookup failed: {e}",
                extra={"component": "entitlements", "event": "store_unavailable", "user_id": user_id},
            )
            return UsageSnapshot.unbounded(Plan.FREE)
        if plan is not Plan.FREE:
            return UsageSnapshot.unbounded(plan, used=used)
        return UsageSnapshot.limited(plan, self.daily_limit, used)

    def _deny(
        self,
        user_id: str,
        code: DenialCode,
        message: str,
        usage: UsageSnapshot,
        feature: Optional[str] = None,
    ) -> AccessDenied:
        logger.info(
            f"Access denied: {code.value}",
            extra={
                "component": "entitlements",
                "event": "access_denied",
                "user_id": user_id,
                "data": {"code": code.value, "feature": feature, "used": usage.daily_used},
            },
        )
        return AccessDenied(
            http_status=402,
            code=code,
            message=message,
            feature=feature,
            billing=usage,
        )
