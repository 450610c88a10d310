"""
Entitlement Models for the CS Tutor API

Models:
    - Plan: free / pro / premium
    - UsageSnapshot: today's usage for a user (None limit = unbounded)
    - AccessAllowed / AccessDenied: outcome of resolving a tutor request
"""

from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


# Subscription statuses that count as paid
PAID_STATUSES = frozenset({"active", "trialing"})


class DenialCode(str, Enum):
    """Machine-readable reasons for an entitlement denial."""

    PAID_FEATURE = "PAID_FEATURE"
    LIMIT_REACHED = "LIMIT_REACHED"


class UsageSnapshot(BaseModel):
    """
    Today's usage for one user.

    `daily_limit` and `daily_remaining` are None when usage is unbounded.
    """

    plan: Plan = Field(description="Resolved plan")
    daily_limit: Optional[int] = Field(default=None, description="Turns allowed today")
    daily_used: int = Field(default=0, ge=0, description="Turns consumed today (UTC)")
    daily_remaining: Optional[int] = Field(default=None, description="Turns left today")

    @classmethod
    def unbounded(cls, plan: Plan, used: int = 0) -> "UsageSnapshot":
        return cls(plan=plan, daily_limit=None, daily_used=used, daily_remaining=None)

    @classmethod
    def limited(cls, plan: Plan, limit: int, used: int) -> "UsageSnapshot":
        return cls(
            plan=plan,
            daily_limit=limit,
            daily_used=used,
            daily_remaining=max(limit - used, 0),
        )


class AccessAllowed(BaseModel):
    """The request may proceed."""

    allowed: Literal[True] = True
    plan: Plan
    usage: UsageSnapshot


class AccessDenied(BaseModel):
    """The request is refused; rendered as a 402 with a billing snapshot."""

    allowed: Literal[False] = False
    http_status: int = 402
    code: DenialCode
    message: str
    feature: Optional[str] = None
    billing: UsageSnapshot

    def to_body(self) -> dict:
        """JSON body returned to the client."""
        body = {
            "error": self.message,
            "code": self.code.value,
            "billing": self.billing.model_dump(mode="json"),
        }
        if self.feature:
            body["feature"] = self.feature
        return body


AccessDecision = Union[AccessAllowed, AccessDenied]
