"""User data access layer."""
from typing import Optional
from sqlalchemy.orm import Session as DBSession

from cs_tutor.models.entities import User
from cs_tutor.models.entitlement import Plan, PAID_STATUSES


class UserRepository:
    """Repository for user subscription lookups."""

    def __init__(self, db: DBSession):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def resolve_plan(self, user_id: str) -> Plan:
        """
        Resolve the effective plan from stored subscription state.

        Only an active or trialing subscription counts as paid; a paid
        subscription with no recognised plan name resolves to pro. Users
        without a row are on the free plan.
        """
        user = self.get_by_id(user_id)
        if user is None:
            return Plan.FREE
        status = (user.subscription_status or "").lower()
        if status not in PAID_STATUSES:
            return Plan.FREE
        try:
            plan = Plan((user.plan or "").lower())
        except ValueError:
            return Plan.PRO
        return Plan.PRO if plan is Plan.FREE else plan
