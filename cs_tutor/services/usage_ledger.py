"""
Usage Ledger for the CS Tutor API

Tracks tutor turns consumed per user per UTC calendar day, using the
Protocol pattern so the backing store can change without touching the
entitlement resolver.

Design:
- Protocol-based interface
- SQL implementation with an atomic upsert-and-increment
- In-memory implementation for running without a database

Usage:
    from cs_tutor.services.usage_ledger import create_usage_ledger

    ledger = create_usage_ledger(db)
    used = ledger.get_today_count(user_id)
    ledger.increment(user_id)
"""

from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional, Protocol, Tuple
import threading

from sqlalchemy import select, update
from sqlalchemy.orm import Session as DBSession

from cs_tutor.logging_config import get_logger
from cs_tutor.models.entities import DailyUsage


logger = get_logger("usage_ledger")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ===========================================
# Protocol (Interface)
# ===========================================


class UsageLedger(Protocol):
    """Per-user, per-UTC-day turn counter."""

    def get_today_count(self, user_id: str) -> int:
        """Turns consumed today."""
        ...

    def increment(self, user_id: str) -> int:
        """Atomically add one turn for today and return the new count."""
        ...


# ===========================================
# SQL Implementation
# ===========================================


class SqlUsageLedger:
    """
    Ledger backed by the `daily_usage` table.

    A new UTC day writes a fresh (user_id, usage_date) row, so counters
    reset without any cleanup job.
    """

    def __init__(self, db: DBSession, today: Callable[[], date] = utc_today):
        self.db = db
        self._today = today

    def get_today_count(self, user_id: str) -> int:
        stmt = select(DailyUsage.turns).where(
            DailyUsage.user_id == user_id,
            DailyUsage.usage_date == self._today(),
        )
        turns = self.db.execute(stmt).scalar_one_or_none()
        return int(turns or 0)

    def increment(self, user_id: str) -> int:
        day = self._today()
        dialect = self.db.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert
            stmt = (
                insert(DailyUsage)
                .values(user_id=user_id, usage_date=day, turns=1)
                .on_conflict_do_update(
                    index_elements=["user_id", "usage_date"],
                    set_={"turns": DailyUsage.turns + 1},
                )
            )
            self.db.execute(stmt)
        else:
            result = self.db.execute(
                update(DailyUsage)
                .where(DailyUsage.user_id == user_id, DailyUsage.usage_date == day)
                .values(turns=DailyUsage.turns + 1)
            )
            if not result.rowcount:
                self.db.add(DailyUsage(user_id=user_id, usage_date=day, turns=1))
        self.db.commit()

        count = self.get_today_count(user_id)
        logger.debug(
            f"Usage incremented for {user_id}",
            extra={
                "component": "usage_ledger",
                "event": "usage_incremented",
                "user_id": user_id,
                "data": {"date": day.isoformat(), "turns": count},
            },
        )
        return count


# ===========================================
# In-Memory Implementation
# ===========================================


class InMemoryUsageLedger:
    """
    Process-local ledger used when no database is configured.

    Thread-safe; counters from earlier days are dropped on increment.
    """

    def __init__(self, today: Callable[[], date] = utc_today):
        self._counts: Dict[Tuple[str, date], int] = {}
        self._lock = threading.Lock()
        self._today = today

    def get_today_count(self, user_id: str) -> int:
        with self._lock:
            return self._counts.get((user_id, self._today()), 0)

    def increment(self, user_id: str) -> int:
        day = self._today()
        with self._lock:
            stale = [key for key in self._counts if key[1] != day]
            for key in stale:
                del self._counts[key]
            key = (user_id, day)
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]


# ===========================================
# Factory Function
# ===========================================


_memory_ledger = InMemoryUsageLedger()


def get_memory_ledger() -> InMemoryUsageLedger:
    """Process-wide in-memory ledger."""
    return _memory_ledger


def create_usage_ledger(db: Optional[DBSession]) -> UsageLedger:
    """
    Create the ledger for a request.

    Args:
        db: Request database session, or None when no store is configured

    Returns:
        SqlUsageLedger when a session is available, else the shared
        in-memory ledger
    """
    if db is None:
        return _memory_ledger
    return SqlUsageLedger(db)
