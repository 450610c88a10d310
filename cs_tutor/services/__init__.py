"""
Services for the CS Tutor API

Modules:
    - llm_service / anthropic_adapter: Model provider calls
    - usage_ledger: Per-user daily turn counter
    - entitlements: Plan and quota checks
    - rate_limiter: Per-key request throttle
    - delivery: Single-shot and streamed replies, turn persistence
    - tutor_service: Reply generation pipeline
"""

from cs_tutor.services.entitlements import EntitlementResolver
from cs_tutor.services.rate_limiter import RateLimiter, RateLimitDecision
from cs_tutor.services.usage_ledger import (
    UsageLedger,
    SqlUsageLedger,
    InMemoryUsageLedger,
    create_usage_ledger,
)

__all__ = [
    "EntitlementResolver",
    "RateLimiter",
    "RateLimitDecision",
    "UsageLedger",
    "SqlUsageLedger",
    "InMemoryUsageLedger",
    "create_usage_ledger",
]
