"""
FastAPI Application for the CS Tutor API

This module provides the HTTP endpoints for the tutoring service.

Endpoints:
    - POST /api/tutor - Single-shot tutor reply
    - POST /api/tutor/stream - Tutor reply as a server-sent event stream
    - GET /api/usage - Current plan and today's usage
    - GET /api/topics - Allowed topics for a level
    - POST /api/demo - Unauthenticated preview reply
    - GET /api/health (and GET /health) - Health check

Request pipeline:
    rate limit -> auth -> message check -> entitlements -> generation
    -> delivery (usage increment + chat persistence)

Store calls run on the thread pool so a slow database never stalls
the event loop or the single-shot deadline.

Usage:
    uvicorn cs_tutor.main:app --reload
"""

import asyncio
import uuid
from typing import Optional

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session as DBSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from cs_tutor import __version__
from cs_tutor.auth import AuthenticatedUser, get_current_user, get_optional_user
from cs_tutor.config import settings
from cs_tutor.database import get_db, get_db_manager, init_db
from cs_tutor.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GenerationTimeoutError,
    LLMError,
    RateLimitExceededError,
    TutorError,
    TutorRequestError,
)
from cs_tutor.logging_config import get_logger, setup_logging
from cs_tutor.models.curriculum import LEVEL_ORDER, Mode, allowed_topics, normalize_level
from cs_tutor.models.messages import DemoReply, TopicsResponse, TutorReply, TutorRequest
from cs_tutor.repositories.user_repository import UserRepository
from cs_tutor.services.delivery import record_completed_turn, stream_reply
from cs_tutor.services.entitlements import EntitlementResolver
from cs_tutor.services.llm_service import LLMService
from cs_tutor.services.rate_limiter import RateLimiter
from cs_tutor.services.tutor_service import TutorService
from cs_tutor.services.usage_ledger import UsageLedger, create_usage_ledger
from cs_tutor.utils.async_utils import run_blocking


# ===========================================
# Application Setup
# ===========================================

setup_logging()
logger = get_logger("main")

app = FastAPI(
    title="CS Tutor API",
    description="Entitlement-gated AI tutor for KS3, GCSE and A-Level Computer Science",
    version=__version__,
    docs_url=None if settings.is_production else "/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Process-wide services
rate_limiter = RateLimiter(
    window_seconds=settings.rate_limit_window_seconds,
    max_requests=settings.rate_limit_max,
)
llm_service: Optional[LLMService] = None
_sweep_task: Optional[asyncio.Task] = None


# ===========================================
# Dependencies
# ===========================================


def get_llm_service() -> LLMService:
    """Dependency for LLM service."""
    global llm_service
    if llm_service is None:
        llm_service = LLMService()
    return llm_service


def get_rate_limiter() -> RateLimiter:
    """Dependency for the rate limiter."""
    return rate_limiter


def get_usage_ledger(db: Optional[DBSession] = Depends(get_db)) -> UsageLedger:
    return create_usage_ledger(db)


def get_entitlement_resolver(
    db: Optional[DBSession] = Depends(get_db),
    ledger: UsageLedger = Depends(get_usage_ledger),
) -> EntitlementResolver:
    return EntitlementResolver(
        users=UserRepository(db) if db is not None else None,
        ledger=ledger,
        daily_limit=settings.free_daily_limit,
    )


def get_tutor_service(
    db: Optional[DBSession] = Depends(get_db),
    llm: LLMService = Depends(get_llm_service),
) -> TutorService:
    return TutorService(llm, db=db)


async def enforce_rate_limit(
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Admit the request or raise 429.

    Keyed by user id when a valid token is present, else client address.
    """
    if user is not None:
        key = f"user:{user.id}"
    else:
        key = f"ip:{request.client.host if request.client else 'unknown'}"
    decision = limiter.admit(key)
    if not decision.allowed:
        raise RateLimitExceededError(decision.retry_after_seconds)


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


# ===========================================
# Exception Handlers
# ===========================================


@app.exception_handler(TutorRequestError)
async def handle_request_error(request: Request, exc: TutorRequestError):
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(AuthenticationError)
async def handle_auth_error(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"error": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(RateLimitExceededError)
async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
    return JSONResponse(
        status_code=429,
        content={"error": exc.message, "retry_after": exc.retry_after},
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(GenerationTimeoutError)
async def handle_timeout(request: Request, exc: GenerationTimeoutError):
    return JSONResponse(
        status_code=504,
        content={"error": "Tutor reply timed out. Please try again.", "timeout_seconds": exc.timeout_seconds},
    )


@app.exception_handler(ConfigurationError)
async def handle_configuration_error(request: Request, exc: ConfigurationError):
    logger.error(
        f"Configuration error: {exc.message}",
        extra={"component": "main", "event": "configuration_error", "error": exc.message},
    )
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.exception_handler(LLMError)
async def handle_llm_error(request: Request, exc: LLMError):
    logger.error(
        f"Tutor generation failed: {exc.message}",
        extra={"component": "main", "event": "generation_failed", "error": exc.message},
    )
    return JSONResponse(status_code=500, content={"error": "LLM failed", "details": exc.message})


@app.exception_handler(TutorError)
async def handle_tutor_error(request: Request, exc: TutorError):
    logger.error(
        f"Unhandled tutor error: {exc.message}",
        extra={"component": "main", "event": "tutor_error", "error": exc.message},
    )
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# ===========================================
# Tutor Endpoints
# ===========================================


@app.post("/api/tutor", response_model=TutorReply)
async def tutor(
    body: Optional[TutorRequest] = Body(default=None),
    _rate_limit: None = Depends(enforce_rate_limit),
    user: AuthenticatedUser = Depends(get_current_user),
    db: Optional[DBSession] = Depends(get_db),
    ledger: UsageLedger = Depends(get_usage_ledger),
    entitlements: EntitlementResolver = Depends(get_entitlement_resolver),
    tutor_service: TutorService = Depends(get_tutor_service),
):
    """
    Single-shot tutor reply.

    The daily counter is incremented only after a reply has been generated.
    """
    tutor_request = body or TutorRequest()
    message = tutor_request.require_message()
    request_id = new_request_id()

    decision = await run_blocking(
        entitlements.resolve_access, user.id, tutor_request.mode, is_streaming=False
    )
    if not decision.allowed:
        return JSONResponse(status_code=decision.http_status, content=decision.to_body())

    reply = await tutor_service.generate_with_deadline(
        tutor_request,
        user.id,
        timeout_seconds=settings.request_timeout_seconds,
        request_id=request_id,
    )

    await run_blocking(
        record_completed_turn, db, ledger, user.id, tutor_request, message, reply, request_id=request_id
    )

    logger.info(
        "Tutor reply delivered",
        extra={
            "component": "main",
            "event": "reply_delivered",
            "request_id": request_id,
            "user_id": user.id,
            "data": {
                "level": tutor_request.level.value,
                "topic": tutor_request.topic,
                "mode": tutor_request.mode.value,
                "reply_length": len(reply),
            },
        },
    )
    return TutorReply(reply=reply)


@app.post("/api/tutor/stream")
async def tutor_stream(
    request: Request,
    body: Optional[TutorRequest] = Body(default=None),
    _rate_limit: None = Depends(enforce_rate_limit),
    user: AuthenticatedUser = Depends(get_current_user),
    db: Optional[DBSession] = Depends(get_db),
    ledger: UsageLedger = Depends(get_usage_ledger),
    entitlements: EntitlementResolver = Depends(get_entitlement_resolver),
    tutor_service: TutorService = Depends(get_tutor_service),
):
    """
    Tutor reply as `text/event-stream`.

    The full reply is generated and persisted before the first event is
    sent; pre-stream failures are ordinary JSON errors.
    """
    tutor_request = body or TutorRequest()
    message = tutor_request.require_message()
    request_id = new_request_id()

    decision = await run_blocking(
        entitlements.resolve_access, user.id, tutor_request.mode, is_streaming=True
    )
    if not decision.allowed:
        return JSONResponse(status_code=decision.http_status, content=decision.to_body())

    reply = await tutor_service.generate_reply(
        tutor_request,
        user.id,
        prefer_concise=True,
        request_id=request_id,
    )

    await run_blocking(
        record_completed_turn, db, ledger, user.id, tutor_request, message, reply, request_id=request_id
    )

    return StreamingResponse(
        stream_reply(
            reply,
            chunk_size=settings.stream_chunk_size,
            delay_seconds=settings.stream_chunk_delay_seconds,
            is_disconnected=request.is_disconnected,
            request_id=request_id,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/api/demo", response_model=DemoReply)
async def demo(
    body: Optional[TutorRequest] = Body(default=None),
    _rate_limit: None = Depends(enforce_rate_limit),
    tutor_service: TutorService = Depends(get_tutor_service),
):
    """Unauthenticated preview. Never fails on model errors: falls back to canned text."""
    tutor_request = body or TutorRequest()
    reply, fallback = await tutor_service.generate_demo_reply(
        tutor_request,
        timeout_seconds=settings.request_timeout_seconds,
        request_id=new_request_id(),
    )
    return DemoReply(reply=reply, fallback=fallback)


# ===========================================
# Account & Catalogue Endpoints
# ===========================================


@app.get("/api/usage")
async def usage(
    user: AuthenticatedUser = Depends(get_current_user),
    entitlements: EntitlementResolver = Depends(get_entitlement_resolver),
):
    """Current plan and today's usage."""
    snapshot = await run_blocking(entitlements.billing_snapshot, user.id)
    return {"user_id": user.id, **snapshot.model_dump(mode="json")}


@app.get("/api/topics", response_model=TopicsResponse)
async def topics(level: Optional[str] = Query(default=None)):
    """Allowed topics for a level (unknown levels resolve to KS3)."""
    resolved = normalize_level(level)
    return TopicsResponse(
        level=resolved,
        topics=allowed_topics(resolved),
        levels=[lvl.value for lvl in LEVEL_ORDER],
        modes=[mode.value for mode in Mode],
    )


@app.get("/api/health")
@app.get("/health", include_in_schema=False)
async def health_check():
    """Health check endpoint."""
    manager = get_db_manager()
    if not manager.is_configured:
        database = "unconfigured"
    else:
        database = "connected" if await run_blocking(manager.health_check) else "unavailable"
    return {
        "ok": True,
        "status": "healthy",
        "version": __version__,
        "database": database,
        "llm_configured": settings.llm_configured,
    }


# ===========================================
# Application Lifecycle
# ===========================================


async def _sweep_rate_limits(interval_seconds: float) -> None:
    """Periodically evict expired rate-limit windows."""
    while True:
        await asyncio.sleep(interval_seconds)
        rate_limiter.sweep()


@app.on_event("startup")
async def startup_event():
    """Application startup."""
    global _sweep_task
    store_ready = init_db()
    _sweep_task = asyncio.create_task(_sweep_rate_limits(settings.rate_limit_sweep_seconds))
    logger.info(
        "CS Tutor API starting",
        extra={
            "component": "main",
            "event": "startup",
            "data": {
                "env": settings.env,
                "debug": settings.debug,
                "provider": settings.app_llm_provider,
                "store": store_ready,
                "llm_configured": settings.llm_configured,
            },
        },
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown."""
    global _sweep_task
    if _sweep_task is not None:
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            pass
        _sweep_task = None
    get_db_manager().close()
    logger.info(
        "CS Tutor API shutting down",
        extra={
            "component": "main",
            "event": "shutdown",
            "data": {"rate_limit_keys": len(rate_limiter)},
        },
    )
