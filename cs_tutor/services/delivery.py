"""
Response Delivery for the CS Tutor API

Turns a completed reply into what the client receives and records the turn.

Streaming here re-chunks text that is already complete: fixed-size
character slices are sent as `data: {"delta": ...}` events with a short
pause between them, followed by one `{"done": true}` event. Because the
whole reply exists before the first byte is sent, the persisted turn
always matches what was streamed.

Persistence is best-effort. A failed ledger increment or chat write is
logged and the session rolled back; the user still gets their reply.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from cs_tutor.logging_config import get_logger
from cs_tutor.models.messages import (
    TutorRequest,
    create_delta_chunk,
    create_done_chunk,
    create_error_chunk,
)
from cs_tutor.repositories.chat_repository import ChatRepository
from cs_tutor.repositories.learning_event_repository import LearningEventRepository
from cs_tutor.services.usage_ledger import UsageLedger


logger = get_logger("delivery")

NO_OUTPUT_TEXT = "(No output returned)"


def finalize_text(text: Optional[str]) -> str:
    """Placeholder for an empty reply."""
    if not text or not text.strip():
        return NO_OUTPUT_TEXT
    return text


def chunk_text(text: str, size: int) -> list[str]:
    """Split text into consecutive slices of at most `size` characters."""
    size = max(1, size)
    return [text[i:i + size] for i in range(0, len(text), size)]


async def stream_reply(
    text: str,
    chunk_size: int,
    delay_seconds: float,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    request_id: str = "unknown",
) -> AsyncIterator[str]:
    """
    Yield server-sent events for a completed reply.

    Stops without an error event when the client has gone away. An
    unexpected failure ends the stream with a single `error` event.

    Args:
        text: Complete reply text
        chunk_size: Characters per delta event
        delay_seconds: Pause between delta events
        is_disconnected: Async check for client disconnect
        request_id: Current request ID (for logging)
    """
    sent = 0
    try:
        for index, piece in enumerate(chunk_text(text, chunk_size)):
            if is_disconnected is not None and await is_disconnected():
                logger.info(
                    "Client disconnected mid-stream",
                    extra={
                        "component": "delivery",
                        "event": "client_disconnected",
                        "request_id": request_id,
                        "data": {"chunks_sent": sent},
                    },
                )
                return
            if index and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)
            yield create_delta_chunk(piece).to_event()
            sent += 1
        yield create_done_chunk().to_event()
    except asyncio.CancelledError:
        logger.info(
            "Stream cancelled",
            extra={
                "component": "delivery",
                "event": "stream_cancelled",
                "request_id": request_id,
                "data": {"chunks_sent": sent},
            },
        )
        raise
    except Exception as e:
        logger.error(
            f"Stream failed: {e}",
            extra={
                "component": "delivery",
                "event": "stream_failed",
                "request_id": request_id,
                "error": str(e),
            },
        )
        yield create_error_chunk("Stream interrupted").to_event()


def record_completed_turn(
    db: Optional[DBSession],
    ledger: UsageLedger,
    user_id: str,
    request: TutorRequest,
    message: str,
    reply: str,
    request_id: str = "unknown",
) -> None:
    """
    Count the turn and persist it, best-effort.

    Increments today's usage, writes the user/assistant chat pair and a
    `tutor_turn` learning event. Store errors are logged and swallowed.
    """
    try:
        ledger.increment(user_id)
    except SQLAlchemyError as e:
        _rollback(db)
        logger.error(
            f"Usage increment failed: {e}",
            extra={
                "component": "delivery",
                "event": "usage_increment_failed",
                "request_id": request_id,
                "user_id": user_id,
                "error": str(e),
            },
        )

    if db is None:
        return

    try:
        ChatRepository(db).add_turn(
            user_id=user_id,
            user_message=message,
            reply=reply,
            level=request.level.value,
            topic=request.topic,
            mode=request.mode.value,
        )
        LearningEventRepository(db).record(
            user_id=user_id,
            event_type="tutor_turn",
            level=request.level.value,
            topic=request.topic,
        )
    except SQLAlchemyError as e:
        _rollback(db)
        logger.error(
            f"Chat turn persistence failed: {e}",
            extra={
                "component": "delivery",
                "event": "persist_failed",
                "request_id": request_id,
                "user_id": user_id,
                "error": str(e),
            },
        )


def _rollback(db: Optional[DBSession]) -> None:
    if db is None:
        return
    try:
        db.rollback()
    except SQLAlchemyError as e:
        logger.error(f"Rollback failed: {e}", extra={"component": "delivery", "event": "rollback_failed"})
