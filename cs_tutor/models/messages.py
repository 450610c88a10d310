"""
Message Models for the CS Tutor API

This module defines the Pydantic models for HTTP request/response bodies and
the server-sent stream chunks.

Models:
    - TutorRequest: Body of POST /api/tutor and /api/tutor/stream
    - TutorReply: Single-shot reply body
    - StreamChunk: One server-sent event payload (delta | done | error)
"""

import json
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from cs_tutor.exceptions import TutorRequestError
from cs_tutor.models.curriculum import (
    Level,
    Mode,
    normalize_level,
    normalize_mode,
    normalize_topic,
)


# ===========================================
# Requests
# ===========================================


class TutorRequest(BaseModel):
    """
    Tutor question with its pedagogical context.

    Level, topic and mode are normalized on construction: unknown levels
    become KS3, unknown modes become Explain, and a topic outside the
    level's allowed list becomes that level's first topic.
    """

    message: Optional[str] = Field(
        default=None,
        description="The student's question or submission"
    )
    level: Level = Field(
        default=Level.KS3,
        description="Curriculum tier (KS3, GCSE, A-Level)"
    )
    topic: str = Field(
        default="",
        description="Topic within the level's allowed list"
    )
    mode: Mode = Field(
        default=Mode.EXPLAIN,
        description="Explain, Hint, Quiz or Mark"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Explain loops",
                "level": "KS3",
                "topic": "Programming Basics",
                "mode": "Explain",
            }
        }
    }

    @field_validator("message", mode="before")
    @classmethod
    def _coerce_message(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("level", mode="before")
    @classmethod
    def _coerce_level(cls, value: Any) -> Level:
        return normalize_level(value)

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Mode:
        return normalize_mode(value)

    @field_validator("topic", mode="before")
    @classmethod
    def _coerce_topic(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @model_validator(mode="after")
    def _normalize_topic(self) -> "TutorRequest":
        self.topic = normalize_topic(self.level, self.topic)
        return self

    def require_message(self) -> str:
        """
        Return the stripped message.

        Raises:
            TutorRequestError: If the message is missing or blank
        """
        if not self.message or not self.message.strip():
            raise TutorRequestError("Missing 'message' string")
        return self.message.strip()


# ===========================================
# Responses
# ===========================================


class TutorReply(BaseModel):
    """Single-shot tutor reply."""

    reply: str = Field(description="Rendered tutor reply")


class DemoReply(BaseModel):
    """Reply from the unauthenticated demo endpoint."""

    reply: str
    fallback: bool = Field(
        default=False,
        description="True when the canned reply was served instead of a model reply"
    )


class TopicsResponse(BaseModel):
    """Allowed topics for a normalized level."""

    level: Level
    topics: list[str]
    levels: list[str]
    modes: list[str]


# ===========================================
# Stream Chunks
# ===========================================


class StreamChunk(BaseModel):
    """
    One server-sent event payload.

    Exactly one of delta/done/error is set; unset fields are omitted on
    the wire.
    """

    delta: Optional[str] = None
    done: Optional[bool] = None
    error: Optional[str] = None

    def to_event(self) -> str:
        """Encode as a `data: <json>` SSE frame."""
        payload = self.model_dump(exclude_none=True)
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def create_delta_chunk(text: str) -> StreamChunk:
    return StreamChunk(delta=text)


def create_done_chunk() -> StreamChunk:
    return StreamChunk(done=True)


def create_error_chunk(message: str) -> StreamChunk:
    return StreamChunk(error=message)
