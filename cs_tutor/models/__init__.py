"""
Data Models for the CS Tutor API

This package contains the Pydantic and SQLAlchemy models for the application.

Modules:
    - curriculum: Levels, modes, topics and level vocabulary
    - messages: HTTP request/response bodies and stream chunks
    - entitlement: Plans, usage snapshots and access decisions
    - agent: Tool calls, agent turns and model responses
    - entities: SQLAlchemy ORM tables
"""

from cs_tutor.models.curriculum import (
    Level,
    Mode,
    LEVEL_TOPICS,
    LEVEL_VOCABULARY,
    normalize_level,
    normalize_mode,
    normalize_topic,
    leak_vocabulary,
)
from cs_tutor.models.messages import (
    TutorRequest,
    TutorReply,
    DemoReply,
    TopicsResponse,
    StreamChunk,
    create_delta_chunk,
    create_done_chunk,
    create_error_chunk,
)
from cs_tutor.models.entitlement import (
    Plan,
    DenialCode,
    UsageSnapshot,
    AccessAllowed,
    AccessDenied,
    AccessDecision,
)
from cs_tutor.models.agent import (
    AgentState,
    ToolCall,
    ToolResult,
    ToolExchange,
    ToolSpec,
    ToolContext,
    AgentTurn,
    ModelResponse,
    AgentResult,
)

__all__ = [
    # curriculum
    "Level",
    "Mode",
    "LEVEL_TOPICS",
    "LEVEL_VOCABULARY",
    "normalize_level",
    "normalize_mode",
    "normalize_topic",
    "leak_vocabulary",
    # messages
    "TutorRequest",
    "TutorReply",
    "DemoReply",
    "TopicsResponse",
    "StreamChunk",
    "create_delta_chunk",
    "create_done_chunk",
    "create_error_chunk",
    # entitlement
    "Plan",
    "DenialCode",
    "UsageSnapshot",
    "AccessAllowed",
    "AccessDenied",
    "AccessDecision",
    # agent
    "AgentState",
    "ToolCall",
    "ToolResult",
    "ToolExchange",
    "ToolSpec",
    "ToolContext",
    "AgentTurn",
    "ModelResponse",
    "AgentResult",
]
