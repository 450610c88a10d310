"""
Agent Loop Models for the CS Tutor API

These models carry the request-scoped state of one tutor agent run. None of
them is persisted: only the final reply and the original user message are
stored, as a chat turn pair.

Models:
    - ToolCall / ToolResult / ToolExchange: one tool round-trip
    - ToolSpec: provider-neutral tool definition
    - ToolContext: caller state the tools may read
    - AgentTurn: evolving conversation across loop iterations
    - ModelResponse: provider-neutral result of one model call
    - AgentResult: final output of the loop
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from cs_tutor.models.curriculum import Level, Mode


class AgentState(str, Enum):
    """States of the tutor agent loop."""

    DISPATCHING = "dispatching"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    call_id: str = Field(description="Opaque correlation token from the provider")
    name: str = Field(description="Requested tool name")
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Output of a tool call, correlated by call_id."""

    call_id: str
    output: dict[str, Any] = Field(default_factory=dict)


class ToolExchange(BaseModel):
    """A (ToolCall, ToolResult) pair and the model step that requested it."""

    call: ToolCall
    result: ToolResult
    step: int


class ToolSpec(BaseModel):
    """Provider-neutral tool definition."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolContext(BaseModel):
    """Caller state passed to every tool."""

    user_id: str
    level: Level
    topic: str
    mode: Mode
    request_id: str = "unknown"


class AgentTurn(BaseModel):
    """
    Conversation state across loop iterations.

    `previous_response_id` lets providers that keep server-side state
    continue the same conversation without restating the system prompt.
    """

    system_prompt: str
    user_message: str
    prior_tool_exchanges: list[ToolExchange] = Field(default_factory=list)
    step_count: int = 0
    previous_response_id: Optional[str] = None

    def add_exchange(self, call: ToolCall, result: ToolResult) -> None:
        self.prior_tool_exchanges.append(
            ToolExchange(call=call, result=result, step=self.step_count)
        )

    def latest_exchanges(self) -> list[ToolExchange]:
        """Exchanges requested by the most recent model response."""
        return [ex for ex in self.prior_tool_exchanges if ex.step == self.step_count]

    def exchanges_by_step(self) -> list[list[ToolExchange]]:
        """Exchanges grouped by requesting step, oldest first."""
        steps: dict[int, list[ToolExchange]] = {}
        for ex in self.prior_tool_exchanges:
            steps.setdefault(ex.step, []).append(ex)
        return [steps[key] for key in sorted(steps)]


class ModelResponse(BaseModel):
    """Result of one model call."""

    response_id: Optional[str] = None
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


class AgentResult(BaseModel):
    """Final output of a tutor agent run."""

    text: str
    steps: int
    tools_called: list[str] = Field(default_factory=list)
    hit_step_limit: bool = False
