"""
Anthropic (Claude) Adapter for the CS Tutor API

Encapsulates all Claude API interaction, mapping the same AgentTurn /
ModelResponse interface used by LLMService for OpenAI to the Anthropic
Messages API.

Handles:
- System prompt -> `system` parameter
- ToolSpec -> `tools` with `input_schema`
- Prior tool exchanges -> rebuilt `tool_use` / `tool_result` history
  (the Messages API keeps no server-side conversation state)
- Response parsing into ModelResponse
"""

import json
from typing import Any, Dict, Optional

import anthropic

from cs_tutor.logging_config import get_logger
from cs_tutor.models.agent import AgentTurn, ModelResponse, ToolCall, ToolSpec
from cs_tutor.utils.schema_utils import parse_tool_arguments

logger = get_logger("anthropic_adapter")

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"


class AnthropicAdapter:
    """Adapter that translates agent turns to Anthropic's Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_CLAUDE_MODEL,
        max_tokens: int = 800,
        timeout: int = 60,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.async_client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    def build_kwargs(
        self,
        turn: AgentTurn,
        tools: Optional[list[ToolSpec]] = None,
    ) -> Dict[str, Any]:
        """Build kwargs for anthropic messages.create()."""
        messages: list[dict[str, Any]] = [
            {"role": "user", "content": turn.user_message}
        ]

        for exchanges in turn.exchanges_by_step():
            messages.append({
                "role": "assistant",
                "content": [
                    {
                        "type": "tool_use",
                        "id": ex.call.call_id,
                        "name": ex.call.name,
                        "input": ex.call.arguments,
                    }
                    for ex in exchanges
                ],
            })
            messages.append({
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": ex.result.call_id,
                        "content": json.dumps(ex.result.output, ensure_ascii=False),
                    }
                    for ex in exchanges
                ],
            })

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": turn.system_prompt,
            "messages": messages,
        }

        if tools:
            kwargs["tools"] = [
                {
                    "name": spec.name,
                    "description": spec.description,
                    "input_schema": spec.parameters,
                }
                for spec in tools
            ]

        return kwargs

    @staticmethod
    def parse_response(response: Any) -> ModelResponse:
        """Parse an Anthropic message into a ModelResponse."""
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    call_id=block.id,
                    name=block.name,
                    arguments=parse_tool_arguments(block.input),
                ))

        return ModelResponse(
            response_id=getattr(response, "id", None),
            text="".join(text_parts),
            tool_calls=tool_calls,
        )

    async def create_turn(
        self,
        turn: AgentTurn,
        tools: Optional[list[ToolSpec]] = None,
    ) -> ModelResponse:
        """Async call to Claude for one agent step."""
        kwargs = self.build_kwargs(turn, tools)
        response = await self.async_client.messages.create(**kwargs)
        return self.parse_response(response)
