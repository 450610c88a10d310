"""
LLM Service for the CS Tutor API

This module provides a clean interface to the model provider with:
- OpenAI Responses API with function tools and `previous_response_id`
  continuation
- Anthropic Messages API through AnthropicAdapter
- Automatic retry logic with exponential backoff
- Error handling for rate limits and timeouts
- Integration with application logging

Design Principles:
- Single Responsibility: Only handles LLM API calls
- Dependency Injection: Receives config via constructor
- Testability: Easy to replace with a scripted stub

Usage:
    from cs_tutor.services.llm_service import LLMService

    llm = LLMService()
    response = await llm.create_turn(turn, tools=tool_specs(), caller="tutor_agent")
"""

import json
import time
import asyncio
from typing import Any, Dict, Optional

import anthropic
from openai import AsyncOpenAI, OpenAIError, RateLimitError, APITimeoutError

from cs_tutor.config import settings
from cs_tutor.exceptions import ConfigurationError, LLMServiceError
from cs_tutor.logging_config import get_logger, log_llm_event
from cs_tutor.models.agent import AgentTurn, ModelResponse, ToolCall, ToolSpec
from cs_tutor.services.anthropic_adapter import AnthropicAdapter
from cs_tutor.utils.schema_utils import parse_tool_arguments


logger = get_logger("llm")


class LLMService:
    """
    Service for making LLM API calls with retry logic and error handling.

    Clients are created on first use, so a service built without an API key
    only fails when a model call is actually attempted.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        initial_retry_delay: float = 1.0,
        timeout: Optional[int] = None,
    ):
        """
        Initialize LLM service.

        Args:
            api_key: API key (defaults to settings based on provider)
            provider: "openai" or "anthropic" (defaults to settings)
            model: Model identifier (defaults to settings based on provider)
            max_output_tokens: Output token cap per call (defaults to settings)
            max_retries: Maximum retry attempts (defaults to settings)
            initial_retry_delay: Initial delay between retries (seconds)
            timeout: Request timeout in seconds (defaults to settings)
        """
        self.provider = provider or settings.app_llm_provider
        self.max_output_tokens = max_output_tokens or settings.llm_max_output_tokens
        self.max_retries = max_retries or settings.llm_max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout = timeout or settings.llm_timeout_seconds

        if self.provider == "anthropic":
            self.api_key = api_key or settings.anthropic_api_key
            self.model_name = model or settings.anthropic_model
        else:
            self.api_key = api_key or settings.openai_api_key
            self.model_name = model or settings.llm_model

        self._async_client: Optional[AsyncOpenAI] = None
        self._anthropic: Optional[AnthropicAdapter] = None

    @property
    def key_name(self) -> str:
        return "ANTHROPIC_API_KEY" if self.provider == "anthropic" else "OPENAI_API_KEY"

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If the active provider has no API key
        """
        if not self.api_key:
            raise ConfigurationError(self.key_name, "is not configured")

    @property
    def async_client(self) -> AsyncOpenAI:
        if self._async_client is None:
            self.ensure_configured()
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._async_client

    @property
    def anthropic_adapter(self) -> AnthropicAdapter:
        if self._anthropic is None:
            self.ensure_configured()
            self._anthropic = AnthropicAdapter(
                api_key=self.api_key,
                model=self.model_name,
                max_tokens=self.max_output_tokens,
                timeout=self.timeout,
            )
        return self._anthropic

    async def create_turn(
        self,
        turn: AgentTurn,
        tools: Optional[list[ToolSpec]] = None,
        caller: str = "unknown",
        request_id: str = "unknown",
    ) -> ModelResponse:
        """
        Run one model step for an agent turn.

        The first step sends the system prompt and user message. Later
        steps send only the latest tool outputs: OpenAI continues the
        conversation from `previous_response_id`, Anthropic gets the
        rebuilt tool history.

        Args:
            turn: Current conversation state
            tools: Tool definitions the model may call (None for a plain reply)
            caller: Caller component name (for logging)
            request_id: Current request ID (for logging)

        Returns:
            ModelResponse with text and any requested tool calls

        Raises:
            ConfigurationError: If the provider API key is missing
            LLMServiceError: If the API call fails after retries
        """
        self.ensure_configured()

        params = {
            "provider": self.provider,
            "step": turn.step_count,
            "tools": len(tools or []),
            "continuation": turn.previous_response_id is not None,
        }
        if settings.log_llm_prompts:
            params["system_prompt"] = turn.system_prompt
            params["user_message"] = turn.user_message

        log_llm_event(
            logger=logger,
            model=self.model_name,
            status="starting",
            caller=caller,
            request_id=request_id,
            params=params,
        )

        start_time = time.time()

        if self.provider == "anthropic":
            async def _api_call():
                return await self.anthropic_adapter.create_turn(turn, tools)
        else:
            async def _api_call():
                kwargs = self.build_openai_kwargs(turn, tools)
                result = await self.async_client.responses.create(**kwargs)
                return self.parse_openai_response(result)

        return await self._execute_with_retry_async(
            _api_call,
            self.model_name,
            caller,
            request_id,
            start_time,
        )

    def build_openai_kwargs(
        self,
        turn: AgentTurn,
        tools: Optional[list[ToolSpec]] = None,
    ) -> Dict[str, Any]:
        """Build kwargs for `responses.create()`."""
        kwargs: Dict[str, Any] = {
            "model": self.model_name,
            "max_output_tokens": self.max_output_tokens,
        }

        latest = turn.latest_exchanges()
        if turn.previous_response_id and latest:
            kwargs["previous_response_id"] = turn.previous_response_id
            kwargs["input"] = [
                {
                    "type": "function_call_output",
                    "call_id": ex.result.call_id,
                    "output": json.dumps(ex.result.output, ensure_ascii=False),
                }
                for ex in latest
            ]
        else:
            kwargs["input"] = [
                {"role": "system", "content": turn.system_prompt},
                {"role": "user", "content": turn.user_message},
            ]

        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "name": spec.name,
                    "description": spec.description,
                    "parameters": spec.parameters,
                    "strict": True,
                }
                for spec in tools
            ]

        return kwargs

    @staticmethod
    def parse_openai_response(result: Any) -> ModelResponse:
        """Extract text and function calls from a Responses API result."""
        tool_calls = [
            ToolCall(
                call_id=item.call_id,
                name=item.name,
                arguments=parse_tool_arguments(item.arguments),
            )
            for item in (getattr(result, "output", None) or [])
            if getattr(item, "type", None) == "function_call"
        ]
        return ModelResponse(
            response_id=getattr(result, "id", None),
            text=getattr(result, "output_text", None) or "",
            tool_calls=tool_calls,
        )

    def _is_rate_limit_error(self, e: Exception) -> bool:
        """Check if exception is a rate limit error from any provider."""
        return isinstance(e, (RateLimitError, anthropic.RateLimitError))

    def _is_timeout_error(self, e: Exception) -> bool:
        """Check if exception is a timeout error from any provider."""
        return isinstance(e, (APITimeoutError, anthropic.APITimeoutError))

    def _is_api_error(self, e: Exception) -> bool:
        """Check if exception is a non-retryable API error from any provider."""
        return isinstance(e, (OpenAIError, anthropic.APIError))

    async def _execute_with_retry_async(
        self,
        api_call_fn,
        model_name: str,
        caller: str,
        request_id: str,
        start_time: float,
    ) -> Any:
        """Execute async API call with retry logic."""
        last_error = None
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                result = await api_call_fn()
                duration_ms = int((time.time() - start_time) * 1000)
                log_llm_event(
                    logger=logger,
                    model=model_name,
                    status="complete",
                    caller=caller,
                    request_id=request_id,
                    output={
                        "text_length": len(result.text),
                        "tool_calls": [call.name for call in result.tool_calls],
                    },
                    duration_ms=duration_ms,
                    attempts=attempt + 1,
                )
                return result

            except Exception as e:
                if self._is_rate_limit_error(e):
                    last_error = e
                    logger.warning(
                        f"{model_name} rate limit hit (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                elif self._is_timeout_error(e):
                    last_error = e
                    logger.warning(
                        f"{model_name} timeout (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                elif self._is_api_error(e):
                    duration_ms = int((time.time() - start_time) * 1000)
                    log_llm_event(
                        logger=logger,
                        model=model_name,
                        status="failed",
                        caller=caller,
                        request_id=request_id,
                        error=str(e),
                        duration_ms=duration_ms,
                        attempts=attempt + 1,
                    )
                    raise LLMServiceError(str(e), model_name, attempt + 1) from e
                else:
                    raise

        duration_ms = int((time.time() - start_time) * 1000)
        log_llm_event(
            logger=logger,
            model=model_name,
            status="failed",
            caller=caller,
            request_id=request_id,
            error=str(last_error),
            duration_ms=duration_ms,
            attempts=self.max_retries,
        )
        raise LLMServiceError(
            f"Failed after {self.max_retries} attempts: {last_error}",
            model_name,
            self.max_retries,
        )
