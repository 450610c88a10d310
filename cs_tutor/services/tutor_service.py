"""
Tutor Service

Generates a tutor reply for one request:

    prompt -> agent loop -> (on failure) direct reply -> level guard

The single-shot endpoint wraps generation in a hard deadline; the
streaming endpoint does not.
"""

import asyncio
import time
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from cs_tutor.agents.direct_responder import DirectResponder
from cs_tutor.agents.level_guard import LevelGuard
from cs_tutor.agents.tools import ToolExecutor
from cs_tutor.agents.tutor_agent import TutorAgent
from cs_tutor.config import settings
from cs_tutor.exceptions import AgentExecutionError, GenerationTimeoutError, TutorError
from cs_tutor.logging_config import get_logger
from cs_tutor.models.agent import ToolContext
from cs_tutor.models.curriculum import Mode, PAID_MODES
from cs_tutor.models.messages import TutorRequest
from cs_tutor.prompts.prompt_builder import build_system_prompt
from cs_tutor.services.delivery import finalize_text
from cs_tutor.services.llm_service import LLMService


logger = get_logger("tutor_service")


DEMO_FALLBACKS: dict[Mode, str] = {
    Mode.EXPLAIN: (
        "Here's a quick way to think about {topic} at {level}: break the idea into "
        "small steps, try each step with a simple example, and check what happens "
        "at every stage. Sign in for a full explanation tailored to your question."
    ),
    Mode.HINT: (
        "Hint 1: Re-read the question and underline what it asks for.\n"
        "Hint 2: Think about which part of {topic} this uses.\n"
        "Hint 3: Try a tiny example by hand before writing the full answer.\n"
        "Sign in to get hints tailored to your work at {level}."
    ),
}


class TutorService:
    """
    Orchestrates reply generation.

    Attributes:
        agent: Tool-calling loop
        direct: Fallback single-call responder
        guard: Level containment check
    """

    def __init__(
        self,
        llm: LLMService,
        db: Optional[DBSession] = None,
        max_steps: Optional[int] = None,
        progress_window_days: Optional[int] = None,
    ):
        self.llm = llm
        executor = ToolExecutor(
            db=db,
            progress_window_days=progress_window_days or settings.progress_window_days,
        )
        self.agent = TutorAgent(llm, executor, max_steps=max_steps or settings.agent_max_steps)
        self.direct = DirectResponder(llm)
        self.guard = LevelGuard(llm)

    async def generate_reply(
        self,
        request: TutorRequest,
        user_id: str,
        prefer_concise: bool = False,
        request_id: str = "unknown",
    ) -> str:
        """
        Generate the final reply text.

        Args:
            request: Normalized tutor request
            user_id: Authenticated user (for store-backed tools)
            prefer_concise: Ask for a brief reply (streaming)
            request_id: Current request ID (for logging)

        Returns:
            Reply text, never empty

        Raises:
            TutorRequestError: If the message is missing
            TutorError: If both the agent loop and the direct fallback fail
        """
        message = request.require_message()
        system_prompt = build_system_prompt(
            request.level,
            request.topic,
            request.mode,
            prefer_concise=prefer_concise,
        )
        context = ToolContext(
            user_id=user_id,
            level=request.level,
            topic=request.topic,
            mode=request.mode,
            request_id=request_id,
        )

        try:
            result = await self.agent.run(system_prompt, message, context)
            text = result.text
        except AgentExecutionError as e:
            logger.warning(
                "Falling back to direct reply",
                extra={
                    "component": "tutor_service",
                    "event": "direct_fallback",
                    "request_id": request_id,
                    "error": str(e),
                },
            )
            text = await self.direct.respond(system_prompt, message, request_id=request_id)

        if text:
            text = await self.guard.enforce(text, request.level, request.topic, request_id=request_id)

        return finalize_text(text)

    async def generate_with_deadline(
        self,
        request: TutorRequest,
        user_id: str,
        timeout_seconds: float,
        request_id: str = "unknown",
    ) -> str:
        """
        `generate_reply` bounded by a wall-clock deadline.

        Raises:
            GenerationTimeoutError: If the deadline passes first
        """
        start_time = time.time()
        try:
            return await asyncio.wait_for(
                self.generate_reply(request, user_id, request_id=request_id),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"Generation timed out after {timeout_seconds:g}s",
                extra={
                    "component": "tutor_service",
                    "event": "generation_timeout",
                    "request_id": request_id,
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
            )
            raise GenerationTimeoutError(timeout_seconds) from e

    async def generate_demo_reply(
        self,
        request: TutorRequest,
        timeout_seconds: Optional[float] = None,
        request_id: str = "unknown",
    ) -> tuple[str, bool]:
        """
        Unauthenticated preview: one direct call, Explain/Hint only.

        Model failures and timeouts fall back to canned text; a Quiz or
        Mark request is answered in Explain mode.

        Returns:
            (reply, fallback) where fallback is True when canned text was used
        """
        message = request.require_message()
        mode = Mode.EXPLAIN if request.mode in PAID_MODES else request.mode
        system_prompt = build_system_prompt(request.level, request.topic, mode, prefer_concise=True)

        try:
            text = await asyncio.wait_for(
                self.direct.respond(system_prompt, message, request_id=request_id),
                timeout=timeout_seconds,
            )
            if text:
                text = await self.guard.enforce(text, request.level, request.topic, request_id=request_id)
        except (TutorError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Demo generation failed, using fallback: {e}",
                extra={
                    "component": "tutor_service",
                    "event": "demo_fallback",
                    "request_id": request_id,
                    "error": str(e),
                },
            )
            return demo_fallback(request, mode), True

        if not text or not text.strip():
            return demo_fallback(request, mode), True
        return text, False


def demo_fallback(request: TutorRequest, mode: Mode) -> str:
    return DEMO_FALLBACKS[mode].format(topic=request.topic, level=request.level.value)
