"""
Tutor Agent Loop

Runs a bounded tool-calling conversation with the model as an explicit
state machine:

    DISPATCHING -> AWAITING_TOOL_RESULTS -> DISPATCHING -> ... -> FINALIZING -> DONE
                                         \-> FAILED (any exception)

Each DISPATCHING step is one model call. Every tool call the model asks for
in that step is executed and all results go back in the next call. The
loop makes at most `max_steps` model calls; when the budget runs out it
finalizes with whatever text the last response carried, which may be empty.

Tool calls run on the thread pool because store-backed tools use a
synchronous session.

Failure is all-or-nothing: any exception abandons the loop and surfaces as
AgentExecutionError so the caller can fall back to a direct reply.
"""

import time
from typing import Optional

from cs_tutor.agents.tools import ToolExecutor
from cs_tutor.exceptions import AgentExecutionError
from cs_tutor.logging_config import get_logger
from cs_tutor.models.agent import AgentResult, AgentState, AgentTurn, ToolCall, ToolContext
from cs_tutor.services.llm_service import LLMService
from cs_tutor.utils.async_utils import run_blocking


logger = get_logger("tutor_agent")


class TutorAgent:
    """
    Bounded tool-calling agent.

    Attributes:
        llm: Model service
        executor: Tool registry
        max_steps: Maximum model calls per run
    """

    agent_name = "tutor_agent"

    def __init__(self, llm: LLMService, executor: ToolExecutor, max_steps: int = 4):
        self.llm = llm
        self.executor = executor
        self.max_steps = max(1, max_steps)

    async def run(
        self,
        system_prompt: str,
        user_message: str,
        context: ToolContext,
    ) -> AgentResult:
        """
        Run the loop to completion.

        Args:
            system_prompt: Tutor instructions for this level/topic/mode
            user_message: The student's message
            context: Caller state passed to tools

        Returns:
            AgentResult with the final text and tool usage

        Raises:
            AgentExecutionError: If any step raises
        """
        turn = AgentTurn(system_prompt=system_prompt, user_message=user_message)
        specs = self.executor.specs()
        state = AgentState.DISPATCHING
        pending: list[ToolCall] = []
        text = ""
        tools_called: list[str] = []
        hit_step_limit = False
        start_time = time.time()

        try:
            while state not in (AgentState.DONE, AgentState.FAILED):
                if state is AgentState.DISPATCHING:
                    response = await self.llm.create_turn(
                        turn,
                        tools=specs,
                        caller=f"agent:{self.agent_name}",
                        request_id=context.request_id,
                    )
                    turn.step_count += 1
                    turn.previous_response_id = response.response_id
                    text = response.text
                    pending = response.tool_calls

                    if not pending:
                        state = AgentState.FINALIZING
                    elif turn.step_count >= self.max_steps:
                        hit_step_limit = True
                        state = AgentState.FINALIZING
                    else:
                        state = AgentState.AWAITING_TOOL_RESULTS

                elif state is AgentState.AWAITING_TOOL_RESULTS:
                    for call in pending:
                        result = await run_blocking(
                            self.executor.execute, call, context, step=turn.step_count
                        )
                        turn.add_exchange(call, result)
                        tools_called.append(call.name)
                    pending = []
                    state = AgentState.DISPATCHING

                elif state is AgentState.FINALIZING:
                    state = AgentState.DONE

        except Exception as e:
            state = AgentState.FAILED
            logger.warning(
                f"Agent loop failed at step {turn.step_count}: {e}",
                extra={
                    "component": f"agent:{self.agent_name}",
                    "event": "agent_failed",
                    "request_id": context.request_id,
                    "status": state.value,
                    "error": str(e),
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
            )
            raise AgentExecutionError(
                self.agent_name,
                f"Loop abandoned at step {turn.step_count}: {e}",
                details={"step": turn.step_count, "tools_called": tools_called},
            ) from e

        if hit_step_limit:
            logger.warning(
                f"Agent step limit of {self.max_steps} reached",
                extra={
                    "component": f"agent:{self.agent_name}",
                    "event": "step_limit_reached",
                    "request_id": context.request_id,
                    "data": {"tools_called": tools_called},
                },
            )

        logger.info(
            f"Agent loop complete in {turn.step_count} steps",
            extra={
                "component": f"agent:{self.agent_name}",
                "event": "agent_complete",
                "request_id": context.request_id,
                "status": state.value,
                "duration_ms": int((time.time() - start_time) * 1000),
                "data": {"steps": turn.step_count, "tools_called": tools_called},
            },
        )

        return AgentResult(
            text=text,
            steps=turn.step_count,
            tools_called=tools_called,
            hit_step_limit=hit_step_limit,
        )
