"""
Level Guard

Keeps replies inside the requested curriculum level. A reply that contains
vocabulary belonging to another level (case-insensitive substring match)
is sent back to the model once with rewrite instructions.

The rewritten text is not checked again.
"""

from cs_tutor.exceptions import LLMError
from cs_tutor.logging_config import get_logger
from cs_tutor.models.agent import AgentTurn
from cs_tutor.models.curriculum import Level, leak_vocabulary
from cs_tutor.prompts.prompt_builder import build_rewrite_prompt
from cs_tutor.services.llm_service import LLMService


logger = get_logger("level_guard")


def find_leaks(reply: str, level: Level) -> list[str]:
    """Other-level vocabulary present in `reply`, in vocabulary order."""
    lowered = (reply or "").lower()
    return [term for term in leak_vocabulary(level) if term in lowered]


class LevelGuard:
    """Single-pass level containment check."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def enforce(
        self,
        reply: str,
        level: Level,
        topic: str,
        request_id: str = "unknown",
    ) -> str:
        """
        Return `reply` unchanged, or a rewritten version if it leaks.

        A failed rewrite call keeps the original reply.
        """
        leaks = find_leaks(reply, level)
        if not leaks:
            return reply

        logger.info(
            f"Level leak detected for {level.value}: {', '.join(leaks)}",
            extra={
                "component": "level_guard",
                "event": "leak_detected",
                "request_id": request_id,
                "data": {"level": level.value, "topic": topic, "terms": leaks},
            },
        )

        turn = AgentTurn(
            system_prompt=build_rewrite_prompt(level, topic, leaks),
            user_message=reply,
        )
        try:
            response = await self.llm.create_turn(
                turn,
                tools=None,
                caller="level_guard",
                request_id=request_id,
            )
        except LLMError as e:
            logger.warning(
                f"Level rewrite failed, keeping original reply: {e}",
                extra={
                    "component": "level_guard",
                    "event": "rewrite_failed",
                    "request_id": request_id,
                    "error": str(e),
                },
            )
            return reply

        logger.info(
            "Reply rewritten for level containment",
            extra={
                "component": "level_guard",
                "event": "reply_rewritten",
                "request_id": request_id,
                "data": {"rewrites": 1},
            },
        )
        return response.text or reply
