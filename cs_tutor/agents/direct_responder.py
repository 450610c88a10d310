"""Single-call fallback used when the agent loop fails."""

from cs_tutor.models.agent import AgentTurn
from cs_tutor.services.llm_service import LLMService


class DirectResponder:
    """One model call, no tools. Errors propagate to the caller."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def respond(self, system_prompt: str, user_message: str, request_id: str = "unknown") -> str:
        turn = AgentTurn(system_prompt=system_prompt, user_message=user_message)
        response = await self.llm.create_turn(
            turn,
            tools=None,
            caller="direct_responder",
            request_id=request_id,
        )
        return response.text
