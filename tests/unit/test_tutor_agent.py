"""Tests for the bounded tool-calling loop."""

import pytest

from cs_tutor.agents.tools import ToolExecutor
from cs_tutor.agents.tutor_agent import TutorAgent
from cs_tutor.exceptions import AgentExecutionError, LLMServiceError
from cs_tutor.models.agent import ModelResponse
from tests.fakes import ScriptedLLM, tool_call


SYSTEM = "You are a tutor."


def make_agent(script, max_steps=4, db=None):
    llm = ScriptedLLM(script)
    return TutorAgent(llm, ToolExecutor(db=db), max_steps=max_steps), llm


class TestTutorAgent:

    @pytest.mark.asyncio
    async def test_plain_reply_takes_one_step(self, tool_context):
        agent, llm = make_agent([ModelResponse(response_id="r1", text="Loops repeat code.")])

        result = await agent.run(SYSTEM, "Explain loops", tool_context)

        assert result.text == "Loops repeat code."
        assert result.steps == 1
        assert result.tools_called == []
        assert not result.hit_step_limit
        assert len(llm.calls) == 1
        assert llm.calls[0]["caller"] == "agent:tutor_agent"
        assert len(llm.calls[0]["tools"]) == 5

    @pytest.mark.asyncio
    async def test_tool_results_are_sent_back(self, tool_context):
        agent, llm = make_agent([
            ModelResponse(response_id="r1", tool_calls=[tool_call("generate_quiz", call_id="q1", count=2)]),
            ModelResponse(response_id="r2", text="Here is your quiz."),
        ])

        result = await agent.run(SYSTEM, "Quiz me", tool_context)

        assert result.text == "Here is your quiz."
        assert result.steps == 2
        assert result.tools_called == ["generate_quiz"]

        second_turn = llm.calls[1]["turn"]
        assert second_turn.previous_response_id == "r1"
        assert second_turn.step_count == 1
        [exchange] = second_turn.latest_exchanges()
        assert exchange.call.call_id == "q1"
        assert exchange.result.call_id == "q1"
        assert exchange.result.output["count"] == 2

    @pytest.mark.asyncio
    async def test_all_calls_in_a_step_are_executed(self, tool_context):
        agent, llm = make_agent([
            ModelResponse(response_id="r1", tool_calls=[
                tool_call("list_allowed_topics", call_id="a"),
                tool_call("recommend_next_topic", call_id="b"),
            ]),
            ModelResponse(response_id="r2", text="Try Algorithms next."),
        ])

        result = await agent.run(SYSTEM, "What next?", tool_context)

        assert result.tools_called == ["list_allowed_topics", "recommend_next_topic"]
        exchanges = llm.calls[1]["turn"].latest_exchanges()
        assert [ex.result.call_id for ex in exchanges] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_step_limit_bounds_model_calls(self, tool_context):
        looping = [
            ModelResponse(response_id=f"r{i}", text=f"partial {i}", tool_calls=[tool_call("list_allowed_topics", call_id=f"c{i}")])
            for i in range(10)
        ]
        agent, llm = make_agent(looping, max_steps=3)

        result = await agent.run(SYSTEM, "Loop forever", tool_context)

        assert len(llm.calls) == 3
        assert result.steps == 3
        assert result.hit_step_limit
        assert result.text == "partial 2"
        # Calls requested by the final step are not executed
        assert result.tools_called == ["list_allowed_topics", "list_allowed_topics"]

    @pytest.mark.asyncio
    async def test_step_limit_may_finalize_with_empty_text(self, tool_context):
        agent, _ = make_agent(
            [ModelResponse(response_id="r1", tool_calls=[tool_call("list_allowed_topics")])],
            max_steps=1,
        )
        result = await agent.run(SYSTEM, "hi", tool_context)
        assert result.text == ""
        assert result.hit_step_limit

    @pytest.mark.asyncio
    async def test_unknown_tool_does_not_abort(self, tool_context):
        agent, llm = make_agent([
            ModelResponse(response_id="r1", tool_calls=[tool_call("launch_rocket", call_id="x")]),
            ModelResponse(response_id="r2", text="Sorry, I can't do that."),
        ])

        result = await agent.run(SYSTEM, "Launch", tool_context)

        assert result.text == "Sorry, I can't do that."
        [exchange] = llm.calls[1]["turn"].latest_exchanges()
        assert exchange.result.output["error"] == "Unknown tool 'launch_rocket'"

    @pytest.mark.asyncio
    async def test_model_failure_abandons_loop(self, tool_context):
        agent, _ = make_agent([
            ModelResponse(response_id="r1", tool_calls=[tool_call("list_allowed_topics")]),
            LLMServiceError("upstream 500", "scripted-model", 1),
        ])

        with pytest.raises(AgentExecutionError) as exc_info:
            await agent.run(SYSTEM, "hi", tool_context)

        assert exc_info.value.agent_name == "tutor_agent"
        assert exc_info.value.details["step"] == 1
        assert "upstream 500" in exc_info.value.message

    def test_max_steps_is_at_least_one(self):
        agent, _ = make_agent([], max_steps=0)
        assert agent.max_steps == 1
