"""Tests for level containment."""

import pytest

from cs_tutor.agents.level_guard import LevelGuard, find_leaks
from cs_tutor.exceptions import LLMServiceError
from cs_tutor.models.agent import ModelResponse
from cs_tutor.models.curriculum import Level
from tests.fakes import ScriptedLLM


class TestFindLeaks:

    def test_case_insensitive(self):
        assert find_leaks("We can use RECURSION here", Level.KS3) == ["recursion"]

    def test_own_level_vocabulary_is_not_a_leak(self):
        assert find_leaks("Draw a truth table for AND", Level.GCSE) == []

    def test_lower_level_vocabulary_leaks_upwards(self):
        assert "sprite" in find_leaks("Move the sprite ten steps", Level.A_LEVEL)

    def test_empty_reply(self):
        assert find_leaks("", Level.KS3) == []


class TestLevelGuard:

    @pytest.mark.asyncio
    async def test_clean_reply_makes_no_call(self):
        llm = ScriptedLLM()
        reply = await LevelGuard(llm).enforce("A loop repeats steps.", Level.KS3, "Programming Basics")
        assert reply == "A loop repeats steps."
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_leaking_reply_is_rewritten_once(self):
        llm = ScriptedLLM([ModelResponse(text="A loop repeats steps until it is told to stop.")])
        reply = await LevelGuard(llm).enforce(
            "Use recursion, which is like a loop.", Level.KS3, "Programming Basics", request_id="r1"
        )

        assert reply == "A loop repeats steps until it is told to stop."
        [call] = llm.calls
        assert call["caller"] == "level_guard"
        assert call["tools"] is None
        assert "recursion" in call["turn"].system_prompt
        assert call["turn"].user_message == "Use recursion, which is like a loop."

    @pytest.mark.asyncio
    async def test_rewrite_is_not_checked_again(self):
        llm = ScriptedLLM([ModelResponse(text="Still mentions a linked list.")])
        reply = await LevelGuard(llm).enforce("A linked list...", Level.GCSE, "Algorithms")
        assert reply == "Still mentions a linked list."
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_rewrite_keeps_original(self):
        llm = ScriptedLLM([LLMServiceError("down")])
        reply = await LevelGuard(llm).enforce("Big-O of recursion", Level.KS3, "Algorithms")
        assert reply == "Big-O of recursion"

    @pytest.mark.asyncio
    async def test_empty_rewrite_keeps_original(self):
        llm = ScriptedLLM([ModelResponse(text="")])
        reply = await LevelGuard(llm).enforce("Try recursion", Level.KS3, "Algorithms")
        assert reply == "Try recursion"
