"""
Tool Executor for the Tutor Agent

A fixed registry of five tools the model may call during the agent loop.
Arguments are validated against pydantic models whose strict JSON schemas
are also what the model is shown.

Contract: `ToolExecutor.execute()` never raises. Unknown tool names,
invalid arguments and handler failures all come back as an `{"error": ...}`
payload that is fed to the model like any other result.

Tools:
    - list_allowed_topics: the level's topics and the selected one
    - generate_quiz: templated question/answer-guide pairs
    - evaluate_code: heuristic code scoring
    - progress_snapshot: recent learning activity (reads the store)
    - recommend_next_topic: first level topic missing from recent history
"""

import logging
from collections import Counter
from typing import Any, Callable, Optional, Type

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session as DBSession

from cs_tutor.agents.code_evaluator import evaluate_code
from cs_tutor.logging_config import get_logger, log_tool_event
from cs_tutor.models.agent import ToolCall, ToolContext, ToolResult, ToolSpec
from cs_tutor.models.curriculum import allowed_topics, normalize_topic
from cs_tutor.repositories.learning_event_repository import LearningEventRepository
from cs_tutor.utils.schema_utils import get_strict_schema


logger = get_logger("tools")

QUIZ_MIN = 1
QUIZ_MAX = 10
QUIZ_DEFAULT = 5

QUIZ_WEAK_PERCENT = 65.0
CODE_WEAK_SCORE = 6.0


# ===========================================
# Argument Models
# ===========================================


class NoArgs(BaseModel):
    """Tools that take no arguments."""


class GenerateQuizArgs(BaseModel):
    topic: Optional[str] = Field(
        default=None,
        description="Topic to quiz on; must be one of the level's allowed topics",
    )
    count: Optional[int] = Field(
        default=None,
        description="Number of questions, 1-10 (default 5)",
    )


class EvaluateCodeArgs(BaseModel):
    code: str = Field(description="The student's code, verbatim")
    language: Optional[str] = Field(default=None, description="Programming language, if known")


# ===========================================
# Quiz Templates
# ===========================================


QUIZ_TEMPLATES: list[tuple[str, str]] = [
    (
        "Define one key term from {topic} in your own words.",
        "A correct {level} definition with the term used accurately.",
    ),
    (
        "Give an example of where {topic} is used in a real computer system.",
        "A concrete, realistic example linked clearly to {topic}.",
    ),
    (
        "Describe, step by step, how you would solve a simple {topic} problem.",
        "Ordered steps that would work, described at {level} depth.",
    ),
    (
        "Explain one advantage and one disadvantage of an approach from {topic}.",
        "One valid advantage and one valid disadvantage, each explained.",
    ),
    (
        "Identify a common mistake students make with {topic} and how to avoid it.",
        "A genuine misconception plus a practical way to avoid it.",
    ),
]


def build_quiz(level: str, topic: str, count: int) -> list[dict[str, Any]]:
    """Templated questions, cycling through QUIZ_TEMPLATES."""
    questions = []
    for index in range(count):
        question, guide = QUIZ_TEMPLATES[index % len(QUIZ_TEMPLATES)]
        number = index + 1
        questions.append({
            "number": number,
            "question": f"Q{number} ({level}, {topic}): " + question.format(topic=topic, level=level),
            "answer_guide": guide.format(topic=topic, level=level),
        })
    return questions


def clamp_count(count: Optional[int]) -> int:
    if count is None:
        return QUIZ_DEFAULT
    return max(QUIZ_MIN, min(QUIZ_MAX, count))


# ===========================================
# Tool Executor
# ===========================================


class ToolExecutor:
    """
    Dispatches tool calls to their handlers.

    Attributes:
        db: Session for store-backed tools, or None when no store is configured
        progress_window_days: Lookback for progress and recommendation tools
    """

    def __init__(self, db: Optional[DBSession] = None, progress_window_days: int = 14):
        self.db = db
        self.progress_window_days = progress_window_days
        self._registry: dict[str, tuple[str, Type[BaseModel], Callable[[Any, ToolContext], dict]]] = {
            "list_allowed_topics": (
                "List the topics allowed for the student's level and the currently selected topic.",
                NoArgs,
                self._list_allowed_topics,
            ),
            "generate_quiz": (
                "Generate numbered quiz questions with answer guides for a topic at the student's level.",
                GenerateQuizArgs,
                self._generate_quiz,
            ),
            "evaluate_code": (
                "Score a code submission from 1 to 10 with improvements, tips and topic tags.",
                EvaluateCodeArgs,
                self._evaluate_code,
            ),
            "progress_snapshot": (
                "Summarise the student's recent learning activity and weak areas.",
                NoArgs,
                self._progress_snapshot,
            ),
            "recommend_next_topic": (
                "Recommend the next topic the student has not studied recently.",
                NoArgs,
                self._recommend_next_topic,
            ),
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._registry)

    def specs(self) -> list[ToolSpec]:
        """Provider-neutral definitions for every registered tool."""
        return [
            ToolSpec(name=name, description=description, parameters=get_strict_schema(args_model))
            for name, (description, args_model, _) in self._registry.items()
        ]

    def execute(self, call: ToolCall, context: ToolContext, step: Optional[int] = None) -> ToolResult:
        """
        Run one tool call.

        Args:
            call: Tool call requested by the model
            context: Caller state (user, level, topic, mode)
            step: Agent step that requested the call (for logging)

        Returns:
            ToolResult correlated by call_id; `output` holds `error` on failure
        """
        entry = self._registry.get(call.name)
        if entry is None:
            log_tool_event(
                logger, call.name, "unknown_tool", context.request_id,
                step=step, level=logging.WARNING,
            )
            return ToolResult(
                call_id=call.call_id,
                output={"error": f"Unknown tool '{call.name}'", "available": self.tool_names},
            )

        _, args_model, handler = entry
        try:
            args = args_model.model_validate(call.arguments or {})
        except ValidationError as e:
            log_tool_event(
                logger, call.name, "invalid_arguments", context.request_id,
                step=step, data={"errors": e.error_count()}, level=logging.WARNING,
            )
            return ToolResult(
                call_id=call.call_id,
                output={"error": f"Invalid arguments for '{call.name}': {e.errors()[0]['msg']}"},
            )

        try:
            output = handler(args, context)
        except Exception as e:
            if self.db is not None:
                self.db.rollback()
            log_tool_event(
                logger, call.name, "tool_failed", context.request_id,
                step=step, data={"error": str(e)}, level=logging.ERROR,
            )
            return ToolResult(call_id=call.call_id, output={"error": f"Tool '{call.name}' failed: {e}"})

        log_tool_event(logger, call.name, "tool_executed", context.request_id, step=step)
        return ToolResult(call_id=call.call_id, output=output)

    # ---------------------------------------
    # Handlers
    # ---------------------------------------

    def _list_allowed_topics(self, args: NoArgs, context: ToolContext) -> dict:
        return {
            "level": context.level.value,
            "topics": allowed_topics(context.level),
            "selected_topic": context.topic,
        }

    def _generate_quiz(self, args: GenerateQuizArgs, context: ToolContext) -> dict:
        topic = context.topic
        if args.topic and args.topic.strip().lower() in {t.lower() for t in allowed_topics(context.level)}:
            topic = normalize_topic(context.level, args.topic)
        count = clamp_count(args.count)
        return {
            "level": context.level.value,
            "topic": topic,
            "count": count,
            "questions": build_quiz(context.level.value, topic, count),
        }

    def _evaluate_code(self, args: EvaluateCodeArgs, context: ToolContext) -> dict:
        result = evaluate_code(args.code).model_dump()
        if args.language:
            result["language"] = args.language
        return result

    def _progress_snapshot(self, args: NoArgs, context: ToolContext) -> dict:
        return progress_snapshot(self._recent_events(context.user_id), self.progress_window_days)

    def _recommend_next_topic(self, args: NoArgs, context: ToolContext) -> dict:
        recent_topics = {
            event.topic.lower() for event in self._recent_events(context.user_id) if event.topic
        }
        topics = allowed_topics(context.level)
        for topic in topics:
            if topic.lower() not in recent_topics:
                return {
                    "level": context.level.value,
                    "topic": topic,
                    "reason": "Not studied in the last %d days" % self.progress_window_days,
                }
        return {
            "level": context.level.value,
            "topic": topics[0],
            "reason": "All topics covered recently; start the cycle again",
        }

    def _recent_events(self, user_id: str) -> list:
        if self.db is None:
            return []
        return LearningEventRepository(self.db).recent(user_id, days=self.progress_window_days)


def progress_snapshot(events: list, window_days: int) -> dict:
    """
    Aggregate learning events into a progress summary.

    Weak areas are topics whose average quiz percentage is under 65% or
    whose average code score is under 6. When no topic qualifies, the
    least frequent topic is reported instead.
    """
    frequency: Counter = Counter(event.topic for event in events if event.topic)
    quiz_by_topic: dict[str, list[float]] = {}
    code_by_topic: dict[str, list[float]] = {}

    for event in events:
        if event.event_type == "quiz" and event.score is not None and event.max_score:
            quiz_by_topic.setdefault(event.topic or "", []).append(
                event.score / event.max_score * 100
            )
        elif event.event_type == "code_eval" and event.score is not None:
            code_by_topic.setdefault(event.topic or "", []).append(event.score)

    quiz_scores = [s for scores in quiz_by_topic.values() for s in scores]
    code_scores = [s for scores in code_by_topic.values() for s in scores]

    weak_areas: list[str] = []
    for topic, scores in quiz_by_topic.items():
        if topic and sum(scores) / len(scores) < QUIZ_WEAK_PERCENT:
            weak_areas.append(topic)
    for topic, scores in code_by_topic.items():
        if topic and topic not in weak_areas and sum(scores) / len(scores) < CODE_WEAK_SCORE:
            weak_areas.append(topic)
    if not weak_areas and frequency:
        least = min(frequency.values())
        weak_areas = [topic for topic, count in frequency.items() if count == least][:1]

    return {
        "window_days": window_days,
        "total_events": len(events),
        "topic_frequency": dict(frequency),
        "average_quiz_percent": round(sum(quiz_scores) / len(quiz_scores), 1) if quiz_scores else None,
        "average_code_score": round(sum(code_scores) / len(code_scores), 1) if code_scores else None,
        "weak_areas": weak_areas,
    }


_default_executor = ToolExecutor()


def tool_specs() -> list[ToolSpec]:
    """Definitions of the five registered tools."""
    return _default_executor.specs()
