"""
Tutor agents.

Modules:
    - tools: Tool registry and executor
    - code_evaluator: Heuristic code scoring
    - tutor_agent: Bounded tool-calling loop
    - direct_responder: Single-call fallback
    - level_guard: Out-of-level vocabulary check and rewrite
"""

from cs_tutor.agents.code_evaluator import CodeEvaluation, evaluate_code
from cs_tutor.agents.direct_responder import DirectResponder
from cs_tutor.agents.level_guard import LevelGuard, find_leaks
from cs_tutor.agents.tools import ToolExecutor, tool_specs
from cs_tutor.agents.tutor_agent import TutorAgent

__all__ = [
    "CodeEvaluation",
    "evaluate_code",
    "DirectResponder",
    "LevelGuard",
    "find_leaks",
    "ToolExecutor",
    "tool_specs",
    "TutorAgent",
]
