"""
Heuristic Code Evaluator

Static, language-agnostic scoring of a student's code submission. Nothing
is executed: the score comes from line count and the presence of comments,
selection, iteration, subroutines and error handling.

Scoring:
    base 3
    +1 for at least 3 non-empty lines, +1 more for at least 8
    +1 each for comments, branching, loops, functions, error handling
    clamped to 1-10; empty code scores 1
"""

import re
from pydantic import BaseModel, Field


BASE_SCORE = 3
MIN_SCORE = 1
MAX_SCORE = 10

_COMMENT = re.compile(r"^\s*(#|//|/\*|\*|\"\"\"|''')|\s(#|//)\s")
_BRANCHING = re.compile(r"\b(if|elif|else|switch|case|match)\b")
_LOOPS = re.compile(r"\b(for|while)\b|\.forEach\(")
_FUNCTIONS = re.compile(r"\bdef\s+\w+|\bfunction\b|=>|\bclass\s+\w+|\bprocedure\b")
_ERROR_HANDLING = re.compile(r"\b(try|except|catch|finally|raise|throw)\b")

GENERAL_TIPS = [
    "Use meaningful variable names that describe what they store.",
    "Test your code with normal, boundary and erroneous inputs.",
    "Keep each function focused on one job.",
]


class CodeEvaluation(BaseModel):
    """Result of scoring one submission."""

    score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    tier: str
    summary: str
    line_count: int
    improvements: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)


def score_tier(score: int) -> str:
    if score >= 8:
        return "strong"
    if score >= 5:
        return "developing"
    return "emerging"


def evaluate_code(code: str) -> CodeEvaluation:
    """
    Score a code submission.

    Args:
        code: Source text in any mainstream language

    Returns:
        CodeEvaluation with score, tier, improvements, tips and topic tags
    """
    lines = [line for line in (code or "").splitlines() if line.strip()]
    if not lines:
        return CodeEvaluation(
            score=MIN_SCORE,
            tier=score_tier(MIN_SCORE),
            summary="No code was submitted.",
            line_count=0,
            improvements=["Submit the code you want feedback on."],
            tips=list(GENERAL_TIPS),
            topics=[],
        )

    text = "\n".join(lines)
    has_comments = any(_COMMENT.search(line) for line in lines)
    has_branching = bool(_BRANCHING.search(text))
    has_loops = bool(_LOOPS.search(text))
    has_functions = bool(_FUNCTIONS.search(text))
    has_error_handling = bool(_ERROR_HANDLING.search(text))

    score = BASE_SCORE
    if len(lines) >= 3:
        score += 1
    if len(lines) >= 8:
        score += 1
    score += sum([has_comments, has_branching, has_loops, has_functions, has_error_handling])
    score = max(MIN_SCORE, min(MAX_SCORE, score))

    improvements = []
    if not has_comments:
        improvements.append("Add comments explaining what each part of the code does.")
    if not has_functions:
        improvements.append("Break the code into functions or procedures.")
    if not has_error_handling:
        improvements.append("Handle invalid input or errors, for example with try/except.")
    if not has_branching:
        improvements.append("Consider whether the code needs to make decisions with selection.")
    if not has_loops:
        improvements.append("Look for repeated steps that could use iteration.")

    topics = ["Sequence"]
    if has_branching:
        topics.append("Selection")
    if has_loops:
        topics.append("Iteration")
    if has_functions:
        topics.append("Subroutines")
    if has_error_handling:
        topics.append("Error Handling")

    tier = score_tier(score)
    return CodeEvaluation(
        score=score,
        tier=tier,
        summary=f"{tier.capitalize()} solution: {len(lines)} lines, scored {score}/10.",
        line_count=len(lines),
        improvements=improvements,
        tips=list(GENERAL_TIPS),
        topics=topics,
    )
