"""
Prompt Builder

Assembles the tutor system prompt from level, topic and mode. Output is
a pure function of its inputs.
"""

from typing import Optional

from cs_tutor.models.curriculum import LEVEL_GUIDANCE, Level, Mode
from cs_tutor.prompts.templates import (
    LEVEL_REWRITE_TEMPLATE,
    TUTOR_SYSTEM_TEMPLATE,
    format_list_for_prompt,
)


CURRICULUM_NOTES: dict[Level, str] = {
    Level.KS3: "Key Stage 3 National Curriculum for computing",
    Level.GCSE: "GCSE Computer Science specifications such as AQA and OCR",
    Level.A_LEVEL: "A-Level Computer Science specifications such as AQA and OCR",
}

MODE_RULES: dict[Mode, list[str]] = {
    Mode.EXPLAIN: [
        "Explain the idea step by step, one small step at a time.",
        "Use a short worked example where it helps.",
        "Finish with one quick question that checks understanding.",
    ],
    Mode.HINT: [
        "Do not give the full answer straight away.",
        "Give Hint 1, Hint 2 and Hint 3, each a little stronger than the last.",
        "After the third hint, offer to show the full solution.",
    ],
    Mode.QUIZ: [
        "Ask exactly three questions on the topic.",
        "Order them easy, then medium, then hard, and number them 1-3.",
        "Do not reveal the answers. Wait for the student to respond.",
    ],
    Mode.MARK: [
        "Mark the student's answer or code and give a score out of 10 as 'Score: N/10'.",
        "List the strengths, then the improvements.",
        "End with a short model answer.",
    ],
}

CONCISE_DIRECTIVE = (
    "Keep the reply brief: at most about 150 words, short paragraphs, no long preamble."
)


def build_system_prompt(
    level: Level,
    topic: str,
    mode: Mode,
    prefer_concise: bool = False,
) -> str:
    """
    Build the tutor system prompt.

    Args:
        level: Normalized curriculum level
        topic: Normalized topic within the level
        mode: Tutoring mode
        prefer_concise: Append a brevity directive (used for streamed replies)

    Returns:
        System prompt text
    """
    prompt = TUTOR_SYSTEM_TEMPLATE.render(
        level=level.value,
        topic=topic,
        mode=mode.value,
        level_guidance=LEVEL_GUIDANCE[level],
        curriculum_note=CURRICULUM_NOTES[level],
        mode_rules=format_list_for_prompt(MODE_RULES[mode]),
    )
    if prefer_concise:
        prompt = f"{prompt}\n\nLength:\n{CONCISE_DIRECTIVE}"
    return prompt


def build_rewrite_prompt(
    level: Level,
    topic: str,
    leaked_terms: Optional[list[str]] = None,
) -> str:
    """Instruction for rewriting a reply that leaked out-of-level vocabulary."""
    terms = ", ".join(leaked_terms) if leaked_terms else "terms from other levels"
    return LEVEL_REWRITE_TEMPLATE.render(
        level=level.value,
        topic=topic,
        leaked_terms=terms,
    )
