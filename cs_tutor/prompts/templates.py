"""
Prompt Template System for the CS Tutor API

This module provides a reusable prompt template system with variable
interpolation and validation, plus the templates the tutor uses.

Usage:
    from cs_tutor.prompts.templates import TUTOR_SYSTEM_TEMPLATE

    prompt = TUTOR_SYSTEM_TEMPLATE.render(
        level="KS3",
        topic="Programming Basics",
        mode="Explain",
        ...
    )
"""

from typing import Any, Optional
from string import Formatter

from cs_tutor.exceptions import PromptTemplateError


class PromptTemplate:
    """
    Reusable template for generating prompts.

    Supports variable interpolation with optional defaults and validation.

    Attributes:
        template: Raw template string with {variable} placeholders
        required_vars: Set of required variable names
        name: Optional template name for error reporting
    """

    def __init__(
        self,
        template: str,
        name: Optional[str] = None,
        defaults: Optional[dict[str, Any]] = None,
    ):
        """
        Initialize a prompt template.

        Args:
            template: Template string with {variable} placeholders
            name: Optional name for error reporting
            defaults: Optional default values for variables
        """
        self.template = template.strip()
        self.name = name or "unnamed"
        self.defaults = defaults or {}

        self.required_vars = self._extract_variables()

    def _extract_variables(self) -> set[str]:
        """Extract variable names from template string."""
        formatter = Formatter()
        variables = set()

        for _, field_name, _, _ in formatter.parse(self.template):
            if field_name is not None:
                base_name = field_name.split(".")[0].split("[")[0]
                if base_name:
                    variables.add(base_name)

        return variables

    def render(self, **kwargs: Any) -> str:
        """
        Render the template with provided variables.

        Args:
            **kwargs: Variable values to interpolate

        Returns:
            Rendered prompt string

        Raises:
            PromptTemplateError: If required variables are missing
        """
        values = {**self.defaults, **kwargs}

        missing = self.required_vars - set(values.keys())
        if missing:
            raise PromptTemplateError(
                template_name=self.name,
                missing_vars=sorted(missing),
            )

        try:
            return self.template.format(**values)
        except KeyError as e:
            raise PromptTemplateError(
                template_name=self.name,
                missing_vars=[str(e)],
            ) from e

    def __repr__(self) -> str:
        return f"PromptTemplate(name='{self.name}', vars={sorted(self.required_vars)})"


# ===========================================
# Tutor System Prompt
# ===========================================


TUTOR_SYSTEM_TEMPLATE = PromptTemplate(
    """You are a patient, encouraging Computer Science tutor for students in England.

Current Context:
- Level: {level}
- Topic: {topic}
- Mode: {mode}

Level Guidance:
{level_guidance}

Level Containment:
Stay within {level} material for "{topic}". Do not introduce material above {level} unless the student explicitly asks for it, and avoid vocabulary that belongs to other levels.

Curriculum:
Frame your answers around the UK Computer Science curriculum ({curriculum_note}). Use British spelling.

Tools:
You can look up the allowed topics, generate quiz questions, evaluate code, read the student's recent progress and recommend a next topic. Call a tool only when it helps answer the student.

Mode Rules ({mode}):
{mode_rules}""",
    name="tutor_system",
)


# ===========================================
# Level Guard Rewrite Prompt
# ===========================================


LEVEL_REWRITE_TEMPLATE = PromptTemplate(
    """You are editing a Computer Science tutor's reply for a {level} student studying "{topic}".

The reply uses material from outside {level}, including: {leaked_terms}.

Rewrite the reply so it stays strictly at {level} level and on the topic "{topic}":
- Replace or remove out-of-level terms and concepts
- Keep the original teaching intent, structure and any questions
- Use language suited to {level}

Return only the rewritten reply.""",
    name="level_rewrite",
)


# ===========================================
# Helper Functions
# ===========================================


def format_list_for_prompt(items: list[str], bullet: str = "-") -> str:
    """Format a list of items for inclusion in a prompt."""
    if not items:
        return "None"
    return "\n".join(f"{bullet} {item}" for item in items)
