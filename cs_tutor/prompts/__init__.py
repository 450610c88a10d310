"""Prompt templates and builders for the CS Tutor API."""

from cs_tutor.prompts.templates import PromptTemplate
from cs_tutor.prompts.prompt_builder import build_rewrite_prompt, build_system_prompt

__all__ = ["PromptTemplate", "build_system_prompt", "build_rewrite_prompt"]
