"""Utility helpers for the CS Tutor API."""

from cs_tutor.utils.schema_utils import get_strict_schema, make_schema_strict, parse_tool_arguments

__all__ = ["get_strict_schema", "make_schema_strict", "parse_tool_arguments"]
