"""
JSON Schema Utilities for the CS Tutor API

Helpers for turning pydantic argument models into the strict JSON schemas
that tool definitions carry, and for decoding the arguments a model sends
back with a tool call.

Usage:
    from cs_tutor.utils.schema_utils import get_strict_schema

    parameters = get_strict_schema(GenerateQuizArgs)
"""

import json
from typing import Any, Type
from pydantic import BaseModel


def get_strict_schema(model: Type[BaseModel]) -> dict[str, Any]:
    """
    Get a strict JSON schema from a Pydantic model.

    Transforms the schema to meet OpenAI's strict mode requirements:
    - All objects have additionalProperties: false
    - All properties are in the required array
    - $ref references have no sibling keywords

    Optional fields stay nullable (`anyOf` with `null`), so the model can
    still omit a value by sending null.

    Args:
        model: Pydantic BaseModel class

    Returns:
        Strict JSON schema dict ready for a tool definition
    """
    base_schema = model.model_json_schema()
    base_schema.pop("title", None)
    return make_schema_strict(base_schema)


def make_schema_strict(schema: dict[str, Any]) -> dict[str, Any]:
    """
    Transform a JSON schema to meet OpenAI's strict mode requirements.

    Strict function tools require:
    1. All objects must have additionalProperties: false
    2. All properties must be in the required array
    3. $defs references must also be transformed
    4. $ref cannot have sibling keywords (like description)

    Args:
        schema: Original JSON schema (e.g., from Pydantic)

    Returns:
        Transformed schema meeting the strict requirements
    """
    def transform(obj: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(obj, dict):
            return obj

        if "$ref" in obj:
            return {"$ref": obj["$ref"]}

        result = {}
        for key, value in obj.items():
            if key == "$defs":
                result[key] = {k: transform(v) for k, v in value.items()}
            elif key == "default":
                # Not permitted alongside strict mode
                continue
            elif isinstance(value, dict):
                result[key] = transform(value)
            elif isinstance(value, list):
                result[key] = [
                    transform(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                result[key] = value

        if result.get("type") == "object" and "properties" in result:
            result["additionalProperties"] = False
            result["required"] = list(result["properties"].keys())

        return result

    return transform(schema)


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """
    Decode tool-call arguments into a dict.

    Providers send arguments either as a JSON string (OpenAI) or as an
    already-decoded object (Anthropic). Anything that does not decode to
    an object becomes an empty dict.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}
