"""Ready-made validators for ValidatedProvider.

Each validator returns None for acceptable text, or a short reason that is
fed back to the model on the next attempt. Chain files reference them as
"multi_llm.validators:json_object".
"""

from __future__ import annotations

import json
from typing import Any

from multi_llm.provider import ValidatorFn

_DECODER = json.JSONDecoder()


def extract_first_json_object(text: str) -> dict[str, Any]:
    """
    Returns the first JSON object embedded in text.
    Models often wrap JSON in prose or code fences.
    """
    start = text.find("{")
    while start != -1:
        try:
            value, _end = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise ValueError("No JSON object found in model output.")


def non_empty(text: str) -> str | None:
    if not text.strip():
        return "the response was empty"
    return None


def json_object(text: str) -> str | None:
    try:
        extract_first_json_object(text)
    except ValueError as exc:
        return f"the response must contain a valid JSON object ({exc})"
    return None


def max_length(limit: int) -> ValidatorFn:
    def validate(text: str) -> str | None:
        if len(text) > limit:
            return f"the response has {len(text)} characters; keep it under {limit}"
        return None

    return validate
