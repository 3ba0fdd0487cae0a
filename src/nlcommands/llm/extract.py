"""Pull the first JSON object out of free-form model text."""

from __future__ import annotations

import json


class JSONExtractionError(ValueError):
    """Raised when no JSON object can be recovered from model text."""


def find_first_object_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in ``text``.

    Braces inside JSON string literals are ignored. Returns ``None`` when no
    opening brace exists or the first block never closes.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_first_json_object(text: str) -> dict[str, object]:
    span = find_first_object_span(text)
    if span is None:
        raise JSONExtractionError("Could not find a JSON object in the model response.")
    try:
        parsed = json.loads(span)
    except json.JSONDecodeError as exc:
        raise JSONExtractionError(f"Could not parse the model response as JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise JSONExtractionError("Model response JSON is not an object.")
    return {str(key): value for key, value in parsed.items()}
