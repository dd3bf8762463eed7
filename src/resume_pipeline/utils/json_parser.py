"""Pull JSON payloads out of free-form LLM responses."""

from __future__ import annotations

import json

_PAIRS = {dict: ("{", "}"), list: ("[", "]")}


def extract_json(text: str, expect: type | None = None) -> dict | list:
    """Extract a JSON object or array from an LLM response.

    Tries the full text, then the text with ```json fences removed, then the
    outermost bracket span for the expected shape. When *expect* is ``dict`` or
    ``list`` the result must have that type.

    Raises ValueError if nothing usable is found.
    """
    text = (text or "").strip()
    shapes = [expect] if expect in _PAIRS else [dict, list]

    candidates = [text]
    unfenced = _strip_code_fences(text)
    if unfenced != text:
        candidates.append(unfenced)

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            value = None
        if value is not None and _matches(value, shapes):
            return value

        for shape in shapes:
            value = _extract_span(candidate, *_PAIRS[shape])
            if value is not None and _matches(value, shapes):
                return value

    raise ValueError(f"Could not extract JSON from text: {text[:200]}...")


def _matches(value: object, shapes: list[type]) -> bool:
    return any(isinstance(value, shape) for shape in shapes)


def _strip_code_fences(text: str) -> str:
    lines = text.split("\n")
    start = next((i for i, line in enumerate(lines) if line.strip().startswith("```")), None)
    if start is None:
        return text
    body = lines[start + 1 :]
    end = next((i for i, line in enumerate(body) if line.strip() == "```"), len(body))
    return "\n".join(body[:end]).strip()


def _extract_span(text: str, opener: str, closer: str) -> dict | list | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
