"""Pull JSON out of free-form model replies.

Providers wrap answers in prose or markdown fences often enough that a plain
``json.loads`` is not enough.  Candidates are located by bracket matching
(string literals and escapes are skipped, so a ``}`` inside a quoted reason
does not end the object early).  When a bracketed aside such as
``[persona=vc]`` precedes the real answer, later ``{`` positions are tried
until one parses.
"""

from __future__ import annotations

import json
from typing import Any, Iterator

from .errors import ResponseFormatError


_CLOSERS = {"{": "}", "[": "]"}


def _balanced_span(raw: str, start: int) -> str:
    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(raw)):
        char = raw[index]
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
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if not stack or stack[-1] != char:
                raise ResponseFormatError("Mismatched brackets in model output.")
            stack.pop()
            if not stack:
                return raw[start : index + 1]

    raise ResponseFormatError("Model output contains an unterminated JSON value.")


def extract_first_json(text: str) -> str:
    """Return the first balanced top-level JSON object or array in *text*.

    Raises:
        ResponseFormatError: no opening bracket, or it is never closed.
    """
    raw = text or ""
    for index, char in enumerate(raw):
        if char in _CLOSERS:
            return _balanced_span(raw, index)
    raise ResponseFormatError("No JSON object found in model output.")


def _object_candidates(raw: str) -> Iterator[str]:
    start = raw.find("{")
    while start != -1:
        try:
            yield _balanced_span(raw, start)
        except ResponseFormatError:
            pass
        start = raw.find("{", start + 1)


def parse_json_object(text: str) -> dict[str, Any]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        for candidate in _object_candidates(text or ""):
            try:
                parsed = json.loads(candidate)
                break
            except json.JSONDecodeError:
                continue
        else:
            raise ResponseFormatError("Model output could not be parsed as JSON.")

    if not isinstance(parsed, dict):
        raise ResponseFormatError("Model JSON root must be an object.")
    return parsed


def require_number(payload: dict[str, Any], field: str) -> float:
    value = payload.get(field)
    # bool is an int subclass; "true" is not a score.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResponseFormatError(f'"{field}" must be a number.')
    return float(value)


def require_string(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str):
        raise ResponseFormatError(f'"{field}" must be a string.')
    return value


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))
