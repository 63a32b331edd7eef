"""Pull a JSON document out of noisy model output."""

import json
import re
from typing import Any, Optional

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def _loads(text: str) -> Optional[Any]:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, (dict, list)) else None


def _balanced_from(text: str, start: int) -> Optional[str]:
    """Return the balanced {...} / [...] block starting at ``start``."""
    opening = text[start]
    closing = "}" if opening == "{" else "]"
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
        elif char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json(text: Any) -> Optional[Any]:
    """Return the first dict/list found in ``text``, or None.

    Tries a direct parse, then ```json fences, then a balanced scan from each
    opening brace and finally each opening bracket.
    """
    if isinstance(text, (dict, list)):
        return text
    if not isinstance(text, str) or not text.strip():
        return None

    direct = _loads(text.strip())
    if direct is not None:
        return direct

    for block in _FENCE.findall(text):
        fenced = _loads(block.strip())
        if fenced is not None:
            return fenced

    # objects first: a stray "[1]" in prose must not shadow the payload
    for opening in "{[":
        for index, char in enumerate(text):
            if char != opening:
                continue
            candidate = _balanced_from(text, index)
            if candidate is None:
                continue
            parsed = _loads(candidate)
            if parsed is not None:
                return parsed
    return None
