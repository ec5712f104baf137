"""JSON bodies inside tool-call elements.

Models sometimes answer ``<get_weather>{"location": "Paris"}</get_weather>``
instead of nested parameter elements. :func:`load_json_object` parses such a
body, applying a conservative repair pass for the artifacts models commonly
leave behind (code fences, trailing commas, missing closers).
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _drop_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _missing_closers(text: str) -> tuple[List[str], bool]:
    """Return the closers needed to balance ``text`` and whether a string is open.

    Brackets inside string literals are ignored.
    """
    stack: List[str] = []
    in_str = False
    escaped = False
    for ch in text:
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()
    return list(reversed(stack)), in_str


def repair_json(text: str) -> str:
    """Best-effort normalization of nearly-JSON text.

    Steps:
        1. Remove Markdown code fences.
        2. Remove trailing commas before ``}`` or ``]``.
        3. Close an unterminated string literal.
        4. Append the closers for unbalanced braces/brackets, innermost first.
    """
    s = _FENCE_RE.sub("", text.strip())
    s = _drop_trailing_commas(s)
    closers, open_string = _missing_closers(s)
    if open_string:
        s += '"'
    s += "".join(closers)
    return _drop_trailing_commas(s)


def load_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse ``text`` as a JSON object, repairing it once if needed.

    Returns ``None`` when the text is not (and cannot be repaired into) a JSON
    object.
    """
    for candidate in (text, repair_json(text)):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        return value if isinstance(value, dict) else None
    return None


__all__ = ["load_json_object", "repair_json"]
