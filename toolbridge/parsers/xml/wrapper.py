"""Wrapper element and reasoning block handling.

Models are instructed to enclose tool calls in a dedicated wrapper element.
Both spellings below are accepted; the colon form is the canonical one used
in generated instructions.

Reasoning models may emit a ``<think>`` (or ``<thinking>``) block before
answering. Tool-call-looking markup inside such a block is deliberation, not
a call, so it is removed before any extraction.
"""
from __future__ import annotations

import re
from typing import Optional

from .scanner import ElementSpan, find_balanced_element, parse_start_tag

WRAPPER_TAG = "toolbridge:calls"
WRAPPER_TAG_NAMES: tuple[str, ...] = (WRAPPER_TAG, "toolbridge_calls")
REASONING_TAG_NAMES: tuple[str, ...] = ("think", "thinking")

_WRAPPER_OPEN_RE = re.compile(r"<(toolbridge:calls|toolbridge_calls)(?=[\s/>])[^>]*>", re.IGNORECASE)
_REASONING_BLOCK_RE = re.compile(
    r"<(think|thinking)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_REASONING_OPEN_RE = re.compile(r"<(think|thinking)\b[^>]*>", re.IGNORECASE)


def is_wrapper_name(qname: str) -> bool:
    return qname.lower() in WRAPPER_TAG_NAMES


def is_reasoning_name(qname: str) -> bool:
    return qname.lower() in REASONING_TAG_NAMES


def has_tool_call_wrapper(text: str) -> bool:
    """Return True when ``text`` contains a wrapper opening tag."""
    return _WRAPPER_OPEN_RE.search(text) is not None


def find_wrapper_start(text: str, start: int = 0) -> int:
    """Index of the first wrapper opening tag at or after ``start`` (-1 if none)."""
    match = _WRAPPER_OPEN_RE.search(text, start)
    return match.start() if match else -1


def remove_reasoning_blocks(text: str) -> str:
    """Drop closed reasoning blocks, and an unclosed trailing one, from ``text``."""
    text = _REASONING_BLOCK_RE.sub("", text)
    dangling = _REASONING_OPEN_RE.search(text)
    if dangling is not None:
        text = text[:dangling.start()]
    return text


def find_wrapper(text: str) -> Optional[ElementSpan]:
    """Return the first balanced wrapper element in ``text``, if any."""
    start = find_wrapper_start(text)
    while start >= 0:
        tag = parse_start_tag(text, start)
        if tag is None:
            return None
        span = find_balanced_element(text, tag.name, start)
        if span is not None:
            return span
        start = find_wrapper_start(text, tag.end)
    return None


def unwrap_tool_calls(text: str, *, lenient: bool = False) -> Optional[str]:
    """Return the inner content of the first wrapper element in ``text``.

    With ``lenient`` an unclosed wrapper yields everything after its opening
    tag; this is used for the last parse attempt at end of stream.
    """
    span = find_wrapper(text)
    if span is not None:
        return span.content(text)
    if not lenient:
        return None
    start = find_wrapper_start(text)
    if start < 0:
        return None
    tag = parse_start_tag(text, start)
    return text[tag.end:] if tag is not None else None


__all__ = [
    "WRAPPER_TAG",
    "WRAPPER_TAG_NAMES",
    "REASONING_TAG_NAMES",
    "is_wrapper_name",
    "is_reasoning_name",
    "has_tool_call_wrapper",
    "find_wrapper_start",
    "find_wrapper",
    "remove_reasoning_blocks",
    "unwrap_tool_calls",
]
