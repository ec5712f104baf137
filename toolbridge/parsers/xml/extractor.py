"""Extraction of tool calls from complete XML fragments.

Entry points
------------
``parse_tool_call_fragment``
    One fragment whose root element is a declared tool.
``extract_tool_calls_from_wrapper``
    Every call inside a wrapper element, in document order.
``extract_tool_call``
    Whole-text convenience used outside the streaming path: a wrapper-enclosed
    call wins over a bare duplicate elsewhere in the text.

Failure modes
-------------
None of these functions raise for bad input. Malformed or unknown fragments
yield ``None`` (or an empty list) and a debug-level log event; the stream
bridge then forwards the text unchanged.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from ...base.dto import ExtractedToolCall
from ...base.logging import get_logger, log_event
from .arguments import MalformedXmlError, build_arguments
from .scanner import (
    find_balanced_element,
    local_name,
    parse_start_tag,
    skip_opaque,
)
from .wrapper import remove_reasoning_blocks, unwrap_tool_calls

_logger = get_logger("toolbridge.parsers.xml")


def _canonical_tool_name(qname: str, known_tool_names: Iterable[str]) -> Optional[str]:
    wanted = local_name(qname).lower()
    for name in known_tool_names:
        if name.lower() == wanted:
            return name
    return None


def _first_tag_index(fragment: str) -> int:
    """Index of the first element start tag in ``fragment`` (-1 if none)."""
    pos = 0
    while True:
        lt = fragment.find("<", pos)
        if lt < 0:
            return -1
        skipped = skip_opaque(fragment, lt)
        if skipped is not None:
            if skipped < 0:
                return -1
            pos = skipped
            continue
        if parse_start_tag(fragment, lt) is not None:
            return lt
        pos = lt + 1


def parse_tool_call_fragment(
    fragment: str, known_tool_names: Sequence[str]
) -> Optional[ExtractedToolCall]:
    """Parse a fragment whose root element is a tool call.

    Leading text before the root tag is skipped. The root name may carry a
    namespace prefix and must name a declared tool.

    Returns:
        The extracted call, or ``None`` when the root is unknown, unbalanced
        or its body is malformed.
    """
    lt = _first_tag_index(fragment)
    if lt < 0:
        return None
    tag = parse_start_tag(fragment, lt)
    if tag is None:
        return None
    name = _canonical_tool_name(tag.name, known_tool_names)
    if name is None:
        log_event(_logger, "parser.fragment.unknown_root", level=logging.DEBUG, root=tag.name)
        return None
    span = find_balanced_element(fragment, tag.name, lt)
    if span is None:
        log_event(_logger, "parser.fragment.unbalanced", level=logging.DEBUG, root=tag.name)
        return None
    try:
        arguments = build_arguments(span.content(fragment), known_tool_names)
    except MalformedXmlError as exc:
        log_event(_logger, "parser.fragment.malformed", level=logging.DEBUG, root=tag.name, reason=str(exc))
        return None
    return ExtractedToolCall(name=name, arguments=arguments)


def extract_tool_calls_from_wrapper(
    text: str, known_tool_names: Sequence[str], *, lenient: bool = False
) -> List[ExtractedToolCall]:
    """Return every tool call inside the first wrapper element of ``text``.

    Reasoning blocks are removed first. Children that are not declared tools
    are ignored. With ``lenient`` an unclosed wrapper still yields the calls
    that are complete inside it.
    """
    inner = unwrap_tool_calls(remove_reasoning_blocks(text), lenient=lenient)
    if inner is None:
        return []
    calls: List[ExtractedToolCall] = []
    pos = 0
    while True:
        lt = inner.find("<", pos)
        if lt < 0:
            break
        tag = parse_start_tag(inner, lt)
        if tag is None or _canonical_tool_name(tag.name, known_tool_names) is None:
            pos = lt + 1
            continue
        span = find_balanced_element(inner, tag.name, lt)
        if span is None:
            break
        call = parse_tool_call_fragment(span.outer(inner), known_tool_names)
        if call is not None:
            calls.append(call)
        pos = span.end
    if not calls:
        log_event(_logger, "parser.wrapper.empty", level=logging.DEBUG, lenient=lenient)
    return calls


def extract_tool_call(text: str, known_tool_names: Sequence[str]) -> Optional[ExtractedToolCall]:
    """Return the tool call carried by a complete model reply, if any.

    Precedence: a call inside a wrapper element, then the first balanced
    element (anywhere in the text) named after a declared tool.
    """
    if not known_tool_names:
        return None
    cleaned = remove_reasoning_blocks(text)
    wrapped = extract_tool_calls_from_wrapper(cleaned, known_tool_names)
    if wrapped:
        return wrapped[0]
    pos = 0
    while True:
        lt = cleaned.find("<", pos)
        if lt < 0:
            return None
        tag = parse_start_tag(cleaned, lt)
        if tag is not None and _canonical_tool_name(tag.name, known_tool_names) is not None:
            span = find_balanced_element(cleaned, tag.name, lt)
            if span is not None:
                call = parse_tool_call_fragment(span.outer(cleaned), known_tool_names)
                if call is not None:
                    return call
        pos = lt + 1


__all__ = [
    "parse_tool_call_fragment",
    "extract_tool_calls_from_wrapper",
    "extract_tool_call",
]
