"""Incremental tool-call detection over streamed text.

Purpose
-------
Decide, as early as possible, whether text arriving from the model is plain
prose (emit it now) or the beginning of an XML tool call (hold it until the
call is complete). The stream bridge calls :func:`detect_tool_call` with

- the detection window plus the new delta while no candidate is open, or
- the whole tool-call buffer once a candidate has started,

threading the returned :class:`PartialState` into the next call.

Recognised markers
------------------
- the wrapper element (``toolbridge:calls`` / ``toolbridge_calls``);
- any declared tool name, optionally namespace-prefixed;
- reasoning blocks (``<think>``/``<thinking>``), whose content never forms a
  candidate.

Precedence: wrapper, then declared tool, then everything else. A declared
tool named like an HTML element is still a candidate.

Chunk boundaries
----------------
Only a trailing fragment that is still a prefix of a marker (a lone ``<``,
``<get_wea``, ``<toolbridge:ca``, ``</thin`` inside a reasoning block) is held
back, and never more than :func:`detection_window_size` characters. An
unterminated short name without a colon (``<ns``) counts as such a prefix
while tools are declared, since it may turn into ``<ns:get_weather``; it is
released once the name ends. Every other character is reported as flushable
immediately, so the classification of a text does not depend on how it was
split into chunks.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Sequence, Tuple

from ..xml.scanner import find_balanced_element, local_name, read_name
from ..xml.wrapper import (
    REASONING_TAG_NAMES,
    WRAPPER_TAG_NAMES,
    find_wrapper_start,
    is_reasoning_name,
    is_wrapper_name,
)
from .models import DetectionResult, PartialState

# Room for a namespace prefix on a partially received tool tag.
NAMESPACE_ALLOWANCE = 16

_PARTIAL = "partial"
_COMPLETE = "complete"


@lru_cache(maxsize=128)
def _markers(known_tool_names: Tuple[str, ...]) -> Tuple[str, ...]:
    names = tuple(n.lower() for n in known_tool_names)
    return tuple(WRAPPER_TAG_NAMES) + tuple(REASONING_TAG_NAMES) + names


def detection_window_size(known_tool_names: Sequence[str]) -> int:
    """Upper bound on the characters held back while no candidate is open."""
    longest = max(len(m) for m in _markers(tuple(known_tool_names)))
    return 1 + longest + NAMESPACE_ALLOWANCE


def _canonical_tool_name(qname: str, known_tool_names: Sequence[str]) -> Optional[str]:
    wanted = local_name(qname).lower()
    for name in known_tool_names:
        if name.lower() == wanted:
            return name
    return None


def _is_marker_prefix(partial: str, known_tool_names: Sequence[str]) -> bool:
    lowered = partial.lower()
    if any(m.startswith(lowered) for m in _markers(tuple(known_tool_names))):
        return True
    if ":" in lowered:
        tail = lowered.rsplit(":", 1)[1]
        return any(n.lower().startswith(tail) for n in known_tool_names)
    # may still become ``prefix:tool``
    return bool(known_tool_names) and len(lowered) <= NAMESPACE_ALLOWANCE


def _read_opening_name(text: str, lt: int) -> Tuple[str, Optional[str]]:
    """Classify the tag name after the ``<`` at ``lt``.

    Returns ``(name, _COMPLETE)`` when the name is terminated,
    ``(name, _PARTIAL)`` when the text ends inside it (``name`` may be empty)
    and ``("", None)`` when no opening tag can start here.
    """
    if lt + 1 == len(text):
        return "", _PARTIAL
    name, after = read_name(text, lt + 1)
    if not name:
        return "", None
    if after == len(text):
        return name, _PARTIAL
    if text[after].isspace() or text[after] in "/>":
        return name, _COMPLETE
    return "", None


def _reasoning_close(text: str, pos: int, tag: str) -> Tuple[int, int]:
    match = re.compile(rf"</{re.escape(tag)}\s*>", re.IGNORECASE).search(text, pos)
    return (match.start(), match.end()) if match else (-1, -1)


def _held_reasoning_close(text: str, pos: int, tag: str) -> int:
    """Start of a trailing partial ``</tag>`` at or after ``pos`` (-1 if none)."""
    lt = text.rfind("<", pos)
    if lt < 0:
        return -1
    closing = f"</{tag}>"
    return lt if closing.startswith(text[lt:].lower()) else -1


def _candidate(
    text: str, start: int, root_tag: str, is_wrapper: bool
) -> DetectionResult:
    state = PartialState(root_tag=root_tag, is_wrapper=is_wrapper, in_candidate=True)
    span = find_balanced_element(text, root_tag, start)
    return DetectionResult.candidate(root_tag, start, span.end if span else None, state)


def _scan(
    text: str, known_tool_names: Sequence[str], state: Optional[PartialState]
) -> DetectionResult:
    window = detection_window_size(known_tool_names)
    in_reasoning = bool(state and state.in_reasoning)
    reasoning_tag = state.reasoning_tag if state and state.reasoning_tag else REASONING_TAG_NAMES[0]
    pos = 0
    while True:
        if in_reasoning:
            _, close_end = _reasoning_close(text, pos, reasoning_tag)
            if close_end < 0:
                held = _held_reasoning_close(text, pos, reasoning_tag)
                carry = PartialState(in_reasoning=True, reasoning_tag=reasoning_tag)
                return DetectionResult.not_a_call(
                    held if held >= 0 else len(text), carry, held=held >= 0
                )
            pos = close_end
            in_reasoning = False
            continue

        lt = text.find("<", pos)
        if lt < 0:
            return DetectionResult.not_a_call(len(text))
        qname, status = _read_opening_name(text, lt)
        if status is None:
            pos = lt + 1
            continue
        if status == _PARTIAL:
            if len(text) - lt <= window and _is_marker_prefix(qname, known_tool_names):
                return DetectionResult.not_a_call(lt, held=True)
            return DetectionResult.not_a_call(len(text))

        if is_reasoning_name(qname):
            gt = text.find(">", lt)
            if gt < 0:
                if len(text) - lt <= window:
                    return DetectionResult.not_a_call(lt, held=True)
                return DetectionResult.not_a_call(len(text))
            in_reasoning = True
            reasoning_tag = qname.lower()
            pos = gt + 1
            continue
        if is_wrapper_name(qname):
            return _candidate(text, lt, qname.lower(), True)
        tool = _canonical_tool_name(qname, known_tool_names)
        if tool is not None:
            wrapper_at = find_wrapper_start(text, lt + 1)
            if wrapper_at >= 0:
                wrapper_name, _ = read_name(text, wrapper_at + 1)
                return _candidate(text, wrapper_at, wrapper_name.lower(), True)
            return _candidate(text, lt, tool, False)
        pos = lt + 1


def detect_tool_call(
    text: str,
    known_tool_names: Sequence[str],
    state: Optional[PartialState] = None,
) -> DetectionResult:
    """Classify ``text`` as not-a-call, a potential call or a complete call.

    Parameters
    ----------
    text:
        Detection window plus new delta, or the tool-call buffer when
        ``state.in_candidate`` is set.
    known_tool_names:
        Declared tool names. The wrapper element is always recognised.
    state:
        The ``state`` of the previous result for this stream, or ``None``.

    Returns
    -------
    DetectionResult
        A fresh result; see its docstring for the meaning of the fields.
    """
    if state is not None and state.in_candidate and state.root_tag:
        start = max(text.find("<"), 0)
        return _candidate(text, start, state.root_tag, state.is_wrapper)
    return _scan(text, known_tool_names, state)


def close_dangling_end_tag(text: str, root_tag: str) -> str:
    """Complete a root closing tag that lost only its final ``>``.

    Used for the last parse attempt at end of stream, where a model that ran
    out of tokens may have stopped at ``</get_weather``.
    """
    stripped = text.rstrip()
    lt = stripped.rfind("</")
    if lt < 0:
        return text
    name, after = read_name(stripped, lt + 2)
    if name and after == len(stripped) and (
        name.lower() == root_tag.lower() or local_name(name).lower() == root_tag.lower()
    ):
        return stripped + ">"
    return text


__all__ = [
    "NAMESPACE_ALLOWANCE",
    "detection_window_size",
    "detect_tool_call",
    "close_dangling_end_tag",
]
