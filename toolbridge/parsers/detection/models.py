"""Value objects exchanged with the incremental detector.

Both types are immutable. A :class:`PartialState` returned by one
``detect_tool_call`` call is passed into the next call for the same stream;
nothing else is remembered between calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PartialState:
    """What the detector needs to remember between chunks.

    Attributes:
        root_tag: Root element of the current candidate (canonical tool name
            or the lowercased wrapper name).
        is_wrapper: Whether ``root_tag`` is the wrapper element.
        in_candidate: A candidate has started; the caller now passes the
            tool-call buffer (which begins at the candidate's ``<``).
        in_reasoning: Inside an unclosed reasoning block.
        reasoning_tag: Name of the open reasoning block (``think``/``thinking``).
    """

    root_tag: Optional[str] = None
    is_wrapper: bool = False
    in_candidate: bool = False
    in_reasoning: bool = False
    reasoning_tag: Optional[str] = None


@dataclass(frozen=True)
class DetectionResult:
    """Classification of the text passed to one detector call.

    The three outcomes map onto the flags as follows:

    - not a call: ``is_potential`` and ``might_be_tool_call`` false;
      ``text[:flush_until]`` may be emitted as plain text, the rest (a
      trailing fragment that could still open a marker, flagged by
      ``might_be_tool_call``) must be kept;
    - potential call: ``is_potential`` true, ``text[start:]`` is the
      candidate and ``text[:start]`` is plain text;
    - complete call: additionally ``is_completed_xml``; ``text[start:end]``
      is the balanced fragment and ``text[end:]`` the remainder.
    """

    is_potential: bool
    might_be_tool_call: bool
    root_tag_name: Optional[str]
    is_completed_xml: bool
    flush_until: int
    start: Optional[int] = None
    end: Optional[int] = None
    state: Optional[PartialState] = None

    @classmethod
    def not_a_call(
        cls, flush_until: int, state: Optional[PartialState] = None, *, held: bool = False
    ) -> "DetectionResult":
        return cls(
            is_potential=False,
            might_be_tool_call=held,
            root_tag_name=None,
            is_completed_xml=False,
            flush_until=flush_until,
            state=state,
        )

    @classmethod
    def candidate(
        cls, root_tag: str, start: int, end: Optional[int], state: PartialState
    ) -> "DetectionResult":
        return cls(
            is_potential=True,
            might_be_tool_call=True,
            root_tag_name=root_tag,
            is_completed_xml=end is not None,
            flush_until=start,
            start=start,
            end=end,
            state=state,
        )


__all__ = ["PartialState", "DetectionResult"]
