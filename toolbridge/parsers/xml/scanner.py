"""Low-level tag scanning primitives for model-emitted XML.

Purpose
-------
Model output is not a well-formed XML document: tool-call fragments sit inside
prose, parameter values contain unescaped ``<`` and ``&``, and streams end in
the middle of tags. A conforming XML parser rejects most of this, so the
parsers in this package use the small, forgiving scanner defined here.

Rules
-----
- A tag name starts with a letter or ``_`` and continues with
  ``[A-Za-z0-9_.:-]``. ``if (x<10)`` therefore never reads as a tag.
- Attribute values are skipped quote-aware when looking for the closing ``>``.
- Comments (``<!-- -->``), CDATA sections (``<![CDATA[ ]]>``), processing
  instructions (``<? ?>``) and declarations (``<!DOCTYPE ...>``) are opaque:
  tag-like text inside them is never interpreted.
- Names are compared case-insensitively; a target without a namespace also
  matches the local part of a prefixed name (``ns:get_weather``).

Failure modes
-------------
All functions are total: incomplete input yields ``None`` (or ``-1`` for
:func:`read_until`) rather than raising.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

_EXTRA_NAME_CHARS = frozenset("_.:-")


def is_name_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def is_name_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch in _EXTRA_NAME_CHARS)


def local_name(qname: str) -> str:
    """Return ``qname`` without its namespace prefix."""
    return qname.rsplit(":", 1)[-1]


def name_matches(qname: str, target: str) -> bool:
    """Return True when tag ``qname`` refers to ``target``.

    Comparison is case-insensitive. A target containing ``:`` must match the
    qualified name exactly; any other target matches the local name.
    """
    q = qname.lower()
    t = target.lower()
    if q == t:
        return True
    return ":" not in t and local_name(q) == t


@dataclass(frozen=True)
class StartTag:
    name: str
    start: int
    end: int
    self_closing: bool


@dataclass(frozen=True)
class EndTag:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class ElementSpan:
    """Location of one balanced element inside a text.

    ``text[start:end]`` is the whole element and
    ``text[content_start:content_end]`` its inner content (empty for a
    self-closing element).
    """

    name: str
    start: int
    content_start: int
    content_end: int
    end: int

    def content(self, text: str) -> str:
        return text[self.content_start:self.content_end]

    def outer(self, text: str) -> str:
        return text[self.start:self.end]


def read_name(text: str, pos: int) -> tuple[str, int]:
    """Read a tag name starting at ``pos``; return ``("", pos)`` if none starts there."""
    if pos >= len(text) or not is_name_start(text[pos]):
        return "", pos
    end = pos + 1
    while end < len(text) and is_name_char(text[end]):
        end += 1
    return text[pos:end], end


def read_until(text: str, pos: int, token: str) -> int:
    """Return the index just past the next ``token`` at or after ``pos``, or -1."""
    idx = text.find(token, pos)
    return -1 if idx < 0 else idx + len(token)


def _find_tag_close(text: str, pos: int) -> int:
    """Return the index of the ``>`` that closes a tag, skipping quoted values."""
    quote: Optional[str] = None
    i = pos
    while i < len(text):
        ch = text[i]
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ">":
            return i
        elif ch == "<":
            # a new tag begins before this one closed
            return -1
        i += 1
    return -1


def parse_start_tag(text: str, lt: int) -> Optional[StartTag]:
    """Parse the opening tag whose ``<`` is at ``lt``.

    Returns ``None`` when ``text[lt:]`` is not an opening tag or the tag is
    not yet terminated.
    """
    if lt >= len(text) or text[lt] != "<":
        return None
    name, after = read_name(text, lt + 1)
    if not name:
        return None
    if after < len(text) and not (text[after].isspace() or text[after] in "/>"):
        return None
    gt = _find_tag_close(text, after)
    if gt < 0:
        return None
    self_closing = text[after:gt].rstrip().endswith("/")
    return StartTag(name=name, start=lt, end=gt + 1, self_closing=self_closing)


def parse_end_tag(text: str, lt: int) -> Optional[EndTag]:
    """Parse the closing tag whose ``<`` is at ``lt`` (``</name >``)."""
    if not text.startswith("</", lt):
        return None
    name, after = read_name(text, lt + 2)
    if not name:
        return None
    pos = after
    while pos < len(text) and text[pos].isspace():
        pos += 1
    if pos >= len(text) or text[pos] != ">":
        return None
    return EndTag(name=name, start=lt, end=pos + 1)


_OPAQUE_SECTIONS = (
    ("<!--", "-->"),
    ("<![CDATA[", "]]>"),
    ("<?", "?>"),
)


def skip_opaque(text: str, lt: int) -> Optional[int]:
    """Return the index past an opaque section starting at ``lt``.

    ``None`` means ``text[lt:]`` does not start an opaque section; ``-1``
    means it does but the section is not terminated yet.
    """
    for opener, closer in _OPAQUE_SECTIONS:
        if text.startswith(opener, lt):
            return read_until(text, lt + len(opener), closer)
    if text.startswith("<!", lt):
        return read_until(text, lt + 2, ">")
    return None


def find_balanced_element(text: str, name: str, start: int = 0) -> Optional[ElementSpan]:
    """Locate the first complete ``name`` element at or after ``start``.

    Only tags whose name matches ``name`` affect the nesting depth; other tags
    (and everything inside opaque sections) are ignored, so raw parameter
    values containing arbitrary markup do not disturb the balance.

    Returns ``None`` when no opening tag is found or it is never closed.
    """
    depth = 0
    open_tag: Optional[StartTag] = None
    pos = start
    while True:
        lt = text.find("<", pos)
        if lt < 0:
            return None
        skipped = skip_opaque(text, lt)
        if skipped is not None:
            if skipped < 0:
                return None
            pos = skipped
            continue
        end_tag = parse_end_tag(text, lt)
        if end_tag is not None:
            if open_tag is not None and name_matches(end_tag.name, name):
                depth -= 1
                if depth == 0:
                    return ElementSpan(
                        name=open_tag.name,
                        start=open_tag.start,
                        content_start=open_tag.end,
                        content_end=end_tag.start,
                        end=end_tag.end,
                    )
            pos = end_tag.end
            continue
        tag = parse_start_tag(text, lt)
        if tag is not None and name_matches(tag.name, name):
            if open_tag is None:
                if tag.self_closing:
                    return ElementSpan(tag.name, tag.start, tag.end, tag.end, tag.end)
                open_tag = tag
                depth = 1
            elif not tag.self_closing:
                depth += 1
            pos = tag.end
            continue
        pos = lt + 1


__all__ = [
    "StartTag",
    "EndTag",
    "ElementSpan",
    "is_name_start",
    "is_name_char",
    "local_name",
    "name_matches",
    "read_name",
    "read_until",
    "parse_start_tag",
    "parse_end_tag",
    "skip_opaque",
    "find_balanced_element",
]
