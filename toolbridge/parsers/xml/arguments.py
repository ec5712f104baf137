"""Conversion of a tool-call element body into an arguments mapping.

Purpose
-------
Turn the inner content of ``<get_weather>...</get_weather>`` into the ordered
mapping sent to clients as the call's arguments.

Rules
-----
1. A body whose trimmed text starts with ``{`` is a JSON object and is used
   as-is (after a light repair pass).
2. Otherwise each child element becomes one key, in document order:
   - raw parameters keep their content verbatim (only CDATA delimiters are
     removed, entities are left alone);
   - repeated siblings collapse into a list;
   - a child containing only ``<item>`` elements becomes a list;
   - a child with element children becomes a nested mapping;
   - a leaf is entity-decoded and type-coerced (see :func:`coerce_leaf`).
   Text beside child elements is ignored.
3. Malformed nesting raises :class:`MalformedXmlError`; callers in
   :mod:`toolbridge.parsers.xml.extractor` convert it into a ``None`` result.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Tuple

from .json_body import load_json_object
from .scanner import (
    find_balanced_element,
    local_name,
    parse_end_tag,
    parse_start_tag,
    skip_opaque,
)
from .values import coerce_leaf, strip_cdata

RAW_PARAMETER_NAMES = frozenset({"code", "html", "markdown", "md", "body", "content"})

# Lowercase prefixes marking content that is a document in its own right.
MARKUP_PREFIXES: tuple[str, ...] = (
    "<!doctype",
    "<?xml",
    "<![cdata[",
    "<!--",
    "<html",
    "<head",
    "<body",
    "<div",
    "<span",
    "<p>",
    "<p ",
    "<h1",
    "<h2",
    "<h3",
    "<ul",
    "<ol",
    "<table",
    "<section",
    "<article",
    "<script",
    "<style",
    "<svg",
    "<template",
)

ITEM_TAG = "item"


class MalformedXmlError(ValueError):
    """Raised for nesting that cannot be resolved into elements."""


Child = Tuple[str, str]


def is_raw_parameter(name: str, content: str, known_tool_names: Iterable[str] = ()) -> bool:
    """Return True when a parameter's content must be kept verbatim."""
    lowered = local_name(name).lower()
    if lowered in RAW_PARAMETER_NAMES:
        return True
    if lowered in {t.lower() for t in known_tool_names}:
        return True
    return content.lstrip().lower().startswith(MARKUP_PREFIXES)


def iter_children(content: str) -> Iterator[Child]:
    """Yield ``(qualified_name, inner_content)`` for each top-level child element.

    Self-closing children yield an empty content string. Comments, processing
    instructions and declarations are skipped; CDATA sections and stray
    ``<`` characters count as text.

    Raises:
        MalformedXmlError: on an unterminated section, an unclosed child or a
            closing tag without a matching opening tag.
    """
    pos = 0
    while True:
        lt = content.find("<", pos)
        if lt < 0:
            return
        skipped = skip_opaque(content, lt)
        if skipped is not None:
            if skipped < 0:
                raise MalformedXmlError(f"unterminated section at offset {lt}")
            pos = skipped
            continue
        end_tag = parse_end_tag(content, lt)
        if end_tag is not None:
            raise MalformedXmlError(f"unexpected </{end_tag.name}> at offset {lt}")
        tag = parse_start_tag(content, lt)
        if tag is None:
            pos = lt + 1
            continue
        if tag.self_closing:
            yield tag.name, ""
            pos = tag.end
            continue
        span = find_balanced_element(content, tag.name, lt)
        if span is None:
            raise MalformedXmlError(f"unclosed <{tag.name}> at offset {lt}")
        yield tag.name, span.content(content)
        pos = span.end


def _has_child_elements(content: str) -> bool:
    for _ in iter_children(content):
        return True
    return False


def parse_value(name: str, content: str, known_tool_names: Iterable[str] = ()) -> Any:
    """Convert one parameter element's inner content into a value."""
    if is_raw_parameter(name, content, known_tool_names):
        return strip_cdata(content)
    if not _has_child_elements(content):
        return coerce_leaf(content)
    nested = parse_children(content, known_tool_names)
    if list(nested) == [ITEM_TAG]:
        items = nested[ITEM_TAG]
        return items if isinstance(items, list) else [items]
    return nested


def parse_children(content: str, known_tool_names: Iterable[str] = ()) -> Dict[str, Any]:
    """Build an ordered mapping from the child elements of ``content``."""
    names = tuple(known_tool_names)
    result: Dict[str, Any] = {}
    repeated: set[str] = set()
    for qname, inner in iter_children(content):
        key = local_name(qname)
        value = parse_value(key, inner, names)
        if key not in result:
            result[key] = value
            continue
        if key not in repeated:
            result[key] = [result[key]]
            repeated.add(key)
        result[key].append(value)
    return result


def build_arguments(body: str, known_tool_names: Iterable[str] = ()) -> Dict[str, Any]:
    """Return the arguments mapping for a tool-call element body.

    Raises:
        MalformedXmlError: when the body is neither a JSON object nor
            resolvable element content.
    """
    stripped = body.strip()
    if stripped.startswith("{"):
        parsed = load_json_object(stripped)
        if parsed is None:
            raise MalformedXmlError("tool-call body is not a JSON object")
        return parsed
    return parse_children(body, known_tool_names)


__all__ = [
    "RAW_PARAMETER_NAMES",
    "MARKUP_PREFIXES",
    "MalformedXmlError",
    "is_raw_parameter",
    "iter_children",
    "parse_value",
    "parse_children",
    "build_arguments",
]
