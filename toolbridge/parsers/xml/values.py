"""Leaf value helpers: entity decoding, CDATA unwrapping and type coercion."""
from __future__ import annotations

import re
from typing import Union

LeafValue = Union[str, int, float, bool]

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_NUMERIC_ENTITY_RE = re.compile(r"&#(x[0-9a-fA-F]+|[0-9]+);")
_INTEGER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)")
# A trailing zero in the fraction would not survive a round trip through float.
_DECIMAL_RE = re.compile(r"-?(?:0|[1-9][0-9]*)\.[0-9]*[1-9]")

_NAMED_ENTITIES = {
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&apos;": "'",
    "&nbsp;": " ",
}


def strip_cdata(text: str) -> str:
    """Replace every ``<![CDATA[...]]>`` section with its literal content."""
    return _CDATA_RE.sub(lambda m: m.group(1), text)


def _numeric_entity(match: re.Match) -> str:
    ref = match.group(1)
    try:
        code = int(ref[1:], 16) if ref[0] in "xX" else int(ref)
        return chr(code)
    except (ValueError, OverflowError):
        return match.group(0)


def decode_entities(text: str) -> str:
    """Decode the common named entities and numeric character references.

    ``&amp;`` is decoded last so ``&amp;lt;`` yields the literal ``&lt;``.
    """
    if "&" not in text:
        return text
    for entity, char in _NAMED_ENTITIES.items():
        text = text.replace(entity, char)
    text = _NUMERIC_ENTITY_RE.sub(_numeric_entity, text)
    return text.replace("&amp;", "&")


def coerce_leaf(text: str) -> LeafValue:
    """Convert the text of a leaf element into a typed value.

    - ``true`` / ``false`` (any case) become booleans.
    - Canonical integer or decimal text becomes ``int`` / ``float``; text whose
      numeric reading would not print back identically (``007``, ``1e3``,
      ``2.50``) stays a string.
    - Empty (or whitespace-only) text becomes ``""``.
    - Anything else is returned with entities decoded and surrounding
      whitespace removed.
    """
    value = decode_entities(strip_cdata(text)).strip()
    if not value:
        return ""
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INTEGER_RE.fullmatch(value):
        return int(value)
    if _DECIMAL_RE.fullmatch(value):
        return float(value)
    return value


__all__ = ["LeafValue", "strip_cdata", "decode_entities", "coerce_leaf"]
