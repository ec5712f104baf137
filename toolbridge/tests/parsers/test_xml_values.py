"""Unit tests for leaf coercion, entity decoding and JSON body repair."""

from __future__ import annotations

import pytest

from toolbridge.parsers.xml.json_body import load_json_object, repair_json
from toolbridge.parsers.xml.values import coerce_leaf, decode_entities, strip_cdata


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("3", 3),
        (" -12 ", -12),
        ("2.5", 2.5),
        ("true", True),
        ("FALSE", False),
        ("", ""),
        ("   ", ""),
        ("Paris", "Paris"),
        ("007", "007"),
        ("1e3", "1e3"),
        ("2.50", "2.50"),
        ("a &amp; b", "a & b"),
    ],
)
def test_coerce_leaf(text, expected):
    value = coerce_leaf(text)
    assert value == expected  # nosec B101 - asserts are appropriate in unit tests
    assert type(value) is type(expected)  # nosec B101


def test_decode_entities_decodes_ampersand_last():
    assert decode_entities("&lt;div&gt; &#65;&#x42; &amp;lt;") == "<div> AB &lt;"  # nosec B101
    assert decode_entities("no entities") == "no entities"  # nosec B101
    assert decode_entities("&#xZZ;") == "&#xZZ;"  # nosec B101


def test_strip_cdata_keeps_literal_content():
    assert strip_cdata("<![CDATA[if (a<b && c) {}]]>") == "if (a<b && c) {}"  # nosec B101
    assert strip_cdata("x<![CDATA[1]]>y<![CDATA[2]]>") == "x1y2"  # nosec B101


def test_load_json_object_with_repairs():
    assert load_json_object('{"a": 1}') == {"a": 1}  # nosec B101
    assert load_json_object('{"a": [1, 2,],}') == {"a": [1, 2]}  # nosec B101
    assert load_json_object('{"a": {"b": "c"') == {"a": {"b": "c"}}  # nosec B101
    assert load_json_object('```json\n{"a": 1}\n```') == {"a": 1}  # nosec B101
    assert load_json_object("[1, 2]") is None  # nosec B101
    assert load_json_object("{not json at all") is None  # nosec B101


def test_repair_json_closes_open_string():
    assert repair_json('{"a": "unterminated') == '{"a": "unterminated"}'  # nosec B101
