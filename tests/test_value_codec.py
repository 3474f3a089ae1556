"""Tests for expression value encoding."""

import pytest

from pyqt_lspfield.services.value_codec import (
    ClassifiedValue,
    FieldMode,
    classify,
    encode,
    expression_mime_type,
    is_expression,
    normalize,
    to_commit_value,
)


@pytest.mark.parametrize("raw, expected", [
    ("=a + b", ClassifiedValue(FieldMode.EXPRESSION, "a + b")),
    ("=", ClassifiedValue(FieldMode.EXPRESSION, "")),
    ("hello", ClassifiedValue(FieldMode.PLAIN, "hello")),
    ("", ClassifiedValue(FieldMode.PLAIN, "")),
    (None, ClassifiedValue(FieldMode.PLAIN, None)),
    (" =x", ClassifiedValue(FieldMode.PLAIN, " =x")),
])
def test_classify(raw, expected):
    assert classify(raw) == expected


def test_is_expression_ignores_non_strings():
    assert is_expression("=1")
    assert not is_expression(None)
    assert not is_expression(42)


def test_encode_expression_always_has_sentinel():
    assert encode(FieldMode.EXPRESSION, "x") == "=x"
    assert encode(FieldMode.EXPRESSION, "") == "="
    assert encode(FieldMode.EXPRESSION, None) == "="


def test_encode_plain_passes_through():
    assert encode(FieldMode.PLAIN, "x") == "x"
    assert encode(FieldMode.PLAIN, "") == ""
    assert encode(FieldMode.PLAIN, None) is None


def test_classify_encode_round_trip_for_representable_pairs():
    for mode, display in [(FieldMode.EXPRESSION, "a"), (FieldMode.EXPRESSION, ""),
                          (FieldMode.PLAIN, "a"), (FieldMode.PLAIN, "")]:
        assert classify(encode(mode, display)) == ClassifiedValue(mode, display)


def test_plain_value_with_sentinel_is_promoted():
    assert normalize(FieldMode.PLAIN, "=x") == ClassifiedValue(FieldMode.EXPRESSION, "x")
    assert classify(encode(FieldMode.PLAIN, "=x")) == normalize(FieldMode.PLAIN, "=x")


def test_normalize_empty_expression():
    assert normalize(FieldMode.EXPRESSION, None) == ClassifiedValue(FieldMode.EXPRESSION, "")
    assert normalize(FieldMode.PLAIN, "x") == ClassifiedValue(FieldMode.PLAIN, "x")


@pytest.mark.parametrize("raw", [None, "", "="])
def test_empty_buffers_commit_as_none(raw):
    assert to_commit_value(raw) is None


def test_non_empty_buffers_commit_unchanged():
    assert to_commit_value("=x") == "=x"
    assert to_commit_value("x") == "x"


def test_expression_mime_type():
    assert expression_mime_type("feel") == "application/feel"
