"""
Typed helpers for expression-field values.

This module owns the ``=`` sentinel convention so callers do not duplicate
string parsing. A raw field value is either a plain string or an expression;
the expression body is the raw value without its leading sentinel.

Unrepresentable pairs:
    ``(FieldMode.PLAIN, "=x")`` cannot survive a round trip because any raw
    value starting with the sentinel classifies as an expression. Such pairs
    are auto-promoted: ``normalize`` returns ``(FieldMode.EXPRESSION, "x")``
    and ``encode`` passes the raw text through, which classifies the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

EXPRESSION_SENTINEL = "="


class FieldMode(Enum):
    """Editing mode of one field."""
    PLAIN = "plain"
    EXPRESSION = "expression"


class LspRequirement(Enum):
    """Whether a field may, must, or cannot be edited as an expression."""
    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED = "required"


@dataclass(frozen=True)
class ClassifiedValue:
    """Result of classifying a raw field value."""

    mode: FieldMode
    display_value: Optional[str]


def is_expression(raw: Optional[str]) -> bool:
    """Return True when the raw value carries the expression sentinel."""
    return isinstance(raw, str) and raw.startswith(EXPRESSION_SENTINEL)


def classify(raw: Optional[str]) -> ClassifiedValue:
    """Split a raw value into its mode and the text shown to the user."""
    if is_expression(raw):
        return ClassifiedValue(FieldMode.EXPRESSION, raw[len(EXPRESSION_SENTINEL):])
    return ClassifiedValue(FieldMode.PLAIN, raw)


def encode(mode: FieldMode, display_value: Optional[str]) -> Optional[str]:
    """Build the raw value for ``display_value`` edited in ``mode``.

    Expression mode always yields a sentinel-prefixed string, so an empty
    expression encodes as ``"="``. Plain mode returns the display value
    unchanged, including ``None`` and ``""``.
    """
    if mode is FieldMode.EXPRESSION:
        return EXPRESSION_SENTINEL + (display_value or "")
    return display_value


def normalize(mode: FieldMode, display_value: Optional[str]) -> ClassifiedValue:
    """Return the pair that ``classify(encode(mode, display_value))`` yields."""
    if mode is FieldMode.PLAIN and is_expression(display_value):
        return ClassifiedValue(FieldMode.EXPRESSION, display_value[len(EXPRESSION_SENTINEL):])
    if mode is FieldMode.EXPRESSION and display_value is None:
        return ClassifiedValue(FieldMode.EXPRESSION, "")
    return ClassifiedValue(mode, display_value)


def to_commit_value(raw: Optional[str]) -> Optional[str]:
    """Map empty buffers to ``None`` before they reach the owning form.

    ``""`` and ``"="`` both mean "no value" downstream; the difference
    between them only matters to the in-memory editing mode.
    """
    if raw is None or raw == "" or raw == EXPRESSION_SENTINEL:
        return None
    return raw


def expression_mime_type(language_id: str) -> str:
    """Clipboard format that tags copied text as an expression body."""
    return f"application/{language_id}"
