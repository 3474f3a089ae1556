"""
Language-server protocol data structures used by the structured editor.

Only the slice of LSP the editor consumes is modelled: positions, ranges,
diagnostics and completion items. Frozen dataclasses keep payloads immutable
once parsed.

Offsets are Python string indices (code points). LSP ``character`` values
count UTF-16 code units, as do ``QTextCursor`` positions; the helpers below
convert at those boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, Optional, Tuple


class DiagnosticSeverity(IntEnum):
    """LSP diagnostic severities (wire values)."""
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position."""
    line: int
    character: int

    def to_lsp(self) -> dict:
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_lsp(cls, data: Mapping[str, Any]) -> "Position":
        return cls(line=int(data.get("line", 0)), character=int(data.get("character", 0)))


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def from_lsp(cls, data: Mapping[str, Any]) -> "Range":
        return cls(
            start=Position.from_lsp(data.get("start", {})),
            end=Position.from_lsp(data.get("end", {})),
        )


@dataclass(frozen=True)
class Diagnostic:
    """One diagnostic, with offsets relative to the edited body."""
    severity: DiagnosticSeverity
    message: str
    start: int
    end: int
    source: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is DiagnosticSeverity.ERROR


@dataclass(frozen=True)
class CompletionItem:
    label: str
    insert_text: str
    kind: Optional[int] = None
    detail: Optional[str] = None

    @classmethod
    def from_lsp(cls, data: Mapping[str, Any]) -> "CompletionItem":
        label = str(data.get("label", ""))
        text_edit = data.get("textEdit")
        if isinstance(text_edit, Mapping) and "newText" in text_edit:
            insert_text = str(text_edit["newText"])
        else:
            insert_text = str(data.get("insertText") or label)
        return cls(
            label=label,
            insert_text=insert_text,
            kind=data.get("kind"),
            detail=data.get("detail"),
        )


def parse_completion_result(result: Any) -> Tuple[CompletionItem, ...]:
    """Accept both ``CompletionItem[]`` and ``CompletionList`` results."""
    if isinstance(result, Mapping):
        items = result.get("items") or []
    elif isinstance(result, list):
        items = result
    else:
        items = []
    return tuple(CompletionItem.from_lsp(item) for item in items if isinstance(item, Mapping))


def utf16_length(text: str) -> int:
    """Length of ``text`` in UTF-16 code units (LSP and Qt character counts)."""
    return len(text.encode("utf-16-le")) // 2


def utf16_offset(text: str, offset: int) -> int:
    """Convert a code point offset in ``text`` to UTF-16 code units."""
    return utf16_length(text[:min(max(offset, 0), len(text))])


def code_point_offset(text: str, units: int) -> int:
    """Convert a UTF-16 unit offset in ``text`` to code points, clamped.

    An offset inside a surrogate pair rounds down to the pair's start.
    """
    consumed = 0
    for index, char in enumerate(text):
        width = 2 if ord(char) > 0xFFFF else 1
        if consumed + width > units:
            return index
        consumed += width
    return len(text)


def offset_to_position(text: str, offset: int) -> Position:
    """Convert a code point offset in ``text`` to an LSP line/character position."""
    offset = min(max(offset, 0), len(text))
    head = text[:offset]
    line = head.count("\n")
    line_start = head.rfind("\n") + 1
    return Position(line=line, character=utf16_length(head[line_start:]))


def position_to_offset(text: str, position: Position) -> int:
    """Convert an LSP line/character position back to a code point offset, clamped to ``text``."""
    lines = text.split("\n")
    if position.line >= len(lines):
        return len(text)
    offset = sum(len(line) + 1 for line in lines[:max(position.line, 0)])
    return offset + code_point_offset(lines[position.line], max(position.character, 0))


@dataclass(frozen=True)
class WrappedDocument:
    """Edited body with invisible prefix/suffix text around it.

    The server sees ``prefix + body + suffix``; the editor only shows
    ``body``. Offsets are shifted by the prefix length when crossing the
    boundary.
    """
    body: str
    prefix: str = ""
    suffix: str = ""

    @property
    def full_text(self) -> str:
        return f"{self.prefix}{self.body}{self.suffix}"

    def position_for_body_offset(self, offset: int) -> Position:
        return offset_to_position(self.full_text, len(self.prefix) + offset)

    def body_offset_for_position(self, position: Position) -> int:
        offset = position_to_offset(self.full_text, position) - len(self.prefix)
        return min(max(offset, 0), len(self.body))

    def diagnostic_from_lsp(self, data: Mapping[str, Any]) -> Diagnostic:
        rng = Range.from_lsp(data.get("range", {}))
        # missing, null or unknown severities count as errors
        try:
            severity = DiagnosticSeverity(int(data.get("severity")))
        except (TypeError, ValueError):
            severity = DiagnosticSeverity.ERROR
        return Diagnostic(
            severity=severity,
            message=str(data.get("message", "")),
            start=self.body_offset_for_position(rng.start),
            end=self.body_offset_for_position(rng.end),
            source=data.get("source"),
        )
