"""
Code editing widget used by structured editor sessions.

A ``QPlainTextEdit`` with optional line-number gutter, diagnostic underlines
and a ``QCompleter`` popup fed by an asynchronous completion provider. The
widget knows nothing about language servers; the owning session wires the
hooks.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Optional, Sequence

from PyQt6.QtCore import QMimeData, QRect, QSize, QStringListModel, Qt
from PyQt6.QtGui import QColor, QKeyEvent, QPainter, QTextCharFormat, QTextCursor
from PyQt6.QtWidgets import QAbstractItemView, QCompleter, QPlainTextEdit, QTextEdit, QWidget

from pyqt_lspfield.lsp.protocol import CompletionItem, Diagnostic, code_point_offset, utf16_length, utf16_offset

logger = logging.getLogger(__name__)

KeyDownHook = Callable[[QKeyEvent], bool]
CompletionProvider = Callable[[int, Callable[[Sequence[CompletionItem]], None]], None]
MimeHook = Callable[[QMimeData], object]

_COMPLETION_ACCEPT_KEYS = (
    Qt.Key.Key_Enter,
    Qt.Key.Key_Return,
    Qt.Key.Key_Escape,
    Qt.Key.Key_Tab,
    Qt.Key.Key_Backtab,
)


class LineNumberArea(QWidget):
    """Gutter painting block numbers next to the editor viewport."""

    def __init__(self, editor: "CodeEditor") -> None:
        super().__init__(editor)
        self._editor = editor

    def sizeHint(self) -> QSize:  # type: ignore[override]
        return QSize(self._editor.line_number_area_width(), 0)

    def paintEvent(self, event) -> None:  # type: ignore[override]
        self._editor.paint_line_numbers(event)


class CodeEditor(QPlainTextEdit):
    """Plain-text code editor with gutter, diagnostics and completion popup."""

    def __init__(
        self,
        parent: Optional[QWidget] = None,
        *,
        enable_gutters: bool = False,
        placeholder: str = "",
        read_only: bool = False,
    ) -> None:
        super().__init__(parent)
        self.key_down_hook: Optional[KeyDownHook] = None
        self.completion_provider: Optional[CompletionProvider] = None
        self.trigger_characters: Callable[[], Iterable[str]] = lambda: ()
        # called with the mime data of every copy, cut and drag from this editor
        self.copy_hook: Optional[MimeHook] = None
        # called with the mime data of every paste and drop before insertion
        self.paste_hook: Optional[MimeHook] = None

        self._completion_items: Dict[str, CompletionItem] = {}
        self._completion_request = 0
        self._diagnostics: list[Diagnostic] = []

        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.WidgetWidth)
        self.setTabChangesFocus(False)
        self.setPlaceholderText(placeholder)
        self.setReadOnly(read_only)

        self._completer = QCompleter(self)
        self._completer.setWidget(self)
        self._completer.setCompletionMode(QCompleter.CompletionMode.PopupCompletion)
        self._completer.setCaseSensitivity(Qt.CaseSensitivity.CaseInsensitive)
        self._completer.setModel(QStringListModel([], self._completer))
        self._completer.activated.connect(self._insert_completion)

        self.line_number_area: Optional[LineNumberArea] = None
        if enable_gutters:
            self.line_number_area = LineNumberArea(self)
            self.blockCountChanged.connect(self._update_line_number_area_width)
            self.updateRequest.connect(self._update_line_number_area)
            self._update_line_number_area_width()

    # ---------------------------------------------------------------- gutter

    def line_number_area_width(self) -> int:
        digits = len(str(max(1, self.blockCount())))
        return 8 + self.fontMetrics().horizontalAdvance("9") * digits

    def _update_line_number_area_width(self, _=None) -> None:
        self.setViewportMargins(self.line_number_area_width(), 0, 0, 0)

    def _update_line_number_area(self, rect: QRect, dy: int) -> None:
        if self.line_number_area is None:
            return
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self._update_line_number_area_width()

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        if self.line_number_area is not None:
            cr = self.contentsRect()
            self.line_number_area.setGeometry(
                QRect(cr.left(), cr.top(), self.line_number_area_width(), cr.height())
            )

    def paint_line_numbers(self, event) -> None:
        painter = QPainter(self.line_number_area)
        painter.fillRect(event.rect(), self.palette().alternateBase())
        painter.setPen(self.palette().placeholderText().color())
        block = self.firstVisibleBlock()
        number = block.blockNumber()
        top = round(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
        bottom = top + round(self.blockBoundingRect(block).height())
        width = self.line_number_area.width() - 4
        height = self.fontMetrics().height()
        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                painter.drawText(0, top, width, height, Qt.AlignmentFlag.AlignRight, str(number + 1))
            block = block.next()
            top = bottom
            bottom = top + round(self.blockBoundingRect(block).height())
            number += 1
        painter.end()

    # ---------------------------------------------------------------- diagnostics

    def set_diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        """Underline diagnostic ranges; errors in red, everything else amber."""
        self._diagnostics = list(diagnostics)
        selections = []
        text = self.toPlainText()
        length = utf16_length(text)
        for diag in self._diagnostics:
            selection = QTextEdit.ExtraSelection()
            fmt = QTextCharFormat()
            fmt.setUnderlineStyle(QTextCharFormat.UnderlineStyle.WaveUnderline)
            fmt.setUnderlineColor(QColor("#e5484d") if diag.is_error else QColor("#f5a524"))
            fmt.setToolTip(diag.message)
            cursor = QTextCursor(self.document())
            # cursor positions count UTF-16 units
            start = utf16_offset(text, diag.start)
            end = min(max(utf16_offset(text, diag.end), start + 1), length)
            cursor.setPosition(start)
            cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
            selection.cursor = cursor
            selection.format = fmt
            selections.append(selection)
        self.setExtraSelections(selections)

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    # ---------------------------------------------------------------- completion

    def completion_popup(self) -> QAbstractItemView:
        return self._completer.popup()

    def is_completion_open(self) -> bool:
        return self._completer.popup().isVisible()

    def hide_completion(self) -> None:
        self._completer.popup().hide()

    def _word_prefix(self) -> str:
        cursor = self.textCursor()
        line = cursor.block().text()
        text = line[: code_point_offset(line, cursor.positionInBlock())]
        start = len(text)
        while start > 0 and (text[start - 1].isalnum() or text[start - 1] == "_"):
            start -= 1
        return text[start:]

    def _should_trigger_completion(self, typed: str) -> bool:
        if not typed or self.completion_provider is None or self.isReadOnly():
            return False
        last = typed[-1]
        return last.isalnum() or last == "_" or last in tuple(self.trigger_characters())

    def _request_completion(self) -> None:
        self._completion_request += 1
        request = self._completion_request
        offset = code_point_offset(self.toPlainText(), self.textCursor().position())

        def deliver(items: Sequence[CompletionItem]) -> None:
            # stale response, the user kept typing
            if request != self._completion_request:
                return
            self.show_completions(items)

        self.completion_provider(offset, deliver)

    def show_completions(self, items: Sequence[CompletionItem]) -> None:
        self._completion_items = {item.label: item for item in items}
        if not self._completion_items:
            self.hide_completion()
            return
        self._completer.model().setStringList(list(self._completion_items))
        self._completer.setCompletionPrefix(self._word_prefix())
        if self._completer.completionCount() == 0:
            self.hide_completion()
            return
        popup = self._completer.popup()
        popup.setCurrentIndex(self._completer.completionModel().index(0, 0))
        rect = self.cursorRect()
        rect.setWidth(popup.sizeHintForColumn(0) + popup.verticalScrollBar().sizeHint().width())
        self._completer.complete(rect)

    def _insert_completion(self, label: str) -> None:
        item = self._completion_items.get(label)
        if item is None:
            return
        cursor = self.textCursor()
        prefix = self._word_prefix()
        cursor.movePosition(
            QTextCursor.MoveOperation.Left, QTextCursor.MoveMode.KeepAnchor, len(prefix)
        )
        cursor.insertText(item.insert_text)
        self.setTextCursor(cursor)

    # ---------------------------------------------------------------- clipboard

    def createMimeDataFromSelection(self) -> QMimeData:  # type: ignore[override]
        # only reached when there is a selection to copy, cut or drag
        mime = super().createMimeDataFromSelection()
        if self.copy_hook is not None and mime.hasText():
            self.copy_hook(mime)
        return mime

    def insertFromMimeData(self, source: QMimeData) -> None:  # type: ignore[override]
        if self.paste_hook is not None and source is not None:
            self.paste_hook(source)
        super().insertFromMimeData(source)

    # ---------------------------------------------------------------- keys

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if self.is_completion_open() and event.key() in _COMPLETION_ACCEPT_KEYS:
            # the completer handles these
            event.ignore()
            return

        if self.key_down_hook is not None and self.key_down_hook(event):
            event.accept()
            return

        super().keyPressEvent(event)

        if self._should_trigger_completion(event.text()):
            self._request_completion()
        elif self.is_completion_open():
            self._completer.setCompletionPrefix(self._word_prefix())
