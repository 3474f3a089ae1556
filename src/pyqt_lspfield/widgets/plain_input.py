"""
Plain-mode editing surfaces.

To be consistent with the structured editor, both inputs accept a caret
offset on focus and clamp it to the content length; no offset places the
caret at the end.

Every paste or drop is announced through ``mime_pasted`` with the incoming
mime data, so the owning field can react to clipboard formats the inputs
themselves ignore.
"""

from __future__ import annotations

from abc import ABCMeta
from typing import Optional

from PyQt6.QtCore import QMimeData, pyqtSignal
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import QApplication, QLineEdit, QPlainTextEdit, QWidget

from pyqt_lspfield.services.focus_coordinator import FocusableSurface
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig


class _CombinedMeta(ABCMeta, type(QWidget)):
    """Combined metaclass for ABC + PyQt6 QWidget."""


class PlainLineInput(QLineEdit, FocusableSurface, metaclass=_CombinedMeta):
    """Single-line plain input."""

    value_edited = pyqtSignal(str)
    mime_pasted = pyqtSignal(object)  # QMimeData

    def __init__(self, value: Optional[str] = None, placeholder: str = "",
                 layout_config: FieldLayoutConfig = CURRENT_LAYOUT, parent=None):
        super().__init__(parent)
        self.setText(value or "")
        self.setPlaceholderText(placeholder or "")
        self.setMinimumHeight(layout_config.input_field_height)
        self.textEdited.connect(self.value_edited)

    def get_value(self) -> str:
        return self.text()

    def set_value(self, value: Optional[str]) -> None:
        value = value or ""
        if value != self.text():
            self.setText(value)

    def focus(self, offset: Optional[int] = None) -> None:
        self.setFocus()
        length = len(self.text())
        position = length if not isinstance(offset, int) else min(max(offset, 0), length)
        self.setCursorPosition(position)

    def _announce_clipboard(self) -> None:
        mime = QApplication.clipboard().mimeData()
        if mime is not None:
            self.mime_pasted.emit(mime)

    # QLineEdit has no mime data hooks; cover its paste entry points instead

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.matches(QKeySequence.StandardKey.Paste):
            self._announce_clipboard()
        super().keyPressEvent(event)

    def contextMenuEvent(self, event) -> None:  # type: ignore[override]
        menu = self.createStandardContextMenu()
        paste_action = menu.findChild(QAction, "edit-paste")
        if paste_action is not None:
            paste_action.triggered.connect(lambda _checked=False: self._announce_clipboard())
        menu.exec(event.globalPos())
        menu.deleteLater()

    def dropEvent(self, event) -> None:  # type: ignore[override]
        if event.mimeData() is not None:
            self.mime_pasted.emit(event.mimeData())
        super().dropEvent(event)


class PlainTextAreaInput(QPlainTextEdit, FocusableSurface, metaclass=_CombinedMeta):
    """Multi-line plain input, optionally growing with its content."""

    value_edited = pyqtSignal(str)
    mime_pasted = pyqtSignal(object)  # QMimeData

    def __init__(self, value: Optional[str] = None, placeholder: str = "",
                 auto_resize: bool = False,
                 layout_config: FieldLayoutConfig = CURRENT_LAYOUT, parent=None):
        super().__init__(parent)
        self._auto_resize = auto_resize
        self._layout_config = layout_config
        self._setting_value = False
        self.setPlaceholderText(placeholder or "")
        self.set_value(value)
        self.textChanged.connect(self._on_text_changed)
        self._update_height()

    def get_value(self) -> str:
        return self.toPlainText()

    def set_value(self, value: Optional[str]) -> None:
        value = value or ""
        if value == self.toPlainText():
            return
        self._setting_value = True
        try:
            self.setPlainText(value)
        finally:
            self._setting_value = False

    def focus(self, offset: Optional[int] = None) -> None:
        self.setFocus()
        length = len(self.toPlainText())
        position = length if not isinstance(offset, int) else min(max(offset, 0), length)
        cursor = self.textCursor()
        cursor.setPosition(position)
        self.setTextCursor(cursor)

    def insertFromMimeData(self, source: QMimeData) -> None:  # type: ignore[override]
        # covers keyboard, context menu and drop
        if source is not None:
            self.mime_pasted.emit(source)
        super().insertFromMimeData(source)

    def guess_rows(self) -> int:
        if not self._auto_resize:
            return self._layout_config.text_area_rows
        return max(1, self.toPlainText().count("\n") + 1)

    def _on_text_changed(self) -> None:
        self._update_height()
        if not self._setting_value:
            self.value_edited.emit(self.toPlainText())

    def _update_height(self) -> None:
        line_height = self.fontMetrics().lineSpacing()
        margins = self.contentsMargins()
        frame = 2 * self.frameWidth() + 2 * int(self.document().documentMargin())
        self.setFixedHeight(
            self.guess_rows() * line_height + margins.top() + margins.bottom() + frame
        )
