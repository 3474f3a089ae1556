"""
Expression-mode editing surface.

Hosts a ``StructuredEditorSession``. The session is built on the next
event-loop tick after construction; ``ready`` fires once it exists, which is
when buffered focus requests may be flushed. Until then ``set_value`` only
updates the value the session will start with.

Backspace with the caret at document start asks the field to leave
expression mode (``toggle_requested``).
"""

from __future__ import annotations

import logging
from abc import ABCMeta
from dataclasses import replace
from typing import Optional

from PyQt6.QtCore import Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QKeyEvent
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QStackedLayout, QToolButton, QWidget

from pyqt_lspfield.editor.session import ClientFactory, EditorConfig, StructuredEditorSession
from pyqt_lspfield.services.focus_coordinator import FocusableSurface
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig

logger = logging.getLogger(__name__)

OPENED_IN_EDITOR_TEXT = "Opened in editor"


class _CombinedMeta(ABCMeta, type(QWidget)):
    """Combined metaclass for ABC + PyQt6 QWidget."""


class CodeEditorSurface(QWidget, FocusableSurface, metaclass=_CombinedMeta):
    """Structured editor host with an optional "open popup" button."""

    ready = pyqtSignal()
    value_edited = pyqtSignal(str)
    lint = pyqtSignal(list)
    toggle_requested = pyqtSignal()
    popup_requested = pyqtSignal()

    def __init__(
        self,
        config: EditorConfig,
        *,
        show_popup_button: bool = True,
        client_factory: Optional[ClientFactory] = None,
        layout_config: FieldLayoutConfig = CURRENT_LAYOUT,
        parent: Optional[QWidget] = None,
    ):
        # fail at construction, not on the deferred session build
        config.validate()
        super().__init__(parent)
        self._config = config
        self._client_factory = client_factory
        self._show_popup_button = show_popup_button
        self._session: Optional[StructuredEditorSession] = None
        self._local_value = config.value or ""
        self._popup_open = False
        self._disposed = False

        self._setup_ui(layout_config)
        QTimer.singleShot(0, self._create_session)

    def _setup_ui(self, layout_config: FieldLayoutConfig) -> None:
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(layout_config.container_spacing)

        self._stack_host = QWidget(self)
        self._stack = QStackedLayout(self._stack_host)
        self.editor_host = QWidget(self._stack_host)
        self._stack.addWidget(self.editor_host)
        self._placeholder_label = QLabel(OPENED_IN_EDITOR_TEXT, self._stack_host)
        self._placeholder_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._stack.addWidget(self._placeholder_label)
        layout.addWidget(self._stack_host, 1)

        self.open_popup_button = QToolButton(self)
        self.open_popup_button.setText("↗")
        self.open_popup_button.setToolTip("Open pop-up editor")
        self.open_popup_button.setAutoRaise(True)
        self.open_popup_button.setFixedWidth(layout_config.open_popup_button_width)
        self.open_popup_button.clicked.connect(lambda _checked=False: self.popup_requested.emit())
        self.open_popup_button.setVisible(self._show_popup_button)
        layout.addWidget(self.open_popup_button, 0, Qt.AlignmentFlag.AlignTop)

    # ---------------------------------------------------------------- session

    @property
    def session(self) -> Optional[StructuredEditorSession]:
        return self._session

    @property
    def is_ready(self) -> bool:
        return self._session is not None

    def _create_session(self) -> None:
        if self._disposed:
            return
        config = self._config
        self._session = StructuredEditorSession(
            replace(
                config,
                value=self._local_value,
                on_change=self._on_change,
                on_key_down=self._on_key_down,
                on_lint=self._on_lint,
            ),
            container=self.editor_host,
            client_factory=self._client_factory,
        )
        logger.debug(f"[EDITOR_SURFACE] Session ready for {self._session.document_uri}")
        self.ready.emit()

    def _on_change(self, text: str) -> None:
        self._local_value = text
        self.value_edited.emit(text)

    def _on_lint(self, diagnostics: list) -> None:
        self.lint.emit(list(diagnostics))

    def _on_key_down(self, event: QKeyEvent) -> bool:
        if self._config.on_key_down(event):
            return True
        if event.key() != Qt.Key.Key_Backspace or self._session is None:
            return False
        if self._session.get_selection().main.is_caret_at_start:
            self.toggle_requested.emit()
            return True
        return False

    # ---------------------------------------------------------------- surface API

    def get_value(self) -> str:
        return self._local_value

    def set_value(self, value: Optional[str]) -> None:
        value = value or ""
        if value == self._local_value:
            return
        self._local_value = value
        if self._session is not None:
            self._session.set_value(value)

    def set_placeholder(self, placeholder: str) -> None:
        self._config = replace(self._config, placeholder=placeholder or "")
        if self._session is not None:
            self._session.set_placeholder(placeholder)

    def focus(self, offset: Optional[int] = None) -> None:
        if self._session is not None:
            self._session.focus(offset)

    def is_completion_open(self) -> bool:
        return self._session is not None and self._session.is_completion_open()

    def set_popup_open(self, popup_open: bool) -> None:
        self._popup_open = popup_open
        self._stack.setCurrentIndex(1 if popup_open else 0)
        self.open_popup_button.setVisible(self._show_popup_button and not popup_open)

    @property
    def popup_open(self) -> bool:
        return self._popup_open

    def dispose(self) -> None:
        """Dispose the session (closing its connection) and clear diagnostics."""
        if self._disposed:
            return
        self._disposed = True
        self.lint.emit([])
        if self._session is not None:
            self._session.dispose()
            self._session = None
