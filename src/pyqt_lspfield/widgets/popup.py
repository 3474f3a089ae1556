"""
Detached popup editor, one per panel.

``PopupSession`` is an explicit context object constructed once per panel
and handed to every field. It guarantees at most one open popup: opening for
another field closes the current one first (last caller wins).

Lifecycle events fired on the panel's ``EventBus``:
- ``popup.open``   - before the popup is mounted
- ``popup.opened`` - after the popup is mounted; context ``dom_node``
- ``popup.close``  - before the popup is unmounted; context ``dom_node``
- ``popup.closed`` - after the popup is unmounted

Control events consumed from the bus:
- ``popup._open``    - ``entry_id``, ``popup_config``, ``source_element``
- ``popup._close``   - optional ``id``
- ``popup._is_open`` - returns bool

Mount and teardown effects complete on the next event-loop tick; callers must
not assume ``open``/``close`` finished synchronously.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Sequence

from PyQt6.QtCore import QEvent, QObject, QPoint, Qt, QTimer, QUrl, pyqtSignal
from PyQt6.QtGui import QKeyEvent
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget

from pyqt_lspfield.editor.session import ClientFactory, EditorConfig
from pyqt_lspfield.services.event_bus import EventBus
from pyqt_lspfield.services.focus_coordinator import FocusCoordinator
from .code_editor_surface import CodeEditorSurface
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PopupLink:
    title: str
    href: str


@dataclass(frozen=True)
class PopupConfig:
    """Snapshot of the owning field's editing parameters at open time."""

    field_id: str
    title: str
    editor: EditorConfig
    on_input: Callable[[str], None]
    position: Optional[QPoint] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def value(self) -> str:
        return self.editor.value


class PopupEditorWindow(QWidget):
    """Tool window with a title row and a gutter-enabled structured editor.

    Escape closes the window unless the completion list was open when the key
    was pressed. The list state is captured by an event filter on the editor
    and on the completion list, which runs before either handles the key.
    While the list is shown it receives the key and closes itself, so Escape
    never reaches the window.
    """

    close_requested = pyqtSignal()

    def __init__(
        self,
        config: PopupConfig,
        *,
        links: Sequence[PopupLink] = (),
        client_factory: Optional[ClientFactory] = None,
        layout_config: FieldLayoutConfig = CURRENT_LAYOUT,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent, Qt.WindowType.Tool)
        self.config = config
        self._disposed = False
        self._completion_open_on_escape = False
        self.focus_coordinator = FocusCoordinator(f"popup:{config.field_id}")

        self.setWindowTitle(config.title)
        self.resize(config.width or layout_config.popup_width,
                    config.height or layout_config.popup_height)
        if config.position is not None:
            self.move(config.position)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(4)

        title_row = QHBoxLayout()
        title_label = QLabel(f"<b>{config.title}</b>")
        title_row.addWidget(title_label)
        for link in links:
            link_label = QLabel(f'<a href="{QUrl(link.href).toString()}">{link.title} ↗</a>')
            link_label.setOpenExternalLinks(True)
            title_row.addWidget(link_label)
        title_row.addStretch()
        self.close_button = QPushButton("✕")
        self.close_button.setToolTip("Save and close")
        self.close_button.setFlat(True)
        self.close_button.clicked.connect(lambda _checked=False: self.close_requested.emit())
        title_row.addWidget(self.close_button)
        layout.addLayout(title_row)

        self.surface = CodeEditorSurface(
            replace(config.editor, enable_gutters=True),
            show_popup_button=False,
            client_factory=client_factory,
            layout_config=layout_config,
            parent=self,
        )
        self.surface.value_edited.connect(config.on_input)
        self.surface.ready.connect(self._on_surface_ready)
        layout.addWidget(self.surface, 1)

    def _on_surface_ready(self) -> None:
        if self._disposed:
            return
        editor = self.surface.session.editor
        editor.installEventFilter(self)
        editor.completion_popup().installEventFilter(self)
        self.focus_coordinator.surface_ready(self.surface)

    def focus_editor(self) -> None:
        self.focus_coordinator.request_focus()

    def eventFilter(self, obj, event):
        # capture phase: runs before the editor's own key handling
        if event.type() == QEvent.Type.KeyPress and event.key() == Qt.Key.Key_Escape:
            self._completion_open_on_escape = self.surface.is_completion_open()
        return super().eventFilter(obj, event)

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            completion_was_open = self._completion_open_on_escape
            self._completion_open_on_escape = False
            if not completion_was_open:
                self.close_requested.emit()
            event.accept()
            return
        super().keyPressEvent(event)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        if not self._disposed:
            # window manager close: route through the session
            event.ignore()
            self.close_requested.emit()
            return
        super().closeEvent(event)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self.focus_coordinator.cancel()
        self.surface.dispose()


class PopupSession(QObject):
    """Coordinates the single popup editor of one panel."""

    source_changed = pyqtSignal(object)  # open field id or None

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        *,
        popup_container: Optional[QWidget] = None,
        get_popup_links: Callable[[str], Sequence[PopupLink]] = lambda language_id: [],
        client_factory: Optional[ClientFactory] = None,
        layout_config: FieldLayoutConfig = CURRENT_LAYOUT,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self._popup_container = popup_container
        self._get_popup_links = get_popup_links
        self._client_factory = client_factory
        self._layout_config = layout_config

        self._open_field_id: Optional[str] = None
        self._config: Optional[PopupConfig] = None
        self._return_focus_target: Any = None
        self._window: Optional[PopupEditorWindow] = None
        self._element: Any = None
        self._disposed = False

        self.event_bus.on("popup._open", self._on_bus_open)
        self.event_bus.on("popup._close", self._on_bus_close)
        self.event_bus.on("popup._is_open", self.is_open)

    # ---------------------------------------------------------------- state

    @property
    def source(self) -> Optional[str]:
        """Id of the field that owns the popup, or None."""
        return self._open_field_id

    @property
    def config(self) -> Optional[PopupConfig]:
        return self._config

    @property
    def window(self) -> Optional[PopupEditorWindow]:
        return self._window

    def is_open(self) -> bool:
        return self._open_field_id is not None

    def _emit(self, event: str, **context: Any) -> None:
        self.event_bus.fire(f"popup.{event}", **context)

    # ---------------------------------------------------------------- transitions

    def open(self, field_id: str, config: PopupConfig, return_focus_target: Any = None) -> None:
        """Open the popup for ``field_id``; closes any popup owned by another field.

        ``return_focus_target`` (a widget or an object with ``focus()``) regains
        focus after the popup closes.
        """
        if self._disposed:
            return
        if self._open_field_id is not None:
            logger.debug(f"[LSP_POPUP] Replacing popup of {self._open_field_id} with {field_id}")
            self._teardown(return_focus=False)

        self._emit("open")
        self._open_field_id = field_id
        self._config = config
        self._return_focus_target = return_focus_target

        window = PopupEditorWindow(
            config,
            links=self._get_popup_links(config.editor.language_id),
            client_factory=self._client_factory,
            layout_config=self._layout_config,
            parent=self._popup_container,
        )
        window.close_requested.connect(lambda fid=field_id: self.close(fid))
        self._window = window
        window.show()
        logger.debug(f"[LSP_POPUP] Opened popup for {field_id}")
        self.source_changed.emit(field_id)
        QTimer.singleShot(0, lambda: self._after_mount(window))

    def _after_mount(self, window: PopupEditorWindow) -> None:
        if window is not self._window:
            return
        self._emit("opened", dom_node=window)
        window.focus_editor()

    def close(self, field_id: Optional[str] = None) -> None:
        """Close the popup. A ``field_id`` that does not own the popup is ignored."""
        if self._open_field_id is None:
            return
        if field_id is not None and field_id != self._open_field_id:
            logger.debug(f"[LSP_POPUP] Ignoring stale close from {field_id}")
            return
        self._teardown(return_focus=True)

    def set_element(self, element: Any) -> None:
        """Track the document element being edited; a different element closes the popup."""
        previous, self._element = self._element, element
        if element is not None and previous is not None and element is not previous:
            logger.debug("[LSP_POPUP] Element changed, closing popup")
            if self._open_field_id is not None:
                self._teardown(return_focus=True)

    def _teardown(self, return_focus: bool) -> None:
        window = self._window
        field_id = self._open_field_id
        target = self._return_focus_target

        self._open_field_id = None
        self._config = None
        self._return_focus_target = None
        self._window = None

        self._emit("close", dom_node=window)
        if window is not None:
            window.dispose()
            window.close()
            window.deleteLater()
        self.source_changed.emit(None)
        logger.debug(f"[LSP_POPUP] Closed popup for {field_id}")

        def after_unmount() -> None:
            if return_focus and target is not None:
                if isinstance(target, QWidget):
                    target.setFocus()
                else:
                    target.focus()
            self._emit("closed")

        QTimer.singleShot(0, after_unmount)

    def dispose(self) -> None:
        """Tear down with the panel; no focus is returned."""
        if self._disposed:
            return
        if self._open_field_id is not None:
            self._teardown(return_focus=False)
        self._disposed = True
        self.event_bus.off("popup._open", self._on_bus_open)
        self.event_bus.off("popup._close", self._on_bus_close)
        self.event_bus.off("popup._is_open", self.is_open)

    # ---------------------------------------------------------------- bus

    def _on_bus_open(self, entry_id: str, popup_config: PopupConfig, source_element: Any = None) -> None:
        self.open(entry_id, popup_config, source_element)

    def _on_bus_close(self, id: Optional[str] = None) -> None:
        self.close(id)


class PopupModule:
    """Bus facade for hosts that control the popup without holding the session."""

    def __init__(self, event_bus: EventBus):
        self._event_bus = event_bus

    def is_open(self) -> bool:
        return bool(self._event_bus.fire("popup._is_open"))

    def open(self, entry_id: str, popup_config: PopupConfig, source_element: Any = None) -> None:
        self._event_bus.fire(
            "popup._open",
            entry_id=entry_id,
            popup_config=popup_config,
            source_element=source_element,
        )

    def close(self) -> None:
        self._event_bus.fire("popup._close")


def popup_title(element: Any, label: str) -> str:
    """``"<element type> / <label>"``, or just the label when the element has no type."""
    element_type = element.get("type") if isinstance(element, dict) else getattr(element, "type", None)
    return f"{element_type} / {label}" if element_type else label


def calculate_popup_position(widget: QWidget, layout_config: FieldLayoutConfig = CURRENT_LAYOUT) -> QPoint:
    """Place the popup to the left of ``widget``, top-aligned with it."""
    top_left = widget.mapToGlobal(QPoint(0, 0))
    return QPoint(
        top_left.x() - layout_config.popup_width - layout_config.popup_offset,
        top_left.y(),
    )
