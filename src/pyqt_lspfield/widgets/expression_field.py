"""
Expression field entry widget.

Renders one ``ExpressionFieldController``: a label row with the mode toggle,
a container hosting either a plain input or a structured editor, an error
label and an optional description. Switching mode swaps the surface; the
controller's ``FocusCoordinator`` follows whichever surface is ready.

Clipboard: text copied out of the structured editor carries an extra
language-tagged format; pasting such a payload into the plain input promotes
the field to expression mode.

Usage:

    popup_session = PopupSession(event_bus, popup_container=panel)
    field = ExpressionFieldWidget(
        field_id="condition",
        element=element,
        binding=FieldBinding(
            get_value=lambda element: element.condition,
            set_value=lambda value, error: commands.update(element, condition=value),
            validate=validate_condition,
        ),
        editor_config=EditorConfig(language_id="feel", server_uri="ws://localhost:8080"),
        label="Condition",
        popup_session=popup_session,
    )

Call ``refresh()`` after the owning form changed the value (undo/redo) and
``dispose()`` before dropping the widget.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, Union

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtWidgets import QHBoxLayout, QLabel, QVBoxLayout, QWidget

from pyqt_lspfield.editor.session import ClientFactory, EditorConfig
from pyqt_lspfield.services.field_errors import FieldErrorRegistry
from pyqt_lspfield.services.value_codec import FieldMode, LspRequirement
from .code_editor_surface import CodeEditorSurface
from .expression_controller import ExpressionFieldController, FieldBinding
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig
from .plain_input import PlainLineInput, PlainTextAreaInput
from .popup import PopupConfig, PopupSession, calculate_popup_position, popup_title
from .toggle_button import LspToggleButton

logger = logging.getLogger(__name__)

Surface = Union[PlainLineInput, PlainTextAreaInput, CodeEditorSurface]


def prefix_id(field_id: str) -> str:
    return f"lsp-field-{field_id}"


class _ClickableLabel(QLabel):
    clicked = pyqtSignal()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        self.clicked.emit()
        super().mousePressEvent(event)


class ExpressionFieldWidget(QWidget):
    """Toggleable plain/expression field entry for a properties panel."""

    def __init__(
        self,
        field_id: str,
        element: Any,
        binding: FieldBinding,
        editor_config: EditorConfig,
        *,
        label: str = "",
        description: Optional[str] = None,
        requirement: LspRequirement = LspRequirement.OPTIONAL,
        disabled: bool = False,
        popup_session: Optional[PopupSession] = None,
        error_registry: Optional[FieldErrorRegistry] = None,
        client_factory: Optional[ClientFactory] = None,
        layout_config: FieldLayoutConfig = CURRENT_LAYOUT,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.field_id = field_id
        self.label = label
        self.editor_config = editor_config
        self.disabled = disabled
        self.layout_config = layout_config
        self._popup_session = popup_session
        self._client_factory = client_factory
        self._surface: Optional[Surface] = None
        self._disposed = False

        self.controller = ExpressionFieldController(
            field_id,
            element,
            binding,
            language_id=editor_config.language_id or "",
            requirement=requirement,
            error_registry=error_registry,
            layout_config=layout_config,
            parent=self,
        )

        self.setObjectName(prefix_id(field_id))
        self._setup_ui(description)

        self.controller.local_value_changed.connect(self._on_local_value_changed)
        self.controller.mode_changed.connect(self._on_mode_changed)
        self.controller.error_changed.connect(self._update_error)
        self.controller.popup_open_changed.connect(self._on_popup_open_changed)
        if popup_session is not None:
            popup_session.source_changed.connect(self._on_popup_source_changed)
            self.controller.set_popup_open(popup_session.source == field_id)

        self._render_surface()
        self._update_error(self.controller.error)

    def _setup_ui(self, description: Optional[str]) -> None:
        cfg = self.layout_config
        layout = QVBoxLayout(self)
        layout.setContentsMargins(*cfg.entry_margins)
        layout.setSpacing(cfg.entry_spacing)

        label_row = QHBoxLayout()
        label_row.setSpacing(cfg.label_row_spacing)
        self.label_widget = _ClickableLabel(self.label)
        self.label_widget.clicked.connect(lambda: self.controller.focus.request_focus())
        label_row.addWidget(self.label_widget)
        self.toggle_button = LspToggleButton(self.controller.requirement, cfg)
        self.toggle_button.toggle_requested.connect(self.controller.on_toggle_mode)
        label_row.addWidget(self.toggle_button)
        label_row.addStretch()
        layout.addLayout(label_row)

        self.container = QWidget(self)
        self._container_layout = QHBoxLayout(self.container)
        self._container_layout.setContentsMargins(0, 0, 0, 0)
        self._container_layout.setSpacing(cfg.container_spacing)
        layout.addWidget(self.container)

        self.error_label = QLabel(self)
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet(cfg.get_error_stylesheet())
        self.error_label.hide()
        layout.addWidget(self.error_label)

        self.description_label: Optional[QLabel] = None
        if description:
            self.description_label = QLabel(description, self)
            self.description_label.setWordWrap(True)
            self.description_label.setStyleSheet(cfg.get_description_stylesheet())
            layout.addWidget(self.description_label)

    # ---------------------------------------------------------------- surfaces

    @property
    def surface(self) -> Optional[Surface]:
        return self._surface

    def _create_plain_surface(self, value: str) -> Union[PlainLineInput, PlainTextAreaInput]:
        return PlainLineInput(value, self.editor_config.placeholder, self.layout_config)

    def _render_surface(self) -> None:
        self._release_surface()
        display = self.controller.display_value

        if self.controller.is_expression:
            surface = CodeEditorSurface(
                replace(
                    self.editor_config,
                    value=display,
                    on_copy=self.controller.on_copy,
                    on_paste=self.controller.on_paste,
                ),
                show_popup_button=True,
                client_factory=self._client_factory,
                layout_config=self.layout_config,
            )
            surface.lint.connect(self.controller.on_lint)
            surface.toggle_requested.connect(self._on_editor_toggle)
            surface.popup_requested.connect(self.open_popup)
            surface.ready.connect(lambda s=surface: self._on_editor_ready(s))
            surface.set_popup_open(self.controller.popup_open)
        else:
            surface = self._create_plain_surface(display)
            surface.mime_pasted.connect(self.controller.on_paste)

        surface.value_edited.connect(self.controller.on_local_edit)
        surface.setEnabled(not self.disabled)
        surface.setAccessibleName(self.label)
        self._container_layout.addWidget(surface)
        self._surface = surface
        self.toggle_button.set_active(self.controller.is_expression, self.disabled)
        logger.debug(f"[EXPR_FIELD] {self.field_id}: rendered {type(surface).__name__}")

        if not isinstance(surface, CodeEditorSurface):
            self.controller.focus.surface_ready(surface)

    def _release_surface(self) -> None:
        surface, self._surface = self._surface, None
        if surface is None:
            return
        self.controller.focus.detach(surface)
        surface.value_edited.disconnect(self.controller.on_local_edit)
        if isinstance(surface, CodeEditorSurface):
            surface.dispose()
        else:
            surface.mime_pasted.disconnect(self.controller.on_paste)
        self._container_layout.removeWidget(surface)
        surface.hide()
        surface.deleteLater()

    def _on_editor_ready(self, surface: CodeEditorSurface) -> None:
        if surface is not self._surface or self._disposed:
            return
        surface.session.editor.setAccessibleName(self.label)
        self.controller.focus.surface_ready(surface)

    def _on_editor_toggle(self) -> None:
        self.controller.on_toggle_mode()

    # ---------------------------------------------------------------- controller signals

    def _on_local_value_changed(self, _value) -> None:
        if self._surface is not None:
            self._surface.set_value(self.controller.display_value)

    def _on_mode_changed(self, _mode: FieldMode) -> None:
        self._render_surface()

    def _update_error(self, error: Optional[str]) -> None:
        self.error_label.setText(error or "")
        self.error_label.setVisible(bool(error))
        self.setProperty("has_error", bool(error))

    def _on_popup_source_changed(self, source: Optional[str]) -> None:
        self.controller.set_popup_open(source == self.field_id)

    def _on_popup_open_changed(self, popup_open: bool) -> None:
        if isinstance(self._surface, CodeEditorSurface):
            self._surface.set_popup_open(popup_open)

    # ---------------------------------------------------------------- public API

    @property
    def error(self) -> Optional[str]:
        return self.controller.error

    def refresh(self) -> None:
        """Re-read the committed value from the binding."""
        self.controller.on_external_value(self.controller.binding.get_value(self.controller.element))

    def focus_field(self, offset: Optional[int] = None) -> None:
        self.controller.focus.request_focus(offset)

    def open_popup(self) -> None:
        if self._popup_session is None or not self.controller.is_expression:
            return
        config = PopupConfig(
            field_id=self.field_id,
            title=popup_title(self.controller.element, self.label),
            editor=replace(
                self.editor_config,
                value=self.controller.display_value,
                on_copy=self.controller.on_copy,
            ),
            on_input=self.controller.on_local_edit,
            position=calculate_popup_position(self.container, self.layout_config),
        )
        self._popup_session.open(self.field_id, config, self.controller.focus)

    def dispose(self) -> None:
        """Close this field's popup, dispose the editor and drop pending work."""
        if self._disposed:
            return
        self._disposed = True
        if self._popup_session is not None:
            self._popup_session.source_changed.disconnect(self._on_popup_source_changed)
            self._popup_session.close(self.field_id)
        self._release_surface()
        self.controller.dispose()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self.dispose()
        super().closeEvent(event)


class ExpressionTextAreaField(ExpressionFieldWidget):
    """Expression field whose plain mode is a multi-line text area."""

    def __init__(self, *args, auto_resize: bool = False, **kwargs):
        self.auto_resize = auto_resize
        super().__init__(*args, **kwargs)

    def _create_plain_surface(self, value: str) -> PlainTextAreaInput:
        return PlainTextAreaInput(
            value,
            self.editor_config.placeholder,
            auto_resize=self.auto_resize,
            layout_config=self.layout_config,
        )
