"""
Expression field controller - single source of truth for one field.

Owns the editing buffer, the plain/expression mode flag, debounced commits to
the owning form, error aggregation and clipboard-based mode promotion. The
controller holds no widgets; ``ExpressionFieldWidget`` renders its state and
forwards user input.

Buffer vs. committed value:
- ``local_value`` is the raw buffer (sentinel included in expression mode).
  It updates synchronously on every edit.
- Commits go through a trailing debounce. Several edits inside the window
  collapse to one commit carrying the latest value. A commit still pending
  when the controller is disposed is discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from PyQt6.QtCore import QMimeData, QObject, QTimer, pyqtSignal

from pyqt_lspfield.lsp.protocol import Diagnostic
from pyqt_lspfield.services.debouncer import Debouncer
from pyqt_lspfield.services.field_errors import (
    SYNTAX_ERROR_MESSAGE,
    FieldErrorRegistry,
    FieldErrors,
)
from pyqt_lspfield.services.focus_coordinator import FocusCoordinator
from pyqt_lspfield.services.value_codec import (
    EXPRESSION_SENTINEL,
    FieldMode,
    LspRequirement,
    classify,
    encode,
    expression_mime_type,
    to_commit_value,
)
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldBinding:
    """Commit contract between a field and the form that owns its value.

    ``set_value`` is only called when the committed value differs from what
    ``get_value`` currently reports.
    """
    get_value: Callable[[Any], Optional[str]]
    set_value: Callable[[Optional[str], Optional[str]], None]
    validate: Optional[Callable[[Optional[str]], Optional[str]]] = None


class ExpressionFieldController(QObject):
    """State machine for one toggleable expression field."""

    local_value_changed = pyqtSignal(object)
    mode_changed = pyqtSignal(object)  # FieldMode
    error_changed = pyqtSignal(object)  # displayed error, str | None
    popup_open_changed = pyqtSignal(bool)

    def __init__(
        self,
        field_id: str,
        element: Any,
        binding: FieldBinding,
        *,
        language_id: str = "",
        requirement: LspRequirement = LspRequirement.OPTIONAL,
        error_registry: Optional[FieldErrorRegistry] = None,
        layout_config: FieldLayoutConfig = CURRENT_LAYOUT,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.field_id = field_id
        self.element = element
        self.binding = binding
        self.language_id = language_id
        self.requirement = requirement
        self.focus = FocusCoordinator(field_id)

        self._disposed = False
        self._popup_open = False
        self._error_registry = error_registry

        value = binding.get_value(element)
        self._local_value: Optional[str] = value
        # last value read from or written to the binding
        self._last_external: Optional[str] = value
        self._mode = self._mode_for(value)
        self._errors = FieldErrors(
            temporary=error_registry.get_error(field_id) if error_registry is not None else None,
            validation=self._run_validation(value),
        )
        self._debouncer = Debouncer(self._commit, layout_config.commit_debounce_ms, self)

        if error_registry is not None:
            error_registry.error_changed.connect(self._on_temporary_error)

    # ---------------------------------------------------------------- state

    @property
    def mode(self) -> FieldMode:
        return self._mode

    @property
    def is_expression(self) -> bool:
        return self._mode is FieldMode.EXPRESSION

    @property
    def local_value(self) -> Optional[str]:
        return self._local_value

    @property
    def display_value(self) -> str:
        """Text shown in the active surface (expression body without sentinel)."""
        if self.is_expression:
            classified = classify(self._local_value)
            return classified.display_value or ""
        return self._local_value or ""

    @property
    def errors(self) -> FieldErrors:
        return self._errors

    @property
    def error(self) -> Optional[str]:
        return self._errors.displayed

    @property
    def popup_open(self) -> bool:
        return self._popup_open

    @property
    def has_pending_commit(self) -> bool:
        return self._debouncer.is_pending()

    def _mode_for(self, raw: Optional[str]) -> FieldMode:
        if self.requirement is LspRequirement.REQUIRED:
            return FieldMode.EXPRESSION
        return classify(raw).mode

    # ---------------------------------------------------------------- edits

    def on_local_edit(self, display_value: Optional[str]) -> None:
        """Handle text typed into the active surface."""
        if self._disposed:
            return
        new_value = encode(FieldMode.EXPRESSION, display_value) if self.is_expression else display_value
        if new_value == self._local_value:
            return
        self._set_local_value(new_value)

    def on_toggle_mode(self) -> None:
        """Switch between plain and expression editing."""
        if self._disposed or self.requirement is LspRequirement.REQUIRED:
            return

        if self._mode is FieldMode.PLAIN:
            old_value = self._local_value or ""
            self._mode = FieldMode.EXPRESSION
            self._set_local_value(encode(FieldMode.EXPRESSION, old_value))
            focus_offset = len(old_value) + 1
        else:
            display = self.display_value
            self._mode = FieldMode.PLAIN
            self._set_local_value(display)
            # fresh entry into the plain input
            focus_offset = 0

        logger.debug(f"[EXPR_FIELD] {self.field_id}: mode -> {self._mode.value}")
        self.mode_changed.emit(self._mode)
        self.focus.request_focus(focus_offset)

    def on_external_value(self, value: Optional[str]) -> None:
        """Adopt a value replaced from outside (undo/redo, other editors).

        Re-reading the value the controller last saw or committed is a no-op,
        so an edit still waiting for its debounced commit survives a refresh.
        """
        if self._disposed:
            return
        seen, self._last_external = self._last_external, value
        if value == seen or value == self._local_value:
            return

        self._debouncer.cancel()
        if not value:
            # content removed externally, keep the chosen editing mode
            new_value = EXPRESSION_SENTINEL if self.is_expression else ""
            new_mode = self._mode
        else:
            new_value = value
            new_mode = self._mode_for(value)

        mode_changed = new_mode is not self._mode
        self._mode = new_mode
        if new_value != self._local_value:
            self._local_value = new_value
            self.local_value_changed.emit(new_value)
        if mode_changed:
            logger.debug(f"[EXPR_FIELD] {self.field_id}: external value switched mode -> {new_mode.value}")
            self.mode_changed.emit(new_mode)
        self._set_errors(self._errors.with_validation(self._run_validation(value)))

    def _set_local_value(self, new_value: Optional[str]) -> None:
        self._local_value = new_value
        self.local_value_changed.emit(new_value)
        self._debouncer.call(to_commit_value(new_value))

    def _commit(self, value: Optional[str]) -> None:
        if self._disposed:
            return
        self._last_external = value
        validation_error = self._run_validation(value)
        # don't create multiple undo entries for the same value
        if value != self.binding.get_value(self.element):
            logger.debug(f"[EXPR_FIELD] {self.field_id}: commit {value!r}")
            self.binding.set_value(value, validation_error)
        self._set_errors(self._errors.with_validation(validation_error))

    def flush(self) -> None:
        """Commit a pending debounced edit immediately."""
        self._debouncer.flush()

    # ---------------------------------------------------------------- errors

    def _run_validation(self, value: Optional[str]) -> Optional[str]:
        if self.binding.validate is None:
            return None
        return self.binding.validate(value) or None

    def on_lint(self, diagnostics: Sequence[Diagnostic]) -> None:
        if self._disposed:
            return
        has_error = any(diagnostic.is_error for diagnostic in diagnostics)
        self._set_errors(self._errors.with_local(SYNTAX_ERROR_MESSAGE if has_error else None))

    def _on_temporary_error(self, field_id: str, error: Optional[str]) -> None:
        if field_id != self.field_id or self._disposed:
            return
        self._set_errors(self._errors.with_temporary(error))

    def _set_errors(self, errors: FieldErrors) -> None:
        previous = self._errors.displayed
        self._errors = errors
        if errors.displayed != previous:
            self.error_changed.emit(errors.displayed)

    # ---------------------------------------------------------------- clipboard

    @property
    def clipboard_format(self) -> str:
        return expression_mime_type(self.language_id)

    def on_copy(self, mime: QMimeData) -> bool:
        """Tag copied text as an expression body; returns True when tagged."""
        if not self.is_expression or not mime.hasText():
            return False
        mime.setData(self.clipboard_format, mime.text().encode("utf-8"))
        return True

    def on_paste(self, mime: Optional[QMimeData]) -> bool:
        """Promote to expression mode when a tagged expression is pasted.

        The toggle runs on the next event-loop tick so the plain surface
        finishes its own value update first.
        """
        if self._disposed or self.is_expression or self._popup_open or mime is None:
            return False
        if not mime.hasFormat(self.clipboard_format):
            return False
        if not bytes(mime.data(self.clipboard_format)):
            return False
        QTimer.singleShot(0, self._promote_after_paste)
        return True

    def _promote_after_paste(self) -> None:
        if self._disposed or self.is_expression:
            return
        self.on_toggle_mode()
        self.focus.request_focus()

    # ---------------------------------------------------------------- lifecycle

    def set_popup_open(self, popup_open: bool) -> None:
        if popup_open == self._popup_open:
            return
        self._popup_open = popup_open
        self.popup_open_changed.emit(popup_open)

    def dispose(self) -> None:
        """Drop pending focus and commit requests. Pending edits are discarded."""
        if self._disposed:
            return
        self._disposed = True
        if self._debouncer.is_pending():
            logger.debug(f"[EXPR_FIELD] {self.field_id}: discarding pending commit on dispose")
        self._debouncer.cancel()
        self.focus.cancel()
        if self._error_registry is not None:
            self._error_registry.error_changed.disconnect(self._on_temporary_error)
