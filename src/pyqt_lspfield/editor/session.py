"""
Structured editor session: one live editor bound to one language server.

The session builds a ``CodeEditor`` inside a host container, opens exactly one
client connection and keeps the server's copy of the document in sync. The
connection closes exactly once, in ``dispose``.

Example:

    session = StructuredEditorSession(
        EditorConfig(
            language_id="feel",
            server_uri="ws://localhost:8080",
            value="1 + 1",
            on_change=lambda text: print(text),
            on_lint=lambda diagnostics: print(diagnostics),
        ),
        container=widget,
    )
    session.focus()
    ...
    session.dispose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QMimeData, QObject
from PyQt6.QtGui import QKeyEvent, QSyntaxHighlighter, QTextCursor, QTextDocument
from PyQt6.QtWidgets import QVBoxLayout, QWidget

from .code_editor import CodeEditor
from pyqt_lspfield.lsp.client import ConnectionProbe, LanguageServerClientABC, WebSocketLanguageClient
from pyqt_lspfield.lsp.protocol import (
    CompletionItem,
    Diagnostic,
    WrappedDocument,
    code_point_offset,
    utf16_offset,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], LanguageServerClientABC]


class EditorConfigurationError(ValueError):
    """A mandatory structured editor parameter is missing."""


def _noop(*_args, **_kwargs) -> None:
    return None


def default_document_uri(language_id: str) -> str:
    return f"inmemory:/document.{language_id}"


def parent_uri(document_uri: str) -> str:
    """Return the parent path of ``document_uri``, keeping the trailing slash."""
    return document_uri[: document_uri.rfind("/") + 1]


@dataclass(frozen=True)
class EditorConfig:
    """Construction parameters of a structured editor session.

    ``on_connection_error`` is an optional capability: when set, a
    connectivity probe runs at construction and reports failures through it.
    ``on_copy`` sees the mime data of every copy, cut or drag out of the
    editor and may add formats to it; ``on_paste`` sees the mime data of
    every paste or drop before it is inserted.
    """
    language_id: Optional[str] = None
    server_uri: Optional[str] = None
    value: str = ""
    document_uri: Optional[str] = None
    root_uri: Optional[str] = None
    prefix: str = ""
    suffix: str = ""
    placeholder: str = ""
    read_only: bool = False
    enable_gutters: bool = False
    highlighter_factory: Optional[Callable[[QTextDocument], QSyntaxHighlighter]] = None
    content_attributes: dict = field(default_factory=dict)
    on_change: Callable[[str], None] = _noop
    on_key_down: Callable[[QKeyEvent], bool] = lambda event: False
    on_lint: Callable[[List[Diagnostic]], None] = _noop
    on_connection_error: Optional[Callable[[str], None]] = None
    on_copy: Optional[Callable[[QMimeData], object]] = None
    on_paste: Optional[Callable[[QMimeData], object]] = None

    def validate(self) -> None:
        if not self.language_id:
            raise EditorConfigurationError("Missing mandatory parameter: language_id")
        if not self.server_uri:
            raise EditorConfigurationError("Missing mandatory parameter: server_uri")

    @property
    def resolved_document_uri(self) -> str:
        return self.document_uri or default_document_uri(self.language_id)

    @property
    def resolved_root_uri(self) -> str:
        return self.root_uri or parent_uri(self.resolved_document_uri)


@dataclass(frozen=True)
class SelectionRange:
    start: int
    end: int

    @property
    def is_caret_at_start(self) -> bool:
        return self.start == 0 and self.end == 0


@dataclass(frozen=True)
class EditorSelection:
    ranges: Tuple[SelectionRange, ...]
    main_index: int = 0

    @property
    def main(self) -> SelectionRange:
        return self.ranges[self.main_index]


class StructuredEditorSession(QObject):
    """Owns one ``CodeEditor`` and its language-server connection."""

    def __init__(
        self,
        config: EditorConfig,
        container: QWidget,
        client_factory: Optional[ClientFactory] = None,
        parent: Optional[QObject] = None,
    ):
        config.validate()
        super().__init__(parent)
        self.config = config
        self.document_uri = config.resolved_document_uri
        self.root_uri = config.resolved_root_uri
        self._disposed = False
        self._version = 1
        self._diagnostics_floor = 1
        self._diagnostics: Tuple[Diagnostic, ...] = ()
        self._document = WrappedDocument(config.value or "", config.prefix or "", config.suffix or "")

        self.editor = CodeEditor(
            container,
            enable_gutters=config.enable_gutters,
            placeholder=config.placeholder,
            read_only=config.read_only,
        )
        for name, value in config.content_attributes.items():
            self.editor.setProperty(name, value)
        if container.layout() is None:
            layout = QVBoxLayout(container)
            layout.setContentsMargins(0, 0, 0, 0)
        container.layout().addWidget(self.editor)

        self._highlighter = (
            config.highlighter_factory(self.editor.document())
            if config.highlighter_factory is not None
            else None
        )
        self.editor.setPlainText(self._document.body)
        self.editor.textChanged.connect(self._on_text_changed)
        self.editor.key_down_hook = config.on_key_down
        self.editor.completion_provider = self._request_completion
        self.editor.trigger_characters = self._trigger_characters
        self.editor.copy_hook = config.on_copy
        self.editor.paste_hook = config.on_paste

        self._probe: Optional[ConnectionProbe] = None
        if config.on_connection_error is not None:
            self._probe = ConnectionProbe(config.server_uri, self._on_probe_failed, self)

        factory = client_factory or WebSocketLanguageClient
        self._client: Optional[LanguageServerClientABC] = factory(config.server_uri, self.root_uri)
        self._client.diagnostics_published.connect(self._on_diagnostics_published)
        self._client.open_document(
            self.document_uri, config.language_id, self._version, self._document.full_text
        )
        logger.debug(f"[LSP_SESSION] Opened {self.document_uri} on {config.server_uri}")

    # ---------------------------------------------------------------- state

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def version(self) -> int:
        return self._version

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return self._diagnostics

    def get_value(self) -> str:
        return self._document.body

    def set_value(self, value: Optional[str]) -> None:
        """Replace the whole document; observers see it like typed input."""
        value = value or ""
        if value == self._document.body:
            return
        self._diagnostics_floor = self._version + 1
        self._set_diagnostics(())
        self.editor.setPlainText(value)

    def set_placeholder(self, placeholder: str) -> None:
        self.editor.setPlaceholderText(placeholder or "")

    def focus(self, offset: Optional[int] = None) -> None:
        """Focus the editor; numeric offsets clamp to the document, else caret at end."""
        self.editor.setFocus()
        text = self.editor.toPlainText()
        position = len(text) if not isinstance(offset, int) else min(max(offset, 0), len(text))
        cursor = self.editor.textCursor()
        cursor.setPosition(utf16_offset(text, position))
        self.editor.setTextCursor(cursor)
        self.editor.ensureCursorVisible()

    def get_selection(self) -> EditorSelection:
        cursor: QTextCursor = self.editor.textCursor()
        text = self.editor.toPlainText()
        return EditorSelection(
            ranges=(SelectionRange(
                code_point_offset(text, cursor.selectionStart()),
                code_point_offset(text, cursor.selectionEnd()),
            ),),
            main_index=0,
        )

    def is_completion_open(self) -> bool:
        return self.editor.is_completion_open()

    def dispose(self) -> None:
        """Close the connection and release the editor. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        if self._probe is not None:
            self._probe.cancel()
            self._probe = None
        if self._client is not None:
            self._client.diagnostics_published.disconnect(self._on_diagnostics_published)
            self._client.close()
            self._client = None
        self.editor.textChanged.disconnect(self._on_text_changed)
        self.editor.key_down_hook = None
        self.editor.completion_provider = None
        self.editor.copy_hook = None
        self.editor.paste_hook = None
        self.editor.hide()
        self.editor.deleteLater()
        logger.debug(f"[LSP_SESSION] Disposed {self.document_uri}")

    # ---------------------------------------------------------------- callbacks

    def _on_text_changed(self) -> None:
        text = self.editor.toPlainText()
        if text == self._document.body:
            return
        self._document = WrappedDocument(text, self._document.prefix, self._document.suffix)
        self._version += 1
        if self._client is not None:
            self._client.change_document(self.document_uri, self._version, self._document.full_text)
        self.config.on_change(text)

    def _on_diagnostics_published(self, uri: str, version, raw: list) -> None:
        if self._disposed or uri != self.document_uri:
            return
        if version is not None and version < self._diagnostics_floor:
            logger.debug(f"[LSP_SESSION] Dropping diagnostics for stale version {version}")
            return
        diagnostics = []
        for item in raw:
            if isinstance(item, dict):
                diagnostics.append(self._document.diagnostic_from_lsp(item))
        self._set_diagnostics(tuple(diagnostics))

    def _set_diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        self._diagnostics = tuple(diagnostics)
        self.editor.set_diagnostics(self._diagnostics)
        self.config.on_lint(list(self._diagnostics))

    def _on_probe_failed(self, message: str) -> None:
        # may arrive after dispose
        if self._disposed:
            return
        self.config.on_connection_error(message)

    def _trigger_characters(self) -> Tuple[str, ...]:
        return self._client.trigger_characters if self._client is not None else ()

    def _request_completion(self, offset: int, deliver: Callable[[Sequence[CompletionItem]], None]) -> None:
        if self._client is None:
            return
        position = self._document.position_for_body_offset(offset)
        self._client.request_completion(self.document_uri, position, deliver)
