"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from pyqt_lspfield.editor.session import EditorConfig
from pyqt_lspfield.lsp.client import LanguageServerClientABC
from pyqt_lspfield.lsp.protocol import CompletionItem
from pyqt_lspfield.services.field_errors import FieldErrorRegistry
from pyqt_lspfield.widgets.expression_controller import ExpressionFieldController, FieldBinding
from pyqt_lspfield.widgets.layout_constants import FieldLayoutConfig


class FakeLanguageClient(LanguageServerClientABC):
    """In-memory language client recording every call."""

    def __init__(self, server_uri: str, root_uri: str, trigger_characters: Tuple[str, ...] = (".",)):
        super().__init__()
        self.server_uri = server_uri
        self.root_uri = root_uri
        self.opened: List[Tuple[str, str, int, str]] = []
        self.changes: List[Tuple[str, int, str]] = []
        self.completion_requests: List[Tuple[str, Any]] = []
        self.completion_items: Tuple[CompletionItem, ...] = ()
        self.close_calls = 0
        self._trigger_characters = trigger_characters

    @property
    def trigger_characters(self) -> Tuple[str, ...]:
        return self._trigger_characters

    def open_document(self, uri, language_id, version, text):
        self.opened.append((uri, language_id, version, text))

    def change_document(self, uri, version, text):
        self.changes.append((uri, version, text))

    def request_completion(self, uri, position, callback):
        self.completion_requests.append((uri, position))
        callback(self.completion_items)

    def close(self):
        self.close_calls += 1

    @property
    def is_closed(self) -> bool:
        return self.close_calls > 0

    def publish(self, uri: str, version: Optional[int], diagnostics: list) -> None:
        self.diagnostics_published.emit(uri, version, diagnostics)


@pytest.fixture
def client_factory():
    """Factory handing out ``FakeLanguageClient`` instances; created clients are kept on ``.clients``."""

    class Factory:
        def __init__(self):
            self.clients: List[FakeLanguageClient] = []

        def __call__(self, server_uri, root_uri):
            client = FakeLanguageClient(server_uri, root_uri)
            self.clients.append(client)
            return client

        @property
        def last(self) -> FakeLanguageClient:
            return self.clients[-1]

    return Factory()


@pytest.fixture
def editor_config():
    return EditorConfig(language_id="feel", server_uri="ws://localhost:8080")


@dataclass
class RecordingBinding:
    """Owning-form stand-in storing the committed value."""

    value: Optional[str] = None
    validation: Dict[Optional[str], str] = field(default_factory=dict)
    commits: List[Tuple[Optional[str], Optional[str]]] = field(default_factory=list)

    def get_value(self, element) -> Optional[str]:
        return self.value

    def set_value(self, value, validation_error) -> None:
        self.commits.append((value, validation_error))
        self.value = value

    def validate(self, value) -> Optional[str]:
        return self.validation.get(value)

    def as_binding(self) -> FieldBinding:
        return FieldBinding(self.get_value, self.set_value, self.validate)


@pytest.fixture
def recorder():
    return RecordingBinding()


@pytest.fixture
def fast_layout():
    return FieldLayoutConfig(commit_debounce_ms=20)


@pytest.fixture
def error_registry(qapp):
    return FieldErrorRegistry()


@pytest.fixture
def make_controller(qapp, recorder, fast_layout, error_registry):
    controllers = []

    def make(value=None, **kwargs):
        recorder.value = value
        kwargs.setdefault("language_id", "feel")
        kwargs.setdefault("layout_config", fast_layout)
        kwargs.setdefault("error_registry", error_registry)
        controller = ExpressionFieldController("condition", {"type": "Task"}, recorder.as_binding(), **kwargs)
        controllers.append(controller)
        return controller

    yield make
    for controller in controllers:
        controller.dispose()


class RecordingSurface:
    """Focusable surface recording focus offsets."""

    def __init__(self):
        self.focus_calls: List[Optional[int]] = []

    def focus(self, offset=None):
        self.focus_calls.append(offset)


@pytest.fixture
def surface():
    return RecordingSurface()
