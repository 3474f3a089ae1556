"""Tests for the structured editor session."""

from dataclasses import replace

import pytest
from PyQt6.QtCore import QMimeData, Qt
from PyQt6.QtWidgets import QWidget

from pyqt_lspfield.editor.session import (
    EditorConfig,
    EditorConfigurationError,
    StructuredEditorSession,
    default_document_uri,
    parent_uri,
)


@pytest.fixture
def container(qtbot):
    widget = QWidget()
    qtbot.addWidget(widget)
    return widget


@pytest.fixture
def make_session(container, client_factory, editor_config):
    sessions = []

    def make(**overrides):
        session = StructuredEditorSession(replace(editor_config, **overrides), container, client_factory)
        sessions.append(session)
        return session

    yield make
    for session in sessions:
        session.dispose()


@pytest.mark.parametrize("config, missing", [
    (EditorConfig(server_uri="ws://x"), "language_id"),
    (EditorConfig(language_id="feel"), "server_uri"),
])
def test_missing_mandatory_parameter(container, client_factory, config, missing):
    with pytest.raises(EditorConfigurationError, match=f"Missing mandatory parameter: {missing}"):
        StructuredEditorSession(config, container, client_factory)
    assert client_factory.clients == []


def test_default_uris():
    assert default_document_uri("feel") == "inmemory:/document.feel"
    assert parent_uri("inmemory:/document.feel") == "inmemory:/"
    config = EditorConfig(language_id="feel", server_uri="ws://x")
    assert config.resolved_document_uri == "inmemory:/document.feel"
    assert config.resolved_root_uri == "inmemory:/"


def test_opens_document_with_wrapped_text(make_session, client_factory):
    session = make_session(value="a", prefix="x = ", suffix=";")
    client = client_factory.last
    assert client.opened == [("inmemory:/document.feel", "feel", 1, "x = a;")]
    assert client.root_uri == "inmemory:/"
    assert session.get_value() == "a"
    assert session.editor.toPlainText() == "a"


def test_typing_syncs_server_and_notifies(make_session, client_factory):
    changes = []
    session = make_session(on_change=changes.append, prefix="x = ")

    session.editor.insertPlainText("b")

    assert changes == ["b"]
    assert client_factory.last.changes == [("inmemory:/document.feel", 2, "x = b")]
    assert session.version == 2


def test_set_value_notifies_and_clears_diagnostics(make_session, client_factory):
    changes, lints = [], []
    session = make_session(value="a", on_change=changes.append, on_lint=lints.append)
    client_factory.last.publish("inmemory:/document.feel", 1, [{"message": "bad", "severity": 1}])
    assert len(session.diagnostics) == 1

    session.set_value("b")

    assert changes == ["b"]
    assert session.diagnostics == ()
    assert lints[-1] == []


def test_diagnostics_for_replaced_versions_are_dropped(make_session, client_factory):
    session = make_session(value="a")
    client = client_factory.last
    session.editor.insertPlainText("b")  # version 2
    session.set_value("c")  # version 3

    client.publish("inmemory:/document.feel", 2, [{"message": "stale"}])
    assert session.diagnostics == ()

    client.publish("inmemory:/document.feel", 3, [{"message": "fresh"}])
    assert [d.message for d in session.diagnostics] == ["fresh"]


def test_diagnostics_for_other_documents_are_ignored(make_session, client_factory):
    session = make_session(value="a")
    client_factory.last.publish("inmemory:/other.feel", None, [{"message": "x"}])
    assert session.diagnostics == ()


def test_focus_clamps_offset(make_session):
    session = make_session(value="abc")
    session.focus(100)
    assert session.get_selection().main.start == 3
    session.focus(1)
    assert session.get_selection().main.start == 1
    session.focus("x")
    assert session.get_selection().main.start == 3
    session.focus(0)
    assert session.get_selection().main.is_caret_at_start


def test_key_down_hook_can_consume_keys(make_session, qtbot):
    session = make_session(value="a", on_key_down=lambda event: event.key() == Qt.Key.Key_X)
    session.focus()
    qtbot.keyClick(session.editor, Qt.Key.Key_X)
    qtbot.keyClick(session.editor, Qt.Key.Key_Y)
    assert session.get_value() == "ay"


def test_trigger_character_requests_completion(make_session, client_factory, qtbot):
    session = make_session(value="a")
    session.focus()
    qtbot.keyClick(session.editor, Qt.Key.Key_Period)
    uri, position = client_factory.last.completion_requests[-1]
    assert uri == "inmemory:/document.feel"
    assert position.character == 2


def test_dispose_closes_connection_once(make_session, client_factory):
    session = make_session()
    session.dispose()
    session.dispose()
    assert session.is_disposed
    assert client_factory.last.close_calls == 1


def test_connection_error_reported_through_probe(make_session, qtbot):
    errors = []
    make_session(server_uri="ws://127.0.0.1:9", on_connection_error=errors.append)
    qtbot.waitUntil(lambda: len(errors) > 0, timeout=5000)
    assert errors == ["WebSocket connection to 'ws://127.0.0.1:9' failed."]


def test_connection_error_after_dispose_is_ignored(make_session, qtbot):
    errors = []
    session = make_session(server_uri="ws://127.0.0.1:9", on_connection_error=errors.append)
    session.dispose()
    qtbot.wait(200)
    assert errors == []


def test_set_value_with_unchanged_text_keeps_current_diagnostics(make_session, client_factory):
    changes = []
    session = make_session(value="a", on_change=changes.append)

    session.set_value("a")
    client_factory.last.publish("inmemory:/document.feel", 1, [{"message": "bad"}])

    assert [d.message for d in session.diagnostics] == ["bad"]
    assert changes == []
    assert session.version == 1


def test_null_severity_does_not_drop_the_batch(make_session, client_factory):
    session = make_session(value="abc")
    client_factory.last.publish("inmemory:/document.feel", None, [
        {"message": "m", "severity": None},
        {"message": "w", "severity": 2},
    ])
    assert [(d.message, d.is_error) for d in session.diagnostics] == [("m", True), ("w", False)]


def test_offsets_after_astral_characters(make_session, client_factory, qtbot):
    session = make_session(value="\U0001F600x")
    session.focus(1)
    assert session.get_selection().main.start == 1
    assert session.editor.textCursor().position() == 2

    client_factory.last.publish("inmemory:/document.feel", 1, [{
        "message": "unknown x",
        "range": {"start": {"line": 0, "character": 2}, "end": {"line": 0, "character": 3}},
    }])
    [selection] = session.editor.extraSelections()
    assert selection.cursor.selectedText() == "x"

    session.focus()
    qtbot.keyClick(session.editor, Qt.Key.Key_Period)
    _uri, position = client_factory.last.completion_requests[-1]
    assert position.character == 4


def test_copy_hook_sees_selected_text_only(make_session, qtbot):
    copies = []
    session = make_session(value="a + b", on_copy=copies.append)
    session.focus(0)

    qtbot.keyClick(session.editor, Qt.Key.Key_C, Qt.KeyboardModifier.ControlModifier)
    assert copies == []

    session.editor.selectAll()
    mime = session.editor.createMimeDataFromSelection()
    assert [m.text() for m in copies] == ["a + b"]
    assert copies[0] is mime


def test_paste_hook_sees_inserted_mime_data(make_session):
    pastes = []
    session = make_session(value="", on_paste=pastes.append)
    mime = QMimeData()
    mime.setText("1 + 1")

    session.editor.insertFromMimeData(mime)

    assert pastes == [mime]
    assert session.get_value() == "1 + 1"


def test_dispose_detaches_clipboard_hooks(make_session):
    session = make_session(on_copy=lambda mime: None, on_paste=lambda mime: None)
    editor = session.editor
    session.dispose()
    assert editor.copy_hook is None
    assert editor.paste_hook is None
