"""Tests for the rendered expression field widget."""

import pytest
from PyQt6.QtCore import QMimeData, Qt
from PyQt6.QtWidgets import QApplication

from pyqt_lspfield.services.value_codec import LspRequirement
from pyqt_lspfield.widgets.code_editor_surface import CodeEditorSurface
from pyqt_lspfield.widgets.expression_field import ExpressionFieldWidget, ExpressionTextAreaField
from pyqt_lspfield.widgets.plain_input import PlainLineInput, PlainTextAreaInput
from pyqt_lspfield.widgets.popup import PopupSession
from pyqt_lspfield.widgets.toggle_button import REQUIRED_TOOLTIP


@pytest.fixture
def popup_session(qapp, client_factory):
    session = PopupSession(client_factory=client_factory)
    yield session
    session.dispose()


@pytest.fixture
def make_field(qtbot, recorder, editor_config, client_factory, fast_layout, popup_session, error_registry):
    def make(value=None, field_class=ExpressionFieldWidget, **kwargs):
        recorder.value = value
        kwargs.setdefault("label", "Condition")
        kwargs.setdefault("popup_session", popup_session)
        kwargs.setdefault("error_registry", error_registry)
        field = field_class(
            "condition",
            {"type": "bpmn:SequenceFlow"},
            recorder.as_binding(),
            editor_config,
            client_factory=client_factory,
            layout_config=fast_layout,
            **kwargs,
        )
        qtbot.addWidget(field)
        return field
    return make


def _wait_for_editor(qtbot, field):
    qtbot.waitUntil(lambda: isinstance(field.surface, CodeEditorSurface) and field.surface.is_ready,
                    timeout=1000)
    return field.surface.session.editor


def test_plain_value_renders_line_input(make_field, recorder, qtbot):
    field = make_field("abc")
    assert isinstance(field.surface, PlainLineInput)
    assert field.surface.text() == "abc"

    qtbot.keyClicks(field.surface, "d")

    assert field.controller.local_value == "abcd"
    qtbot.waitUntil(lambda: recorder.commits == [("abcd", None)], timeout=1000)


def test_expression_value_renders_editor(make_field):
    field = make_field("=a + b")
    assert isinstance(field.surface, CodeEditorSurface)
    assert field.toggle_button.isChecked()


def test_toggle_switches_to_editor_and_focuses_it(make_field, qtbot):
    field = make_field("abc")
    field.toggle_button.click()

    editor = _wait_for_editor(qtbot, field)
    assert editor.toPlainText() == "abc"
    assert editor.textCursor().position() == 3
    assert field.controller.local_value == "=abc"


def test_backspace_at_start_leaves_expression_mode(make_field, qtbot):
    field = make_field("=abc")
    editor = _wait_for_editor(qtbot, field)
    field.surface.focus(0)

    qtbot.keyClick(editor, Qt.Key.Key_Backspace)

    assert isinstance(field.surface, PlainLineInput)
    assert field.surface.text() == "abc"
    assert field.surface.cursorPosition() == 0


def test_backspace_inside_text_edits(make_field, qtbot):
    field = make_field("=abc")
    editor = _wait_for_editor(qtbot, field)
    field.surface.focus(3)

    qtbot.keyClick(editor, Qt.Key.Key_Backspace)

    assert field.controller.local_value == "=ab"


def test_required_field_locks_toggle(make_field):
    field = make_field("x", requirement=LspRequirement.REQUIRED)
    assert isinstance(field.surface, CodeEditorSurface)
    assert not field.toggle_button.isEnabled()
    assert field.toggle_button.toolTip() == REQUIRED_TOOLTIP


def test_no_lsp_hides_toggle(make_field):
    field = make_field("x", requirement=LspRequirement.NONE)
    assert field.toggle_button.isHidden()


def test_validation_error_shown(make_field, recorder):
    recorder.validation["x"] = "Must be a number"
    field = make_field("x")
    assert field.error_label.text() == "Must be a number"
    assert not field.error_label.isHidden()


def test_refresh_adopts_external_value(make_field, recorder):
    field = make_field("a")
    recorder.value = "=b"
    field.refresh()
    assert isinstance(field.surface, CodeEditorSurface)
    assert field.controller.display_value == "b"


def test_popup_replaces_inline_editor(make_field, popup_session, qtbot):
    field = make_field("=a")
    _wait_for_editor(qtbot, field)

    field.open_popup()

    assert popup_session.source == "condition"
    assert field.surface.popup_open
    window = popup_session.window
    qtbot.waitUntil(lambda: window.surface.is_ready, timeout=1000)
    window.surface.session.editor.setPlainText("a + 1")
    assert field.controller.local_value == "=a + 1"

    popup_session.close()
    assert not field.surface.popup_open


def test_dispose_closes_own_popup(make_field, popup_session, qtbot):
    field = make_field("=a")
    _wait_for_editor(qtbot, field)
    field.open_popup()
    field.dispose()
    assert not popup_session.is_open()


def test_text_area_variant(make_field):
    field = make_field("line", field_class=ExpressionTextAreaField, auto_resize=True)
    assert isinstance(field.surface, PlainTextAreaInput)
    assert field.surface.toPlainText() == "line"


def test_refresh_keeps_edit_waiting_for_commit(make_field, recorder, qtbot):
    field = make_field("a")
    qtbot.keyClicks(field.surface, "b")

    # host re-reads the unchanged committed value inside the debounce window
    field.refresh()

    assert field.surface.text() == "ab"
    qtbot.waitUntil(lambda: recorder.commits == [("ab", None)], timeout=1000)


def _tagged_mime(text):
    mime = QMimeData()
    mime.setText(text)
    mime.setData("application/feel", text.encode("utf-8"))
    return mime


def test_copy_without_selection_leaves_foreign_clipboard_untagged(make_field, qtbot):
    field = make_field("=a")
    editor = _wait_for_editor(qtbot, field)
    QApplication.clipboard().setText("plain text copied elsewhere")
    field.surface.focus(0)

    qtbot.keyClick(editor, Qt.Key.Key_C, Qt.KeyboardModifier.ControlModifier)

    mime = QApplication.clipboard().mimeData()
    assert mime.text() == "plain text copied elsewhere"
    assert not mime.hasFormat("application/feel")


def test_copied_selection_is_tagged(make_field, qtbot):
    field = make_field("=a + b")
    editor = _wait_for_editor(qtbot, field)
    editor.selectAll()

    mime = editor.createMimeDataFromSelection()

    assert mime.text() == "a + b"
    assert bytes(mime.data("application/feel")) == b"a + b"


def test_tagged_paste_into_text_area_promotes(make_field, qtbot):
    field = make_field("", field_class=ExpressionTextAreaField)
    field.surface.focus()

    field.surface.insertFromMimeData(_tagged_mime("a + b"))

    qtbot.waitUntil(lambda: field.controller.is_expression, timeout=1000)
    assert field.controller.display_value == "a + b"
    assert isinstance(field.surface, CodeEditorSurface)


def test_untagged_paste_into_text_area_stays_plain(make_field, qtbot):
    field = make_field("", field_class=ExpressionTextAreaField)
    mime = QMimeData()
    mime.setText("a + b")

    field.surface.insertFromMimeData(mime)
    qtbot.wait(20)

    assert not field.controller.is_expression
    assert field.controller.local_value == "a + b"


def test_tagged_keyboard_paste_into_line_input_promotes(make_field, qtbot):
    field = make_field("")
    QApplication.clipboard().setMimeData(_tagged_mime("x > 1"))
    field.surface.focus()

    qtbot.keyClick(field.surface, Qt.Key.Key_V, Qt.KeyboardModifier.ControlModifier)

    qtbot.waitUntil(lambda: field.controller.is_expression, timeout=1000)
    assert field.controller.display_value == "x > 1"
