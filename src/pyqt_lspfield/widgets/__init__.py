"""
Expression field widgets and the panel popup editor.
"""

from .code_editor_surface import CodeEditorSurface
from .expression_controller import ExpressionFieldController, FieldBinding
from .expression_field import ExpressionFieldWidget, ExpressionTextAreaField
from .layout_constants import COMPACT_LAYOUT, CURRENT_LAYOUT, IMMEDIATE_LAYOUT, FieldLayoutConfig
from .plain_input import PlainLineInput, PlainTextAreaInput
from .popup import PopupConfig, PopupEditorWindow, PopupLink, PopupModule, PopupSession
from .toggle_button import LspToggleButton

__all__ = [
    'CodeEditorSurface',
    'ExpressionFieldController',
    'FieldBinding',
    'ExpressionFieldWidget',
    'ExpressionTextAreaField',
    'COMPACT_LAYOUT',
    'CURRENT_LAYOUT',
    'IMMEDIATE_LAYOUT',
    'FieldLayoutConfig',
    'PlainLineInput',
    'PlainTextAreaInput',
    'PopupConfig',
    'PopupEditorWindow',
    'PopupLink',
    'PopupModule',
    'PopupSession',
    'LspToggleButton',
]
