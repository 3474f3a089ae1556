"""
PyQt LSP Field - toggleable plain/expression form fields backed by a language server.

Each field edits either a plain string or an expression (stored with a leading
``=``) in a structured editor connected to a Language Server Protocol server
over WebSocket. A panel-wide popup session offers a larger detached editor.
"""

__version__ = "0.1.0"

from .editor import EditorConfig, EditorConfigurationError, StructuredEditorSession
from .services import (
    EXPRESSION_SENTINEL,
    EventBus,
    FieldErrorRegistry,
    FieldMode,
    FocusCoordinator,
    LspRequirement,
)
from .widgets import (
    ExpressionFieldController,
    ExpressionFieldWidget,
    ExpressionTextAreaField,
    FieldBinding,
    PopupConfig,
    PopupModule,
    PopupSession,
)

__all__ = [
    "__version__",
    "EditorConfig",
    "EditorConfigurationError",
    "StructuredEditorSession",
    "EXPRESSION_SENTINEL",
    "EventBus",
    "FieldErrorRegistry",
    "FieldMode",
    "FocusCoordinator",
    "LspRequirement",
    "ExpressionFieldController",
    "ExpressionFieldWidget",
    "ExpressionTextAreaField",
    "FieldBinding",
    "PopupConfig",
    "PopupModule",
    "PopupSession",
]
