"""
Structured editor: code editor widget and its language-server session.
"""

from .code_editor import CodeEditor
from .session import (
    EditorConfig,
    EditorConfigurationError,
    EditorSelection,
    SelectionRange,
    StructuredEditorSession,
)

__all__ = [
    'CodeEditor',
    'EditorConfig',
    'EditorConfigurationError',
    'EditorSelection',
    'SelectionRange',
    'StructuredEditorSession',
]
