"""Language Server Protocol client and message types."""

from .client import (
    ConnectionProbe,
    LanguageServerClientABC,
    WebSocketLanguageClient,
    connection_error_message,
)
from .protocol import (
    CompletionItem,
    Diagnostic,
    DiagnosticSeverity,
    Position,
    Range,
    WrappedDocument,
)

__all__ = [
    'ConnectionProbe',
    'LanguageServerClientABC',
    'WebSocketLanguageClient',
    'connection_error_message',
    'CompletionItem',
    'Diagnostic',
    'DiagnosticSeverity',
    'Position',
    'Range',
    'WrappedDocument',
]
