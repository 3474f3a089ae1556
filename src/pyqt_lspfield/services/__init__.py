"""Widget-free services: value encoding, errors, focus, debounce and events."""

from .debouncer import Debouncer
from .event_bus import EventBus
from .field_errors import SYNTAX_ERROR_MESSAGE, FieldErrorRegistry, FieldErrors, resolve_error
from .focus_coordinator import FocusableSurface, FocusCoordinator, FocusIdle, FocusPending
from .value_codec import (
    EXPRESSION_SENTINEL,
    ClassifiedValue,
    FieldMode,
    LspRequirement,
    classify,
    encode,
    expression_mime_type,
    is_expression,
    normalize,
    to_commit_value,
)

__all__ = [
    'Debouncer',
    'EventBus',
    'SYNTAX_ERROR_MESSAGE',
    'FieldErrorRegistry',
    'FieldErrors',
    'resolve_error',
    'FocusableSurface',
    'FocusCoordinator',
    'FocusIdle',
    'FocusPending',
    'EXPRESSION_SENTINEL',
    'ClassifiedValue',
    'FieldMode',
    'LspRequirement',
    'classify',
    'encode',
    'expression_mime_type',
    'is_expression',
    'normalize',
    'to_commit_value',
]
