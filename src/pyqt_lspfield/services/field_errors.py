"""
Field error aggregation.

A field tracks three independently sourced error strings. Only one is shown at
a time; the others stay tracked and take over once higher priority errors
clear:

    temporary (external, short-lived)  >  local (syntax)  >  validation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)

SYNTAX_ERROR_MESSAGE = "Unparsable syntax."


def resolve_error(
    temporary: Optional[str],
    local: Optional[str],
    validation: Optional[str],
) -> Optional[str]:
    """Return the first present error in priority order, or None."""
    for error in (temporary, local, validation):
        if error:
            return error
    return None


@dataclass(frozen=True)
class FieldErrors:
    """Snapshot of the three error sources of one field."""

    temporary: Optional[str] = None
    local: Optional[str] = None
    validation: Optional[str] = None

    @property
    def displayed(self) -> Optional[str]:
        return resolve_error(self.temporary, self.local, self.validation)

    def with_temporary(self, error: Optional[str]) -> "FieldErrors":
        return replace(self, temporary=error or None)

    def with_local(self, error: Optional[str]) -> "FieldErrors":
        return replace(self, local=error or None)

    def with_validation(self, error: Optional[str]) -> "FieldErrors":
        return replace(self, validation=error or None)


class FieldErrorRegistry(QObject):
    """Panel-wide store of temporary errors keyed by field id.

    The collaborator that sets an error is also the one that clears it.
    Fields listen to ``error_changed`` and pick out their own id.
    """

    error_changed = pyqtSignal(str, object)  # field_id, error (str | None)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._errors: Dict[str, str] = {}

    def get_error(self, field_id: str) -> Optional[str]:
        return self._errors.get(field_id)

    def set_error(self, field_id: str, error: Optional[str]) -> None:
        previous = self._errors.get(field_id)
        if error:
            self._errors[field_id] = error
        else:
            self._errors.pop(field_id, None)
        if previous != (error or None):
            logger.debug(f"[FIELD_ERRORS] {field_id}: {previous!r} -> {error!r}")
            self.error_changed.emit(field_id, error or None)

    def clear(self, field_id: Optional[str] = None) -> None:
        """Clear one field's error, or every error when no id is given."""
        field_ids = [field_id] if field_id is not None else list(self._errors)
        for fid in field_ids:
            self.set_error(fid, None)
