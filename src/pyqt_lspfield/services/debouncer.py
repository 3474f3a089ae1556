"""Trailing debounce on a single-shot QTimer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PyQt6.QtCore import QObject, QTimer

logger = logging.getLogger(__name__)

_NOTHING = object()


class Debouncer(QObject):
    """Collapse rapid calls into one deferred call carrying the latest value.

    Each ``call`` restarts the timer, so only one timer is ever pending.
    ``cancel`` discards the pending value without invoking the callback.
    """

    def __init__(
        self,
        callback: Callable[[Any], None],
        delay_ms: int,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._callback = callback
        self._pending: Any = _NOTHING
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, delay_ms))
        self._timer.timeout.connect(self._fire)

    @property
    def delay_ms(self) -> int:
        return self._timer.interval()

    def is_pending(self) -> bool:
        return self._pending is not _NOTHING

    def call(self, value: Any) -> None:
        self._pending = value
        self._timer.start()

    def flush(self) -> None:
        """Invoke the callback now if a value is pending."""
        if self.is_pending():
            self._timer.stop()
            self._fire()

    def cancel(self) -> None:
        if self.is_pending():
            logger.debug("[DEBOUNCE] Discarding pending call")
        self._timer.stop()
        self._pending = _NOTHING

    def _fire(self) -> None:
        value, self._pending = self._pending, _NOTHING
        if value is not _NOTHING:
            self._callback(value)
