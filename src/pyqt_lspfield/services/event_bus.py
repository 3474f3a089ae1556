"""
Minimal named-event notification bus.

Listeners are plain callables registered per event name. ``fire`` calls them
in registration order with the event context as keyword arguments and returns
the first non-None result, which lets query events (``popup._is_open``) share
the same channel as notifications.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


def _is_deleted_receiver(callback: Callable) -> bool:
    """True when the callback is bound to a Qt object whose C++ side is gone."""
    receiver = getattr(callback, "__self__", None)
    if receiver is None:
        return False
    try:
        from PyQt6 import sip
        return sip.isdeleted(receiver)
    except TypeError:
        return False  # not a Qt object


class EventBus:
    """Named-event bus shared by one panel."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    def fire(self, event: str, **context: Any) -> Any:
        """Notify listeners of ``event`` and return the first non-None result."""
        result = None
        dead_callbacks = []
        for callback in list(self._listeners.get(event, ())):
            if _is_deleted_receiver(callback):
                logger.debug(f"[EVENT_BUS] Dropping deleted receiver for {event}")
                dead_callbacks.append(callback)
                continue
            try:
                value = callback(**context)
            except RuntimeError as e:
                # "wrapped C/C++ object has been deleted"
                if "deleted" in str(e).lower():
                    dead_callbacks.append(callback)
                    continue
                logger.warning(f"[EVENT_BUS] Listener for {event} failed: {e}")
                continue
            except Exception as e:
                logger.warning(f"[EVENT_BUS] Listener for {event} failed: {e}")
                continue
            if result is None and value is not None:
                result = value

        for callback in dead_callbacks:
            self.off(event, callback)
        return result
