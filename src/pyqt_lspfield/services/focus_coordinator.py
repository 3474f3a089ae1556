"""
Buffered focus requests for editing surfaces that become ready asynchronously.

A field asks for focus while its surface may still be mounting (the
structured editor is built on the next event-loop tick). The coordinator keeps
at most one pending request and applies it exactly once when the surface
reports readiness. Later requests overwrite earlier ones.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)


class FocusableSurface(ABC):
    """Editing surface that can take keyboard focus at a caret offset."""

    @abstractmethod
    def focus(self, offset: Optional[int] = None) -> None:
        """Focus the surface; ``None`` places the caret at end of content."""


@dataclass(frozen=True)
class FocusIdle:
    """No focus request waiting."""


@dataclass(frozen=True)
class FocusPending:
    """One focus request waiting for the surface."""

    offset: Optional[int]


FocusRequestState = Union[FocusIdle, FocusPending]

_IDLE = FocusIdle()


class FocusCoordinator:
    """Route focus requests to whichever surface is active for one field."""

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._surface: Optional[FocusableSurface] = None
        self._state: FocusRequestState = _IDLE

    @property
    def state(self) -> FocusRequestState:
        return self._state

    @property
    def has_pending(self) -> bool:
        return isinstance(self._state, FocusPending)

    @property
    def surface(self) -> Optional[FocusableSurface]:
        return self._surface

    def request_focus(self, offset: Optional[int] = None) -> None:
        if self._surface is not None:
            self._surface.focus(offset)
            return
        self._state = FocusPending(offset)
        logger.debug(f"[FOCUS] {self._name}: buffered focus request at {offset}")

    # A coordinator doubles as a return-focus target for the popup.
    focus = request_focus

    def surface_ready(self, surface: FocusableSurface) -> None:
        """Attach ``surface`` and flush the pending request, if any."""
        self._surface = surface
        state = self._state
        if isinstance(state, FocusPending):
            self._state = _IDLE
            logger.debug(f"[FOCUS] {self._name}: flushing buffered focus at {state.offset}")
            surface.focus(state.offset)

    def detach(self, surface: Optional[FocusableSurface] = None) -> None:
        """Unbind the active surface; requests buffer until the next one is ready."""
        if surface is None or surface is self._surface:
            self._surface = None

    def cancel(self) -> None:
        """Drop any pending request and unbind the surface."""
        self._state = _IDLE
        self._surface = None
