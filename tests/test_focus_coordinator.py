"""Tests for focus request buffering."""

from pyqt_lspfield.services.focus_coordinator import FocusCoordinator, FocusIdle, FocusPending


def test_request_before_surface_is_buffered(surface):
    coordinator = FocusCoordinator("field")
    coordinator.request_focus(3)
    assert coordinator.state == FocusPending(3)
    assert surface.focus_calls == []

    coordinator.surface_ready(surface)

    assert surface.focus_calls == [3]
    assert isinstance(coordinator.state, FocusIdle)


def test_later_request_overwrites_earlier(surface):
    coordinator = FocusCoordinator()
    coordinator.request_focus(3)
    coordinator.request_focus()
    coordinator.surface_ready(surface)
    assert surface.focus_calls == [None]


def test_buffered_request_flushes_once(surface):
    coordinator = FocusCoordinator()
    coordinator.request_focus(1)
    coordinator.surface_ready(surface)
    coordinator.surface_ready(surface)
    assert surface.focus_calls == [1]


def test_request_with_surface_applies_immediately(surface):
    coordinator = FocusCoordinator()
    coordinator.surface_ready(surface)
    coordinator.focus(5)
    assert surface.focus_calls == [5]


def test_detach_only_unbinds_matching_surface(surface):
    coordinator = FocusCoordinator()
    coordinator.surface_ready(surface)
    coordinator.detach(object())
    assert coordinator.surface is surface
    coordinator.detach(surface)
    assert coordinator.surface is None
    coordinator.request_focus(2)
    assert coordinator.has_pending


def test_cancel_drops_pending_request(surface):
    coordinator = FocusCoordinator()
    coordinator.request_focus(2)
    coordinator.cancel()
    coordinator.surface_ready(surface)
    assert surface.focus_calls == []
