"""
Layout constants for expression fields.

This module centralizes spacing, sizing and timing of field entries and the
popup editor so every panel renders them the same way.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldLayoutConfig:
    """Configuration for field entry layout, popup geometry and timing."""

    # Entry layout (label row, editor container, error/description rows)
    entry_spacing: int = 2
    entry_margins: tuple = (0, 2, 0, 2)  # left, top, right, bottom
    label_row_spacing: int = 4
    container_spacing: int = 2

    # Widget sizing
    input_field_height: int = 28
    text_area_rows: int = 2
    toggle_button_width: int = 24
    open_popup_button_width: int = 24

    # Popup editor geometry
    popup_width: int = 700
    popup_height: int = 250
    popup_offset: int = 20  # gap between popup right edge and field

    # Delay before local edits are committed to the owning form (ms)
    commit_debounce_ms: int = 300

    def get_error_stylesheet(self) -> str:
        return "QLabel { color: #e5484d; }"

    def get_description_stylesheet(self) -> str:
        return "QLabel { color: palette(placeholder-text); }"


# Default compact configuration
COMPACT_LAYOUT = FieldLayoutConfig()

# Immediate commits, used by tests and headless hosts
IMMEDIATE_LAYOUT = FieldLayoutConfig(commit_debounce_ms=0)

# Current active configuration - change this to switch layouts globally
CURRENT_LAYOUT = COMPACT_LAYOUT
