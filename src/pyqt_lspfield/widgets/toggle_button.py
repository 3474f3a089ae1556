"""Mode toggle button shown next to an expression field label."""

from __future__ import annotations

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtWidgets import QToolButton

from pyqt_lspfield.services.value_codec import LspRequirement
from .layout_constants import CURRENT_LAYOUT, FieldLayoutConfig

REQUIRED_TOOLTIP = "LSP expression is mandatory"


def optional_tooltip(active: bool) -> str:
    return f"Click to {'remove' if active else 'set a'} dynamic value with LSP expression"


class LspToggleButton(QToolButton):
    """Checkable ``fx`` button; disabled when the expression is mandatory."""

    toggle_requested = pyqtSignal()

    def __init__(self, requirement: LspRequirement = LspRequirement.OPTIONAL,
                 layout_config: FieldLayoutConfig = CURRENT_LAYOUT, parent=None):
        super().__init__(parent)
        self._requirement = requirement
        self.setText("fx")
        self.setCheckable(True)
        self.setAutoRaise(True)
        self.setFixedWidth(layout_config.toggle_button_width)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        # keyboard activation keeps focus on the button
        self.clicked.connect(lambda _checked=False: self.toggle_requested.emit())
        self.setVisible(requirement is not LspRequirement.NONE)
        self.set_active(requirement is LspRequirement.REQUIRED)

    @property
    def requirement(self) -> LspRequirement:
        return self._requirement

    def set_active(self, active: bool, disabled: bool = False) -> None:
        self.blockSignals(True)
        self.setChecked(active)
        self.blockSignals(False)
        required = self._requirement is LspRequirement.REQUIRED
        self.setEnabled(not required and not disabled)
        self.setToolTip(REQUIRED_TOOLTIP if required else optional_tooltip(active))
