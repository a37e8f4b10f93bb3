"""
Renderers that put a DisplayState in front of the user.

The classification core knows nothing about these; hosts pick a
renderer and the monitor hands it each new state or error display.
"""

import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO

from .colors import parse_color
from .constants import ICON_MARKER
from .models import DisplayState, ErrorDisplay, IconPosition


class Renderer(ABC):
    """Displays composed states and degraded error states."""

    @abstractmethod
    def render(self, state: DisplayState) -> None:
        """Show a freshly composed state."""

    @abstractmethod
    def render_error(self, error: ErrorDisplay) -> None:
        """Show the degraded state for a failed cycle."""


def colorize(text: str, color: str) -> str:
    """Wrap text in an ANSI 24-bit foreground color escape."""
    r, g, b = parse_color(color)
    return f"\033[38;2;{r};{g};{b}m{text}\033[0m"


class ConsoleRenderer(Renderer):
    """
    Writes the panel line, and optionally the menu rows, to a text stream.

    The icon marker is placed on the configured side of the panel text
    when the state asks for an icon.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        show_menu: bool = False,
        use_color: bool = True,
    ):
        self.stream = stream or sys.stdout
        self.show_menu = show_menu
        self.use_color = use_color

    def _styled(self, text: str, color: str) -> str:
        return colorize(text, color) if self.use_color else text

    def format_panel(self, state: DisplayState) -> str:
        text = self._styled(state.panel_text, state.severity_color)
        if not state.show_icon:
            return text
        if state.icon_position == IconPosition.LEFT:
            return f"{ICON_MARKER} {text}"
        return f"{text} {ICON_MARKER}"

    def render(self, state: DisplayState) -> None:
        lines = [self.format_panel(state)]
        if self.show_menu:
            menu = state.menu
            lines.extend(
                f"  {row}" for row in (menu.last_reading, menu.delta, menu.trend, menu.elapsed)
            )
        self.stream.write("\n".join(lines) + "\n")
        self.stream.flush()

    def render_error(self, error: ErrorDisplay) -> None:
        self.stream.write(self._styled(error.text, error.color) + "\n")
        self.stream.flush()
