"""Rich Console factory and theme for entitykit output.

Creates Console instances that render to a StringIO buffer, preserving
the ``render_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

ENTITY_THEME = Theme(
    {
        "ek.ok": "bold green",
        "ek.error": "bold red",
        "ek.warning": "bold yellow",
        "ek.op": "bold cyan",
        "ek.key": "dim",
        "ek.status.applied": "green",
        "ek.status.skipped": "yellow",
        "ek.status.failed": "red",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "applied": "ek.status.applied",
    "skipped": "ek.status.skipped",
    "failed": "ek.status.failed",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=ENTITY_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    return _STATUS_STYLES.get(status, "")
