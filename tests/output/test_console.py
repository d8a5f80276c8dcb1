"""Tests for the StringIO-backed console helpers."""

from __future__ import annotations

from entitykit.output.console import create_console, get_output, style_for_status


class TestConsole:
    def test_renders_to_buffer(self) -> None:
        console = create_console()
        console.print("hello")
        assert get_output(console) == "hello\n"

    def test_status_styles(self) -> None:
        assert style_for_status("failed") == "ek.status.failed"
        assert style_for_status("mystery") == ""
