"""Tests for Rich Console factory and theme."""

from io import BytesIO, StringIO, TextIOWrapper

import pytest
from rich.console import Console

from todoctl.output.console import (
    PLUGIN_THEME,
    create_console,
    get_output,
    style_for_enabled,
    style_for_update,
)


class TestCreateConsole:
    def test_returns_console_with_stringio(self) -> None:
        console = create_console()
        assert isinstance(console.file, StringIO)

    def test_no_color_disables_ansi(self) -> None:
        console = create_console(no_color=True)
        console.print("[bold red]hello[/bold red]")
        output = get_output(console)
        assert "\x1b" not in output
        assert "hello" in output

    def test_custom_width(self) -> None:
        assert create_console(width=80).width == 80

    def test_default_width(self) -> None:
        assert create_console().width == 120


class TestGetOutput:
    def test_rejects_foreign_console(self) -> None:
        with pytest.raises(TypeError):
            get_output(Console(file=TextIOWrapper(BytesIO())))


class TestTheme:
    def test_plugin_styles_defined(self) -> None:
        for name in (
            "status.ok",
            "status.error",
            "plugin.name",
            "plugin.enabled",
            "plugin.disabled",
            "plugin.bundled",
            "marketplace.official",
        ):
            assert name in PLUGIN_THEME.styles

    def test_style_for_enabled(self) -> None:
        assert style_for_enabled(True) == "plugin.enabled"
        assert style_for_enabled(False) == "plugin.disabled"

    def test_style_for_update(self) -> None:
        assert style_for_update(True) == "update.updated"
        assert style_for_update(False) == "update.skipped"

    def test_every_helper_style_is_themed(self) -> None:
        styles = [style_for_enabled(flag) for flag in (True, False)]
        styles += [style_for_update(flag) for flag in (True, False)]
        for style in styles:
            assert style in PLUGIN_THEME.styles
