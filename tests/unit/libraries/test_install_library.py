"""Tests for the install_library() convenience entry point."""

import json
from io import StringIO
from unittest.mock import patch

import pytest
from library_helpers import IndexBuilder
from rich.console import Console

from fblib.config import LibrarySettings
from fblib.libraries import install_library
from fblib.libraries.errors import LibraryNotFoundError
from fblib.libraries.progress_display import DisplayPhase, LibraryProgressDisplay


@pytest.fixture
def indexed_settings(settings: LibrarySettings, index: IndexBuilder) -> LibrarySettings:
    settings.index_path.write_text(json.dumps(index.index()), encoding="utf-8")
    return settings


class TestInstallLibrary:
    def test_without_display(self, indexed_settings: LibrarySettings, served) -> None:
        report = install_library("Display", settings=indexed_settings, use_tui=False)

        assert report.installed == ["Display@1.0.0", "Servo@1.2.1", "Wire@2.0.0"]
        assert sorted(p.name for p in indexed_settings.user_dir.iterdir()) == ["Display", "Servo", "Wire"]

    def test_with_display(self, indexed_settings: LibrarySettings, served) -> None:
        displays = []

        def make_display(title: str) -> LibraryProgressDisplay:
            display = LibraryProgressDisplay(console=Console(file=StringIO(), force_terminal=False), title=title)
            displays.append(display)
            return display

        with patch("fblib.libraries.LibraryProgressDisplay", side_effect=make_display):
            report = install_library("Servo", version="1.1.0", settings=indexed_settings, use_tui=True)

        assert report.installed == ["Servo@1.1.0"]
        assert len(displays) == 1
        rows = displays[0].get_snapshot()
        assert [row["library"] for row in rows] == ["Servo@1.1.0"]
        assert rows[0]["phase"] == DisplayPhase.DONE

    def test_auto_detect_without_tty(self, indexed_settings: LibrarySettings, served) -> None:
        with patch("fblib.libraries._is_tty", return_value=False), patch("fblib.libraries.LibraryProgressDisplay") as display_cls:
            install_library("Wire", settings=indexed_settings)
        display_cls.assert_not_called()

    def test_errors_propagate(self, indexed_settings: LibrarySettings, served) -> None:
        with pytest.raises(LibraryNotFoundError):
            install_library("Nope", settings=indexed_settings, use_tui=False)
