"""Shared fixtures for the library engine tests."""

from pathlib import Path
from typing import Callable, Optional
from unittest.mock import patch

import pytest
from library_helpers import ArchiveServer, IndexBuilder, RecordingCallback

from fblib.config import LibrarySettings
from fblib.libraries.catalog import LibraryCatalog
from fblib.libraries.leases import SharedStateManager


@pytest.fixture
def recorder() -> RecordingCallback:
    return RecordingCallback()


@pytest.fixture
def settings(tmp_path: Path) -> LibrarySettings:
    """Settings rooted in tmp_path with all three install locations configured."""
    data_dir = tmp_path / "fblib"
    result = LibrarySettings.for_data_dir(data_dir)
    result.builtin_dir = data_dir / "builtin"
    result.sketch_dir = tmp_path / "sketch" / "libraries"
    result.user_dir.mkdir(parents=True)
    return result


@pytest.fixture
def server() -> ArchiveServer:
    return ArchiveServer()


@pytest.fixture
def served(server: ArchiveServer):
    """Route requests.get in the resources module to the archive server."""
    with patch("fblib.libraries.resources.requests.get", side_effect=server.get) as mock_get:
        yield mock_get


@pytest.fixture
def index(server: ArchiveServer) -> IndexBuilder:
    """Catalog used by most engine tests.

    Servo 1.1.0 / 1.2.1, Wire 1.0.0 / 2.0.0, Display 1.0.0 -> Wire >=1.0 and
    Servo, Sensor 2.0.0 -> Wire 1.0.0, Broken 1.0.0 -> Missing.
    """
    builder = IndexBuilder(server)
    builder.add("Servo", "1.1.0")
    builder.add("Servo", "1.2.1", sentence="Controls servo motors")
    builder.add("Wire", "1.0.0")
    builder.add("Wire", "2.0.0")
    builder.add("Display", "1.0.0", dependencies=[{"name": "Wire", "version": ">=1.0"}, {"name": "Servo"}])
    builder.add("Sensor", "2.0.0", dependencies=[{"name": "Wire", "version": "1.0.0"}])
    builder.add("Broken", "1.0.0", dependencies=[{"name": "Missing"}])
    return builder


@pytest.fixture
def catalog(index: IndexBuilder) -> LibraryCatalog:
    return index.catalog()


@pytest.fixture
def state(settings: LibrarySettings, catalog: LibraryCatalog) -> SharedStateManager:
    return SharedStateManager(settings, catalog=catalog)


@pytest.fixture
def preinstall(settings: LibrarySettings) -> Callable[..., Path]:
    """Place a library directory on disk (call state.reinitialize afterwards)."""

    def _preinstall(name: str, version: Optional[str], folder: Optional[str] = None, root: Optional[Path] = None) -> Path:
        path = (root or settings.user_dir) / (folder or name)
        (path / "src").mkdir(parents=True)
        (path / "src" / f"{name}.h").write_text(f"// {name} {version}\n")
        if version is not None:
            (path / "library.properties").write_text(f"name={name}\nversion={version}\n")
        return path

    return _preinstall


@pytest.fixture
def make_state(settings: LibrarySettings, catalog: LibraryCatalog) -> Callable[[], SharedStateManager]:
    """Build a state manager after the test has arranged the disk."""
    return lambda: SharedStateManager(settings, catalog=catalog)
