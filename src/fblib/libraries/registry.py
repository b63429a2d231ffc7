"""Installation registry - which libraries are installed where.

The registry is an in-memory view of the install location directories. It is
rebuilt from disk by rescan() (the session "reinitialize" step) and updated
incrementally by the installer as libraries are installed and removed.

A directory is recognized as an installed library when it contains either the
install marker written by this package (.fblib.json) or a library.properties
file. Other directories are tracked as unmanaged so nothing is ever installed
on top of them.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Optional

from .errors import InvalidVersionError
from .models import InstalledLibrary, InstallLocation
from .version import parse_version

logger = logging.getLogger(__name__)

INSTALL_MARKER = ".fblib.json"
LIBRARY_PROPERTIES = "library.properties"


class InstallationRegistry:
    """Tracks installed libraries per install location.

    Example:
        >>> registry = InstallationRegistry({InstallLocation.USER: Path("~/Arduino/libraries")})
        >>> registry.rescan()
        >>> lib = registry.find("Servo", InstallLocation.USER)
    """

    def __init__(self, locations: dict[InstallLocation, Path]):
        self._locations = dict(locations)
        self._libraries: dict[InstallLocation, dict[Path, InstalledLibrary]] = {loc: {} for loc in self._locations}
        self._lock = threading.Lock()

    @property
    def locations(self) -> dict[InstallLocation, Path]:
        return dict(self._locations)

    def rescan(self) -> int:
        """Rebuild the registry from the install directories.

        Returns:
            Number of libraries found
        """
        scanned: dict[InstallLocation, dict[Path, InstalledLibrary]] = {}
        for location, root in self._locations.items():
            scanned[location] = {}
            if not root.is_dir():
                continue
            for child in sorted(root.iterdir()):
                if not child.is_dir() or child.name.startswith("."):
                    continue
                lib = read_installed_library(child, location)
                scanned[location][child] = lib

        with self._lock:
            self._libraries = scanned
        count = sum(len(libs) for libs in scanned.values())
        logger.debug("Registry rescan found %d libraries", count)
        return count

    def find(self, name: str, location: InstallLocation) -> Optional[InstalledLibrary]:
        """Find a managed library by name in one location."""
        with self._lock:
            for lib in self._libraries.get(location, {}).values():
                if lib.managed and lib.name == name:
                    return lib
        return None

    def find_by_path(self, path: Path) -> Optional[InstalledLibrary]:
        with self._lock:
            for libs in self._libraries.values():
                if path in libs:
                    return libs[path]
        return None

    def find_all(self, name: str) -> list[InstalledLibrary]:
        """All managed installs of a library across locations."""
        with self._lock:
            return [lib for libs in self._libraries.values() for lib in libs.values() if lib.managed and lib.name == name]

    def by_location(self, location: InstallLocation) -> list[InstalledLibrary]:
        with self._lock:
            return sorted(self._libraries.get(location, {}).values(), key=lambda lib: lib.name)

    def all(self) -> list[InstalledLibrary]:
        with self._lock:
            libs = [lib for by_path in self._libraries.values() for lib in by_path.values()]
        return sorted(libs, key=lambda lib: (lib.location.value, lib.name))

    def record(self, lib: InstalledLibrary) -> None:
        """Add (or overwrite) the entry for lib.install_path."""
        with self._lock:
            self._libraries.setdefault(lib.location, {})[lib.install_path] = lib

    def remove(self, lib: InstalledLibrary) -> bool:
        """Remove the entry for lib.install_path.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            libs = self._libraries.get(lib.location, {})
            if lib.install_path in libs:
                del libs[lib.install_path]
                return True
            return False

    def __len__(self) -> int:
        with self._lock:
            return sum(len(libs) for libs in self._libraries.values())


def read_installed_library(path: Path, location: InstallLocation) -> InstalledLibrary:
    """Build the registry entry for one library directory."""
    marker = _read_marker(path / INSTALL_MARKER)
    if marker is not None:
        return InstalledLibrary(name=marker["name"], version=_version_or_none(marker.get("version")), install_path=path, location=location)

    properties = read_library_properties(path / LIBRARY_PROPERTIES)
    if properties.get("name"):
        return InstalledLibrary(
            name=properties["name"],
            version=_version_or_none(properties.get("version")),
            install_path=path,
            location=location,
        )

    return InstalledLibrary(name=path.name, version=None, install_path=path, location=location, managed=False)


def read_library_properties(path: Path) -> dict[str, str]:
    """Parse a library.properties file (key=value per line, '#' comments)."""
    if not path.is_file():
        return {}
    properties: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        properties[key.strip()] = value.strip()
    return properties


def write_install_marker(path: Path, name: str, version: str, url: str = "") -> None:
    """Write the install marker into a freshly installed library directory."""
    data = {
        "name": name,
        "version": version,
        "url": url,
        "installed_at": time.time(),
    }
    with open(path / INSTALL_MARKER, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _read_marker(path: Path) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable install marker %s: %s", path, e)
        return None
    if not isinstance(data, dict) or not data.get("name"):
        return None
    return data


def _version_or_none(text: Optional[str]):
    if not text:
        return None
    try:
        return parse_version(text)
    except InvalidVersionError:
        logger.warning("Ignoring invalid installed version %r", text)
        return None
