"""Low-level install and uninstall primitives.

A LibraryInstaller is only handed out by SharedStateManager.installer(), so
every method here runs while the caller holds the exclusive installer lease.
The executor and the alternate installers both build on these primitives.
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Optional

import semantic_version

from fblib.config import LibrarySettings

from .catalog import LibraryCatalog
from .models import InstalledLibrary, InstallLocation, InstallPlan
from .registry import InstallationRegistry, write_install_marker

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_name(name: str) -> str:
    """Directory name for a library ("Adafruit NeoPixel" -> "Adafruit_NeoPixel")."""
    return _UNSAFE_NAME_CHARS.sub("_", name.strip())


class LeaseReleasedError(RuntimeError):
    """Raised when a lease handle is used after its scope ended."""

    pass


class LibraryInstaller:
    """Mutation handle over the registry and the install directories."""

    def __init__(self, settings: LibrarySettings, catalog: LibraryCatalog, registry: InstallationRegistry):
        self._settings = settings
        self._catalog = catalog
        self._registry = registry
        self._active = True

    @property
    def settings(self) -> LibrarySettings:
        return self._settings

    @property
    def catalog(self) -> LibraryCatalog:
        self._check_active()
        return self._catalog

    @property
    def registry(self) -> InstallationRegistry:
        self._check_active()
        return self._registry

    def release(self) -> None:
        self._active = False

    def _check_active(self) -> None:
        if not self._active:
            raise LeaseReleasedError("Installer lease has already been released")

    def target_path(self, name: str, location: InstallLocation) -> Path:
        """Directory a library named name is installed into at location."""
        return self._settings.location_dir(location) / sanitize_name(name)

    def install_release(self, plan: InstallPlan, downloads_dir: Path) -> InstalledLibrary:
        """Install a downloaded release at plan.target_path and record it.

        The resource extracts into a temporary sibling of the target and moves
        it into place; the registry is only updated after that succeeds.

        Raises:
            ValueError: If the release has no installable resource
            Exception: Whatever the resource raises while installing
        """
        self._check_active()
        release = plan.release
        if release.resource is None:
            raise ValueError(f"{release} has no installable resource")

        target = plan.target_path
        target.parent.mkdir(parents=True, exist_ok=True)
        release.resource.install(downloads_dir, target.parent, target)

        url = getattr(release.resource, "url", "")
        write_install_marker(target, release.name, str(release.version), url)

        installed = InstalledLibrary(name=release.name, version=release.version, install_path=target, location=plan.location)
        self._registry.record(installed)
        logger.info("Installed %s into %s", release, target)
        return installed

    def install_directory(
        self,
        source_dir: Path,
        target: Path,
        location: InstallLocation,
        name: str,
        version: Optional[semantic_version.Version],
        url: str = "",
    ) -> InstalledLibrary:
        """Move an already extracted library directory into place and record it.

        Args:
            source_dir: Extracted library root (consumed by the move)
            target: Final library directory; must not exist
            location: Install location of target
            name: Library name
            version: Library version, None if the library declares none
            url: Source locator recorded in the install marker

        Raises:
            FileExistsError: If target exists
        """
        self._check_active()
        if target.exists():
            raise FileExistsError(f"Destination already exists: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source_dir), str(target))
        write_install_marker(target, name, str(version) if version is not None else "", url)

        installed = InstalledLibrary(name=name, version=version, install_path=target, location=location)
        self._registry.record(installed)
        logger.info("Installed %s into %s", installed, target)
        return installed

    def uninstall(self, lib: InstalledLibrary) -> None:
        """Remove a library directory and its registry entry.

        The registry entry is only dropped once the directory is gone.

        Raises:
            OSError: If the directory cannot be removed
        """
        self._check_active()
        if lib.install_path.exists():
            shutil.rmtree(lib.install_path)
        self._registry.remove(lib)
        logger.info("Uninstalled %s from %s", lib, lib.install_path)

    def find_installed(self, name: str, location: InstallLocation) -> Optional[InstalledLibrary]:
        self._check_active()
        return self._registry.find(name, location)

    def rescan(self) -> int:
        """Rebuild the registry from disk."""
        self._check_active()
        return self._registry.rescan()
