"""Lease-based access to shared library state.

The catalog, the installation registry and the install directories are
process-wide and may be touched by several requests at once (e.g. a
long-running service). Access goes through two kinds of lease:

- explorer (shared): read access to the catalog and the registry. Any number
  may be held at once.
- installer (exclusive): mutation rights over the registry and the install
  directories. At most one at a time, and only once every explorer has been
  released. Waiting installers block new explorers so they cannot starve.

Both are context managers, so the lease is released on every exit path:

    with state.explorer() as explorer:
        release = explorer.catalog.find_release("Servo")

    with state.installer() as installer:
        installer.uninstall(lib)

Leases are not reentrant: a thread holding an explorer lease must release it
before asking for the installer lease.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from fblib.config import LibrarySettings

from .catalog import LibraryCatalog
from .errors import LeaseTimeoutError
from .installer import LeaseReleasedError, LibraryInstaller
from .models import InstalledLibrary, InstallLocation
from .registry import InstallationRegistry

logger = logging.getLogger(__name__)


class _ReadWriteLock:
    """Writer-preferring readers/writer lock."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self, timeout: Optional[float] = None) -> None:
        with self._cond:
            if not self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0, timeout):
                raise LeaseTimeoutError(f"Timed out after {timeout}s waiting for an explorer lease")
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout: Optional[float] = None) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                acquired = self._cond.wait_for(lambda: not self._writer and self._readers == 0, timeout)
            finally:
                self._writers_waiting -= 1
            if not acquired:
                # Readers blocked behind this writer may proceed now
                self._cond.notify_all()
                raise LeaseTimeoutError(f"Timed out after {timeout}s waiting for the installer lease")
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    def status(self) -> dict[str, Any]:
        with self._cond:
            return {
                "explorers": self._readers,
                "installer_held": self._writer,
                "installers_waiting": self._writers_waiting,
            }


class LibraryExplorer:
    """Read-only handle on the catalog and the registry."""

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

    def find_installed(self, name: str, location: InstallLocation) -> Optional[InstalledLibrary]:
        self._check_active()
        return self._registry.find(name, location)

    def list_installed(self, location: Optional[InstallLocation] = None) -> list[InstalledLibrary]:
        self._check_active()
        if location is None:
            return self._registry.all()
        return self._registry.by_location(location)

    def release(self) -> None:
        self._active = False

    def _check_active(self) -> None:
        if not self._active:
            raise LeaseReleasedError("Explorer lease has already been released")


class SharedStateManager:
    """Owns the catalog and the registry and hands out leases over them.

    Args:
        settings: Directory settings
        catalog: Library catalog; loaded from settings.index_path if None
        registry: Installation registry; built and scanned from settings if None
    """

    def __init__(
        self,
        settings: LibrarySettings,
        catalog: Optional[LibraryCatalog] = None,
        registry: Optional[InstallationRegistry] = None,
    ):
        self._settings = settings
        self._catalog = catalog if catalog is not None else LibraryCatalog.load(settings.index_path)
        if registry is None:
            registry = InstallationRegistry(settings.configured_locations())
            registry.rescan()
        self._registry = registry
        self._lock = _ReadWriteLock()

    @property
    def settings(self) -> LibrarySettings:
        return self._settings

    @contextmanager
    def explorer(self, timeout: Optional[float] = None) -> Iterator[LibraryExplorer]:
        """Acquire a shared explorer lease for the duration of the block."""
        self._lock.acquire_read(timeout)
        explorer = LibraryExplorer(self._settings, self._catalog, self._registry)
        logger.debug("Explorer lease acquired")
        try:
            yield explorer
        finally:
            explorer.release()
            self._lock.release_read()
            logger.debug("Explorer lease released")

    @contextmanager
    def installer(self, timeout: Optional[float] = None) -> Iterator[LibraryInstaller]:
        """Acquire the exclusive installer lease for the duration of the block."""
        self._lock.acquire_write(timeout)
        installer = LibraryInstaller(self._settings, self._catalog, self._registry)
        logger.debug("Installer lease acquired")
        try:
            yield installer
        finally:
            installer.release()
            self._lock.release_write()
            logger.debug("Installer lease released")

    def reinitialize(self, installer: LibraryInstaller, reload_catalog: bool = False) -> None:
        """Make the current on-disk state visible to subsequent leases.

        Must be called with the installer lease held (the installer handle is
        the proof). Rescans the registry and optionally reloads the catalog.
        """
        installer.rescan()
        if reload_catalog:
            self._catalog = LibraryCatalog.load(self._settings.index_path)
        logger.debug("Shared library state reinitialized")

    def lease_status(self) -> dict[str, Any]:
        """Current lease holders, for diagnostics."""
        return self._lock.status()
