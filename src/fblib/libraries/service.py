"""Request entry points for library management.

LibrarySession is the facade a CLI or a long-running service drives. Every
operation follows the same shape:

1. Read-only work (resolution, queries) under a shared explorer lease
2. Planning and execution under the exclusive installer lease
3. Reinitialization of the shared state before the installer lease is released

so a concurrent reader never observes a half-applied batch.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from fblib.config import LibrarySettings, load_settings

from .alternate import AlternateInstaller
from .callbacks import NullCallback, ProgressCallback
from .catalog import LibraryCatalog
from .errors import LibraryNotInstalledError, LibraryUninstallError, PartialInstallError
from .executor import InstallationExecutor
from .leases import SharedStateManager
from .messages import (
    GitLibraryInstallRequest,
    LibraryInstallRequest,
    LibraryUninstallRequest,
    LibraryUpgradeRequest,
    ZipLibraryInstallRequest,
)
from .models import InstalledLibrary, InstallEvent, InstallLocation, InstallReport, LibraryRelease, TaskProgress
from .planner import InstallPlanner, summarize_plans
from .resolver import DependencyResolver

logger = logging.getLogger(__name__)


class LibrarySession:
    """Library management session over one set of install directories.

    Args:
        settings: Directory settings; loaded from the environment if None
        state: Shared state manager; built from settings if None
        lease_timeout: Maximum seconds to wait for a lease, None waits forever
        cancel: Optional event that aborts in-flight downloads

    Example:
        >>> session = LibrarySession()
        >>> report = session.library_install(LibraryInstallRequest(name="Servo", version="1.2.1"))
        >>> report.installed
        ['Servo@1.2.1']
    """

    def __init__(
        self,
        settings: Optional[LibrarySettings] = None,
        state: Optional[SharedStateManager] = None,
        lease_timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self._settings = settings if settings is not None else load_settings()
        self._state = state if state is not None else SharedStateManager(self._settings)
        self._lease_timeout = lease_timeout
        self._cancel = cancel

    @property
    def settings(self) -> LibrarySettings:
        return self._settings

    @property
    def state(self) -> SharedStateManager:
        return self._state

    def init(self) -> None:
        """Reload the catalog from disk and rescan every install location."""
        with self._state.installer(self._lease_timeout) as installer:
            self._state.reinitialize(installer, reload_catalog=True)
        logger.info("Library session initialized from %s", self._settings.index_path)

    def library_install(self, request: LibraryInstallRequest, callback: Optional[ProgressCallback] = None) -> InstallReport:
        """Install a catalog library and (unless no_deps) its dependency closure.

        Resolution and planning complete before anything on disk changes, so
        not-found, conflict and overwrite errors leave the installation
        untouched.

        Returns:
            InstallReport of the executed batch

        Raises:
            LibraryNotFoundError: If the library or a dependency is not in the catalog
            DependencyResolutionError: If the closure has incompatible version requirements
            OverwriteConflictError: If no_overwrite is set and a replace is needed
            DestinationExistsError: If a target directory is occupied
            PartialInstallError: If execution fails after planning
        """
        callback = callback if callback is not None else NullCallback()
        logger.info("Install request %s: %s %s", request.request_id, request.name, request.version or "(latest)")

        with self._state.explorer(self._lease_timeout) as explorer:
            requirements = DependencyResolver(explorer.catalog).resolve(request.name, request.version, allow_dependencies=not request.no_deps)

        with self._state.installer(self._lease_timeout) as installer:
            plans = InstallPlanner(installer).plan(requirements, request.install_location, no_overwrite=request.no_overwrite)
            summary = summarize_plans(plans)
            logger.debug("Plan for %s: install=%s replace=%s skip=%s", request.name, summary["install"], summary["replace"], summary["skip"])

            executor = InstallationExecutor(installer, self._settings.download_timeout, self._cancel)
            report = executor.execute(
                plans,
                self._settings.downloads_dir,
                callback,
                root_name=request.name,
                commit=lambda: self._state.reinitialize(installer),
            )

        logger.info("Install request %s finished: %d installed, %d skipped", request.request_id, len(report.installed), len(report.skipped))
        return report

    def zip_library_install(self, request: ZipLibraryInstallRequest, callback: Optional[ProgressCallback] = None) -> InstalledLibrary:
        """Install a library from a local archive into the user location."""
        logger.info("Archive install request %s: %s", request.request_id, request.path)
        with self._state.installer(self._lease_timeout) as installer:
            alternate = AlternateInstaller(installer, callback)
            try:
                installed = alternate.install_archive(Path(request.path), request.overwrite)
            except PartialInstallError:
                self._state.reinitialize(installer)
                raise
            self._state.reinitialize(installer)
        return installed

    def git_library_install(self, request: GitLibraryInstallRequest, callback: Optional[ProgressCallback] = None) -> InstalledLibrary:
        """Install a library from a remote repository into the user location."""
        logger.info("Repository install request %s: %s", request.request_id, request.url)
        with self._state.installer(self._lease_timeout) as installer:
            alternate = AlternateInstaller(installer, callback)
            try:
                installed = alternate.install_repository(
                    request.url,
                    request.overwrite,
                    self._settings.downloads_dir,
                    timeout=self._settings.download_timeout,
                    cancel=self._cancel,
                )
            except PartialInstallError:
                self._state.reinitialize(installer)
                raise
            self._state.reinitialize(installer)
        return installed

    def library_upgrade(self, request: LibraryUpgradeRequest, callback: Optional[ProgressCallback] = None) -> InstallReport:
        """Upgrade libraries in the user location to their latest catalog release.

        An empty name list upgrades every installed library. Libraries that are
        not in the catalog, or already at the latest release, are left alone.

        Raises:
            LibraryNotInstalledError: If a named library is not installed
        """
        with self._state.explorer(self._lease_timeout) as explorer:
            if request.names:
                candidates = []
                for name in request.names:
                    lib = explorer.find_installed(name, InstallLocation.USER)
                    if lib is None:
                        raise LibraryNotInstalledError(name)
                    candidates.append(lib)
            else:
                candidates = [lib for lib in explorer.list_installed(InstallLocation.USER) if lib.managed]
            upgrades = _pending_upgrades(explorer.catalog, candidates)

        report = InstallReport()
        for release in upgrades:
            logger.info("Upgrading %s to %s", release.name, release.version)
            result = self.library_install(LibraryInstallRequest(name=release.name, version=str(release.version)), callback)
            report.installed.extend(item for item in result.installed if item not in report.installed)
            report.replaced.extend(item for item in result.replaced if item not in report.replaced)
            report.skipped.extend(item for item in result.skipped if item not in report.skipped)
        if not upgrades:
            logger.info("All libraries are up to date")
        return report

    def library_upgrade_all(self, callback: Optional[ProgressCallback] = None) -> InstallReport:
        """Upgrade every installed library in the user location."""
        return self.library_upgrade(LibraryUpgradeRequest(), callback)

    def library_uninstall(self, request: LibraryUninstallRequest, callback: Optional[ProgressCallback] = None) -> InstalledLibrary:
        """Remove an installed library.

        Raises:
            LibraryNotInstalledError: If the library is not installed at the location
            LibraryUninstallError: If its directory cannot be removed
        """
        callback = callback if callback is not None else NullCallback()
        with self._state.installer(self._lease_timeout) as installer:
            lib = installer.find_installed(request.name, request.install_location)
            if lib is None:
                raise LibraryNotInstalledError(request.name)
            try:
                installer.uninstall(lib)
            except OSError as e:
                self._state.reinitialize(installer)
                raise LibraryUninstallError(str(lib), f"could not remove library: {e}") from e
            callback.on_task_progress(TaskProgress(str(lib), InstallEvent.UNINSTALLED, f"Uninstalled {lib}", completed=True))
            self._state.reinitialize(installer)
        return lib

    def list_installed(self, location: Optional[InstallLocation] = None) -> list[InstalledLibrary]:
        """Installed libraries, optionally restricted to one location."""
        with self._state.explorer(self._lease_timeout) as explorer:
            return explorer.list_installed(location)

    def search(self, query: str) -> list[LibraryRelease]:
        """Latest catalog release of every library whose name or sentence matches query."""
        with self._state.explorer(self._lease_timeout) as explorer:
            return explorer.catalog.search(query)


def _pending_upgrades(catalog: LibraryCatalog, installed: list[InstalledLibrary]) -> list[LibraryRelease]:
    """Latest releases newer than what is installed, ordered by name."""
    pending: dict[str, LibraryRelease] = {}
    for lib in installed:
        if lib.name not in catalog:
            logger.debug("%s is not in the catalog, skipping upgrade", lib.name)
            continue
        latest = catalog.get_latest(lib.name)
        if lib.version is not None and latest.version <= lib.version:
            continue
        pending[lib.name] = latest
    return [pending[name] for name in sorted(pending)]
