"""Library dependency resolution and installation engine.

Installs a named library at a version together with its transitive
dependencies: the closure is resolved against a read-only catalog, diffed
against what is installed, and executed as a per-library plan
(skip / fresh install / replace) with progress reporting.

Public API:
    LibrarySession: Request entry points (install, archive/repository install,
                    upgrade, uninstall, queries).
    install_library: One-shot install with an optional live progress display.
"""

import sys
from typing import Optional

from fblib.config import LibrarySettings

from .alternate import AlternateInstaller
from .callbacks import NullCallback, ProgressCallback, QueueCallback
from .catalog import LibraryCatalog
from .errors import (
    DependencyResolutionError,
    DestinationExistsError,
    InstallLocationError,
    InvalidVersionError,
    LeaseTimeoutError,
    LibraryAlreadyInstalledError,
    LibraryDownloadError,
    LibraryError,
    LibraryInstallError,
    LibraryNotFoundError,
    LibraryNotInstalledError,
    LibraryUninstallError,
    NothingChangedError,
    OverwriteConflictError,
    PartialInstallError,
)
from .executor import InstallationExecutor
from .installer import LibraryInstaller
from .leases import LibraryExplorer, SharedStateManager
from .messages import (
    GitLibraryInstallRequest,
    LibraryInstallRequest,
    LibraryUninstallRequest,
    LibraryUpgradeRequest,
    ZipLibraryInstallRequest,
)
from .models import (
    DependencyRequirement,
    DownloadProgress,
    InstalledLibrary,
    InstallEvent,
    InstallLocation,
    InstallPlan,
    InstallReport,
    LibraryDependency,
    LibraryRelease,
    ReleaseKey,
    TaskProgress,
)
from .planner import InstallPlanner
from .progress_display import LibraryProgressDisplay
from .registry import InstallationRegistry
from .resolver import DependencyResolver
from .resources import DownloadResource
from .service import LibrarySession
from .version import VersionConstraint, parse_version


def install_library(
    name: str,
    version: Optional[str] = None,
    settings: Optional[LibrarySettings] = None,
    no_deps: bool = False,
    use_tui: bool | None = None,
) -> InstallReport:
    """Install a catalog library and its dependencies.

    Args:
        name: Library name
        version: Exact version or constraint, None for the latest release
        settings: Directory settings; loaded from the environment if None
        no_deps: Skip dependency resolution
        use_tui: Override the live display. None = auto-detect (TTY check).

    Returns:
        InstallReport of the executed batch

    Raises:
        LibraryError: On any resolution, planning or execution failure
    """
    session = LibrarySession(settings)
    request = LibraryInstallRequest(name=name, version=version, no_deps=no_deps)

    if use_tui is None:
        use_tui = _is_tty()
    if not use_tui:
        return session.library_install(request, NullCallback())

    display = LibraryProgressDisplay(title=f"Installing {name}")
    with display:
        try:
            return session.library_install(request, display)
        except PartialInstallError as e:
            display.mark_failed(e.library, e.message)
            raise


def _is_tty() -> bool:
    """Check if stdout is a terminal (TTY)."""
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


__all__ = [
    "AlternateInstaller",
    "DependencyRequirement",
    "DependencyResolutionError",
    "DependencyResolver",
    "DestinationExistsError",
    "DownloadProgress",
    "DownloadResource",
    "GitLibraryInstallRequest",
    "InstallEvent",
    "InstallLocation",
    "InstallLocationError",
    "InstallPlan",
    "InstallPlanner",
    "InstallReport",
    "InstallationExecutor",
    "InstallationRegistry",
    "InstalledLibrary",
    "InvalidVersionError",
    "LeaseTimeoutError",
    "LibraryAlreadyInstalledError",
    "LibraryCatalog",
    "LibraryDependency",
    "LibraryDownloadError",
    "LibraryError",
    "LibraryExplorer",
    "LibraryInstallError",
    "LibraryInstallRequest",
    "LibraryInstaller",
    "LibraryNotFoundError",
    "LibraryNotInstalledError",
    "LibraryProgressDisplay",
    "LibraryRelease",
    "LibrarySession",
    "LibraryUninstallError",
    "LibraryUninstallRequest",
    "LibraryUpgradeRequest",
    "NothingChangedError",
    "NullCallback",
    "OverwriteConflictError",
    "PartialInstallError",
    "ProgressCallback",
    "QueueCallback",
    "ReleaseKey",
    "SharedStateManager",
    "TaskProgress",
    "VersionConstraint",
    "ZipLibraryInstallRequest",
    "install_library",
    "parse_version",
]
