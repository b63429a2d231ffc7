"""Execution of install plans.

Processes plan entries one at a time, in plan order:

1. up to date      -> emit SKIPPED, nothing else
2. download        -> archive lands in the shared downloads directory
3. uninstall       -> the replaced library is removed first; if that fails the
                      new version is never installed
4. install         -> extract beside the target and move into place
5. record          -> registry entry for the new library
6. emit INSTALLED  -> with the install reason

The first failing entry stops the batch. Entries committed before it stay
installed (there is no cross-entry rollback) and are listed on the raised
error. After the batch, the commit callback reinitializes the shared state so
the rest of the system sees the new installed set.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .callbacks import ProgressCallback
from .errors import LibraryDownloadError, LibraryInstallError, LibraryUninstallError, PartialInstallError
from .installer import LibraryInstaller
from .models import InstallEvent, InstallLocation, InstallPlan, InstallReport, ReleaseKey, TaskProgress

logger = logging.getLogger(__name__)

REASON_INSTALL = "install"
REASON_UPGRADE = "upgrade"
REASON_DEPENDS = "depends"
BUILTIN_SUFFIX = "-builtin"


class InstallationExecutor:
    """Performs the physical work described by install plans.

    Args:
        installer: Installer lease handle (exclusive access is required)
        download_timeout: Socket timeout for each download, in seconds
        cancel: Optional event bounding the download step; uninstall and
            registry updates always run to completion once started
    """

    def __init__(
        self,
        installer: LibraryInstaller,
        download_timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self._installer = installer
        self._download_timeout = download_timeout
        self._cancel = cancel

    def execute(
        self,
        plans: dict[ReleaseKey, InstallPlan],
        downloads_dir: Path,
        callback: ProgressCallback,
        root_name: Optional[str] = None,
        commit: Optional[Callable[[], None]] = None,
    ) -> InstallReport:
        """Execute a batch of plans.

        Args:
            plans: Output of InstallPlanner.plan()
            downloads_dir: Shared downloads directory
            callback: Progress sink
            root_name: Name of the originally requested library; every other
                library is reported as a dependency install. None treats every
                entry as requested.
            commit: Called once after the batch (and after a partial failure
                that changed something) to reinitialize shared state

        Returns:
            InstallReport listing installed, skipped and replaced libraries

        Raises:
            LibraryDownloadError: If an archive cannot be downloaded
            LibraryUninstallError: If a replaced library cannot be removed
            LibraryInstallError: If a downloaded archive cannot be installed
        """
        report = InstallReport()
        try:
            for plan in plans.values():
                self._execute_one(plan, downloads_dir, callback, root_name, report)
        except PartialInstallError:
            if report.changed and commit is not None:
                commit()
            raise

        if commit is not None:
            commit()
        return report

    def _execute_one(
        self,
        plan: InstallPlan,
        downloads_dir: Path,
        callback: ProgressCallback,
        root_name: Optional[str],
        report: InstallReport,
    ) -> None:
        release = plan.release
        label = str(release)

        if plan.up_to_date:
            callback.on_task_progress(TaskProgress(label, InstallEvent.SKIPPED, f"Already installed {label}", completed=True))
            report.skipped.append(label)
            return

        reason = install_reason(plan, root_name)

        callback.on_task_progress(TaskProgress(label, InstallEvent.DOWNLOAD_STARTED, f"Downloading {label}", stage=f"Downloading {label}", reason=reason))
        if release.resource is None:
            raise LibraryDownloadError(label, "no downloadable resource in the catalog", report.installed)
        try:
            release.resource.download(downloads_dir, label, callback, self._download_timeout, self._cancel)
        except KeyboardInterrupt:
            raise
        except Exception as e:
            logger.warning("Download of %s failed: %s", label, e)
            raise LibraryDownloadError(label, f"download failed: {e}", report.installed) from e

        callback.on_task_progress(TaskProgress(label, InstallEvent.INSTALL_STARTED, f"Installing {label}", stage=f"Installing {label}"))
        logger.info("Installing library %s", label)

        replaced = plan.replaces
        if replaced is not None:
            callback.on_task_progress(TaskProgress(label, InstallEvent.REPLACED, f"Replacing {replaced} with {label}"))
            try:
                self._installer.uninstall(replaced)
            except KeyboardInterrupt:
                raise
            except Exception as e:
                logger.warning("Could not remove %s: %s", replaced, e)
                raise LibraryUninstallError(label, f"could not remove old library {replaced}: {e}", report.installed) from e
            report.replaced.append(str(replaced))

        try:
            self._installer.install_release(plan, downloads_dir)
        except KeyboardInterrupt:
            raise
        except Exception as e:
            logger.warning("Install of %s failed: %s", label, e)
            raise LibraryInstallError(label, f"install failed: {e}", report.installed) from e

        report.installed.append(label)
        callback.on_task_progress(TaskProgress(label, InstallEvent.INSTALLED, f"Installed {label}", completed=True, reason=reason))


def install_reason(plan: InstallPlan, root_name: Optional[str]) -> str:
    """Why a library is being installed: "install", "upgrade" or "depends".

    The root library installed into the IDE built-in location gets a
    "-builtin" suffix.
    """
    if root_name is not None and plan.release.name != root_name:
        return REASON_DEPENDS
    reason = REASON_UPGRADE if plan.replaces is not None else REASON_INSTALL
    if plan.location == InstallLocation.BUILTIN:
        reason += BUILTIN_SUFFIX
    return reason
