"""Installers that bypass the catalog: local archives and remote repositories.

Both install exactly one library with no dependency resolution and no plan.
They share the installer primitives (uninstall, move into place, registry
record) with the executor, and apply their own overwrite rule: when overwrite
is false and a library of the same name already exists at the destination,
they fail before touching anything.
"""

import hashlib
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Optional

import semantic_version

from .callbacks import NullCallback, ProgressCallback
from .errors import (
    DestinationExistsError,
    InvalidVersionError,
    LibraryAlreadyInstalledError,
    LibraryDownloadError,
    LibraryInstallError,
    LibraryUninstallError,
)
from .github_url_utils import GitHubURLError, repository_name, transform_github_url
from .installer import LibraryInstaller, sanitize_name
from .models import InstalledLibrary, InstallEvent, InstallLocation, TaskProgress
from .registry import LIBRARY_PROPERTIES, read_library_properties
from .resources import DownloadResource, ResourceError, archive_root, extract_archive
from .version import parse_version

logger = logging.getLogger(__name__)


class AlternateInstaller:
    """Installs a single library from a local archive or a repository URL.

    Args:
        installer: Installer lease handle
        callback: Progress sink (task and download channels)
    """

    def __init__(self, installer: LibraryInstaller, callback: Optional[ProgressCallback] = None):
        self._installer = installer
        self._callback = callback if callback is not None else NullCallback()

    def install_archive(
        self,
        archive_path: Path,
        overwrite: bool,
        location: InstallLocation = InstallLocation.USER,
        name_hint: Optional[str] = None,
        source: str = "",
    ) -> InstalledLibrary:
        """Install a library from a local .zip or tar archive.

        The library name comes from library.properties when present, otherwise
        from name_hint, otherwise from the archive's top-level folder.

        Args:
            archive_path: Archive on the local filesystem
            overwrite: Replace an existing library of the same name
            location: Install location
            name_hint: Fallback library name
            source: Source locator recorded in the install marker

        Returns:
            The installed library

        Raises:
            LibraryAlreadyInstalledError: If the library exists and overwrite is False
            DestinationExistsError: If the library lives elsewhere and its target
                directory is occupied by another directory
            LibraryInstallError: If the archive cannot be extracted or moved into place
            LibraryUninstallError: If the existing library cannot be removed
        """
        if not archive_path.is_file():
            raise LibraryInstallError(archive_path.name, f"archive not found: {archive_path}")

        location_dir = self._installer.settings.location_dir(location)
        location_dir.mkdir(parents=True, exist_ok=True)
        temp_extract = Path(tempfile.mkdtemp(prefix=".temp_extract_", dir=location_dir))
        try:
            try:
                extract_archive(archive_path, temp_extract)
                root = archive_root(temp_extract)
            except (ResourceError, OSError, ValueError) as e:
                raise LibraryInstallError(archive_path.name, f"cannot extract archive: {e}") from e

            name, version = _library_identity(root, name_hint or (root.name if root != temp_extract else archive_path.stem))
            label = f"{name}@{version}" if version is not None else name
            target = location_dir / sanitize_name(name)

            existing = self._existing_at(name, target, location)
            if existing is not None:
                if not overwrite:
                    raise LibraryAlreadyInstalledError(name, str(existing.install_path))
                if existing.install_path != target and target.exists():
                    raise DestinationExistsError(str(target))
                self._callback.on_task_progress(TaskProgress(label, InstallEvent.REPLACED, f"Replacing {existing} with {label}"))
                try:
                    self._installer.uninstall(existing)
                except OSError as e:
                    raise LibraryUninstallError(label, f"could not remove old library {existing}: {e}") from e

            self._callback.on_task_progress(TaskProgress(label, InstallEvent.INSTALL_STARTED, f"Installing {label}", stage=f"Installing {label}"))
            try:
                installed = self._installer.install_directory(root, target, location, name, version, url=source or str(archive_path))
            except OSError as e:
                raise LibraryInstallError(label, f"install failed: {e}") from e
        finally:
            shutil.rmtree(temp_extract, ignore_errors=True)

        self._callback.on_task_progress(TaskProgress(label, InstallEvent.INSTALLED, "Library installed", completed=True, reason="install"))
        return installed

    def install_repository(
        self,
        url: str,
        overwrite: bool,
        downloads_dir: Path,
        location: InstallLocation = InstallLocation.USER,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> InstalledLibrary:
        """Install a library from a remote repository (fetched as a source archive).

        Args:
            url: Repository locator, optionally with "#ref"
            overwrite: Replace an existing library of the same name
            downloads_dir: Shared downloads directory
            location: Install location
            timeout: Download socket timeout in seconds
            cancel: Optional event that aborts the download

        Returns:
            The installed library

        Raises:
            LibraryDownloadError: If the locator is invalid or the download fails
            LibraryAlreadyInstalledError: If the library exists and overwrite is False
            LibraryInstallError: If the fetched archive cannot be installed
        """
        try:
            archive_url = transform_github_url(url)
            name_hint = repository_name(url)
        except GitHubURLError as e:
            raise LibraryDownloadError(url, str(e)) from e

        digest = hashlib.sha256(archive_url.encode("utf-8")).hexdigest()[:12]
        suffix = ".tar.gz" if archive_url.endswith(".tar.gz") else Path(archive_url).suffix or ".zip"
        resource = DownloadResource(url=archive_url, archive_file_name=f"{name_hint}-{digest}{suffix}")

        # Branch archives change over time; always fetch a fresh copy
        stale = resource.archive_path(downloads_dir)
        if stale.exists():
            stale.unlink()

        self._callback.on_task_progress(TaskProgress(name_hint, InstallEvent.DOWNLOAD_STARTED, f"Downloading {url}", stage=f"Downloading {name_hint}"))
        try:
            archive = resource.download(downloads_dir, name_hint, self._callback, timeout, cancel)
        except KeyboardInterrupt:
            raise
        except Exception as e:
            raise LibraryDownloadError(name_hint, f"download failed: {e}") from e

        return self.install_archive(archive, overwrite, location, name_hint=name_hint, source=url)

    def _existing_at(self, name: str, target: Path, location: InstallLocation) -> Optional[InstalledLibrary]:
        existing = self._installer.find_installed(name, location)
        if existing is not None:
            return existing
        if target.exists():
            found = self._installer.registry.find_by_path(target)
            if found is not None:
                return found
            return InstalledLibrary(name=target.name, version=None, install_path=target, location=location, managed=False)
        return None


def _library_identity(root: Path, fallback_name: str) -> tuple[str, Optional[semantic_version.Version]]:
    """Name and version declared by library.properties, with a fallback name."""
    properties = read_library_properties(root / LIBRARY_PROPERTIES)
    name = properties.get("name") or fallback_name
    version = None
    if properties.get("version"):
        try:
            version = parse_version(properties["version"])
        except InvalidVersionError:
            logger.warning("Ignoring invalid version %r in %s", properties["version"], root)
    return name, version
