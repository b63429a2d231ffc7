"""Downloadable library archives.

A release's resource knows how to fetch its archive into the shared downloads
directory and how to install it: extract into a temporary sibling directory,
then move the result into place so a half-extracted library is never visible
at the target path.
"""

import hashlib
import logging
import shutil
import tarfile
import tempfile
import threading
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import requests

from .callbacks import ProgressCallback
from .models import DownloadProgress

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192

_HASH_ALGORITHMS = {
    "SHA-256": "sha256",
    "SHA-1": "sha1",
    "MD5": "md5",
}


class ResourceError(Exception):
    """Raised when an archive cannot be downloaded, verified or extracted."""

    pass


class DownloadCancelledError(ResourceError):
    """Raised when a download is cancelled by the caller."""

    pass


@runtime_checkable
class InstallableResource(Protocol):
    """Something that can be fetched and installed into a directory."""

    def download(
        self,
        downloads_dir: Path,
        label: str,
        callback: ProgressCallback,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        """Fetch the archive into downloads_dir and return its path."""
        ...

    def install(self, downloads_dir: Path, tmp_dir: Path, dest: Path) -> None:
        """Install the downloaded archive at dest (which must not exist)."""
        ...


@dataclass(frozen=True)
class DownloadResource:
    """Archive published in the library index.

    Attributes:
        url: Download URL of the archive
        archive_file_name: File name the archive is stored under
        size: Expected size in bytes, 0 if unknown
        checksum: "ALGO:hexdigest" (e.g. "SHA-256:ab12..."), empty to skip verification
    """

    url: str
    archive_file_name: str
    size: int = 0
    checksum: str = ""

    def archive_path(self, downloads_dir: Path) -> Path:
        return downloads_dir / self.archive_file_name

    def is_cached(self, downloads_dir: Path) -> bool:
        """Check whether a verified copy of the archive is already downloaded."""
        archive = self.archive_path(downloads_dir)
        if not archive.is_file():
            return False
        try:
            self.verify(archive)
        except ResourceError as e:
            logger.debug("Cached archive %s is invalid: %s", archive, e)
            return False
        return True

    def verify(self, archive: Path) -> None:
        """Verify size and checksum of a downloaded archive.

        Raises:
            ResourceError: On size or checksum mismatch
        """
        if self.size and archive.stat().st_size != self.size:
            raise ResourceError(f"Size mismatch for {archive.name}: expected {self.size}, got {archive.stat().st_size}")
        if not self.checksum:
            return

        algo, _, expected = self.checksum.partition(":")
        hash_name = _HASH_ALGORITHMS.get(algo.upper())
        if hash_name is None or not expected:
            raise ResourceError(f"Unsupported checksum format: {self.checksum}")

        hasher = hashlib.new(hash_name)
        with open(archive, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                hasher.update(chunk)
        if hasher.hexdigest().lower() != expected.lower():
            raise ResourceError(f"Checksum mismatch for {archive.name}")

    def download(
        self,
        downloads_dir: Path,
        label: str,
        callback: ProgressCallback,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        """Download the archive, skipping the transfer if a verified copy exists.

        Args:
            downloads_dir: Shared downloads directory
            label: Library identity used in progress events
            callback: Progress sink
            timeout: Socket timeout in seconds
            cancel: Optional event; when set, the transfer stops between chunks

        Returns:
            Path to the verified archive

        Raises:
            ResourceError: On verification failure or cancellation
            requests.RequestException: On transport failure
        """
        archive = self.archive_path(downloads_dir)
        if self.is_cached(downloads_dir):
            logger.debug("Using cached archive %s", archive)
            callback.on_download_progress(DownloadProgress(label, self.url, self.size, self.size, completed=True))
            return archive

        archive.parent.mkdir(parents=True, exist_ok=True)

        # Use .download temp extension so a partial transfer never looks complete
        temp_file = Path(str(archive) + ".download")
        try:
            response = requests.get(self.url, stream=True, timeout=timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0) or self.size)
            downloaded = 0
            callback.on_download_progress(DownloadProgress(label, self.url, 0, total_size))

            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if cancel is not None and cancel.is_set():
                        raise DownloadCancelledError(f"Download of {self.url} cancelled")
                    if chunk:
                        f.write(chunk)
                        downloaded += len(chunk)
                        callback.on_download_progress(DownloadProgress(label, self.url, downloaded, total_size))

            self.verify(temp_file)
            if archive.exists():
                archive.unlink()
            temp_file.rename(archive)
        except KeyboardInterrupt:
            _cleanup_temp_file(temp_file)
            raise
        except Exception:
            _cleanup_temp_file(temp_file)
            raise

        callback.on_download_progress(DownloadProgress(label, self.url, downloaded, total_size, completed=True))
        logger.info("Downloaded %s (%s)", archive.name, _format_size(downloaded))
        return archive

    def install(self, downloads_dir: Path, tmp_dir: Path, dest: Path) -> None:
        """Extract the archive into a temporary sibling of dest, then move it into place.

        Args:
            downloads_dir: Directory holding the downloaded archive
            tmp_dir: Directory for the temporary extraction (same filesystem as dest)
            dest: Final library directory; must not exist

        Raises:
            FileExistsError: If dest already exists
            ResourceError: If the archive format is unsupported or empty
        """
        archive = self.archive_path(downloads_dir)
        if dest.exists():
            raise FileExistsError(f"Destination already exists: {dest}")

        tmp_dir.mkdir(parents=True, exist_ok=True)
        temp_extract = Path(tempfile.mkdtemp(prefix=f".temp_extract_{dest.name}_", dir=tmp_dir))
        try:
            extract_archive(archive, temp_extract)
            source_dir = archive_root(temp_extract)
            shutil.move(str(source_dir), str(dest))
        finally:
            if temp_extract.exists():
                shutil.rmtree(temp_extract, ignore_errors=True)


def extract_archive(archive: Path, dest: Path) -> None:
    """Extract a .zip or tar archive into dest.

    Raises:
        ResourceError: If the archive format is not supported or the archive is corrupt
    """
    name = archive.name.lower()
    try:
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive, "r") as zf:
                zf.extractall(dest)
        elif name.endswith((".tar.gz", ".tgz")):
            _extract_tar(archive, dest, "r:gz")
        elif name.endswith((".tar.bz2", ".tbz2")):
            _extract_tar(archive, dest, "r:bz2")
        elif name.endswith((".tar.xz", ".txz")):
            _extract_tar(archive, dest, "r:xz")
        else:
            raise ResourceError(f"Unsupported archive format: {archive.name}")
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        raise ResourceError(f"Corrupt archive {archive.name}: {e}") from e


def _extract_tar(archive: Path, dest: Path, mode: str) -> None:
    with tarfile.open(archive, mode) as tar:  # type: ignore[call-overload]
        tar.extractall(dest, filter="data")


def archive_root(extracted: Path) -> Path:
    """Return the library root inside an extracted archive.

    Archives usually wrap the library in a single top-level directory
    (GitHub archives always do); that directory is the root.
    """
    items = [p for p in extracted.iterdir() if p.name != "__MACOSX"]
    if not items:
        raise ResourceError("Archive is empty")
    if len(items) == 1 and items[0].is_dir():
        return items[0]
    return extracted


def _cleanup_temp_file(temp_file: Path) -> None:
    """Remove a temporary download file if it exists."""
    try:
        if temp_file.exists():
            temp_file.unlink()
    except (PermissionError, OSError):
        pass


def _format_size(size_bytes: int) -> str:
    """Format a byte count as a human-readable size string."""
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} B"
