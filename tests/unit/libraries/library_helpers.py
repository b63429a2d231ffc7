"""Test helpers for the library engine tests.

Archives are real zip files built in memory. Downloads go through a patched
``requests.get`` that serves them from an in-process table, so the download
path runs exactly as in production without network access.
"""

import hashlib
import io
import threading
import zipfile
from typing import Any, Optional, Union
from unittest.mock import MagicMock

import requests

from fblib.libraries.catalog import LibraryCatalog
from fblib.libraries.models import DownloadProgress, InstallEvent, TaskProgress


class RecordingCallback:
    """Callback that records every progress event for assertions."""

    def __init__(self) -> None:
        self.downloads: list[DownloadProgress] = []
        self.tasks: list[TaskProgress] = []
        self.ordered: list[Union[DownloadProgress, TaskProgress]] = []
        self._lock = threading.Lock()

    def on_download_progress(self, progress: DownloadProgress) -> None:
        with self._lock:
            self.downloads.append(progress)
            self.ordered.append(progress)

    def on_task_progress(self, progress: TaskProgress) -> None:
        with self._lock:
            self.tasks.append(progress)
            self.ordered.append(progress)

    def events(self) -> list[tuple[Optional[str], InstallEvent]]:
        with self._lock:
            return [(t.library, t.event) for t in self.tasks]

    def events_for(self, library: str) -> list[InstallEvent]:
        with self._lock:
            return [t.event for t in self.tasks if t.library == library]

    def messages(self) -> list[str]:
        with self._lock:
            return [t.message for t in self.tasks]


def make_library_zip(name: str, version: Optional[str], folder: Optional[str] = None, files: Optional[dict[str, str]] = None) -> bytes:
    """Build a zip archive holding one library folder.

    Args:
        name: Library name written to library.properties
        version: Version written to library.properties, None to omit the file
        folder: Top-level folder name (default "<name>-<version>")
        files: Extra files relative to the library folder
    """
    folder = folder or f"{name}-{version}"
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if version is not None:
            zf.writestr(f"{folder}/library.properties", f"name={name}\nversion={version}\nsentence=The {name} library\n")
        zf.writestr(f"{folder}/src/{name}.h", f"// {name} {version}\n")
        for rel_path, content in (files or {}).items():
            zf.writestr(f"{folder}/{rel_path}", content)
    return buffer.getvalue()


class ArchiveServer:
    """Stand-in for the HTTP side of requests.get."""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}
        self.requested: list[str] = []
        self._lock = threading.Lock()

    def publish(self, url: str, data: bytes) -> None:
        self.archives[url] = data

    def get(self, url: str, stream: bool = False, timeout: Any = None) -> MagicMock:
        with self._lock:
            self.requested.append(url)
        response = MagicMock()
        data = self.archives.get(url)
        if data is None:
            response.raise_for_status.side_effect = requests.HTTPError(f"404 Client Error: Not Found for url: {url}")
            return response
        response.raise_for_status.return_value = None
        response.headers = {"content-length": str(len(data))}
        response.iter_content.side_effect = lambda chunk_size=8192: iter([data[i : i + chunk_size] for i in range(0, len(data), chunk_size)])
        return response


class IndexBuilder:
    """Builds library index entries backed by archives on an ArchiveServer."""

    def __init__(self, server: ArchiveServer) -> None:
        self.server = server
        self.entries: list[dict[str, Any]] = []

    def add(self, name: str, version: str, dependencies: Optional[list[dict[str, str]]] = None, sentence: str = "") -> dict[str, Any]:
        data = make_library_zip(name, version)
        url = f"https://downloads.example.com/libraries/{name}-{version}.zip"
        self.server.publish(url, data)
        entry: dict[str, Any] = {
            "name": name,
            "version": version,
            "url": url,
            "archiveFileName": f"{name}-{version}.zip",
            "size": len(data),
            "checksum": "SHA-256:" + hashlib.sha256(data).hexdigest(),
            "dependencies": dependencies or [],
            "sentence": sentence or f"The {name} library",
        }
        self.entries.append(entry)
        return entry

    def index(self) -> dict[str, Any]:
        return {"libraries": list(self.entries)}

    def catalog(self) -> LibraryCatalog:
        return LibraryCatalog.from_index(self.index())
