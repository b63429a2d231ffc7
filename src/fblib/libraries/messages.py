"""
Typed request messages for library operations.

Each request is a plain dataclass that serializes to and from a JSON-friendly
dictionary, so the same requests can be built by a CLI, a test, or a
long-running service.

Supports:
- Catalog installs (with dependency resolution)
- Archive installs (local .zip or tar file)
- Repository installs (remote git repository fetched as an archive)
- Upgrades of named or all installed libraries
- Uninstalls
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any

from .models import InstallLocation


def _request_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}"


@dataclass
class LibraryInstallRequest:
    """Install a library from the catalog.

    Attributes:
        name: Library name
        version: Exact version or constraint, None for the latest release
        no_deps: Install only the named library, skipping dependency resolution
        no_overwrite: Refuse to replace installed libraries of a different version
        install_location: Install location (user, builtin or sketch)
        timestamp: Unix timestamp when request was created
        request_id: Unique identifier for this request
    """

    name: str
    version: str | None = None
    no_deps: bool = False
    no_overwrite: bool = False
    install_location: InstallLocation = InstallLocation.USER
    timestamp: float = field(default_factory=time.time)
    request_id: str = field(default_factory=lambda: _request_id("install"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["install_location"] = self.install_location.value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LibraryInstallRequest":
        """Create LibraryInstallRequest from dictionary."""
        return cls(
            name=data["name"],
            version=data.get("version") or None,
            no_deps=data.get("no_deps", False),
            no_overwrite=data.get("no_overwrite", False),
            install_location=InstallLocation.from_string(data.get("install_location", "user")),
            timestamp=data.get("timestamp", time.time()),
            request_id=data.get("request_id", _request_id("install")),
        )


@dataclass
class ZipLibraryInstallRequest:
    """Install a library from a local archive file.

    Attributes:
        path: Path of the .zip (or tar) archive
        overwrite: Replace an existing library with the same name
        timestamp: Unix timestamp when request was created
        request_id: Unique identifier for this request
    """

    path: str
    overwrite: bool = False
    timestamp: float = field(default_factory=time.time)
    request_id: str = field(default_factory=lambda: _request_id("zip_install"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ZipLibraryInstallRequest":
        """Create ZipLibraryInstallRequest from dictionary."""
        return cls(
            path=data["path"],
            overwrite=data.get("overwrite", False),
            timestamp=data.get("timestamp", time.time()),
            request_id=data.get("request_id", _request_id("zip_install")),
        )


@dataclass
class GitLibraryInstallRequest:
    """Install a library from a remote repository.

    Attributes:
        url: Repository URL, optionally suffixed with "#<ref>"
        overwrite: Replace an existing library with the same name
        timestamp: Unix timestamp when request was created
        request_id: Unique identifier for this request
    """

    url: str
    overwrite: bool = False
    timestamp: float = field(default_factory=time.time)
    request_id: str = field(default_factory=lambda: _request_id("git_install"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GitLibraryInstallRequest":
        """Create GitLibraryInstallRequest from dictionary."""
        return cls(
            url=data["url"],
            overwrite=data.get("overwrite", False),
            timestamp=data.get("timestamp", time.time()),
            request_id=data.get("request_id", _request_id("git_install")),
        )


@dataclass
class LibraryUpgradeRequest:
    """Upgrade installed libraries to their latest catalog release.

    Attributes:
        names: Libraries to upgrade; empty means every installed library
        timestamp: Unix timestamp when request was created
        request_id: Unique identifier for this request
    """

    names: list[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    request_id: str = field(default_factory=lambda: _request_id("upgrade"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LibraryUpgradeRequest":
        """Create LibraryUpgradeRequest from dictionary."""
        return cls(
            names=list(data.get("names", [])),
            timestamp=data.get("timestamp", time.time()),
            request_id=data.get("request_id", _request_id("upgrade")),
        )


@dataclass
class LibraryUninstallRequest:
    """Remove an installed library.

    Attributes:
        name: Library name
        install_location: Install location to remove it from
        timestamp: Unix timestamp when request was created
        request_id: Unique identifier for this request
    """

    name: str
    install_location: InstallLocation = InstallLocation.USER
    timestamp: float = field(default_factory=time.time)
    request_id: str = field(default_factory=lambda: _request_id("uninstall"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["install_location"] = self.install_location.value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LibraryUninstallRequest":
        """Create LibraryUninstallRequest from dictionary."""
        return cls(
            name=data["name"],
            install_location=InstallLocation.from_string(data.get("install_location", "user")),
            timestamp=data.get("timestamp", time.time()),
            request_id=data.get("request_id", _request_id("uninstall")),
        )
