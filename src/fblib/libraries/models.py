"""Data models for library resolution and installation.

Defines the core types used throughout the engine:
- InstallLocation: Enum of the directory roots a library can be installed into
- LibraryRelease: One catalog entry (name, version, dependencies, resource)
- DependencyRequirement: A resolved (name, version) requirement
- InstalledLibrary: One entry of the installation registry
- InstallPlan: The decided action for one release
- InstallEvent / TaskProgress / DownloadProgress: Progress reporting payloads
- InstallReport: Outcome of executing a batch of plans
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple, Optional

import semantic_version

from .version import VersionConstraint, parse_version

if TYPE_CHECKING:
    from .resources import InstallableResource


class InstallLocation(Enum):
    """Directory root a library is installed into."""

    USER = "user"
    BUILTIN = "builtin"
    SKETCH = "sketch"

    @classmethod
    def from_string(cls, value: str) -> "InstallLocation":
        """Convert string to InstallLocation."""
        return cls(value.lower())


class ReleaseKey(NamedTuple):
    """Value identity of a library release."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class LibraryDependency:
    """A dependency constraint declared by a release.

    Attributes:
        name: Name of the required library
        version: Version or version constraint, None for "any"
    """

    name: str
    version: Optional[str] = None

    @property
    def constraint(self) -> VersionConstraint:
        return VersionConstraint.parse(self.version)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.version:
            data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LibraryDependency":
        return cls(name=data["name"], version=data.get("version") or None)


@dataclass(frozen=True)
class LibraryRelease:
    """A single release of a library as listed in the catalog.

    Identity is (name, version); the resource and descriptive fields do not
    take part in equality.

    Attributes:
        name: Library name (e.g. "Adafruit NeoPixel")
        version: Release version
        dependencies: Dependency constraints declared by this release
        resource: Installable resource (archive) for this release
        author: Author string from the index
        sentence: One-line description from the index
        architectures: Supported architectures ("*" for all)
    """

    name: str
    version: semantic_version.Version
    dependencies: tuple[LibraryDependency, ...] = ()
    resource: Optional["InstallableResource"] = field(default=None, compare=False, hash=False, repr=False)
    author: str = field(default="", compare=False, hash=False)
    sentence: str = field(default="", compare=False, hash=False)
    architectures: tuple[str, ...] = field(default=("*",), compare=False, hash=False)

    @property
    def key(self) -> ReleaseKey:
        return ReleaseKey(self.name, str(self.version))

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DependencyRequirement:
    """A (name, version) pair produced by resolution.

    Attributes:
        name: Library name
        version_required: Exact version or constraint; None means latest
    """

    name: str
    version_required: Optional[str] = None

    @property
    def constraint(self) -> VersionConstraint:
        return VersionConstraint.parse(self.version_required)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "version_required": self.version_required}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyRequirement":
        return cls(name=data["name"], version_required=data.get("version_required"))


@dataclass(frozen=True)
class InstalledLibrary:
    """A library present in one of the install locations.

    Attributes:
        name: Library name
        version: Installed version, None if unknown (unmanaged directory)
        install_path: Directory the library lives in
        location: Install location root
        managed: False for directories without library metadata
    """

    name: str
    version: Optional[semantic_version.Version]
    install_path: Path
    location: InstallLocation
    managed: bool = True

    def __str__(self) -> str:
        if self.version is None:
            return self.name
        return f"{self.name}@{self.version}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "version": str(self.version) if self.version is not None else None,
            "install_path": str(self.install_path),
            "location": self.location.value,
            "managed": self.managed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstalledLibrary":
        """Deserialize from dictionary."""
        version = data.get("version")
        return cls(
            name=data["name"],
            version=parse_version(version) if version else None,
            install_path=Path(data["install_path"]),
            location=InstallLocation(data["location"]),
            managed=data.get("managed", True),
        )


@dataclass(frozen=True)
class InstallPlan:
    """Decided action for one resolved release.

    Plans are a point-in-time snapshot computed by the planner and consumed
    once by the executor.

    Attributes:
        release: The catalog release to install
        target_path: Directory the release is installed into
        location: Install location of target_path
        up_to_date: True if the exact release is already installed there
        replaces: Installed library that must be removed first, if any
    """

    release: LibraryRelease
    target_path: Path
    location: InstallLocation
    up_to_date: bool = False
    replaces: Optional[InstalledLibrary] = None


class InstallEvent(Enum):
    """Lifecycle event emitted while executing plans."""

    DOWNLOAD_STARTED = "download_started"
    INSTALL_STARTED = "install_started"
    REPLACED = "replaced"
    INSTALLED = "installed"
    SKIPPED = "skipped"
    UNINSTALLED = "uninstalled"


@dataclass
class TaskProgress:
    """Task-progress channel payload.

    Attributes:
        library: Library identity ("name@version"), None for batch-level messages
        event: Lifecycle event
        message: Human-readable message
        completed: True when the task this message belongs to is finished
        stage: Optional named stage (e.g. "Installing Servo@1.2.1")
        reason: Install reason for INSTALLED events ("install", "upgrade", "depends")
    """

    library: Optional[str]
    event: InstallEvent
    message: str
    completed: bool = False
    stage: str = ""
    reason: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class DownloadProgress:
    """Download-progress channel payload.

    Attributes:
        library: Library identity ("name@version")
        url: Source URL of the archive
        downloaded: Bytes transferred so far
        total: Total bytes, 0 if unknown
        completed: True once the archive is complete on disk
    """

    library: str
    url: str
    downloaded: int
    total: int
    completed: bool = False


@dataclass
class InstallReport:
    """Outcome of a successful execution.

    Attributes:
        installed: Libraries installed, in execution order ("name@version")
        skipped: Libraries already up to date
        replaced: Libraries removed to make room for a new version
    """

    installed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.installed or self.replaced)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "installed": list(self.installed),
            "skipped": list(self.skipped),
            "replaced": list(self.replaced),
        }
