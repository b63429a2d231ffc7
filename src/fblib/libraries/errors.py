"""Error taxonomy for library resolution and installation.

Errors fall into two families so callers can tell whether a failed request
left the system untouched:

- NothingChangedError: raised during resolution or planning, before any
  download or filesystem mutation. Re-issuing the same request is safe.
- PartialInstallError: raised while executing a plan. Libraries committed
  earlier in the same batch stay installed; ``committed`` lists them.
"""

from typing import Optional


class LibraryError(Exception):
    """Base exception for library management errors."""

    nothing_changed: bool = True


class NothingChangedError(LibraryError):
    """Raised before any side effect took place."""

    nothing_changed = True


class InvalidVersionError(NothingChangedError):
    """Raised when a version or version constraint cannot be parsed."""

    pass


class LibraryNotFoundError(NothingChangedError):
    """Raised when a library, or a release matching a constraint, is not in the catalog."""

    def __init__(self, name: str, constraint: Optional[str] = None):
        self.name = name
        self.constraint = constraint
        if constraint:
            message = f"Library '{name}' has no release matching '{constraint}'"
        else:
            message = f"Library '{name}' not found"
        super().__init__(message)


class LibraryNotInstalledError(NothingChangedError):
    """Raised when an operation targets a library that is not installed."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Library '{name}' is not installed")


class DependencyResolutionError(NothingChangedError):
    """Raised when two dependency edges require incompatible versions of one library."""

    def __init__(self, name: str, first_version: str, second_version: str):
        self.name = name
        self.first_version = first_version
        self.second_version = second_version
        super().__init__(f"Two different versions of the library {name} are required: {first_version} and {second_version}")


class OverwriteConflictError(NothingChangedError):
    """Raised when no-overwrite is requested but a different version is installed."""

    def __init__(self, release: str, installed: str):
        self.release = release
        self.installed = installed
        super().__init__(f"Library {release} is already installed, but with a different version: {installed}")


class DestinationExistsError(NothingChangedError):
    """Raised when the install target exists but is not a managed library."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Destination directory already exists and is not a managed library: {path}")


class InstallLocationError(NothingChangedError):
    """Raised when an install location has no configured directory."""

    pass


class LeaseTimeoutError(LibraryError):
    """Raised when a shared-state lease cannot be acquired in time."""

    pass


class PartialInstallError(LibraryError):
    """Raised while executing an install plan.

    Attributes:
        library: Identity of the library being processed ("name@version")
        message: Failure description without the library prefix
        committed: Names of libraries fully installed before the failure
    """

    nothing_changed = False

    def __init__(self, library: str, message: str, committed: Optional[list[str]] = None):
        self.library = library
        self.message = message
        self.committed: list[str] = list(committed) if committed else []
        super().__init__(f"{library}: {message}")


class LibraryDownloadError(PartialInstallError):
    """Raised when downloading a library archive fails."""

    pass


class LibraryUninstallError(PartialInstallError):
    """Raised when removing a replaced library fails."""

    pass


class LibraryInstallError(PartialInstallError):
    """Raised when installing a downloaded library fails."""

    pass


class LibraryAlreadyInstalledError(NothingChangedError):
    """Raised when a library exists at the destination and overwrite was not requested."""

    def __init__(self, name: str, path: str):
        self.name = name
        self.path = path
        super().__init__(f"Library {name} is already installed at {path}")
