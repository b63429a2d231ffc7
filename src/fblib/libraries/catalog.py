"""Read-only catalog of available library releases.

The catalog is loaded once per session from a JSON library index and never
mutated afterwards; refreshing the index file is someone else's job.

Index format (same shape as the upstream Arduino library index):

    {
      "libraries": [
        {
          "name": "Servo",
          "version": "1.2.1",
          "url": "https://downloads.example.com/Servo-1.2.1.zip",
          "archiveFileName": "Servo-1.2.1.zip",
          "size": 12345,
          "checksum": "SHA-256:...",
          "dependencies": [{"name": "Wire", "version": ">=1.0"}]
        }
      ]
    }
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union

from .errors import InvalidVersionError, LibraryNotFoundError
from .models import LibraryDependency, LibraryRelease
from .resources import DownloadResource
from .version import VersionConstraint, parse_version

logger = logging.getLogger(__name__)


class LibraryCatalog:
    """Immutable index mapping library name to its available releases."""

    def __init__(self, releases: list[LibraryRelease]):
        by_name: dict[str, dict[str, LibraryRelease]] = {}
        for release in releases:
            by_name.setdefault(release.name, {})[str(release.version)] = release

        self._libraries: Mapping[str, tuple[LibraryRelease, ...]] = MappingProxyType(
            {name: tuple(sorted(versions.values(), key=lambda r: r.version)) for name, versions in by_name.items()}
        )

    @classmethod
    def from_index(cls, data: dict[str, Any]) -> "LibraryCatalog":
        """Build a catalog from a parsed index document.

        Entries with an unparseable version are skipped with a warning.
        """
        releases = []
        for entry in data.get("libraries", []):
            try:
                releases.append(_release_from_entry(entry))
            except (InvalidVersionError, KeyError) as e:
                logger.warning("Skipping invalid index entry %r: %s", entry.get("name"), e)
        return cls(releases)

    @classmethod
    def load(cls, index_path: Path) -> "LibraryCatalog":
        """Load the catalog from an index file.

        A missing index yields an empty catalog.

        Raises:
            ValueError: If the index file is not valid JSON
        """
        if not index_path.exists():
            logger.warning("Library index not found at %s, catalog is empty", index_path)
            return cls([])

        with open(index_path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid library index {index_path}: {e}") from e

        catalog = cls.from_index(data)
        logger.info("Loaded library index %s (%d libraries)", index_path, len(catalog))
        return catalog

    def __len__(self) -> int:
        return len(self._libraries)

    def __contains__(self, name: object) -> bool:
        return name in self._libraries

    def __iter__(self) -> Iterator[str]:
        return iter(self._libraries)

    def names(self) -> list[str]:
        return sorted(self._libraries)

    def get_releases(self, name: str) -> tuple[LibraryRelease, ...]:
        """All releases of a library, oldest first.

        Raises:
            LibraryNotFoundError: If the library is not in the catalog
        """
        releases = self._libraries.get(name)
        if not releases:
            raise LibraryNotFoundError(name)
        return releases

    def get_latest(self, name: str) -> LibraryRelease:
        return self.get_releases(name)[-1]

    def find_release(self, name: str, constraint: Union[VersionConstraint, str, None] = None) -> LibraryRelease:
        """Find the highest release of a library matching a constraint.

        Args:
            name: Library name
            constraint: Exact version, range, or None for the latest release

        Returns:
            The matching release

        Raises:
            LibraryNotFoundError: If the library or a matching release is missing
        """
        if not isinstance(constraint, VersionConstraint):
            constraint = VersionConstraint.parse(constraint)

        releases = self.get_releases(name)
        selected = constraint.select(r.version for r in releases)
        if selected is None:
            raise LibraryNotFoundError(name, str(constraint))
        return next(r for r in releases if r.version == selected)

    def has_release(self, name: str, version: str) -> bool:
        try:
            self.find_release(name, VersionConstraint.exactly(parse_version(version)))
        except LibraryNotFoundError:
            return False
        return True

    def search(self, query: str) -> list[LibraryRelease]:
        """Latest release of every library whose name or sentence contains query."""
        needle = query.strip().lower()
        results = []
        for name in self.names():
            latest = self.get_latest(name)
            if not needle or needle in name.lower() or needle in latest.sentence.lower():
                results.append(latest)
        return results


def _release_from_entry(entry: dict[str, Any]) -> LibraryRelease:
    """Convert one index entry into a LibraryRelease."""
    resource: Optional[DownloadResource] = None
    if entry.get("url"):
        resource = DownloadResource(
            url=entry["url"],
            archive_file_name=entry.get("archiveFileName") or entry["url"].rsplit("/", 1)[-1],
            size=int(entry.get("size", 0) or 0),
            checksum=entry.get("checksum", ""),
        )

    return LibraryRelease(
        name=entry["name"],
        version=parse_version(entry["version"]),
        dependencies=tuple(LibraryDependency.from_dict(d) for d in entry.get("dependencies", []) or []),
        resource=resource,
        author=entry.get("author", ""),
        sentence=entry.get("sentence", ""),
        architectures=tuple(entry.get("architectures", ["*"])),
    )
