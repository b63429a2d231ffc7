"""Dependency resolution for library installs.

Computes the transitive set of libraries a request needs, one requirement per
library name. The walk is breadth-first from the root and expands each name
once. Every edge is resolved on its own against the catalog; when two edges
for the same library resolve to different versions, resolution fails. There
is no merge and no "pick newest" heuristic, so the outcome does not depend on
the order dependencies are listed in.

Resolution is a pure function of the catalog and the request; it never looks
at the filesystem or the installed libraries.
"""

import logging
from collections import deque
from typing import Optional

from .catalog import LibraryCatalog
from .errors import DependencyResolutionError
from .models import DependencyRequirement, LibraryRelease

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Resolves a root library request into the full set of required releases.

    Usage:
        resolver = DependencyResolver(catalog)
        requirements = resolver.resolve("Adafruit GFX Library", "1.11.9", allow_dependencies=True)
        # {"Adafruit GFX Library": DependencyRequirement(..., "1.11.9"),
        #  "Adafruit BusIO": DependencyRequirement(..., "1.14.5")}
    """

    def __init__(self, catalog: LibraryCatalog):
        self._catalog = catalog

    def resolve(
        self,
        root_name: str,
        root_version: Optional[str] = None,
        allow_dependencies: bool = True,
    ) -> dict[str, DependencyRequirement]:
        """Resolve a root request.

        Args:
            root_name: Name of the requested library
            root_version: Exact version or constraint; None for the latest release
            allow_dependencies: If False, return only the root requirement
                without consulting the catalog

        Returns:
            Mapping of library name to its requirement. With dependencies
            enabled every requirement carries an exact version.

        Raises:
            LibraryNotFoundError: If the root or a dependency is missing from the catalog
            DependencyResolutionError: If two edges require incompatible versions
            InvalidVersionError: If a constraint cannot be parsed
        """
        if not allow_dependencies:
            return {root_name: DependencyRequirement(root_name, root_version)}

        root = self._catalog.find_release(root_name, root_version)
        chosen: dict[str, LibraryRelease] = {root.name: root}
        queue: deque[LibraryRelease] = deque([root])

        while queue:
            release = queue.popleft()
            for dep in release.dependencies:
                dep_release = self._catalog.find_release(dep.name, dep.constraint)
                existing = chosen.get(dep.name)
                if existing is not None:
                    if existing.version != dep_release.version:
                        raise DependencyResolutionError(dep.name, str(existing.version), str(dep_release.version))
                    continue

                logger.debug("%s requires %s (%s) -> %s", release, dep.name, dep.constraint or "any", dep_release.version)
                chosen[dep.name] = dep_release
                queue.append(dep_release)

        return {name: DependencyRequirement(name, str(release.version)) for name, release in chosen.items()}

