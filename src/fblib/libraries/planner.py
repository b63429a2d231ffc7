"""Install planning: decide, per resolved release, what has to happen.

For every requirement the planner looks up the concrete release and compares
it with what is installed at the target location:

- same name and version installed  -> up to date, nothing to do
- same name, different version     -> replace (or refuse under no-overwrite)
- not installed                    -> fresh install

Planning never mutates anything and is the only stage allowed to reject the
whole batch. With no-overwrite set, a single library that would replace a
different installed version aborts the pass before any plan is returned.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from fblib.config import LibrarySettings

from .catalog import LibraryCatalog
from .errors import DestinationExistsError, OverwriteConflictError
from .installer import sanitize_name
from .models import DependencyRequirement, InstalledLibrary, InstallLocation, InstallPlan, LibraryRelease, ReleaseKey

logger = logging.getLogger(__name__)


class LibraryStateView(Protocol):
    """What the planner needs to read; satisfied by both lease handles."""

    @property
    def settings(self) -> LibrarySettings: ...

    @property
    def catalog(self) -> LibraryCatalog: ...

    def find_installed(self, name: str, location: InstallLocation) -> Optional[InstalledLibrary]: ...


class InstallPlanner:
    """Builds install plans against a snapshot of the catalog and registry."""

    def __init__(self, state: LibraryStateView):
        self._state = state

    def plan(
        self,
        requirements: dict[str, DependencyRequirement],
        location: InstallLocation,
        no_overwrite: bool = False,
    ) -> dict[ReleaseKey, InstallPlan]:
        """Plan the installation of a resolved requirement set.

        Args:
            requirements: Output of DependencyResolver.resolve()
            location: Install location for every library of the batch
            no_overwrite: Refuse the whole batch if any library would replace
                an installed library of a different version

        Returns:
            Plans keyed by release identity, ordered by library name

        Raises:
            LibraryNotFoundError: If a requirement has no matching release
            OverwriteConflictError: If no_overwrite is set and a replace is needed
            DestinationExistsError: If a target directory is occupied by an unmanaged directory
                or claimed by another library of the batch
            InstallLocationError: If the location has no configured directory
        """
        location_dir = self._state.settings.location_dir(location)
        plans: dict[ReleaseKey, InstallPlan] = {}
        claimed: dict[Path, str] = {}

        for name in sorted(requirements):
            requirement = requirements[name]
            release = self._state.catalog.find_release(requirement.name, requirement.constraint)
            target = location_dir / sanitize_name(release.name)
            installed = self._state.find_installed(release.name, location)

            if installed is not None and installed.version == release.version:
                logger.debug("%s is already installed at %s", release, installed.install_path)
                _claim(claimed, installed.install_path, release)
                plans[release.key] = InstallPlan(release=release, target_path=installed.install_path, location=location, up_to_date=True)
                continue

            if installed is not None and no_overwrite:
                raise OverwriteConflictError(str(release), str(installed))

            if target.exists() and (installed is None or installed.install_path != target):
                raise DestinationExistsError(str(target))

            _claim(claimed, target, release)
            plans[release.key] = InstallPlan(release=release, target_path=target, location=location, replaces=installed)
            if installed is not None:
                logger.debug("%s will replace %s", release, installed)
            else:
                logger.debug("%s will be installed into %s", release, target)

        return plans


def _claim(claimed: dict[Path, str], path: Path, release: LibraryRelease) -> None:
    """Reserve a library directory for one release of the batch."""
    if path in claimed:
        logger.debug("%s and %s both map to %s", claimed[path], release, path)
        raise DestinationExistsError(str(path))
    claimed[path] = str(release)


def summarize_plans(plans: dict[ReleaseKey, InstallPlan]) -> dict[str, list[str]]:
    """Group plan entries by action, for logging and dry runs."""
    summary: dict[str, list[str]] = {"skip": [], "install": [], "replace": []}
    for key, plan in plans.items():
        if plan.up_to_date:
            summary["skip"].append(str(key))
        elif plan.replaces is not None:
            summary["replace"].append(str(key))
        else:
            summary["install"].append(str(key))
    return summary
