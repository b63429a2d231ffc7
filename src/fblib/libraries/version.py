"""Version parsing and constraint matching for library releases.

Library versions are handled as ``semantic_version.Version`` objects, which
give the total order and equality the resolver needs. Constraints are either
an exact version ("1.2.3", also written "=1.2.3") or a range understood by
``semantic_version.SimpleSpec`` / ``NpmSpec`` (">=1.0,<2.0", "^1.2", "~1.2").
"""

import re
from typing import Iterable, Optional

import semantic_version

from .errors import InvalidVersionError

_EXACT_VERSION_RE = re.compile(r"^=?=?\s*v?\d+(\.\d+){0,2}([-+][0-9A-Za-z.+-]*)?$")


def parse_version(text: str) -> semantic_version.Version:
    """Parse a version string, coercing partial versions ("1.2" -> 1.2.0).

    Args:
        text: Version string

    Returns:
        Parsed Version

    Raises:
        InvalidVersionError: If the string is not a usable version
    """
    cleaned = text.strip()
    if cleaned[:1] in ("v", "V") and cleaned[1:2].isdigit():
        cleaned = cleaned[1:]
    try:
        return semantic_version.Version.coerce(cleaned)
    except ValueError as e:
        raise InvalidVersionError(f"Invalid version '{text}': {e}") from e


class VersionConstraint:
    """A version requirement: any version, an exact version, or a range."""

    def __init__(self, text: Optional[str] = None):
        self._text = (text or "").strip()
        self._exact: Optional[semantic_version.Version] = None
        self._spec = None

        if not self._text or self._text in ("*", "latest"):
            return

        if _EXACT_VERSION_RE.match(self._text):
            self._exact = parse_version(self._text.lstrip("= "))
            return

        try:
            self._spec = semantic_version.SimpleSpec(self._text)
        except ValueError:
            try:
                self._spec = semantic_version.NpmSpec(self._text)
            except ValueError as e:
                raise InvalidVersionError(f"Invalid version constraint '{self._text}': {e}") from e

    @classmethod
    def parse(cls, text: Optional[str]) -> "VersionConstraint":
        return cls(text)

    @classmethod
    def exactly(cls, version: semantic_version.Version) -> "VersionConstraint":
        return cls(str(version))

    @property
    def is_any(self) -> bool:
        return self._exact is None and self._spec is None

    @property
    def exact(self) -> Optional[semantic_version.Version]:
        """The pinned version, or None for ranges and "any"."""
        return self._exact

    def matches(self, version: semantic_version.Version) -> bool:
        if self._exact is not None:
            return version == self._exact
        if self._spec is not None:
            return self._spec.match(version)
        return True

    def select(self, versions: Iterable[semantic_version.Version]) -> Optional[semantic_version.Version]:
        """Return the highest version satisfying this constraint, or None."""
        candidates = [v for v in versions if self.matches(v)]
        if not candidates:
            return None
        return max(candidates)

    def __str__(self) -> str:
        if self._exact is not None:
            return str(self._exact)
        return self._text

    def __repr__(self) -> str:
        return f"VersionConstraint({self._text!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionConstraint):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))
