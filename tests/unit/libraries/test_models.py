"""Unit tests for the library data models."""

from pathlib import Path

import pytest

from fblib.libraries.models import (
    DependencyRequirement,
    InstalledLibrary,
    InstallLocation,
    InstallReport,
    LibraryDependency,
    LibraryRelease,
    ReleaseKey,
)
from fblib.libraries.resources import DownloadResource
from fblib.libraries.version import parse_version


class TestInstallLocation:
    """Tests for InstallLocation."""

    def test_from_string(self) -> None:
        assert InstallLocation.from_string("user") == InstallLocation.USER
        assert InstallLocation.from_string("BUILTIN") == InstallLocation.BUILTIN

    def test_from_string_invalid(self) -> None:
        with pytest.raises(ValueError):
            InstallLocation.from_string("system")


class TestLibraryRelease:
    """Tests for LibraryRelease identity."""

    def test_identity_ignores_resource_and_metadata(self) -> None:
        a = LibraryRelease("Servo", parse_version("1.0.0"), resource=DownloadResource("https://a/x.zip", "x.zip"), sentence="a")
        b = LibraryRelease("Servo", parse_version("1.0.0"), resource=None, sentence="b")
        assert a == b
        assert hash(a) == hash(b)

    def test_different_versions_differ(self) -> None:
        assert LibraryRelease("Servo", parse_version("1.0.0")) != LibraryRelease("Servo", parse_version("1.0.1"))

    def test_key_and_str(self) -> None:
        release = LibraryRelease("Servo", parse_version("1.2"))
        assert release.key == ReleaseKey("Servo", "1.2.0")
        assert str(release) == "Servo@1.2.0"
        assert str(release.key) == "Servo@1.2.0"


class TestDependencies:
    """Tests for LibraryDependency and DependencyRequirement."""

    def test_dependency_round_trip(self) -> None:
        dep = LibraryDependency.from_dict({"name": "Wire", "version": ">=1.0"})
        assert dep.to_dict() == {"name": "Wire", "version": ">=1.0"}
        assert dep.constraint.matches(parse_version("1.5.0"))

    def test_dependency_without_version(self) -> None:
        dep = LibraryDependency.from_dict({"name": "Wire", "version": ""})
        assert dep.version is None
        assert dep.to_dict() == {"name": "Wire"}
        assert dep.constraint.is_any

    def test_requirement_constraint(self) -> None:
        req = DependencyRequirement("Servo", "1.2.1")
        assert req.constraint.exact == parse_version("1.2.1")
        assert DependencyRequirement.from_dict(req.to_dict()) == req


class TestInstalledLibrary:
    """Tests for InstalledLibrary serialization."""

    def test_to_dict_from_dict(self, tmp_path: Path) -> None:
        lib = InstalledLibrary("Servo", parse_version("1.2.1"), tmp_path / "Servo", InstallLocation.USER)
        data = lib.to_dict()
        assert data["version"] == "1.2.1"
        assert data["location"] == "user"
        assert InstalledLibrary.from_dict(data) == lib

    def test_unmanaged_has_no_version(self, tmp_path: Path) -> None:
        lib = InstalledLibrary("stuff", None, tmp_path / "stuff", InstallLocation.USER, managed=False)
        assert str(lib) == "stuff"
        assert InstalledLibrary.from_dict(lib.to_dict()).managed is False


class TestInstallReport:
    """Tests for InstallReport."""

    def test_empty_report_is_unchanged(self) -> None:
        assert not InstallReport().changed

    def test_skipped_only_is_unchanged(self) -> None:
        assert not InstallReport(skipped=["Servo@1.2.1"]).changed

    def test_installed_is_changed(self) -> None:
        report = InstallReport(installed=["Servo@1.2.1"])
        assert report.changed
        assert report.to_dict() == {"installed": ["Servo@1.2.1"], "skipped": [], "replaced": []}
