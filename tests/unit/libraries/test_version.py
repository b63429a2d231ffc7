"""Unit tests for version parsing and constraint matching."""

import pytest
import semantic_version

from fblib.libraries.errors import InvalidVersionError
from fblib.libraries.version import VersionConstraint, parse_version


class TestParseVersion:
    """Tests for parse_version()."""

    def test_full_version(self) -> None:
        assert parse_version("1.2.3") == semantic_version.Version("1.2.3")

    def test_partial_version_is_coerced(self) -> None:
        assert parse_version("1.2") == semantic_version.Version("1.2.0")
        assert parse_version("2") == semantic_version.Version("2.0.0")

    def test_leading_v_is_stripped(self) -> None:
        assert parse_version("v1.4.0") == semantic_version.Version("1.4.0")

    def test_whitespace_is_ignored(self) -> None:
        assert parse_version("  3.0.1 ") == semantic_version.Version("3.0.1")

    def test_invalid_version_raises(self) -> None:
        with pytest.raises(InvalidVersionError):
            parse_version("not-a-version")

    def test_invalid_version_is_nothing_changed(self) -> None:
        with pytest.raises(InvalidVersionError) as exc_info:
            parse_version("")
        assert exc_info.value.nothing_changed is True

    def test_ordering(self) -> None:
        assert parse_version("1.10.0") > parse_version("1.9.0")
        assert parse_version("1.0.0-beta") < parse_version("1.0.0")


class TestVersionConstraint:
    """Tests for VersionConstraint."""

    @pytest.mark.parametrize("text", [None, "", "*", "latest"])
    def test_any(self, text) -> None:
        constraint = VersionConstraint.parse(text)
        assert constraint.is_any
        assert constraint.exact is None
        assert constraint.matches(parse_version("0.0.1"))

    @pytest.mark.parametrize("text", ["1.2.1", "=1.2.1", "==1.2.1", "v1.2.1"])
    def test_exact(self, text) -> None:
        constraint = VersionConstraint.parse(text)
        assert constraint.exact == parse_version("1.2.1")
        assert constraint.matches(parse_version("1.2.1"))
        assert not constraint.matches(parse_version("1.2.2"))

    def test_partial_exact_is_coerced(self) -> None:
        assert VersionConstraint.parse("1.2").exact == parse_version("1.2.0")

    def test_range(self) -> None:
        constraint = VersionConstraint.parse(">=1.0,<2.0")
        assert constraint.exact is None
        assert not constraint.is_any
        assert constraint.matches(parse_version("1.5.0"))
        assert not constraint.matches(parse_version("2.0.0"))

    def test_caret_range(self) -> None:
        constraint = VersionConstraint.parse("^1.2")
        assert constraint.matches(parse_version("1.9.0"))
        assert not constraint.matches(parse_version("2.0.0"))

    def test_npm_style_range(self) -> None:
        constraint = VersionConstraint.parse(">=1.0.0 <2.0.0")
        assert constraint.matches(parse_version("1.3.0"))
        assert not constraint.matches(parse_version("2.1.0"))

    def test_invalid_constraint_raises(self) -> None:
        with pytest.raises(InvalidVersionError):
            VersionConstraint.parse(">>>what")

    def test_select_highest_match(self) -> None:
        versions = [parse_version(v) for v in ("1.0.0", "1.5.0", "2.0.0")]
        assert VersionConstraint.parse("<2.0").select(versions) == parse_version("1.5.0")
        assert VersionConstraint.parse(None).select(versions) == parse_version("2.0.0")

    def test_select_no_match(self) -> None:
        versions = [parse_version("1.0.0")]
        assert VersionConstraint.parse("3.0.0").select(versions) is None

    def test_exactly(self) -> None:
        version = parse_version("4.5.6")
        assert VersionConstraint.exactly(version).exact == version

    def test_equality_and_hash(self) -> None:
        assert VersionConstraint.parse("1.2") == VersionConstraint.parse("1.2.0")
        assert hash(VersionConstraint.parse("=1.0.0")) == hash(VersionConstraint.parse("1.0.0"))
        assert VersionConstraint.parse(">=1.0") != VersionConstraint.parse("1.0.0")

    def test_str(self) -> None:
        assert str(VersionConstraint.parse("=1.2")) == "1.2.0"
        assert str(VersionConstraint.parse(">=1.0")) == ">=1.0"
        assert str(VersionConstraint.parse(None)) == ""
