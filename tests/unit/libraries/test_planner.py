"""Unit tests for InstallPlanner."""

from pathlib import Path

import pytest

from fblib.config import LibrarySettings
from fblib.libraries.catalog import LibraryCatalog
from fblib.libraries.errors import DestinationExistsError, InstallLocationError, LibraryNotFoundError, OverwriteConflictError
from fblib.libraries.installer import sanitize_name
from fblib.libraries.leases import SharedStateManager
from fblib.libraries.models import DependencyRequirement, InstallLocation, ReleaseKey
from fblib.libraries.planner import InstallPlanner, summarize_plans


def reqs(**versions: str) -> dict[str, DependencyRequirement]:
    return {name: DependencyRequirement(name, version) for name, version in versions.items()}


class TestPlan:
    """Tests for plan classification."""

    def test_fresh_install(self, make_state, settings: LibrarySettings) -> None:
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.USER)

        plan = plans[ReleaseKey("Servo", "1.2.1")]
        assert plan.target_path == settings.user_dir / "Servo"
        assert not plan.up_to_date
        assert plan.replaces is None
        assert plan.location == InstallLocation.USER

    def test_up_to_date(self, make_state, preinstall) -> None:
        path = preinstall("Servo", "1.2.1", folder="Servo-custom-dir")
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.USER)

        plan = plans[ReleaseKey("Servo", "1.2.1")]
        assert plan.up_to_date
        assert plan.target_path == path

    def test_replace_different_version(self, make_state, preinstall) -> None:
        preinstall("Servo", "1.1.0")
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.USER)

        plan = plans[ReleaseKey("Servo", "1.2.1")]
        assert not plan.up_to_date
        assert str(plan.replaces.version) == "1.1.0"

    def test_no_overwrite_refuses_replace(self, make_state, preinstall) -> None:
        preinstall("Wire", "1.0.0")
        state = make_state()
        with state.installer() as installer:
            with pytest.raises(OverwriteConflictError) as exc_info:
                InstallPlanner(installer).plan(reqs(Servo="1.2.1", Wire="2.0.0"), InstallLocation.USER, no_overwrite=True)
        assert exc_info.value.nothing_changed
        assert "Wire@2.0.0" in str(exc_info.value)

    def test_no_overwrite_allows_up_to_date(self, make_state, preinstall) -> None:
        preinstall("Wire", "2.0.0")
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Wire="2.0.0"), InstallLocation.USER, no_overwrite=True)
        assert plans[ReleaseKey("Wire", "2.0.0")].up_to_date

    def test_unmanaged_directory_in_the_way(self, make_state, settings: LibrarySettings) -> None:
        (settings.user_dir / "Servo").mkdir()
        state = make_state()
        with state.installer() as installer:
            with pytest.raises(DestinationExistsError):
                InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.USER)

    def test_two_libraries_sharing_a_directory(self, settings: LibrarySettings) -> None:
        catalog = LibraryCatalog.from_index(
            {
                "libraries": [
                    {"name": "Foo Bar", "version": "1.0.0", "dependencies": [{"name": "Foo_Bar"}]},
                    {"name": "Foo_Bar", "version": "1.0.0"},
                ]
            }
        )
        state = SharedStateManager(settings, catalog=catalog)
        with state.installer() as installer:
            with pytest.raises(DestinationExistsError) as exc_info:
                InstallPlanner(installer).plan(reqs(**{"Foo Bar": "1.0.0", "Foo_Bar": "1.0.0"}), InstallLocation.USER)

        assert exc_info.value.path == str(settings.user_dir / "Foo_Bar")
        assert exc_info.value.nothing_changed
        assert list(settings.user_dir.iterdir()) == []

    def test_unconfigured_location(self, make_state, settings: LibrarySettings) -> None:
        settings.sketch_dir = None
        state = make_state()
        with state.installer() as installer:
            with pytest.raises(InstallLocationError):
                InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.SKETCH)

    def test_missing_release(self, make_state) -> None:
        state = make_state()
        with state.installer() as installer:
            with pytest.raises(LibraryNotFoundError):
                InstallPlanner(installer).plan(reqs(Servo="7.0.0"), InstallLocation.USER)

    def test_raw_requirement_resolves_to_latest(self, make_state) -> None:
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan({"Wire": DependencyRequirement("Wire")}, InstallLocation.USER)
        assert list(plans) == [ReleaseKey("Wire", "2.0.0")]

    def test_sorted_by_name(self, make_state) -> None:
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Wire="2.0.0", Display="1.0.0", Servo="1.2.1"), InstallLocation.USER)
        assert [key.name for key in plans] == ["Display", "Servo", "Wire"]

    def test_other_location_does_not_count(self, make_state, preinstall, settings: LibrarySettings) -> None:
        preinstall("Servo", "1.2.1", root=settings.builtin_dir)
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Servo="1.2.1"), InstallLocation.USER)
        assert not plans[ReleaseKey("Servo", "1.2.1")].up_to_date

    def test_planning_writes_nothing(self, make_state, settings: LibrarySettings, preinstall) -> None:
        preinstall("Servo", "1.1.0")
        before = sorted(p.relative_to(settings.data_dir) for p in settings.data_dir.rglob("*"))
        state = make_state()
        with state.installer() as installer:
            InstallPlanner(installer).plan(reqs(Servo="1.2.1", Wire="2.0.0"), InstallLocation.USER)
        assert sorted(p.relative_to(settings.data_dir) for p in settings.data_dir.rglob("*")) == before


class TestHelpers:
    """Tests for sanitize_name() and summarize_plans()."""

    @pytest.mark.parametrize(
        "name,expected",
        [("Servo", "Servo"), ("Adafruit GFX Library", "Adafruit_GFX_Library"), ("a/b\\c", "a_b_c"), ("v1.2-rc_1", "v1.2-rc_1")],
    )
    def test_sanitize_name(self, name: str, expected: str) -> None:
        assert sanitize_name(name) == expected

    def test_summarize(self, make_state, preinstall) -> None:
        preinstall("Wire", "1.0.0")
        preinstall("Servo", "1.2.1")
        state = make_state()
        with state.installer() as installer:
            plans = InstallPlanner(installer).plan(reqs(Display="1.0.0", Servo="1.2.1", Wire="2.0.0"), InstallLocation.USER)
        assert summarize_plans(plans) == {"skip": ["Servo@1.2.1"], "install": ["Display@1.0.0"], "replace": ["Wire@2.0.0"]}


def test_target_path_uses_sanitized_name(make_state, settings: LibrarySettings) -> None:
    state = make_state()
    with state.installer() as installer:
        assert installer.target_path("My Lib", InstallLocation.BUILTIN) == Path(settings.builtin_dir) / "My_Lib"
