"""
Tests for the unit inventory scanner.
"""

from pathlib import Path

import pytest

from stackwatch.core.services.scanner import (
    InventoryScanError,
    find_manifest,
    scan_inventory,
    scan_units,
)


class TestFindManifest:
    @pytest.mark.parametrize(
        "filename",
        ["docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml"],
    )
    def test_each_accepted_name(self, make_stack, filename):
        unit_dir = make_stack("web", manifest=filename)
        assert find_manifest(unit_dir) == filename

    def test_priority_order(self, make_stack):
        unit_dir = make_stack("web", manifest="compose.yaml")
        (unit_dir / "docker-compose.yml").write_text("services: {}\n")
        assert find_manifest(unit_dir) == "docker-compose.yml"

    def test_none(self, make_stack):
        unit_dir = make_stack("web", manifest=None)
        (unit_dir / "README.md").write_text("hi")
        assert find_manifest(unit_dir) is None

    def test_existence_only(self, make_stack):
        unit_dir = make_stack("web", manifest=None)
        (unit_dir / "compose.yml").mkdir()
        assert find_manifest(unit_dir) == "compose.yml"


class TestScanUnits:
    def test_sorted_with_flags(self, stacks_root, make_stack):
        make_stack("zeta")
        make_stack("alpha", ignored=True)
        make_stack("mid", manifest=None)

        units = scan_units(stacks_root)
        assert [u.name for u in units] == ["alpha", "mid", "zeta"]
        by_name = {u.name: u for u in units}
        assert by_name["alpha"].ignored
        assert not by_name["alpha"].eligible
        assert by_name["alpha"].skip_reason == "ignore file present"
        assert by_name["mid"].skip_reason == "no compose file found"
        assert by_name["zeta"].eligible
        assert by_name["zeta"].skip_reason == ""

    def test_skips_hidden_and_files(self, stacks_root, make_stack):
        make_stack(".git")
        make_stack(".github")
        (stacks_root / "README.md").write_text("docs")
        make_stack("web")

        assert [u.name for u in scan_units(stacks_root)] == ["web"]

    def test_missing_root_raises(self, tmp_path: Path):
        with pytest.raises(InventoryScanError, match="does not exist"):
            scan_units(tmp_path / "nope")

    def test_root_is_file_raises(self, tmp_path: Path):
        target = tmp_path / "file"
        target.write_text("")
        with pytest.raises(InventoryScanError, match="not a directory"):
            scan_units(target)


class TestScanInventory:
    def test_only_eligible(self, stacks_root, make_stack):
        make_stack("web")
        make_stack("db", manifest="compose.yaml")
        make_stack("old", ignored=True)
        make_stack("notes", manifest=None)

        assert scan_inventory(stacks_root) == frozenset({"web", "db"})

    def test_empty_root(self, stacks_root):
        assert scan_inventory(stacks_root) == frozenset()

    def test_manifest_contents_never_read(self, stacks_root, make_stack):
        unit_dir = make_stack("broken", manifest=None)
        (unit_dir / "docker-compose.yml").write_text("{{{ not yaml")
        assert scan_inventory(stacks_root) == frozenset({"broken"})

    def test_nested_units_not_considered(self, stacks_root, make_stack):
        parent = make_stack("group", manifest=None)
        make_stack("inner", root=parent)
        assert scan_inventory(stacks_root) == frozenset()

    def test_missing_root_is_not_empty_inventory(self, tmp_path: Path):
        with pytest.raises(InventoryScanError):
            scan_inventory(tmp_path / "gone")
