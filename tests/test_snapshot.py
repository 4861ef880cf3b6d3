"""Tests for snapshot dump/load and version detection."""
import json

import pytest

from seamgrid.config import DEFAULT_CONFIG, TilingConfig
from seamgrid.contracts import Edge, TileConstraints
from seamgrid.errors import ConfigError, SnapshotError, StateValidationError
from seamgrid.snapshot import (
    detect_version,
    dump_snapshot,
    load_snapshot,
    read_snapshot,
    snapshot_sha256,
    write_snapshot,
)
from seamgrid.tiling import Tile, Tiling


class TestDump:
    def test_v1_has_only_tiles(self, split_tiling):
        payload = dump_snapshot(split_tiling)
        assert payload["version"] == 1
        assert set(payload) == {"version", "tiles"}
        assert payload["tiles"][0] == {
            "id": "a", "x": 0.0, "y": 0.0, "width": 50.0, "height": 100.0, "locked": False, "meta": {},
        }

    def test_settings_bump_version(self, split_tiling):
        payload = dump_snapshot(split_tiling, TilingConfig(max_tiles=8), include_settings=True)
        assert payload["version"] == 2
        assert payload["settings"]["max_tiles"] == 8

    def test_constraints_and_groups(self):
        tiling = Tiling(
            [
                Tile("a", 0, 0, 50, 100, constraints=TileConstraints(min_width=20, locked_edges={Edge.LEFT})),
                Tile("b", 50, 0, 50, 100),
            ],
            groups={"g": ["b", "a"]},
        )
        payload = dump_snapshot(tiling, include_constraints=True)
        assert payload["version"] == 2
        assert payload["tiles"][0]["constraints"] == {"min_width": 20.0, "locked_edges": ["left"]}
        assert "constraints" not in payload["tiles"][1]
        assert payload["groups"] == {"g": ["a", "b"]}


class TestDetectVersion:
    def test_explicit_version(self):
        assert detect_version({"version": 1, "tiles": []}) == 1

    def test_v2_keys_imply_v2(self):
        assert detect_version({"tiles": [], "settings": {}}) == 2
        assert detect_version({"tiles": [{"id": "a", "constraints": {}}]}) == 2

    def test_plain_tiles_imply_v1(self):
        assert detect_version({"tiles": [{"id": "a"}]}) == 1

    def test_invalid_version(self):
        with pytest.raises(SnapshotError):
            detect_version({"version": 0})

    def test_newer_version_loads_as_latest(self):
        assert detect_version({"version": 7}) == 2


class TestLoad:
    def test_missing_fields_get_defaults(self):
        loaded = load_snapshot({"tiles": [{"id": "only", "x": 0, "y": 0, "width": 100, "height": 100}]})
        tile = loaded.tiling.tiles["only"]
        assert loaded.version == 1
        assert tile.locked is False
        assert tile.meta == {}
        assert tile.constraints is None
        assert loaded.config is None

    def test_v1_ignores_constraints(self):
        payload = {
            "version": 1,
            "tiles": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 100, "constraints": {"min_width": 10}}],
        }
        assert load_snapshot(payload).tiling.tiles["a"].constraints is None

    def test_v2_settings_merge_over_defaults(self):
        payload = {
            "tiles": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 100}],
            "settings": {"min_tile": {"width": 10}},
        }
        loaded = load_snapshot(payload)
        assert loaded.version == 2
        assert loaded.config.min_tile.width == 10.0
        assert loaded.config.min_tile.height == DEFAULT_CONFIG.min_tile.height

    def test_v2_constraints_and_groups(self):
        payload = {
            "version": 2,
            "tiles": [
                {"id": "a", "x": 0, "y": 0, "width": 50, "height": 100, "constraints": {"max_width": 60}},
                {"id": "b", "x": 50, "y": 0, "width": 50, "height": 100},
            ],
            "groups": {"g": ["a", "b"]},
        }
        loaded = load_snapshot(payload)
        assert loaded.tiling.tiles["a"].constraints.max_width == 60.0
        assert loaded.tiling.groups["g"] == frozenset({"a", "b"})

    def test_group_members_must_be_a_list(self):
        payload = {
            "tiles": [
                {"id": "a", "x": 0, "y": 0, "width": 50, "height": 100},
                {"id": "b", "x": 50, "y": 0, "width": 50, "height": 100},
            ],
            "groups": {"g": "ab"},
        }
        with pytest.raises(SnapshotError, match="groups.g must be a list of tile ids"):
            load_snapshot(payload)

    def test_group_with_unknown_tile(self):
        payload = {
            "tiles": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 100}],
            "groups": {"g": ["a", "ghost"]},
        }
        with pytest.raises(SnapshotError, match="unknown tile id ghost"):
            load_snapshot(payload)

    def test_invalid_settings(self):
        payload = {"tiles": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 100}], "settings": {"epsilon": 0}}
        with pytest.raises(ConfigError):
            load_snapshot(payload)

    def test_invalid_constraints(self):
        payload = {
            "version": 2,
            "tiles": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 100, "constraints": {"min_width": -1}}],
        }
        with pytest.raises(SnapshotError, match=r"tiles\[0\]\.constraints\.min_width"):
            load_snapshot(payload)

    def test_missing_tile_field(self):
        with pytest.raises(SnapshotError, match="missing width"):
            load_snapshot({"tiles": [{"id": "a", "x": 0, "y": 0, "height": 100}]})

    def test_no_tiles(self):
        with pytest.raises(SnapshotError):
            load_snapshot({"version": 1, "tiles": []})

    def test_gap_is_structural_error(self):
        with pytest.raises(StateValidationError):
            load_snapshot({"tiles": [{"id": "a", "x": 0, "y": 0, "width": 50, "height": 100}]})

    def test_dump_then_load_keeps_layout(self, quad_tiling):
        loaded = load_snapshot(dump_snapshot(quad_tiling))
        assert [t.to_dict() for t in loaded.tiling] == [t.to_dict() for t in quad_tiling]


class TestFiles:
    def test_write_and_read(self, split_tiling, tmp_path):
        path = write_snapshot(tmp_path / "nested" / "layout.json", dump_snapshot(split_tiling))
        assert path.exists()
        assert read_snapshot(path) == dump_snapshot(split_tiling)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SnapshotError, match="not valid JSON"):
            read_snapshot(path)

    def test_hash_ignores_key_order(self):
        a = {"version": 1, "tiles": [{"id": "x", "y": 0}]}
        b = json.loads('{"tiles": [{"y": 0, "id": "x"}], "version": 1}')
        assert snapshot_sha256(a) == snapshot_sha256(b)
        assert len(snapshot_sha256(a)) == 64
