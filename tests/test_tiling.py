"""Tests for Tile / Tiling invariants and seam derivation."""
import math

import pytest

from seamgrid import errors
from seamgrid.contracts import Orientation, make_seam_id
from seamgrid.errors import StateValidationError, TileValidationError
from seamgrid.tiling import Tile, Tiling, canonicalize, snap_axis


class TestTile:
    def test_coordinates_are_floats(self):
        tile = Tile("t", 0, 0, 50, 100)
        assert isinstance(tile.x, float)
        assert tile.right == 50.0
        assert tile.area == 5000.0

    def test_non_finite_rejected(self):
        with pytest.raises(TileValidationError) as exc:
            Tile("t", math.nan, 0, 10, 10)
        assert exc.value.code == errors.TILE_INVALID_COORDINATES
        assert str(exc.value) == "Tile coordinates must be finite numbers"

    def test_non_positive_size_rejected(self):
        with pytest.raises(TileValidationError, match="Tile width and height must be positive"):
            Tile("t", 0, 0, 0, 10)

    def test_out_of_bounds_rejected(self):
        with pytest.raises(TileValidationError, match=r"Tile must be within \[0,100\] bounds"):
            Tile("t", 60, 0, 50, 100)

    def test_validation_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            Tile("t", 0, 0, -1, 10)

    def test_with_changes_returns_new_tile(self):
        tile = Tile("t", 0, 0, 50, 100, meta={"label": "x"})
        moved = tile.move(10, 0)
        assert moved.x == 10.0
        assert tile.x == 0.0
        assert moved.meta == {"label": "x"}
        assert tile.resize(20, 30).width == 20.0

    def test_polygon_matches_bounds(self):
        assert Tile("t", 10, 20, 30, 40).polygon.bounds == (10.0, 20.0, 40.0, 60.0)


class TestTilingInvariants:
    def test_empty_rejected(self):
        with pytest.raises(StateValidationError) as exc:
            Tiling([])
        assert exc.value.code == errors.STATE_EMPTY

    def test_duplicate_id_rejected(self):
        with pytest.raises(StateValidationError) as exc:
            Tiling([Tile("a", 0, 0, 50, 100), Tile("a", 50, 0, 50, 100)])
        assert exc.value.code == errors.STATE_DUPLICATE_ID

    def test_overlap_rejected(self):
        with pytest.raises(StateValidationError, match="Tiles a and b overlap") as exc:
            Tiling([Tile("a", 0, 0, 60, 100), Tile("b", 40, 0, 60, 100)])
        assert exc.value.code == errors.TILE_OVERLAP

    def test_gap_rejected_with_uncovered_area(self):
        with pytest.raises(StateValidationError) as exc:
            Tiling([Tile("a", 0, 0, 40, 100), Tile("b", 50, 0, 50, 100)])
        assert exc.value.code == errors.STATE_COVERAGE_GAP
        assert exc.value.context["uncovered_area"] == pytest.approx(1000.0)

    def test_tiles_are_read_only(self, split_tiling):
        with pytest.raises(TypeError):
            split_tiling.tiles["c"] = Tile("c", 0, 0, 1, 1)

    def test_with_tiles_bumps_version_and_keeps_groups(self, split_tiling):
        grouped = split_tiling.with_groups({"g": ["a", "b"]})
        updated = grouped.with_tiles([Tile("a", 0, 0, 60, 100), Tile("b", 60, 0, 40, 100)])
        assert updated.adjacency_version == grouped.adjacency_version + 1
        assert updated.groups == {"g": frozenset({"a", "b"})}
        assert grouped.tiles["a"].width == 50.0

    def test_group_with_unknown_member_rejected(self, split_tiling):
        with pytest.raises(StateValidationError) as exc:
            split_tiling.with_groups({"g": ["a", "zz"]})
        assert exc.value.code == errors.STATE_INVALID_GROUP
        assert exc.value.context["unknown"] == ["zz"]

    def test_string_group_rejected(self, split_tiling):
        with pytest.raises(StateValidationError) as exc:
            split_tiling.with_groups({"g": "ab"})
        assert exc.value.code == errors.STATE_INVALID_GROUP

    def test_group_lookup(self, split_tiling):
        grouped = split_tiling.with_groups({"g": ["a"]})
        assert grouped.group_of("a") == "g"
        assert grouped.group_of("b") is None
        assert grouped.group_members("b") == frozenset()


class TestSeams:
    def test_single_tile_has_container_seams(self, single_tiling):
        assert set(single_tiling.seams) == {
            "seam|v|0.000000",
            "seam|v|100.000000",
            "seam|h|0.000000",
            "seam|h|100.000000",
        }

    def test_shared_edge_gives_one_seam(self, split_tiling):
        vertical = split_tiling.seams_of(Orientation.VERTICAL)
        assert [s.coord for s in vertical] == [0.0, 50.0, 100.0]
        assert "seam|v|50.000000" in split_tiling.seams

    def test_seam_id_format(self):
        assert make_seam_id(Orientation.VERTICAL, 50) == "seam|v|50.000000"
        assert make_seam_id(Orientation.HORIZONTAL, -0.0) == "seam|h|0.000000"
        assert make_seam_id(Orientation.HORIZONTAL, -1e-9) == "seam|h|0.000000"

    def test_near_coordinates_collapse_to_anchor(self):
        assert snap_axis([0, 50, 50 + 1e-7, 100]) == [0.0, 50.0, 100.0]


class TestCanonicalize:
    def test_snaps_shared_edges(self):
        tiles = [Tile("a", 0, 0, 50 + 4e-7, 100), Tile("b", 50, 0, 50, 100)]
        snapped = canonicalize(tiles)
        assert snapped[0].right == snapped[1].x == 50.0
        assert snapped[0].width == 50.0

    def test_untouched_tiles_are_reused(self):
        tiles = [Tile("a", 0, 0, 50, 100), Tile("b", 50, 0, 50, 100)]
        assert all(a is b for a, b in zip(canonicalize(tiles), tiles))
