"""Tests for TilingModel orchestration."""
import pytest

from seamgrid import TilingModel
from seamgrid import contracts as codes
from seamgrid.contracts import Edge, Orientation, TileConstraints
from seamgrid.errors import ConfigError, StrategyNotFoundError, TileNotFoundError
from seamgrid.tiling import Tile, Tiling


@pytest.fixture
def history():
    return []


@pytest.fixture
def model(history):
    return TilingModel(recorder=history.append)


class TestLifecycle:
    def test_starts_with_one_full_tile(self, model):
        (tile,) = model.tiling
        assert tile.id == "tile-0"
        assert tile.area == 10000.0
        assert model.validate().valid

    def test_initialize_from_tiles(self, model, history):
        model.initialize([Tile("tile-3", 0, 0, 50, 100), Tile("x", 50, 0, 50, 100)])
        assert len(model.tiling) == 2
        assert history[-1] is model.tiling
        result = model.split_tile("x", Orientation.HORIZONTAL)
        assert result.new_tile_id == "tile-4"

    def test_initialize_resets_to_single_tile(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        model.initialize()
        assert list(model.tiling.tiles) == ["tile-0"]

    def test_restore_tiling_does_not_record(self, model, history):
        model.split_tile("tile-0", Orientation.VERTICAL)
        before = history[0]
        model.restore_tiling(Tiling([Tile("tile-0", 0, 0, 100, 100)]))
        assert history == [before]
        assert len(model.tiling) == 1


class TestOperations:
    def test_split_then_resize(self, model, history):
        result = model.split_tile("tile-0", Orientation.VERTICAL, 0.5)
        assert result.valid
        assert result.new_tile_id == "tile-1"
        assert model.tiling.tiles["tile-0"].width == pytest.approx(50.0)

        assert model.resize_tile("tile-0", Edge.RIGHT, 5).valid
        assert model.tiling.tiles["tile-0"].width == pytest.approx(55.0)
        assert model.tiling.tiles["tile-1"].width == pytest.approx(45.0)
        assert "seam|v|55.000000" in model.seams
        assert len(history) == 2

    def test_rejection_leaves_state_untouched(self, model, history):
        before = model.tiling
        result = model.delete_tile("tile-0")
        assert result.codes == (codes.LAST_TILE,)
        assert model.tiling is before
        assert history == []

    def test_skip_history_while_dragging(self, model, history):
        model.split_tile("tile-0", Orientation.VERTICAL)
        for _ in range(4):
            model.resize_tile("tile-0", Edge.RIGHT, 1.0, skip_history=True)
        assert len(history) == 1
        model.record_history()
        assert history[-1].tiles["tile-0"].width == pytest.approx(54.0)

    def test_incremental_drag_matches_single_move(self):
        stepped, single = TilingModel(), TilingModel()
        for m in (stepped, single):
            m.split_tile("tile-0", Orientation.VERTICAL, 0.4)
        for _ in range(10):
            stepped.resize_tile("tile-0", Edge.RIGHT, 0.7, skip_history=True)
        single.resize_tile("tile-0", Edge.RIGHT, 7.0)
        for tile_id in ("tile-0", "tile-1"):
            assert stepped.tiling.tiles[tile_id].x == pytest.approx(single.tiling.tiles[tile_id].x, abs=1e-6)
            assert stepped.tiling.tiles[tile_id].width == pytest.approx(
                single.tiling.tiles[tile_id].width, abs=1e-6
            )

    def test_insert_and_delete(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        result = model.insert_tile("tile-1", Edge.BOTTOM, 0.3)
        assert result.new_tile_id == "tile-2"
        assert model.delete_tile("tile-2").valid
        assert model.tiling.tiles["tile-1"].height == pytest.approx(100.0)

    def test_full_length_inserts(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        assert model.insert_full_span_at_seam(Orientation.VERTICAL, 50.0, Edge.RIGHT).new_tile_id == "tile-2"
        assert model.insert_at_container_edge(Edge.BOTTOM, 0.1).new_tile_id == "tile-3"
        assert len(model.tiling) == 4
        assert model.tiling.total_area == pytest.approx(10000.0, abs=1e-6)

    def test_resize_seam(self, model):
        model.split_tile("tile-0", Orientation.HORIZONTAL)
        assert model.resize_seam("seam|h|50.000000", -20.0).valid
        assert model.tiling.tiles["tile-0"].height == pytest.approx(30.0)


class TestClampQueries:
    def test_clamp_resize(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        clamp = model.clamp_resize("tile-0", Edge.RIGHT, 100.0)
        assert clamp.clamped_delta == pytest.approx(45.0)
        assert clamp.chain_covered

    def test_clamp_resize_covers_whole_seam(self, model):
        model.initialize([
            Tile("a", 0, 0, 50, 50),
            Tile("b", 50, 0, 50, 50),
            Tile("c", 0, 50, 50, 50, constraints=TileConstraints(max_width=52.0)),
            Tile("d", 50, 50, 50, 50),
        ])
        clamp = model.clamp_resize("a", Edge.RIGHT, 10.0)
        assert clamp.max == pytest.approx(2.0)
        assert clamp.clamped_delta == pytest.approx(2.0)

    def test_clamp_resize_unknown_tile(self, model):
        assert model.clamp_resize("ghost", Edge.RIGHT, 1.0).chain_covered is False

    def test_seam_range(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL, 0.3)
        low, high = model.seam_range("seam|v|30.000000")
        assert low == pytest.approx(-25.0)
        assert high == pytest.approx(65.0)


class TestTileAttributes:
    def test_lock_blocks_split(self, model, history):
        model.update_tile("tile-0", locked=True)
        assert len(history) == 1
        assert model.split_tile("tile-0", Orientation.VERTICAL).codes == (codes.TILE_LOCKED,)

    def test_meta_is_merged(self, model):
        model.update_tile("tile-0", meta={"a": 1})
        model.update_tile("tile-0", meta={"b": 2})
        assert model.tiling.tiles["tile-0"].meta == {"a": 1, "b": 2}
        model.update_tile("tile-0", meta={"c": 3}, replace_meta=True)
        assert model.tiling.tiles["tile-0"].meta == {"c": 3}

    def test_constraints_feed_clamp(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        model.update_tile("tile-0", constraints=TileConstraints(max_width=60.0))
        assert model.clamp_resize("tile-0", Edge.RIGHT, 30.0).clamped_delta == pytest.approx(10.0)

    def test_unknown_tile_raises(self, model):
        with pytest.raises(TileNotFoundError):
            model.update_tile("ghost", locked=True)

    def test_group_policy(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        model.split_tile("tile-1", Orientation.HORIZONTAL)
        model.set_groups({"g": ["tile-0", "tile-2"]})
        assert model.delete_tile("tile-0").codes == (codes.GROUP_ISOLATED,)


class TestConfig:
    def test_set_config_auto_adjusts(self, model, history):
        model.split_tile("tile-0", Orientation.VERTICAL, 0.08)
        result = model.set_config({"min_tile": {"width": 10}})
        assert result.success
        assert result.adjusted_tiles == ("tile-0",)
        assert model.config.min_tile.width == 10.0
        assert model.tiling.tiles["tile-0"].width == pytest.approx(10.0)
        assert history[-1] is model.tiling

    def test_failed_adjust_keeps_config(self, model):
        result = model.set_config({"tile_defaults": {"max_width": 50}})
        assert not result.success
        assert result.violating_tiles == ("tile-0",)
        assert model.config.tile_defaults.max_width == 100.0

    def test_preview_changes_nothing(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL, 0.08)
        before = model.tiling
        preview = model.preview_config({"min_tile": {"width": 10}})
        assert preview.success and preview.changed
        assert model.tiling is before
        assert model.config.min_tile.width == 5.0

    def test_invalid_config_raises(self, model):
        with pytest.raises(ConfigError):
            model.set_config({"max_tiles": -3})

    def test_max_tiles_enforced(self):
        model = TilingModel(config={"max_tiles": 2})
        assert model.split_tile("tile-0", Orientation.VERTICAL).valid
        assert model.split_tile("tile-0", Orientation.VERTICAL).codes == (codes.MAX_TILES_EXCEEDED,)


class TestStrategies:
    def test_equal_split(self, model):
        model.set_strategy("split", "equal")
        model.split_tile("tile-0", Orientation.VERTICAL, 0.3)
        assert model.tiling.tiles["tile-0"].width == pytest.approx(50.0)

    def test_snap_resize(self):
        model = TilingModel(config={"snap_grid": 10})
        model.set_strategy("resize", "snap")
        model.split_tile("tile-0", Orientation.VERTICAL)
        model.resize_tile("tile-0", Edge.RIGHT, 7.0)
        assert model.tiling.tiles["tile-0"].width == pytest.approx(60.0)

    def test_unknown_strategy(self, model):
        with pytest.raises(StrategyNotFoundError):
            model.set_strategy("split", "golden")


class TestSnapshots:
    def test_round_trip_continues_ids(self, model):
        model.split_tile("tile-0", Orientation.VERTICAL)
        payload = model.create_snapshot(include_settings=True, include_constraints=True)

        other = TilingModel()
        loaded = other.restore_snapshot(payload)
        assert loaded.version == 2
        assert set(other.tiling.tiles) == {"tile-0", "tile-1"}
        assert other.split_tile("tile-1", Orientation.HORIZONTAL).new_tile_id == "tile-2"

    def test_restore_applies_settings(self, model):
        payload = {
            "tiles": [{"id": "tile-7", "x": 0, "y": 0, "width": 100, "height": 100}],
            "settings": {"max_tiles": 3},
        }
        model.restore_snapshot(payload)
        assert model.config.max_tiles == 3
        assert model.split_tile("tile-7", Orientation.VERTICAL).new_tile_id == "tile-8"
