"""Tests for the decision-graph interpreter and the default graphs."""
import pytest

from seamgrid import contracts as codes
from seamgrid.conditions import build_default_registry, default_engine, log_step
from seamgrid.contracts import Operation, Orientation, Violation
from seamgrid.config import TileDefaults, TilingConfig
from seamgrid.decision import (
    Action,
    Condition,
    DecisionContext,
    DecisionEngine,
    GraphRegistry,
    evaluate_node,
    selector,
    sequence,
)
from seamgrid.errors import GraphNotFoundError


def ok(label="ok"):
    return Condition(label, lambda ctx: True, lambda ctx: Violation("Never", label))


def fail(code):
    return Condition(code, lambda ctx: False, lambda ctx: Violation(code, code))


@pytest.fixture
def ctx(single_tiling):
    return DecisionContext(state=single_tiling, op="test")


class TestNodes:
    def test_sequence_stops_at_first_failure(self, ctx):
        seen = []
        tail = Action("tail", lambda c: seen.append("tail"))
        result = evaluate_node(sequence(ok(), fail("First"), fail("Second"), tail), ctx)
        assert not result.valid
        assert result.codes == ("First",)
        assert seen == []

    def test_sequence_runs_actions(self, ctx):
        seen = []
        result = evaluate_node(sequence(ok(), Action("mark", lambda c: seen.append(c.op))), ctx)
        assert result.valid
        assert seen == ["test"]

    def test_selector_first_success_wins(self, ctx):
        assert evaluate_node(selector(fail("A"), ok(), fail("B")), ctx).valid

    def test_selector_all_fail_returns_last_child(self, ctx):
        result = evaluate_node(selector(fail("A"), fail("B")), ctx)
        assert result.codes == ("B",)

    def test_violation_built_lazily(self, ctx):
        calls = []

        def factory(c):
            calls.append(1)
            return Violation("X", "x")

        evaluate_node(Condition("lazy", lambda c: True, factory), ctx)
        assert calls == []

    def test_unknown_node_type(self, ctx):
        with pytest.raises(TypeError):
            evaluate_node("not a node", ctx)

    def test_params_are_read_only(self, single_tiling):
        context = DecisionContext(state=single_tiling, op=Operation.SPLIT, params={"ratio": 0.3})
        assert context.op == "split"
        assert context.param("ratio") == 0.3
        with pytest.raises(TypeError):
            context.params["ratio"] = 0.9


class TestRegistry:
    def test_missing_graph_raises(self, single_tiling):
        engine = DecisionEngine(GraphRegistry())
        with pytest.raises(GraphNotFoundError) as exc:
            engine.check("nope", single_tiling)
        assert exc.value.context == {"operation": "nope"}

    def test_default_registry_covers_every_operation(self):
        registry = build_default_registry()
        assert set(registry.operations()) == {op.value for op in Operation}

    def test_custom_graph_replaces_default(self, single_tiling):
        registry = build_default_registry().register(Operation.SPLIT, sequence(fail("Custom")))
        result = DecisionEngine(registry).check(Operation.SPLIT, single_tiling, tile_id="tile-0")
        assert result.codes == ("Custom",)

    def test_log_step_always_passes(self, ctx):
        assert evaluate_node(log_step("checked"), ctx).valid


class TestDefaultGraphs:
    def test_split_unknown_tile(self, single_tiling):
        result = default_engine().check(Operation.SPLIT, single_tiling, tile_id="ghost", orientation="vertical")
        assert result.codes == (codes.TILE_NOT_FOUND,)

    def test_split_invalid_ratio(self, single_tiling):
        result = default_engine().check(
            Operation.SPLIT, single_tiling, tile_id="tile-0", orientation=Orientation.VERTICAL, ratio=1.0
        )
        assert result.codes == (codes.INVALID_RATIO,)

    def test_split_parts_below_minimum(self, single_tiling):
        result = default_engine().check(
            Operation.SPLIT, single_tiling, tile_id="tile-0", orientation=Orientation.VERTICAL, ratio=0.02
        )
        assert result.codes == (codes.MIN_SIZE,)

    def test_split_at_max_tiles(self, single_tiling):
        config = TilingConfig(max_tiles=1)
        result = default_engine().check(
            Operation.SPLIT, single_tiling, config, tile_id="tile-0", orientation=Orientation.VERTICAL
        )
        assert result.codes == (codes.MAX_TILES_EXCEEDED,)

    def test_validate_passes_for_valid_tiling(self, quad_tiling):
        assert default_engine().check(Operation.VALIDATE, quad_tiling).valid

    def test_validate_reports_max_size(self, split_tiling):
        config = TilingConfig(tile_defaults=TileDefaults(max_width=40.0))
        result = default_engine().check(Operation.VALIDATE, split_tiling, config)
        assert result.codes == (codes.MAX_SIZE,)
        assert result.violations[0].data["tile_id"] == "a"
