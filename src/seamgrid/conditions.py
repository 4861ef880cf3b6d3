"""
Condition and action factories, and the built-in precondition graphs.

Conditions read their inputs from ``DecisionContext.params``:
``tile_id``, ``seam_id``, ``span``, ``edge``, ``orientation``, ``side``,
``ratio`` and ``size``.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from seamgrid import contracts as codes
from seamgrid.config import effective_constraints
from seamgrid.contracts import Edge, Operation, Orientation, Violation
from seamgrid.decision import (
    Action,
    Condition,
    DecisionContext,
    DecisionEngine,
    GraphRegistry,
    selector,
    sequence,
)
from seamgrid.geometry import CONTAINER_AREA, within_bounds
from seamgrid.neighbors import compute_coverage_options
from seamgrid.seams import chain_covered, is_full_span, touching_chains

logger = logging.getLogger(__name__)

DEFAULT_RATIO = 0.5


def _tile(ctx: DecisionContext):
    return ctx.state.get(ctx.param("tile_id"))


def _seam(ctx: DecisionContext):
    seam_id = ctx.param("seam_id")
    return ctx.state.seams.get(seam_id) if seam_id is not None else None


# ─── Tile preconditions ─────────────────────────────────────────────────────


def tile_exists() -> Condition:
    return Condition(
        label="tile exists",
        predicate=lambda ctx: _tile(ctx) is not None,
        violation=lambda ctx: Violation(
            codes.TILE_NOT_FOUND,
            f"Tile {ctx.param('tile_id')} not found",
            data={"tile_id": ctx.param("tile_id")},
        ),
    )


def not_locked() -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        tile = _tile(ctx)
        return tile is None or not tile.locked

    return Condition(
        label="tile not locked",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.TILE_LOCKED,
            f"Tile {ctx.param('tile_id')} is locked",
            data={"tile_id": ctx.param("tile_id")},
        ),
    )


def not_only_tile() -> Condition:
    return Condition(
        label="not the last tile",
        predicate=lambda ctx: len(ctx.state) > 1,
        violation=lambda ctx: Violation(
            codes.LAST_TILE, "Cannot delete the last remaining tile"
        ),
    )


def edge_not_locked() -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        tile = _tile(ctx)
        if tile is None or ctx.param("edge") is None:
            return True
        locked_edges = effective_constraints(tile, ctx.config).locked_edges
        return Edge(ctx.param("edge")) not in locked_edges

    return Condition(
        label="edge not locked",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.EDGE_LOCKED,
            f"The {Edge(ctx.param('edge')).value} edge of tile {ctx.param('tile_id')} is locked",
            data={"tile_id": ctx.param("tile_id"), "edge": Edge(ctx.param("edge")).value},
        ),
    )


def ratio_in_range(param: str = "ratio") -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        value = ctx.param(param, DEFAULT_RATIO)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        eps = ctx.config.epsilon
        return eps < value < 1.0 - eps

    return Condition(
        label=f"{param} in (0, 1)",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.INVALID_RATIO,
            f"{param} must be a number strictly between 0 and 1",
            path=param,
            data={param: ctx.param(param)},
        ),
    )


def delta_is_finite() -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        value = ctx.param("delta", 0.0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value)

    return Condition(
        label="delta is a finite number",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.INVALID_DELTA,
            "delta must be a finite number",
            path="delta",
            data={"delta": ctx.param("delta")},
        ),
    )


def _carved_sizes(ctx: DecisionContext, param: str):
    """(kept size, new size, axis limits key) for a split or insert request."""
    tile = _tile(ctx)
    fraction = float(ctx.param(param, DEFAULT_RATIO))
    if ctx.param("orientation") is not None:
        along_width = Orientation(ctx.param("orientation")) is Orientation.VERTICAL
        kept_fraction = fraction
    else:
        along_width = Edge(ctx.param("side")).orientation is Orientation.VERTICAL
        kept_fraction = 1.0 - fraction
    extent = tile.width if along_width else tile.height
    return extent * kept_fraction, extent * (1.0 - kept_fraction), along_width


def parts_meet_min_size(param: str = "ratio") -> Condition:
    """Both tiles produced by a split or insert respect their minimum size."""

    def predicate(ctx: DecisionContext) -> bool:
        tile = _tile(ctx)
        if tile is None:
            return True
        kept, carved, along_width = _carved_sizes(ctx, param)
        kept_limits = effective_constraints(tile, ctx.config)
        new_limits = effective_constraints(None, ctx.config)
        eps = ctx.config.epsilon
        if along_width:
            return kept >= kept_limits.min_width - eps and carved >= new_limits.min_width - eps
        return kept >= kept_limits.min_height - eps and carved >= new_limits.min_height - eps

    def violation(ctx: DecisionContext) -> Violation:
        kept, carved, along_width = _carved_sizes(ctx, param)
        return Violation(
            codes.MIN_SIZE,
            f"Tile {ctx.param('tile_id')} is too small to be divided at {param} "
            f"{float(ctx.param(param, DEFAULT_RATIO)):.3f}",
            data={
                "tile_id": ctx.param("tile_id"),
                "axis": "width" if along_width else "height",
                "sizes": [kept, carved],
            },
        )

    return Condition(label="parts meet minimum size", predicate=predicate, violation=violation)


# ─── Whole-tiling checks ────────────────────────────────────────────────────


def bounds_valid() -> Condition:
    def offenders(ctx: DecisionContext):
        return [t.id for t in ctx.state if not within_bounds(t, ctx.config.epsilon)]

    return Condition(
        label="all tiles within bounds",
        predicate=lambda ctx: not offenders(ctx),
        violation=lambda ctx: Violation(
            codes.OUT_OF_BOUNDS,
            "Tiles outside the container: " + ", ".join(offenders(ctx)),
            data={"tile_ids": offenders(ctx)},
        ),
    )


def coverage_tight() -> Condition:
    return Condition(
        label="coverage matches container area",
        predicate=lambda ctx: abs(ctx.state.total_area - CONTAINER_AREA) <= ctx.config.epsilon,
        violation=lambda ctx: Violation(
            codes.COVERAGE_GAP,
            f"Tiles cover {ctx.state.total_area:.6f} of {CONTAINER_AREA:.0f}",
            data={"total_area": ctx.state.total_area},
        ),
    )


def _size_violation(tile, ctx: DecisionContext) -> Optional[Violation]:
    limits = effective_constraints(tile, ctx.config)
    eps = ctx.config.epsilon
    checks = (
        ("width", tile.width < limits.min_width - eps, codes.MIN_SIZE, "below minimum", limits.min_width),
        ("height", tile.height < limits.min_height - eps, codes.MIN_SIZE, "below minimum", limits.min_height),
        ("width", tile.width > limits.max_width + eps, codes.MAX_SIZE, "above maximum", limits.max_width),
        ("height", tile.height > limits.max_height + eps, codes.MAX_SIZE, "above maximum", limits.max_height),
    )
    for axis, failed, code, phrase, limit in checks:
        if failed:
            value = getattr(tile, axis)
            return Violation(
                code,
                f"Tile {tile.id} {axis} {value:.4f} is {phrase} {limit:.4f}",
                path=f"tiles.{tile.id}.{axis}",
                data={"tile_id": tile.id, "value": value, "limit": limit},
            )
    return None


def min_tile_size() -> Condition:
    """Size limits for the tile named by ``tile_id``."""

    def predicate(ctx: DecisionContext) -> bool:
        tile = _tile(ctx)
        return tile is None or _size_violation(tile, ctx) is None

    return Condition(
        label="tile meets size limits",
        predicate=predicate,
        violation=lambda ctx: _size_violation(_tile(ctx), ctx),
    )


def min_tile_size_all() -> Condition:
    """Size limits for every tile; per-tile overrides win over the defaults."""

    def first_violation(ctx: DecisionContext) -> Optional[Violation]:
        for tile in ctx.state:
            found = _size_violation(tile, ctx)
            if found is not None:
                return found
        return None

    return Condition(
        label="all tiles meet size limits",
        predicate=lambda ctx: first_violation(ctx) is None,
        violation=first_violation,
    )


def max_tile_count() -> Condition:
    return Condition(
        label="tile count within maximum",
        predicate=lambda ctx: ctx.config.max_tiles is None or len(ctx.state) <= ctx.config.max_tiles,
        violation=lambda ctx: Violation(
            codes.MAX_TILES_EXCEEDED,
            f"Tile count {len(ctx.state)} exceeds the maximum of {ctx.config.max_tiles}",
            data={"count": len(ctx.state), "max_tiles": ctx.config.max_tiles},
        ),
    )


def room_for_tile() -> Condition:
    """One more tile still fits under ``max_tiles``."""
    return Condition(
        label="room for another tile",
        predicate=lambda ctx: ctx.config.max_tiles is None or len(ctx.state) < ctx.config.max_tiles,
        violation=lambda ctx: Violation(
            codes.MAX_TILES_EXCEEDED,
            f"Maximum of {ctx.config.max_tiles} tiles reached",
            data={"count": len(ctx.state), "max_tiles": ctx.config.max_tiles},
        ),
    )


# ─── Seam preconditions ─────────────────────────────────────────────────────


def seam_exists() -> Condition:
    return Condition(
        label="seam exists",
        predicate=lambda ctx: _seam(ctx) is not None,
        violation=lambda ctx: Violation(
            codes.SEAM_NOT_FOUND,
            f"Seam {ctx.param('seam_id')} not found",
            data={"seam_id": ctx.param("seam_id")},
        ),
    )


def seam_chain_covered() -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        seam = _seam(ctx)
        if seam is None:
            return False
        eps = ctx.config.epsilon
        before, after = touching_chains(ctx.state, seam, eps, ctx.param("span"))
        return chain_covered(before, after, seam.orientation, eps)

    return Condition(
        label="seam chain covered",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.SEAM_NOT_COVERED,
            f"Tiles on both sides of seam {ctx.param('seam_id')} do not cover the same span",
            data={"seam_id": ctx.param("seam_id")},
        ),
    )


def seam_is_full_span() -> Condition:
    return Condition(
        label="seam runs across the container",
        predicate=lambda ctx: _seam(ctx) is not None and is_full_span(ctx.state, _seam(ctx), ctx.config.epsilon),
        violation=lambda ctx: Violation(
            codes.NO_FULL_SPAN_COVERAGE,
            f"Seam {ctx.param('seam_id')} does not run across the whole container",
            data={"seam_id": ctx.param("seam_id")},
        ),
    )


# ─── Delete policy ──────────────────────────────────────────────────────────


def full_span_seam_available() -> Condition:
    return Condition(
        label="full-span seam available",
        predicate=lambda ctx: bool(compute_coverage_options(ctx.state, ctx.param("tile_id"))),
        violation=lambda ctx: Violation(
            codes.NO_FULL_SPAN_COVERAGE,
            f"No side of tile {ctx.param('tile_id')} is fully covered by neighbours",
            data={"tile_id": ctx.param("tile_id")},
        ),
    )


def group_policy_allows_delete():
    """Ungrouped tiles and last members pass; others need a same-group absorber."""

    def ungrouped_or_last(ctx: DecisionContext) -> bool:
        return len(ctx.state.group_members(ctx.param("tile_id"))) <= 1

    def has_group_absorber(ctx: DecisionContext) -> bool:
        return bool(
            compute_coverage_options(ctx.state, ctx.param("tile_id"), same_group_only=True)
        )

    def isolated(ctx: DecisionContext) -> Violation:
        tile_id = ctx.param("tile_id")
        group = ctx.state.group_of(tile_id)
        return Violation(
            codes.GROUP_ISOLATED,
            f"Tile {tile_id} has no adjacent member of group {group} to absorb its space",
            data={"tile_id": tile_id, "group": group},
        )

    return selector(
        Condition(
            label="ungrouped or last group member",
            predicate=ungrouped_or_last,
            violation=lambda ctx: Violation(
                codes.GROUP_MEMBER,
                f"Tile {ctx.param('tile_id')} belongs to group {ctx.state.group_of(ctx.param('tile_id'))}",
            ),
        ),
        Condition(
            label="same-group full-span neighbour",
            predicate=has_group_absorber,
            violation=isolated,
        ),
        label="group policy allows delete",
    )


def resizable_neighbor_available() -> Condition:
    def predicate(ctx: DecisionContext) -> bool:
        options = compute_coverage_options(ctx.state, ctx.param("tile_id"))
        return any(option.all_unlocked for option in options)

    return Condition(
        label="unlocked neighbour available",
        predicate=predicate,
        violation=lambda ctx: Violation(
            codes.NEIGHBOR_LOCKED,
            f"Every neighbour able to absorb tile {ctx.param('tile_id')} is locked",
            data={"tile_id": ctx.param("tile_id")},
        ),
    )


# ─── Bookkeeping ────────────────────────────────────────────────────────────


def log_step(message: str) -> Action:
    def effect(ctx: DecisionContext) -> None:
        logger.debug("[%s] %s (tiles=%d)", ctx.op, message, len(ctx.state))

    return Action(label=message, effect=effect)


# ---------------------------------------------------------------------------
# Default graphs
# ---------------------------------------------------------------------------


def build_default_registry() -> GraphRegistry:
    registry = GraphRegistry()
    registry.register(
        Operation.SPLIT,
        sequence(
            tile_exists(),
            not_locked(),
            ratio_in_range("ratio"),
            room_for_tile(),
            parts_meet_min_size("ratio"),
            log_step("split preconditions passed"),
        ),
    )
    registry.register(
        Operation.DELETE,
        sequence(
            tile_exists(),
            not_locked(),
            not_only_tile(),
            group_policy_allows_delete(),
            full_span_seam_available(),
            resizable_neighbor_available(),
            log_step("delete preconditions passed"),
        ),
    )
    registry.register(
        Operation.INSERT,
        sequence(
            tile_exists(),
            not_locked(),
            ratio_in_range("size"),
            room_for_tile(),
            parts_meet_min_size("size"),
        ),
    )
    registry.register(
        Operation.RESIZE,
        sequence(
            tile_exists(),
            not_locked(),
            edge_not_locked(),
            delta_is_finite(),
            seam_exists(),
            seam_chain_covered(),
        ),
    )
    registry.register(
        Operation.SEAM_RESIZE, sequence(delta_is_finite(), seam_exists(), seam_chain_covered())
    )
    registry.register(
        Operation.INSERT_AT_SEAM,
        sequence(ratio_in_range("size"), room_for_tile(), seam_exists(), seam_is_full_span()),
    )
    registry.register(Operation.INSERT_AT_EDGE, sequence(ratio_in_range("size"), room_for_tile()))
    registry.register(
        Operation.VALIDATE,
        sequence(bounds_valid(), coverage_tight(), min_tile_size_all(), max_tile_count()),
    )
    return registry


def default_engine() -> DecisionEngine:
    return DecisionEngine(build_default_registry())
