"""
Constraint repair after a configuration change.

When new limits make existing tiles too small, too large or off their aspect
ratio, ``auto_adjust_layout`` tries to fix the layout by moving the offending
tiles' edges into their neighbours. Adjusters are tried in the order of
``ADJUST_STRATEGIES``; the first one that leaves zero violations wins. A
layout is either fully repaired or left untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Tuple

from seamgrid.config import TilingConfig, effective_constraints
from seamgrid.contracts import Edge, Orientation, TileConstraints
from seamgrid.errors import StateValidationError, TileValidationError
from seamgrid.seams import (
    apply_seam_delta,
    chain_covered,
    edge_span,
    resolve_edge_to_seam_id,
    size_along,
    touching_chains,
)
from seamgrid.tiling import Tile, Tiling

logger = logging.getLogger(__name__)

Overrides = Optional[Mapping[str, TileConstraints]]

MIN_WIDTH = "min_width"
MAX_WIDTH = "max_width"
MIN_HEIGHT = "min_height"
MAX_HEIGHT = "max_height"
ASPECT_RATIO = "aspect_ratio"

_WIDTH_KINDS = (MIN_WIDTH, MAX_WIDTH, ASPECT_RATIO)
_HEIGHT_KINDS = (MIN_HEIGHT, MAX_HEIGHT)


@dataclass(frozen=True)
class TileViolation:
    tile_id: str
    kind: str
    value: float
    limit: float


@dataclass(frozen=True)
class AutoAdjustResult:
    success: bool
    tiling: Tiling
    adjusted_tiles: Tuple[str, ...] = ()
    violating_tiles: Tuple[str, ...] = ()
    error: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.adjusted_tiles)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def tile_violations(tile: Tile, config: TilingConfig, overrides: Overrides = None) -> List[TileViolation]:
    limits = effective_constraints(tile, config, overrides)
    eps = config.epsilon
    found: List[TileViolation] = []
    if tile.width < limits.min_width - eps:
        found.append(TileViolation(tile.id, MIN_WIDTH, tile.width, limits.min_width))
    if tile.width > limits.max_width + eps:
        found.append(TileViolation(tile.id, MAX_WIDTH, tile.width, limits.max_width))
    if tile.height < limits.min_height - eps:
        found.append(TileViolation(tile.id, MIN_HEIGHT, tile.height, limits.min_height))
    if tile.height > limits.max_height + eps:
        found.append(TileViolation(tile.id, MAX_HEIGHT, tile.height, limits.max_height))
    if limits.aspect_ratio is not None:
        ratio = tile.width / tile.height
        if abs(ratio - limits.aspect_ratio) > eps:
            found.append(TileViolation(tile.id, ASPECT_RATIO, ratio, limits.aspect_ratio))
    return found


def find_violations(tiling: Tiling, config: TilingConfig, overrides: Overrides = None) -> List[TileViolation]:
    found: List[TileViolation] = []
    for tile in tiling:
        found.extend(tile_violations(tile, config, overrides))
    return found


def affected_tiles(tiling: Tiling, config: TilingConfig, overrides: Overrides = None) -> List[str]:
    """Ids of tiles that violate ``config``, in tiling order."""
    ids: List[str] = []
    for violation in find_violations(tiling, config, overrides):
        if violation.tile_id not in ids:
            ids.append(violation.tile_id)
    return ids


def would_violate_constraints(tile: Tile, config: TilingConfig, overrides: Overrides = None) -> bool:
    return bool(tile_violations(tile, config, overrides))


# ---------------------------------------------------------------------------
# Edge moves
# ---------------------------------------------------------------------------


def _has_neighbors(tiling: Tiling, tile_id: str, edge: Edge) -> bool:
    seam_id = resolve_edge_to_seam_id(tiling, tile_id, edge)
    if seam_id is None:
        return False
    seam = tiling.seams[seam_id]
    before, after = touching_chains(tiling, seam, tiling.epsilon, edge_span(tiling, tile_id, edge))
    return chain_covered(before, after, seam.orientation, tiling.epsilon)


def _edge_locked(before, after, orientation: Orientation, config: TilingConfig, overrides: Overrides) -> bool:
    far_edge = Edge.RIGHT if orientation is Orientation.VERTICAL else Edge.BOTTOM
    for tiles, edge in ((before, far_edge), (after, far_edge.opposite)):
        if any(edge in effective_constraints(t, config, overrides).locked_edges for t in tiles):
            return True
    return False


def _grow_edge(
    tiling: Tiling,
    tile_id: str,
    edge: Edge,
    amount: float,
    config: TilingConfig,
    overrides: Overrides,
) -> Optional[Tiling]:
    """Push one edge of a tile outward by ``amount`` (negative pulls it in).

    Returns None when the move would take a neighbour below its minimum or
    touches a locked tile.
    """
    eps = config.epsilon
    seam_id = resolve_edge_to_seam_id(tiling, tile_id, edge, eps)
    if seam_id is None:
        return None
    span = edge_span(tiling, tile_id, edge)
    seam = tiling.seams[seam_id]
    before, after = touching_chains(tiling, seam, eps, span)
    if not chain_covered(before, after, seam.orientation, eps):
        return None
    if any(t.locked for t in before + after):
        return None
    if _edge_locked(before, after, seam.orientation, config, overrides):
        return None

    # The tile is on the before-side of its right/bottom edge
    delta = -amount if edge.is_leading else amount
    shrinking = after if delta > 0 else before
    for tile in shrinking:
        limits = effective_constraints(tile, config, overrides)
        low = limits.min_width if seam.orientation is Orientation.VERTICAL else limits.min_height
        if size_along(tile, seam.orientation) - abs(delta) < low - eps:
            return None

    try:
        return apply_seam_delta(tiling, seam_id, delta, config, span)
    except (TileValidationError, StateValidationError) as exc:
        logger.debug("Edge move %s/%s by %.6f rejected: %s", tile_id, edge.value, amount, exc)
        return None


def _target(tile: Tile, attr: str, config: TilingConfig, overrides: Overrides) -> float:
    limits = effective_constraints(tile, config, overrides)
    if attr == "width":
        size, low, high = tile.width, limits.min_width, limits.max_width
        if limits.aspect_ratio is not None:
            size = tile.height * limits.aspect_ratio
    else:
        size, low, high = tile.height, limits.min_height, limits.max_height
    return max(low, min(size, high))


# Each distributor turns (edges with neighbours, delta) into alternative plans;
# a plan is a list of (edge, amount) moves applied together.
Plan = List[Tuple[Edge, float]]
Distributor = Callable[[List[Edge], float], List[Plan]]


def _split_evenly(edges: List[Edge], delta: float) -> List[Plan]:
    return [[(edge, delta / len(edges)) for edge in edges]]


def _one_side(edges: List[Edge], delta: float) -> List[Plan]:
    return [[(edge, delta)] for edge in edges]


def _adjust(
    tiling: Tiling,
    config: TilingConfig,
    overrides: Overrides,
    distribute: Distributor,
) -> Optional[Tuple[Tiling, List[str]]]:
    violations = find_violations(tiling, config, overrides)
    current = tiling
    adjusted: List[str] = []
    passes = (
        (_WIDTH_KINDS, (Edge.RIGHT, Edge.LEFT), "width"),
        (_HEIGHT_KINDS, (Edge.BOTTOM, Edge.TOP), "height"),
    )
    for kinds, edges, attr in passes:
        tile_ids: List[str] = []
        for violation in violations:
            if violation.kind in kinds and violation.tile_id not in tile_ids:
                tile_ids.append(violation.tile_id)
        for tile_id in tile_ids:
            tile = current.tiles[tile_id]
            delta = _target(tile, attr, config, overrides) - getattr(tile, attr)
            if abs(delta) <= config.epsilon:
                continue
            usable = [edge for edge in edges if _has_neighbors(current, tile_id, edge)]
            if not usable:
                return None
            moved: Optional[Tiling] = None
            for plan in distribute(usable, delta):
                moved = current
                for edge, amount in plan:
                    moved = _grow_edge(moved, tile_id, edge, amount, config, overrides)
                    if moved is None:
                        break
                if moved is not None:
                    break
            if moved is None:
                return None
            current = moved
            if tile_id not in adjusted:
                adjusted.append(tile_id)

    if find_violations(current, config, overrides):
        return None
    return current, adjusted


def proportional_adjust(tiling: Tiling, config: TilingConfig, overrides: Overrides = None):
    """Split each correction evenly between the sides that have neighbours."""
    return _adjust(tiling, config, overrides, _split_evenly)


def redistribute_adjust(tiling: Tiling, config: TilingConfig, overrides: Overrides = None):
    """Put each whole correction on one side, trying right/bottom first."""
    return _adjust(tiling, config, overrides, _one_side)


ADJUST_STRATEGIES: Tuple[Tuple[str, Callable], ...] = (
    ("proportional", proportional_adjust),
    ("redistribute", redistribute_adjust),
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def auto_adjust_layout(
    tiling: Tiling,
    config: TilingConfig,
    tile_constraints: Overrides = None,
) -> AutoAdjustResult:
    """Repair ``tiling`` so every tile satisfies ``config``.

    Args:
        tiling: Current layout.
        config: Proposed configuration.
        tile_constraints: Extra per-tile overrides; they win over everything else.

    Returns:
        AutoAdjustResult. On success ``tiling`` is the repaired layout (the
        input object itself when nothing needed fixing). On failure ``tiling``
        is the untouched input and ``violating_tiles`` names every tile that
        could not be fixed.
    """
    violating = affected_tiles(tiling, config, tile_constraints)
    if not violating:
        return AutoAdjustResult(success=True, tiling=tiling)

    for name, adjuster in ADJUST_STRATEGIES:
        repaired = adjuster(tiling, config, tile_constraints)
        if repaired is not None:
            new_tiling, adjusted = repaired
            logger.info("Auto-adjust (%s) fixed %d tile(s): %s", name, len(adjusted), ", ".join(adjusted))
            return AutoAdjustResult(
                success=True,
                tiling=new_tiling,
                adjusted_tiles=tuple(adjusted),
                strategy=name,
            )
        logger.debug("Auto-adjust strategy %s could not repair the layout", name)

    error = (
        f"Cannot adjust layout: {len(violating)} tile(s) would violate constraints "
        "and cannot be automatically fixed"
    )
    logger.warning("%s (%s)", error, ", ".join(violating))
    return AutoAdjustResult(
        success=False,
        tiling=tiling,
        violating_tiles=tuple(violating),
        error=error,
    )
