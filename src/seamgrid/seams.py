"""
Seam clamp / apply.

A seam moves as a unit: every tile whose far edge (right or bottom) lies on
it grows or shrinks by the delta, and every tile whose near edge (left or top)
lies on it is translated by the delta and shrinks or grows by the same amount.
Area is conserved because each move is a translate/resize pair.

Clamp bounds are always recomputed from the tiling passed in, so a drag made
of many small increments lands exactly where one large move would.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from seamgrid.config import DEFAULT_CONFIG, TilingConfig, effective_constraints
from seamgrid.contracts import (
    Edge,
    Orientation,
    Seam,
    SeamClampResult,
    make_seam_id,
)
from seamgrid.geometry import (
    CONTAINER_SIZE,
    EPSILON,
    Interval,
    approx_equal,
    interval_overlap,
    merge_intervals,
)
from seamgrid.tiling import Tile, Tiling, canonicalize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tile edge helpers
# ---------------------------------------------------------------------------


def edge_coord(tile: Tile, edge: Edge) -> float:
    edge = Edge(edge)
    if edge is Edge.LEFT:
        return tile.x
    if edge is Edge.RIGHT:
        return tile.right
    if edge is Edge.TOP:
        return tile.y
    return tile.bottom


def near_coord(tile: Tile, orientation: Orientation) -> float:
    return tile.x if orientation is Orientation.VERTICAL else tile.y


def far_coord(tile: Tile, orientation: Orientation) -> float:
    return tile.right if orientation is Orientation.VERTICAL else tile.bottom


def size_along(tile: Tile, orientation: Orientation) -> float:
    """Extent that a seam of ``orientation`` changes (width for vertical seams)."""
    return tile.width if orientation is Orientation.VERTICAL else tile.height


def perpendicular_interval(tile: Tile, orientation: Orientation) -> Interval:
    """Extent of the tile along the seam line."""
    if orientation is Orientation.VERTICAL:
        return (tile.y, tile.bottom)
    return (tile.x, tile.right)


# ---------------------------------------------------------------------------
# Chains and coverage
# ---------------------------------------------------------------------------


def touching_chains(
    tiles: Iterable[Tile],
    seam: Seam,
    eps: float = EPSILON,
    span: Optional[Interval] = None,
) -> Tuple[List[Tile], List[Tile]]:
    """Tiles on each side of a seam.

    Returns ``(before, after)``: tiles whose right/bottom edge lies on the seam
    and tiles whose left/top edge does. With ``span``, only tiles whose extent
    along the seam overlaps it are kept.
    """
    orientation = seam.orientation
    before: List[Tile] = []
    after: List[Tile] = []
    for tile in tiles:
        if span is not None:
            lo, hi = perpendicular_interval(tile, orientation)
            if interval_overlap(lo, hi, span[0], span[1]) <= eps:
                continue
        if approx_equal(far_coord(tile, orientation), seam.coord, eps):
            before.append(tile)
        elif approx_equal(near_coord(tile, orientation), seam.coord, eps):
            after.append(tile)
    return before, after


def covers_span(
    tiles: Sequence[Tile],
    eps: float,
    orientation: Orientation,
    span: Interval = (0.0, CONTAINER_SIZE),
) -> bool:
    """True when the tiles' extents along the seam line cover ``span`` without gaps."""
    merged = merge_intervals((perpendicular_interval(t, orientation) for t in tiles), eps)
    cursor = span[0]
    for start, end in merged:
        if start > cursor + eps:
            return False
        cursor = max(cursor, end)
        if cursor >= span[1] - eps:
            return True
    return cursor >= span[1] - eps


def chain_covered(
    before: Sequence[Tile],
    after: Sequence[Tile],
    orientation: Orientation,
    eps: float = EPSILON,
) -> bool:
    """Both sides are present and cover exactly the same stretch of the seam line."""
    if not before or not after:
        return False
    lhs = merge_intervals((perpendicular_interval(t, orientation) for t in before), eps)
    rhs = merge_intervals((perpendicular_interval(t, orientation) for t in after), eps)
    if len(lhs) != len(rhs):
        return False
    return all(
        approx_equal(a0, b0, eps) and approx_equal(a1, b1, eps)
        for (a0, a1), (b0, b1) in zip(lhs, rhs)
    )


def is_full_span(tiling: Tiling, seam: Seam, eps: Optional[float] = None) -> bool:
    """True when no tile straddles the seam line, so it runs across the container."""
    eps = tiling.epsilon if eps is None else eps
    for tile in tiling:
        near = near_coord(tile, seam.orientation)
        far = far_coord(tile, seam.orientation)
        if near < seam.coord - eps and far > seam.coord + eps:
            return False
    return True


def connected_span(
    tiling: Tiling,
    seam_id: str,
    start: Interval,
    eps: Optional[float] = None,
) -> Optional[Interval]:
    """Maximal stretch of the seam line reachable from ``start``.

    Grows ``start`` through every touching tile (either side) whose extent
    overlaps it, until nothing more is added. Stretches that only meet at a
    point stay separate, so one arm of a cross junction can move alone.
    """
    eps = tiling.epsilon if eps is None else eps
    seam = tiling.seams.get(seam_id)
    if seam is None:
        return None
    before, after = touching_chains(tiling, seam, eps)
    intervals = [perpendicular_interval(t, seam.orientation) for t in before + after]
    lo, hi = start
    grown = True
    while grown:
        grown = False
        for a, b in intervals:
            if interval_overlap(lo, hi, a, b) > eps and (a < lo - eps or b > hi + eps):
                lo, hi = min(lo, a), max(hi, b)
                grown = True
    return (lo, hi)


# ---------------------------------------------------------------------------
# Seam lookup
# ---------------------------------------------------------------------------


def seam_id_for(
    tiling: Tiling,
    orientation: Orientation,
    coord: float,
    eps: Optional[float] = None,
) -> Optional[str]:
    """Seam id at ``coord``: exact id first, then the nearest seam within ``eps``."""
    eps = tiling.epsilon if eps is None else eps
    orientation = Orientation(orientation)
    exact = make_seam_id(orientation, coord)
    if exact in tiling.seams:
        return exact
    for seam in tiling.seams_of(orientation):
        if abs(seam.coord - coord) <= eps:
            return seam.id
    return None


def resolve_edge_to_seam_id(
    tiling: Tiling,
    tile_id: str,
    edge: Edge,
    eps: Optional[float] = None,
) -> Optional[str]:
    tile = tiling.get(tile_id)
    if tile is None:
        return None
    edge = Edge(edge)
    return seam_id_for(tiling, edge.orientation, edge_coord(tile, edge), eps)


def edge_span(tiling: Tiling, tile_id: str, edge: Edge) -> Optional[Interval]:
    """Connected stretch of the seam under a tile edge."""
    seam_id = resolve_edge_to_seam_id(tiling, tile_id, edge)
    if seam_id is None:
        return None
    tile = tiling.tiles[tile_id]
    return connected_span(tiling, seam_id, perpendicular_interval(tile, Edge(edge).orientation))


# ---------------------------------------------------------------------------
# Clamp / apply
# ---------------------------------------------------------------------------


def _is_pinned(
    before: Sequence[Tile],
    after: Sequence[Tile],
    orientation: Orientation,
    config: TilingConfig,
) -> bool:
    far_edge = Edge.RIGHT if orientation is Orientation.VERTICAL else Edge.BOTTOM
    near_edge = far_edge.opposite
    for tiles, edge in ((before, far_edge), (after, near_edge)):
        for tile in tiles:
            if tile.locked or edge in effective_constraints(tile, config).locked_edges:
                return True
    return False


def _slack(tiles: Sequence[Tile], orientation: Orientation, config: TilingConfig) -> Tuple[float, float]:
    """(room to shrink, room to grow) of the tightest tile on one side."""
    shrink = grow = float("inf")
    for tile in tiles:
        limits = effective_constraints(tile, config)
        size = size_along(tile, orientation)
        if orientation is Orientation.VERTICAL:
            low, high = limits.min_width, limits.max_width
        else:
            low, high = limits.min_height, limits.max_height
        shrink = min(shrink, max(0.0, size - low))
        grow = min(grow, max(0.0, high - size))
    return shrink, grow


def clamp_seam_delta(
    tiling: Tiling,
    seam_id: str,
    delta: float,
    config: Optional[TilingConfig] = None,
    span: Optional[Interval] = None,
) -> SeamClampResult:
    """Clamp ``delta`` to the travel the seam allows in the current tiling.

    A positive delta moves the seam right/down: the after-side shrinks and the
    before-side grows. ``min``/``max`` are the travel limits in each direction.
    An uncovered chain yields ``chain_covered=False`` and zero travel; callers
    reject such moves through the decision engine.

    Raises:
        ValueError: if ``delta`` is NaN or infinite.
    """
    if not math.isfinite(delta):
        raise ValueError(f"Seam delta must be a finite number, got {delta!r}")
    config = config or DEFAULT_CONFIG
    eps = config.epsilon
    seam = tiling.seams.get(seam_id)
    if seam is None:
        return SeamClampResult(0.0, 0.0, 0.0, False)

    before, after = touching_chains(tiling, seam, eps, span)
    if not chain_covered(before, after, seam.orientation, eps):
        return SeamClampResult(0.0, 0.0, 0.0, False)
    if _is_pinned(before, after, seam.orientation, config):
        return SeamClampResult(0.0, 0.0, 0.0, True)

    before_shrink, before_grow = _slack(before, seam.orientation, config)
    after_shrink, after_grow = _slack(after, seam.orientation, config)
    upper = min(after_shrink, before_grow)
    lower = -min(before_shrink, after_grow)
    clamped = max(lower, min(float(delta), upper))
    return SeamClampResult(clamped + 0.0, lower + 0.0, upper, True)


def apply_seam_delta(
    tiling: Tiling,
    seam_id: str,
    delta: float,
    config: Optional[TilingConfig] = None,
    span: Optional[Interval] = None,
) -> Tiling:
    """Move a seam by an already clamped ``delta`` and return the new tiling."""
    config = config or DEFAULT_CONFIG
    eps = config.epsilon
    seam = tiling.seams.get(seam_id)
    if seam is None or abs(delta) <= eps:
        return tiling

    before, after = touching_chains(tiling, seam, eps, span)
    moved = {}
    vertical = seam.orientation is Orientation.VERTICAL
    for tile in before:
        if vertical:
            moved[tile.id] = tile.with_changes(width=tile.width + delta)
        else:
            moved[tile.id] = tile.with_changes(height=tile.height + delta)
    for tile in after:
        if vertical:
            moved[tile.id] = tile.with_changes(x=tile.x + delta, width=tile.width - delta)
        else:
            moved[tile.id] = tile.with_changes(y=tile.y + delta, height=tile.height - delta)

    logger.debug(
        "Seam %s moved by %.6f (%d before, %d after)", seam_id, delta, len(before), len(after)
    )
    tiles = [moved.get(tile.id, tile) for tile in tiling]
    return tiling.with_tiles(canonicalize(tiles, eps))
