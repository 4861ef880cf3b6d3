"""Neighbour discovery for the delete algorithm."""

from __future__ import annotations

from typing import List, Optional

from seamgrid.contracts import Edge, SeamOption
from seamgrid.geometry import approx_equal, interval_overlap
from seamgrid.seams import covers_span, edge_coord, far_coord, near_coord, perpendicular_interval
from seamgrid.tiling import Tile, Tiling

SIDE_ORDER = (Edge.LEFT, Edge.RIGHT, Edge.TOP, Edge.BOTTOM)


def neighbors_on(tiling: Tiling, tile_id: str, side: Edge) -> List[Tile]:
    """Tiles touching ``side`` of a tile, ordered along the edge."""
    side = Edge(side)
    target = tiling.tiles[tile_id]
    eps = tiling.epsilon
    orientation = side.orientation
    coord = edge_coord(target, side)
    lo, hi = perpendicular_interval(target, orientation)
    found = []
    for tile in tiling:
        if tile.id == tile_id:
            continue
        touching = far_coord(tile, orientation) if side.is_leading else near_coord(tile, orientation)
        if not approx_equal(touching, coord, eps):
            continue
        a, b = perpendicular_interval(tile, orientation)
        if interval_overlap(lo, hi, a, b) > eps:
            found.append(tile)
    return sorted(found, key=lambda t: perpendicular_interval(t, orientation))


def compute_coverage_options(
    tiling: Tiling,
    tile_id: str,
    same_group_only: Optional[bool] = None,
) -> List[SeamOption]:
    """Sides of a tile whose neighbours exactly tile that edge.

    A side qualifies only when every touching neighbour lies within the
    tile's extent and together they cover it without gaps, so those
    neighbours can grow into the freed space as a block. For a tile in a
    group of more than one member only same-group neighbours count, unless
    ``same_group_only`` says otherwise.
    """
    target = tiling.get(tile_id)
    if target is None:
        return []
    eps = tiling.epsilon
    members = tiling.group_members(tile_id)
    if same_group_only is None:
        same_group_only = len(members) > 1

    options: List[SeamOption] = []
    for side in SIDE_ORDER:
        orientation = side.orientation
        lo, hi = perpendicular_interval(target, orientation)
        touching = neighbors_on(tiling, tile_id, side)
        if not touching:
            continue
        contained = all(
            perpendicular_interval(t, orientation)[0] >= lo - eps
            and perpendicular_interval(t, orientation)[1] <= hi + eps
            for t in touching
        )
        if not contained or not covers_span(touching, eps, orientation, (lo, hi)):
            continue
        if same_group_only and not all(t.id in members for t in touching):
            continue
        options.append(
            SeamOption(
                axis=orientation,
                side=side,
                neighbors=tuple(t.id for t in touching),
                all_unlocked=not any(t.locked for t in touching),
            )
        )
    return options
