"""
Operation algorithms.

Each operation evaluates its precondition graph, builds a candidate tiling
through the active strategy, and runs the ``validate`` graph on the candidate.
The input tiling is never touched: the outcome either carries a new valid
tiling or the violations explaining why there is none.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from seamgrid import contracts as codes
from seamgrid.config import TilingConfig
from seamgrid.contracts import DecisionResult, Edge, Operation, Orientation, SeamOption, Violation
from seamgrid.decision import DecisionEngine
from seamgrid.geometry import CONTAINER_SIZE, Interval
from seamgrid.neighbors import compute_coverage_options
from seamgrid.seams import is_full_span, resolve_edge_to_seam_id, seam_id_for
from seamgrid.strategies import StrategyRegistry
from seamgrid.tiling import Tile, Tiling, canonicalize

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 0.5


@dataclass(frozen=True)
class OperationEnv:
    """Collaborators an operation needs besides the tiling itself."""

    config: TilingConfig
    engine: DecisionEngine
    strategies: StrategyRegistry
    next_id: Callable[[], str]


@dataclass(frozen=True)
class OperationOutcome:
    result: DecisionResult
    tiling: Optional[Tiling] = None

    @property
    def changed(self) -> bool:
        return self.tiling is not None


def _check(env: OperationEnv, op: Operation, tiling: Tiling, **params) -> DecisionResult:
    return env.engine.check(op, tiling, env.config, **params)


def _rebuild(
    env: OperationEnv,
    tiling: Tiling,
    tiles: Iterable[Tile],
    groups: Optional[Mapping[str, Iterable[str]]] = None,
) -> Tiling:
    return tiling.with_tiles(canonicalize(tiles, env.config.epsilon), groups)


def _finish(env: OperationEnv, candidate: Tiling, new_tile_id: Optional[str] = None) -> OperationOutcome:
    post = _check(env, Operation.VALIDATE, candidate)
    if not post.valid:
        return OperationOutcome(post)
    return OperationOutcome(DecisionResult.ok(new_tile_id), candidate)


def _groups_with(groups: Mapping[str, FrozenSet[str]], source_id: str, new_id: str) -> Dict[str, FrozenSet[str]]:
    """Copy of ``groups`` where ``new_id`` joins every group holding ``source_id``."""
    return {
        name: members | {new_id} if source_id in members else members
        for name, members in groups.items()
    }


def _groups_without(groups: Mapping[str, FrozenSet[str]], tile_id: str) -> Dict[str, FrozenSet[str]]:
    pruned = {name: members - {tile_id} for name, members in groups.items()}
    return {name: members for name, members in pruned.items() if members}


# ---------------------------------------------------------------------------
# Split / insert
# ---------------------------------------------------------------------------


def split_tile(
    tiling: Tiling,
    env: OperationEnv,
    tile_id: str,
    orientation: Orientation,
    ratio: Optional[float] = None,
) -> OperationOutcome:
    """Replace a tile with two tiles cut along ``orientation`` at ``ratio``.

    A vertical split cuts the width. The first part keeps the source id; the
    new id is reported as ``result.new_tile_id``.
    """
    orientation = Orientation(orientation)
    ratio = DEFAULT_SIZE if ratio is None else ratio
    pre = _check(env, Operation.SPLIT, tiling, tile_id=tile_id, orientation=orientation, ratio=ratio)
    if not pre.valid:
        return OperationOutcome(pre)

    source = tiling.tiles[tile_id]
    first, second = env.strategies.split.split(source, orientation, float(ratio), env.next_id())
    tiles: List[Tile] = []
    for tile in tiling:
        tiles.extend((first, second) if tile.id == tile_id else (tile,))
    candidate = _rebuild(env, tiling, tiles, _groups_with(tiling.groups, tile_id, second.id))
    outcome = _finish(env, candidate, second.id)
    if outcome.changed:
        logger.info("Split %s %s at %.3f -> %s", tile_id, orientation.value, ratio, second.id)
    return outcome


def insert_tile(
    tiling: Tiling,
    env: OperationEnv,
    ref_id: str,
    side: Edge,
    size: Optional[float] = None,
) -> OperationOutcome:
    """Carve a new tile of ``size`` (fraction of the reference) off one side."""
    side = Edge(side)
    size = DEFAULT_SIZE if size is None else size
    pre = _check(env, Operation.INSERT, tiling, tile_id=ref_id, side=side, size=size)
    if not pre.valid:
        return OperationOutcome(pre)

    ref = tiling.tiles[ref_id]
    new_id = env.next_id()
    size = float(size)
    if side is Edge.LEFT:
        cut = ref.x + ref.width * size
        new = Tile(new_id, ref.x, ref.y, cut - ref.x, ref.height)
        kept = ref.with_changes(x=cut, width=ref.right - cut)
    elif side is Edge.RIGHT:
        cut = ref.x + ref.width * (1.0 - size)
        kept = ref.with_changes(width=cut - ref.x)
        new = Tile(new_id, cut, ref.y, ref.right - cut, ref.height)
    elif side is Edge.TOP:
        cut = ref.y + ref.height * size
        new = Tile(new_id, ref.x, ref.y, ref.width, cut - ref.y)
        kept = ref.with_changes(y=cut, height=ref.bottom - cut)
    else:
        cut = ref.y + ref.height * (1.0 - size)
        kept = ref.with_changes(height=cut - ref.y)
        new = Tile(new_id, ref.x, cut, ref.width, ref.bottom - cut)

    tiles: List[Tile] = []
    for tile in tiling:
        tiles.extend((kept, new) if tile.id == ref_id else (tile,))
    candidate = _rebuild(env, tiling, tiles, _groups_with(tiling.groups, ref_id, new_id))
    outcome = _finish(env, candidate, new_id)
    if outcome.changed:
        logger.info("Inserted %s on the %s of %s (size %.3f)", new_id, side.value, ref_id, size)
    return outcome


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


def apply_delete_plan(tiling: Tiling, tile_id: str, option: SeamOption, eps: float) -> Tiling:
    """Remove ``tile_id`` and grow the option's neighbours over its area."""
    target = tiling.tiles[tile_id]
    grown: Dict[str, Tile] = {}
    for neighbor_id in option.neighbors:
        neighbor = tiling.tiles[neighbor_id]
        if option.side is Edge.LEFT:
            grown[neighbor_id] = neighbor.with_changes(width=target.right - neighbor.x)
        elif option.side is Edge.RIGHT:
            grown[neighbor_id] = neighbor.with_changes(x=target.x, width=neighbor.right - target.x)
        elif option.side is Edge.TOP:
            grown[neighbor_id] = neighbor.with_changes(height=target.bottom - neighbor.y)
        else:
            grown[neighbor_id] = neighbor.with_changes(y=target.y, height=neighbor.bottom - target.y)
    tiles = [grown.get(t.id, t) for t in tiling if t.id != tile_id]
    return tiling.with_tiles(canonicalize(tiles, eps), _groups_without(tiling.groups, tile_id))


def delete_tile(tiling: Tiling, env: OperationEnv, tile_id: str) -> OperationOutcome:
    pre = _check(env, Operation.DELETE, tiling, tile_id=tile_id)
    if not pre.valid:
        return OperationOutcome(pre)

    option = env.strategies.delete.choose(compute_coverage_options(tiling, tile_id))
    if option is None:
        return OperationOutcome(
            DecisionResult.rejected(
                Violation(codes.NEIGHBOR_LOCKED, f"No unlocked neighbour can absorb tile {tile_id}")
            )
        )
    candidate = apply_delete_plan(tiling, tile_id, option, env.config.epsilon)
    outcome = _finish(env, candidate)
    if outcome.changed:
        logger.info(
            "Deleted %s; %s absorbed from the %s", tile_id, ", ".join(option.neighbors), option.side.value
        )
    return outcome


# ---------------------------------------------------------------------------
# Resize
# ---------------------------------------------------------------------------


def _move_seam(
    tiling: Tiling,
    env: OperationEnv,
    seam_id: str,
    delta: float,
    span: Optional[Interval],
) -> OperationOutcome:
    candidate, clamp = env.strategies.resize.resize(tiling, seam_id, float(delta), env.config, span)
    if candidate is None:
        return OperationOutcome(DecisionResult.ok())
    outcome = _finish(env, candidate)
    if outcome.changed:
        logger.debug("Seam %s moved %.6f (requested %.6f)", seam_id, clamp.clamped_delta, delta)
    return outcome


def resize_tile(
    tiling: Tiling,
    env: OperationEnv,
    tile_id: str,
    edge: Edge,
    delta: float,
) -> OperationOutcome:
    """Move one edge of a tile.

    The edge resolves to its seam and the whole seam line moves with it, so
    every tile touching the seam grows or shrinks together. Use
    ``resize_seam`` with a span to move a single stretch.
    """
    edge = Edge(edge)
    seam_id = None
    if tile_id in tiling:
        seam_id = resolve_edge_to_seam_id(tiling, tile_id, edge, env.config.epsilon)
    pre = _check(env, Operation.RESIZE, tiling, tile_id=tile_id, edge=edge, seam_id=seam_id, delta=delta)
    if not pre.valid:
        return OperationOutcome(pre)
    return _move_seam(tiling, env, seam_id, delta, None)


def resize_seam(
    tiling: Tiling,
    env: OperationEnv,
    seam_id: str,
    delta: float,
    span: Optional[Interval] = None,
) -> OperationOutcome:
    """Move a seam by id; without ``span`` the whole seam line moves."""
    pre = _check(env, Operation.SEAM_RESIZE, tiling, seam_id=seam_id, span=span, delta=delta)
    if not pre.valid:
        return OperationOutcome(pre)
    return _move_seam(tiling, env, seam_id, delta, span)


# ---------------------------------------------------------------------------
# Full-length inserts
# ---------------------------------------------------------------------------


def _scaled(tile: Tile, orientation: Orientation, origin: float, factor: float) -> Tile:
    """Scale a tile along one axis about ``origin``."""
    if orientation is Orientation.VERTICAL:
        left = origin + (tile.x - origin) * factor
        right = origin + (tile.right - origin) * factor
        return tile.with_changes(x=left, width=right - left)
    top = origin + (tile.y - origin) * factor
    bottom = origin + (tile.bottom - origin) * factor
    return tile.with_changes(y=top, height=bottom - top)


def _band(new_id: str, orientation: Orientation, start: float, end: float) -> Tile:
    if orientation is Orientation.VERTICAL:
        return Tile(new_id, start, 0.0, end - start, CONTAINER_SIZE)
    return Tile(new_id, 0.0, start, CONTAINER_SIZE, end - start)


def insert_full_span_at_seam(
    tiling: Tiling,
    env: OperationEnv,
    orientation: Orientation,
    seam_coord: float,
    side: Edge,
    size: Optional[float] = None,
) -> OperationOutcome:
    """Insert a full-length band next to a straight seam.

    The region on ``side`` of the seam is compressed towards the container
    edge by ``1 - size`` and the band fills the space freed next to the seam.
    """
    orientation = Orientation(orientation)
    side = Edge(side)
    if side.orientation is not orientation:
        raise ValueError(f"Side {side.value} does not face a {orientation.value} seam")
    size = DEFAULT_SIZE if size is None else size
    seam_id = seam_id_for(tiling, orientation, seam_coord, env.config.epsilon)
    pre = _check(env, Operation.INSERT_AT_SEAM, tiling, seam_id=seam_id, side=side, size=size)
    if not pre.valid:
        return OperationOutcome(pre)

    eps = env.config.epsilon
    seam = tiling.seams[seam_id]
    coord = seam.coord
    region = coord if side.is_leading else CONTAINER_SIZE - coord
    if region <= eps:
        return OperationOutcome(
            DecisionResult.rejected(
                Violation(
                    codes.NO_REGION,
                    f"No space on the {side.value} of seam {seam_id} to insert into",
                    data={"seam_id": seam_id, "side": side.value},
                )
            )
        )

    factor = 1.0 - float(size)
    origin = 0.0 if side.is_leading else CONTAINER_SIZE
    tiles: List[Tile] = []
    for tile in tiling:
        near = tile.x if orientation is Orientation.VERTICAL else tile.y
        far = tile.right if orientation is Orientation.VERTICAL else tile.bottom
        in_region = far <= coord + eps if side.is_leading else near >= coord - eps
        tiles.append(_scaled(tile, orientation, origin, factor) if in_region else tile)

    new_id = env.next_id()
    band_edge = origin + (coord - origin) * factor
    start, end = (band_edge, coord) if side.is_leading else (coord, band_edge)
    tiles.append(_band(new_id, orientation, start, end))
    candidate = _rebuild(env, tiling, tiles)
    outcome = _finish(env, candidate, new_id)
    if outcome.changed:
        logger.info("Inserted full-length %s on the %s of %s", new_id, side.value, seam_id)
    return outcome


def insert_at_container_edge(
    tiling: Tiling,
    env: OperationEnv,
    side: Edge,
    size: Optional[float] = None,
) -> OperationOutcome:
    """Compress every tile away from ``side`` and add a full-length band there."""
    side = Edge(side)
    size = DEFAULT_SIZE if size is None else size
    pre = _check(env, Operation.INSERT_AT_EDGE, tiling, side=side, size=size)
    if not pre.valid:
        return OperationOutcome(pre)

    orientation = side.orientation
    factor = 1.0 - float(size)
    # Scale about the opposite container edge so the freed band opens on ``side``
    origin = CONTAINER_SIZE if side.is_leading else 0.0
    tiles = [_scaled(tile, orientation, origin, factor) for tile in tiling]

    new_id = env.next_id()
    band = CONTAINER_SIZE * float(size)
    start, end = (0.0, band) if side.is_leading else (CONTAINER_SIZE - band, CONTAINER_SIZE)
    tiles.append(_band(new_id, orientation, start, end))
    candidate = _rebuild(env, tiling, tiles)
    outcome = _finish(env, candidate, new_id)
    if outcome.changed:
        logger.info("Inserted full-length %s at the %s container edge", new_id, side.value)
    return outcome
