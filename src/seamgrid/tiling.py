"""
Immutable tiles and tilings.

A ``Tiling`` validates the partition invariants once, at construction, and
derives its seam set from the tile edges. Every mutation in the package
produces a new ``Tiling``; nothing is edited in place.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Union

import numpy as np
from shapely.geometry import Polygon

from seamgrid import errors
from seamgrid.contracts import Orientation, Seam, TileConstraints, make_seam_id
from seamgrid.errors import StateValidationError, TileValidationError
from seamgrid.geometry import (
    CONTAINER_AREA,
    EPSILON,
    adjacent,
    clamp_pct,
    overlap_area,
    overlaps,
    rect_polygon,
    uncovered_area,
    uncovered_bounds,
    within_bounds,
)

logger = logging.getLogger(__name__)

# Coarse tolerance for the aggregate-area check; precise coverage is a
# decision-graph concern (``coverage_tight``).
AREA_TOLERANCE = 1e-1

GroupsInput = Optional[Mapping[str, Iterable[str]]]


@dataclass(frozen=True)
class Tile:
    """An axis-aligned rectangle in container percentages."""

    id: str
    x: float
    y: float
    width: float
    height: float
    locked: bool = False
    meta: Dict[str, object] = field(default_factory=dict)
    constraints: Optional[TileConstraints] = None

    def __post_init__(self):
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.floating, np.integer)):
                raise TileValidationError(
                    errors.TILE_INVALID_COORDINATES,
                    "Tile coordinates must be finite numbers",
                    {"tile_id": self.id, name: value},
                )
            object.__setattr__(self, name, float(value))
        object.__setattr__(self, "locked", bool(self.locked))
        object.__setattr__(self, "meta", dict(self.meta or {}))

        if not all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height)):
            raise TileValidationError(
                errors.TILE_INVALID_COORDINATES,
                "Tile coordinates must be finite numbers",
                {"tile_id": self.id},
            )
        if self.width <= EPSILON or self.height <= EPSILON:
            raise TileValidationError(
                errors.TILE_INVALID_DIMENSIONS,
                "Tile width and height must be positive",
                {"tile_id": self.id, "width": self.width, "height": self.height},
            )
        if not within_bounds(self):
            raise TileValidationError(
                errors.TILE_OUT_OF_BOUNDS,
                "Tile must be within [0,100] bounds",
                {"tile_id": self.id, "x": self.x, "y": self.y, "width": self.width, "height": self.height},
            )

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def polygon(self) -> Polygon:
        return rect_polygon(self)

    def with_changes(self, **patch) -> "Tile":
        return replace(self, **patch)

    def move(self, dx: float, dy: float) -> "Tile":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def resize(self, width: float, height: float) -> "Tile":
        return replace(self, width=width, height=height)

    def overlaps(self, other: "Tile", eps: float = EPSILON) -> bool:
        return overlaps(self, other, eps)

    def is_adjacent_to(self, other: "Tile", eps: float = EPSILON) -> bool:
        return adjacent(self, other, eps)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "locked": self.locked,
            "meta": dict(self.meta),
        }
        if self.constraints is not None:
            payload["constraints"] = self.constraints.to_dict()
        return payload


# ---------------------------------------------------------------------------
# Coordinate snapping
# ---------------------------------------------------------------------------


def snap_axis(values: Iterable[float], eps: float = EPSILON) -> List[float]:
    """Sort and snap-dedupe coordinates.

    A value joins the current cluster while it stays within ``eps`` of the
    cluster's anchor (its smallest value); otherwise it starts a new anchor.
    """
    ordered = np.sort(np.fromiter((clamp_pct(v) for v in values), dtype=float))
    anchors: List[float] = []
    for value in ordered:
        if not anchors or value - anchors[-1] > eps:
            anchors.append(float(value))
    return anchors


def snap_to(value: float, anchors: List[float], eps: float = EPSILON) -> float:
    value = clamp_pct(value)
    if not anchors:
        return value
    index = int(np.searchsorted(anchors, value, side="right")) - 1
    for candidate in (index, index + 1):
        if 0 <= candidate < len(anchors) and abs(anchors[candidate] - value) <= eps:
            return anchors[candidate]
    return value


def canonicalize(tiles: Iterable[Tile], eps: float = EPSILON) -> List[Tile]:
    """Snap every edge to its cluster anchor so neighbours share exact coordinates.

    Widths and heights are rebuilt from the snapped edges, never rounded
    independently, so a shared edge cannot open a sliver gap.
    """
    tiles = list(tiles)
    xs = snap_axis([v for t in tiles for v in (t.x, t.right)], eps)
    ys = snap_axis([v for t in tiles for v in (t.y, t.bottom)], eps)
    snapped: List[Tile] = []
    for tile in tiles:
        left, right = snap_to(tile.x, xs, eps), snap_to(tile.right, xs, eps)
        top, bottom = snap_to(tile.y, ys, eps), snap_to(tile.bottom, ys, eps)
        if (left, top, right - left, bottom - top) == (tile.x, tile.y, tile.width, tile.height):
            snapped.append(tile)
        else:
            snapped.append(replace(tile, x=left, y=top, width=right - left, height=bottom - top))
    return snapped


# ---------------------------------------------------------------------------
# Tiling
# ---------------------------------------------------------------------------


def _check_groups(groups: GroupsInput, by_id: Mapping[str, Tile]) -> Dict[str, FrozenSet[str]]:
    checked: Dict[str, FrozenSet[str]] = {}
    for name, members in (groups or {}).items():
        if isinstance(members, (str, bytes)):
            raise StateValidationError(
                errors.STATE_INVALID_GROUP,
                f"Group {name} must be a collection of tile ids",
                {"group": name},
            )
        members = frozenset(members)
        unknown = sorted(m for m in members if m not in by_id)
        if unknown:
            raise StateValidationError(
                errors.STATE_INVALID_GROUP,
                f"Group {name} references unknown tile ids: {', '.join(map(str, unknown))}",
                {"group": name, "unknown": unknown},
            )
        checked[name] = members
    return checked


class Tiling:
    """Immutable snapshot of a complete partition of the container.

    Args:
        tiles: Tiles (or a mapping of id to tile) forming the partition.
        groups: Optional named sets of tile ids used by the delete policy.
        adjacency_version: Counter bumped by ``with_tiles``.
        epsilon: Tolerance for overlap checks and seam de-duplication.

    Raises:
        StateValidationError: if the tiles do not partition the container.
    """

    def __init__(
        self,
        tiles: Union[Iterable[Tile], Mapping[str, Tile]],
        groups: GroupsInput = None,
        adjacency_version: int = 0,
        epsilon: float = EPSILON,
    ):
        if isinstance(tiles, Mapping):
            tiles = tiles.values()
        by_id: Dict[str, Tile] = {}
        for tile in tiles:
            if tile.id in by_id:
                raise StateValidationError(
                    errors.STATE_DUPLICATE_ID,
                    f"Duplicate tile id {tile.id}",
                    {"tile_id": tile.id},
                )
            by_id[tile.id] = tile

        self._tiles = MappingProxyType(by_id)
        self._groups = MappingProxyType(_check_groups(groups, by_id))
        self._adjacency_version = int(adjacency_version)
        self._epsilon = float(epsilon)

        self._validate()
        self._seams = MappingProxyType(self._derive_seams())

    # ─── Invariants ─────────────────────────────────────────────────────────

    def _validate(self) -> None:
        eps = self._epsilon
        tiles = list(self._tiles.values())
        if not tiles:
            raise StateValidationError(errors.STATE_EMPTY, "Tiling must contain at least one tile")

        for tile in tiles:
            if tile.width <= eps or tile.height <= eps:
                raise StateValidationError(
                    errors.TILE_INVALID_DIMENSIONS,
                    f"Tile {tile.id} must have positive size",
                    {"tile_id": tile.id, "width": tile.width, "height": tile.height},
                )
            if not within_bounds(tile, eps):
                raise StateValidationError(
                    errors.TILE_OUT_OF_BOUNDS,
                    f"Tile {tile.id} is out of bounds",
                    {"tile_id": tile.id},
                )

        for i, a in enumerate(tiles):
            for b in tiles[i + 1:]:
                if overlaps(a, b, eps):
                    raise StateValidationError(
                        errors.TILE_OVERLAP,
                        f"Tiles {a.id} and {b.id} overlap",
                        {"tiles": [a.id, b.id], "overlap_area": overlap_area(a, b)},
                    )

        total = float(np.sum([t.area for t in tiles]))
        if abs(total - CONTAINER_AREA) > AREA_TOLERANCE:
            raise StateValidationError(
                errors.STATE_COVERAGE_GAP,
                f"Tiles must cover the container exactly (area {total:.4f} != {CONTAINER_AREA:.0f})",
                {
                    "total_area": total,
                    "uncovered_area": uncovered_area(tiles),
                    "uncovered_bounds": list(uncovered_bounds(tiles)),
                },
            )

    def _derive_seams(self) -> Dict[str, Seam]:
        seams: Dict[str, Seam] = {}
        tiles = self._tiles.values()
        axes = (
            (Orientation.VERTICAL, [v for t in tiles for v in (t.x, t.right)]),
            (Orientation.HORIZONTAL, [v for t in tiles for v in (t.y, t.bottom)]),
        )
        for orientation, values in axes:
            for coord in snap_axis(values, self._epsilon):
                seam_id = make_seam_id(orientation, coord)
                seams[seam_id] = Seam(id=seam_id, orientation=orientation, coord=coord)
        return seams

    # ─── Accessors ──────────────────────────────────────────────────────────

    @property
    def tiles(self) -> Mapping[str, Tile]:
        return self._tiles

    @property
    def groups(self) -> Mapping[str, FrozenSet[str]]:
        return self._groups

    @property
    def seams(self) -> Mapping[str, Seam]:
        return self._seams

    @property
    def adjacency_version(self) -> int:
        return self._adjacency_version

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def total_area(self) -> float:
        return float(np.sum([t.area for t in self._tiles.values()]))

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, tile_id: object) -> bool:
        return tile_id in self._tiles

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._tiles.values())

    def __repr__(self) -> str:
        return f"Tiling(tiles={len(self._tiles)}, version={self._adjacency_version})"

    def get(self, tile_id: str) -> Optional[Tile]:
        return self._tiles.get(tile_id)

    def to_list(self) -> List[Tile]:
        return list(self._tiles.values())

    def group_of(self, tile_id: str) -> Optional[str]:
        for name in sorted(self._groups):
            if tile_id in self._groups[name]:
                return name
        return None

    def group_members(self, tile_id: str) -> FrozenSet[str]:
        """Members of the tile's group, or an empty set for ungrouped tiles."""
        name = self.group_of(tile_id)
        return self._groups[name] if name is not None else frozenset()

    def seams_of(self, orientation: Orientation) -> List[Seam]:
        orientation = Orientation(orientation)
        return sorted(
            (s for s in self._seams.values() if s.orientation is orientation),
            key=lambda s: s.coord,
        )

    # ─── Copy-on-write ──────────────────────────────────────────────────────

    def with_tiles(
        self,
        tiles: Union[Iterable[Tile], Mapping[str, Tile]],
        groups: GroupsInput = None,
    ) -> "Tiling":
        """New tiling with the given tiles; groups are kept unless replaced."""
        return Tiling(
            tiles,
            groups=self._groups if groups is None else groups,
            adjacency_version=self._adjacency_version + 1,
            epsilon=self._epsilon,
        )

    def with_groups(self, groups: GroupsInput) -> "Tiling":
        return Tiling(
            self._tiles,
            groups=groups or {},
            adjacency_version=self._adjacency_version,
            epsilon=self._epsilon,
        )


def full_tiling(tile_id: str = "tile-0", epsilon: float = EPSILON) -> Tiling:
    """A tiling made of a single tile covering the whole container."""
    return Tiling([Tile(tile_id, 0.0, 0.0, 100.0, 100.0)], epsilon=epsilon)
