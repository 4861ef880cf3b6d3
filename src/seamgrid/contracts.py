"""Value records shared across the tiling core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple


class Orientation(str, Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"

    @property
    def tag(self) -> str:
        return "v" if self is Orientation.VERTICAL else "h"


class Edge(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"

    @property
    def orientation(self) -> Orientation:
        """Orientation of the seam this edge lies on."""
        if self in (Edge.LEFT, Edge.RIGHT):
            return Orientation.VERTICAL
        return Orientation.HORIZONTAL

    @property
    def is_leading(self) -> bool:
        """Left and top edges face the container origin."""
        return self in (Edge.LEFT, Edge.TOP)

    @property
    def opposite(self) -> "Edge":
        return _OPPOSITE_EDGE[self]


_OPPOSITE_EDGE = {
    Edge.LEFT: Edge.RIGHT,
    Edge.RIGHT: Edge.LEFT,
    Edge.TOP: Edge.BOTTOM,
    Edge.BOTTOM: Edge.TOP,
}


class Operation(str, Enum):
    SPLIT = "split"
    DELETE = "delete"
    INSERT = "insert"
    RESIZE = "resize"
    SEAM_RESIZE = "seam:resize"
    INSERT_AT_SEAM = "insert:seam"
    INSERT_AT_EDGE = "insert:edge"
    VALIDATE = "validate"


# Violation codes
TILE_NOT_FOUND = "TileNotFound"
TILE_LOCKED = "TileLocked"
LAST_TILE = "LastTile"
MAX_TILES_EXCEEDED = "MaxTilesExceeded"
MIN_SIZE = "MinSize"
MAX_SIZE = "MaxSize"
GROUP_ISOLATED = "GroupIsolated"
GROUP_MEMBER = "GroupMember"
NEIGHBOR_LOCKED = "NeighborLocked"
SEAM_NOT_FOUND = "SeamNotFound"
SEAM_NOT_COVERED = "SeamNotCovered"
EDGE_LOCKED = "EdgeLocked"
NO_FULL_SPAN_COVERAGE = "NoFullSpanCoverage"
COVERAGE_GAP = "CoverageGap"
OUT_OF_BOUNDS = "OutOfBounds"
INVALID_RATIO = "InvalidRatio"
INVALID_DELTA = "InvalidDelta"
NO_REGION = "NoRegion"


@dataclass(frozen=True)
class TileConstraints:
    """Per-tile overrides; ``None`` falls back to the configured defaults."""

    min_width: Optional[float] = None
    min_height: Optional[float] = None
    max_width: Optional[float] = None
    max_height: Optional[float] = None
    aspect_ratio: Optional[float] = None  # width / height
    locked_edges: FrozenSet[Edge] = frozenset()

    def __post_init__(self):
        object.__setattr__(
            self, "locked_edges", frozenset(Edge(e) for e in self.locked_edges)
        )

    def merged_with(self, override: Optional["TileConstraints"]) -> "TileConstraints":
        """Field-wise merge; values set on ``override`` win."""
        if override is None:
            return self
        return TileConstraints(
            min_width=_first(override.min_width, self.min_width),
            min_height=_first(override.min_height, self.min_height),
            max_width=_first(override.max_width, self.max_width),
            max_height=_first(override.max_height, self.max_height),
            aspect_ratio=_first(override.aspect_ratio, self.aspect_ratio),
            locked_edges=override.locked_edges | self.locked_edges,
        )

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        for key in ("min_width", "min_height", "max_width", "max_height", "aspect_ratio"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.locked_edges:
            payload["locked_edges"] = sorted(edge.value for edge in self.locked_edges)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "TileConstraints":
        def _number(key: str) -> Optional[float]:
            value = payload.get(key)
            return None if value is None else float(value)

        return cls(
            min_width=_number("min_width"),
            min_height=_number("min_height"),
            max_width=_number("max_width"),
            max_height=_number("max_height"),
            aspect_ratio=_number("aspect_ratio"),
            locked_edges=frozenset(payload.get("locked_edges") or ()),
        )


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class Seam:
    """A shared straight edge, derived from tile edge coordinates."""

    id: str
    orientation: Orientation
    coord: float


def make_seam_id(orientation: Orientation, coord: float) -> str:
    orientation = Orientation(orientation)
    # round() keeps -0.0 and tiny negatives from printing as "-0.000000"
    return f"seam|{orientation.tag}|{round(coord, 6) + 0.0:.6f}"


@dataclass(frozen=True)
class Violation:
    """Coded rejection reason returned by a failed precondition."""

    code: str
    message: str
    path: Optional[str] = None
    data: Optional[Mapping[str, object]] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"code": self.code, "message": self.message}
        if self.path is not None:
            payload["path"] = self.path
        if self.data is not None:
            payload["data"] = dict(self.data)
        return payload


@dataclass(frozen=True)
class DecisionResult:
    valid: bool
    violations: Tuple[Violation, ...] = ()
    new_tile_id: Optional[str] = None

    @classmethod
    def ok(cls, new_tile_id: Optional[str] = None) -> "DecisionResult":
        return cls(valid=True, new_tile_id=new_tile_id)

    @classmethod
    def rejected(cls, *violations: Violation) -> "DecisionResult":
        return cls(valid=False, violations=tuple(violations))

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(v.code for v in self.violations)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
        }
        if self.new_tile_id is not None:
            payload["new_tile_id"] = self.new_tile_id
        return payload


@dataclass(frozen=True)
class SeamClampResult:
    clamped_delta: float
    min: float
    max: float
    chain_covered: bool


@dataclass(frozen=True)
class SeamOption:
    """A side of a tile whose neighbours exactly cover that edge."""

    axis: Orientation
    side: Edge
    neighbors: Tuple[str, ...]
    all_unlocked: bool = field(default=True)
