"""Pluggable split / resize / delete algorithms, selected by key."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from seamgrid.config import TilingConfig
from seamgrid.contracts import Edge, Orientation, SeamClampResult, SeamOption
from seamgrid.errors import StrategyNotFoundError
from seamgrid.geometry import Interval
from seamgrid.seams import apply_seam_delta, clamp_seam_delta
from seamgrid.tiling import Tile, Tiling

logger = logging.getLogger(__name__)

SPLIT = "split"
RESIZE = "resize"
DELETE = "delete"
STRATEGY_KINDS = (SPLIT, RESIZE, DELETE)


# ─── Split ──────────────────────────────────────────────────────────────────


class RatioSplitStrategy:
    """Cut a tile at ``ratio``; the first part keeps the source identity."""

    name = "ratio"

    def split(self, tile: Tile, orientation: Orientation, ratio: float, new_id: str) -> Tuple[Tile, Tile]:
        if Orientation(orientation) is Orientation.VERTICAL:
            cut = tile.x + tile.width * ratio
            first = tile.with_changes(width=cut - tile.x)
            second = Tile(new_id, cut, tile.y, tile.right - cut, tile.height)
        else:
            cut = tile.y + tile.height * ratio
            first = tile.with_changes(height=cut - tile.y)
            second = Tile(new_id, tile.x, cut, tile.width, tile.bottom - cut)
        return first, second


class EqualSplitStrategy(RatioSplitStrategy):
    """Always halves, whatever ratio is requested."""

    name = "equal"

    def split(self, tile: Tile, orientation: Orientation, ratio: float, new_id: str) -> Tuple[Tile, Tile]:
        return super().split(tile, orientation, 0.5, new_id)


# ─── Resize ─────────────────────────────────────────────────────────────────


class LinearResizeStrategy:
    """Move the seam by the clamped delta."""

    name = "linear"

    def clamp(
        self,
        tiling: Tiling,
        seam_id: str,
        delta: float,
        config: TilingConfig,
        span: Optional[Interval] = None,
    ) -> SeamClampResult:
        return clamp_seam_delta(tiling, seam_id, delta, config, span)

    def resize(
        self,
        tiling: Tiling,
        seam_id: str,
        delta: float,
        config: TilingConfig,
        span: Optional[Interval] = None,
    ) -> Tuple[Optional[Tiling], SeamClampResult]:
        """Returns ``(new tiling or None when nothing moves, clamp result)``."""
        clamp = self.clamp(tiling, seam_id, delta, config, span)
        if abs(clamp.clamped_delta) <= config.epsilon:
            return None, clamp
        return apply_seam_delta(tiling, seam_id, clamp.clamped_delta, config, span), clamp


class SnapResizeStrategy(LinearResizeStrategy):
    """Land the seam on multiples of ``config.snap_grid`` when the clamp allows it."""

    name = "snap"

    def clamp(
        self,
        tiling: Tiling,
        seam_id: str,
        delta: float,
        config: TilingConfig,
        span: Optional[Interval] = None,
    ) -> SeamClampResult:
        base = clamp_seam_delta(tiling, seam_id, delta, config, span)
        grid = config.snap_grid
        if not grid or delta == 0 or not base.chain_covered:
            return base
        coord = tiling.seams[seam_id].coord
        snapped = round((coord + delta) / grid) * grid - coord
        return replace(base, clamped_delta=max(base.min, min(snapped, base.max)))


# ─── Delete ─────────────────────────────────────────────────────────────────


class HeuristicDeleteStrategy:
    """Pick the absorbing side with the fewest neighbours.

    Options containing a locked neighbour are never chosen. Ties prefer the
    vertical seams: left, then right, then top, then bottom.
    """

    name = "heuristic"
    SIDE_RANK = {Edge.LEFT: 0, Edge.RIGHT: 1, Edge.TOP: 2, Edge.BOTTOM: 3}

    def choose(self, options: Iterable[SeamOption]) -> Optional[SeamOption]:
        usable = [option for option in options if option.all_unlocked]
        if not usable:
            return None
        return min(usable, key=lambda o: (len(o.neighbors), self.SIDE_RANK[o.side]))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class StrategyRegistry:
    """Strategies by kind and key, with one active strategy per kind."""

    def __init__(self):
        self._strategies: Dict[str, Dict[str, object]] = {kind: {} for kind in STRATEGY_KINDS}
        self._active: Dict[str, str] = {}

    def _bucket(self, kind: str) -> Dict[str, object]:
        if kind not in self._strategies:
            raise StrategyNotFoundError("strategy kind", kind, list(self._strategies))
        return self._strategies[kind]

    def register(self, kind: str, strategy, activate: bool = False) -> "StrategyRegistry":
        bucket = self._bucket(kind)
        bucket[strategy.name] = strategy
        if activate or kind not in self._active:
            self._active[kind] = strategy.name
        return self

    def get(self, kind: str, key: Optional[str] = None):
        """Strategy ``key`` of ``kind`` (the active one when ``key`` is None).

        Raises:
            StrategyNotFoundError: for unknown kinds or keys.
        """
        bucket = self._bucket(kind)
        key = self._active.get(kind) if key is None else key
        if key not in bucket:
            raise StrategyNotFoundError(kind, str(key), list(bucket))
        return bucket[key]

    def set_active(self, kind: str, key: str) -> None:
        self.get(kind, key)
        self._active[kind] = key
        logger.info("Active %s strategy set to %s", kind, key)

    def active_key(self, kind: str) -> str:
        return self.get(kind).name

    def keys(self, kind: str) -> List[str]:
        return sorted(self._bucket(kind))

    @property
    def split(self) -> RatioSplitStrategy:
        return self.get(SPLIT)

    @property
    def resize(self) -> LinearResizeStrategy:
        return self.get(RESIZE)

    @property
    def delete(self) -> HeuristicDeleteStrategy:
        return self.get(DELETE)


def default_strategies() -> StrategyRegistry:
    registry = StrategyRegistry()
    registry.register(SPLIT, RatioSplitStrategy(), activate=True)
    registry.register(SPLIT, EqualSplitStrategy())
    registry.register(RESIZE, LinearResizeStrategy(), activate=True)
    registry.register(RESIZE, SnapResizeStrategy())
    registry.register(DELETE, HeuristicDeleteStrategy(), activate=True)
    return registry
