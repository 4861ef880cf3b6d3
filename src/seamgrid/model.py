"""
Single-writer handle over the current tiling.

``TilingModel`` owns the current ``Tiling`` and swaps it wholesale after each
successful operation. Every committed tiling is passed to the optional
``recorder`` callable (an external undo stack, for example) unless the caller
asks to skip history, e.g. while streaming drag increments.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Mapping, Optional, Tuple, Union

from seamgrid.auto_adjust import AutoAdjustResult, auto_adjust_layout
from seamgrid.conditions import default_engine
from seamgrid.config import DEFAULT_CONFIG, TilingConfig, create_config
from seamgrid.contracts import (
    DecisionResult,
    Edge,
    Operation,
    Orientation,
    Seam,
    SeamClampResult,
    TileConstraints,
)
from seamgrid.decision import DecisionEngine
from seamgrid.errors import TileNotFoundError
from seamgrid.geometry import CONTAINER_SIZE, Interval
from seamgrid.operations import (
    OperationEnv,
    OperationOutcome,
    delete_tile,
    insert_at_container_edge,
    insert_full_span_at_seam,
    insert_tile,
    resize_seam,
    resize_tile,
    split_tile,
)
from seamgrid.seams import resolve_edge_to_seam_id
from seamgrid.snapshot import LoadedSnapshot, dump_snapshot, load_snapshot
from seamgrid.strategies import StrategyRegistry, default_strategies
from seamgrid.tiling import Tile, Tiling

logger = logging.getLogger(__name__)

Recorder = Callable[[Tiling], None]
ConfigInput = Union[TilingConfig, Mapping[str, object], None]

_GENERATED_ID = re.compile(r"^tile-(\d+)$")


class TilingModel:
    """Orchestrates decisions, strategies and commits for one tiling.

    Args:
        config: A ``TilingConfig`` or a partial config dict.
        recorder: Called with every committed tiling.
        engine: Decision engine; defaults to the built-in graphs.
        strategies: Strategy registry; defaults to the built-in strategies.
    """

    def __init__(
        self,
        config: ConfigInput = None,
        recorder: Optional[Recorder] = None,
        engine: Optional[DecisionEngine] = None,
        strategies: Optional[StrategyRegistry] = None,
    ):
        self._config = self._resolve_config(config, DEFAULT_CONFIG)
        self._recorder = recorder
        self._engine = engine or default_engine()
        self._strategies = strategies or default_strategies()
        self._next_seq = 0
        self._tiling = self._single_tile()

    # ─── State ──────────────────────────────────────────────────────────────

    @property
    def tiling(self) -> Tiling:
        return self._tiling

    @property
    def seams(self) -> Mapping[str, Seam]:
        return self._tiling.seams

    @property
    def config(self) -> TilingConfig:
        return self._config

    @property
    def engine(self) -> DecisionEngine:
        return self._engine

    @property
    def strategies(self) -> StrategyRegistry:
        return self._strategies

    def initialize(self, layout: Union[Tiling, Iterable[Tile], None] = None) -> Tiling:
        """Start from ``layout`` (a tiling or tiles) or a single full tile."""
        if layout is None:
            self._next_seq = 0
            tiling = self._single_tile()
        elif isinstance(layout, Tiling):
            tiling = layout
        else:
            tiling = Tiling(layout, epsilon=self._config.epsilon)
        self._tiling = tiling
        self._sync_id_sequence()
        self.record_history()
        logger.info("Initialized tiling with %d tile(s)", len(tiling))
        return tiling

    def restore_tiling(self, tiling: Tiling) -> None:
        """Swap in a tiling from an external undo stack without recording it."""
        self._tiling = tiling
        self._sync_id_sequence()

    def record_history(self) -> None:
        if self._recorder is not None:
            self._recorder(self._tiling)

    def set_strategy(self, kind: str, key: str) -> None:
        self._strategies.set_active(kind, key)

    # ─── Ids ────────────────────────────────────────────────────────────────

    def _generate_id(self) -> str:
        while True:
            candidate = f"tile-{self._next_seq}"
            self._next_seq += 1
            if candidate not in self._tiling:
                return candidate

    def _sync_id_sequence(self) -> None:
        highest = -1
        for tile_id in self._tiling.tiles:
            match = _GENERATED_ID.match(tile_id)
            if match:
                highest = max(highest, int(match.group(1)))
        self._next_seq = max(self._next_seq, highest + 1)

    def _single_tile(self) -> Tiling:
        tile_id = f"tile-{self._next_seq}"
        self._next_seq += 1
        return Tiling([Tile(tile_id, 0.0, 0.0, CONTAINER_SIZE, CONTAINER_SIZE)], epsilon=self._config.epsilon)

    # ─── Operations ─────────────────────────────────────────────────────────

    def _env(self) -> OperationEnv:
        return OperationEnv(
            config=self._config,
            engine=self._engine,
            strategies=self._strategies,
            next_id=self._generate_id,
        )

    def _commit(self, op: Operation, outcome: OperationOutcome, skip_history: bool = False) -> DecisionResult:
        if outcome.changed:
            self._tiling = outcome.tiling
            if not skip_history:
                self.record_history()
        elif not outcome.result.valid:
            logger.debug("%s rejected: %s", op.value, ", ".join(outcome.result.codes))
        return outcome.result

    def split_tile(self, tile_id: str, orientation: Orientation, ratio: Optional[float] = None) -> DecisionResult:
        outcome = split_tile(self._tiling, self._env(), tile_id, orientation, ratio)
        return self._commit(Operation.SPLIT, outcome)

    def delete_tile(self, tile_id: str) -> DecisionResult:
        outcome = delete_tile(self._tiling, self._env(), tile_id)
        return self._commit(Operation.DELETE, outcome)

    def insert_tile(self, ref_id: str, side: Edge, size: Optional[float] = None) -> DecisionResult:
        outcome = insert_tile(self._tiling, self._env(), ref_id, side, size)
        return self._commit(Operation.INSERT, outcome)

    def resize_tile(self, tile_id: str, edge: Edge, delta: float, skip_history: bool = False) -> DecisionResult:
        outcome = resize_tile(self._tiling, self._env(), tile_id, edge, delta)
        return self._commit(Operation.RESIZE, outcome, skip_history)

    def resize_seam(
        self,
        seam_id: str,
        delta: float,
        span: Optional[Interval] = None,
        skip_history: bool = False,
    ) -> DecisionResult:
        outcome = resize_seam(self._tiling, self._env(), seam_id, delta, span)
        return self._commit(Operation.SEAM_RESIZE, outcome, skip_history)

    def insert_full_span_at_seam(
        self,
        orientation: Orientation,
        seam_coord: float,
        side: Edge,
        size: Optional[float] = None,
    ) -> DecisionResult:
        outcome = insert_full_span_at_seam(self._tiling, self._env(), orientation, seam_coord, side, size)
        return self._commit(Operation.INSERT_AT_SEAM, outcome)

    def insert_at_container_edge(self, side: Edge, size: Optional[float] = None) -> DecisionResult:
        outcome = insert_at_container_edge(self._tiling, self._env(), side, size)
        return self._commit(Operation.INSERT_AT_EDGE, outcome)

    def validate(self) -> DecisionResult:
        return self._engine.check(Operation.VALIDATE, self._tiling, self._config)

    # ─── Clamp queries ──────────────────────────────────────────────────────

    def clamp_resize(self, tile_id: str, edge: Edge, delta: float = 0.0) -> SeamClampResult:
        """Clamp a tile-edge move against the current tiling without committing."""
        if tile_id not in self._tiling:
            return SeamClampResult(0.0, 0.0, 0.0, False)
        seam_id = resolve_edge_to_seam_id(self._tiling, tile_id, edge, self._config.epsilon)
        if seam_id is None:
            return SeamClampResult(0.0, 0.0, 0.0, False)
        return self._strategies.resize.clamp(self._tiling, seam_id, delta, self._config)

    def clamp_seam(self, seam_id: str, delta: float, span: Optional[Interval] = None) -> SeamClampResult:
        return self._strategies.resize.clamp(self._tiling, seam_id, delta, self._config, span)

    def seam_range(self, seam_id: str, span: Optional[Interval] = None) -> Tuple[float, float]:
        clamp = self.clamp_seam(seam_id, 0.0, span)
        return clamp.min, clamp.max

    # ─── Tile attributes ────────────────────────────────────────────────────

    def update_tile(
        self,
        tile_id: str,
        *,
        meta: Optional[Mapping[str, object]] = None,
        locked: Optional[bool] = None,
        constraints: Optional[TileConstraints] = None,
        replace_meta: bool = False,
    ) -> Tile:
        """Change non-geometric tile attributes; ``meta`` is merged unless ``replace_meta``.

        Raises:
            TileNotFoundError: if ``tile_id`` is not in the tiling.
        """
        tile = self._tiling.get(tile_id)
        if tile is None:
            raise TileNotFoundError(tile_id)
        patch = {}
        if meta is not None:
            patch["meta"] = dict(meta) if replace_meta else {**tile.meta, **meta}
        if locked is not None:
            patch["locked"] = locked
        if constraints is not None:
            patch["constraints"] = constraints
        if not patch:
            return tile
        updated = tile.with_changes(**patch)
        self._tiling = self._tiling.with_tiles([updated if t.id == tile_id else t for t in self._tiling])
        self.record_history()
        return updated

    def set_groups(self, groups: Mapping[str, Iterable[str]]) -> None:
        self._tiling = self._tiling.with_groups(groups)
        self.record_history()

    # ─── Configuration ──────────────────────────────────────────────────────

    @staticmethod
    def _resolve_config(config: ConfigInput, base: TilingConfig) -> TilingConfig:
        if config is None:
            return base
        if isinstance(config, TilingConfig):
            return config
        return create_config(config, base=base)

    def preview_config(self, config: ConfigInput) -> AutoAdjustResult:
        """What ``set_config`` would do, without changing anything."""
        return auto_adjust_layout(self._tiling, self._resolve_config(config, self._config))

    def set_config(self, config: ConfigInput) -> AutoAdjustResult:
        """Adopt a new configuration, repairing the tiling first if needed.

        When the repair fails, neither the configuration nor the tiling changes.
        """
        resolved = self._resolve_config(config, self._config)
        result = auto_adjust_layout(self._tiling, resolved)
        if not result.success:
            return result
        self._config = resolved
        if result.tiling is not self._tiling:
            self._tiling = result.tiling
            self.record_history()
        logger.info("Configuration updated (%d tile(s) adjusted)", len(result.adjusted_tiles))
        return result

    # ─── Snapshots ──────────────────────────────────────────────────────────

    def create_snapshot(self, include_settings: bool = False, include_constraints: bool = False) -> dict:
        return dump_snapshot(self._tiling, self._config, include_settings, include_constraints)

    def restore_snapshot(self, payload: Mapping[str, object], record: bool = False) -> LoadedSnapshot:
        """Load a snapshot; v2 settings replace the current configuration."""
        loaded = load_snapshot(payload, base_config=self._config)
        if loaded.config is not None:
            self._config = loaded.config
        self._tiling = loaded.tiling
        self._sync_id_sequence()
        if record:
            self.record_history()
        return loaded
