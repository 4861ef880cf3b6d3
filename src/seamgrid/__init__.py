"""Public API for seam-aware tiling of a square container."""

from seamgrid.auto_adjust import AutoAdjustResult, auto_adjust_layout
from seamgrid.config import DEFAULT_CONFIG, TilingConfig, create_config, effective_constraints
from seamgrid.contracts import (
    DecisionResult,
    Edge,
    Operation,
    Orientation,
    Seam,
    SeamClampResult,
    TileConstraints,
    Violation,
)
from seamgrid.model import TilingModel
from seamgrid.snapshot import dump_snapshot, load_snapshot
from seamgrid.tiling import Tile, Tiling

__all__ = [
    "AutoAdjustResult",
    "DEFAULT_CONFIG",
    "DecisionResult",
    "Edge",
    "Operation",
    "Orientation",
    "Seam",
    "SeamClampResult",
    "Tile",
    "TileConstraints",
    "Tiling",
    "TilingConfig",
    "TilingModel",
    "Violation",
    "auto_adjust_layout",
    "create_config",
    "dump_snapshot",
    "effective_constraints",
    "load_snapshot",
]
