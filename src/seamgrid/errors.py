"""Structural errors raised by the tiling core.

These signal caller bugs or corrupted snapshots. Expected business-rule
rejections are never raised; they come back as ``Violation`` values inside a
``DecisionResult``.
"""

from __future__ import annotations

from typing import Dict, List, Optional

# Error codes
TILE_INVALID_COORDINATES = "TILE_INVALID_COORDINATES"
TILE_INVALID_DIMENSIONS = "TILE_INVALID_DIMENSIONS"
TILE_OUT_OF_BOUNDS = "TILE_OUT_OF_BOUNDS"
TILE_NOT_FOUND = "TILE_NOT_FOUND"
TILE_OVERLAP = "TILE_OVERLAP"
STATE_EMPTY = "STATE_EMPTY"
STATE_DUPLICATE_ID = "STATE_DUPLICATE_ID"
STATE_COVERAGE_GAP = "STATE_COVERAGE_GAP"
STATE_INVALID_GROUP = "STATE_INVALID_GROUP"
CONFIG_INVALID = "CONFIG_INVALID"
SNAPSHOT_INVALID = "SNAPSHOT_INVALID"
STRATEGY_NOT_FOUND = "STRATEGY_NOT_FOUND"
GRAPH_NOT_FOUND = "GRAPH_NOT_FOUND"


class SeamgridError(Exception):
    """Base class for every error raised by the package."""

    def __init__(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, object]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = dict(context or {})

    def to_dict(self) -> Dict[str, object]:
        return {"code": self.code, "message": self.message, "context": self.context}


class TileValidationError(SeamgridError, ValueError):
    """A tile record is malformed (non-finite, non-positive or out of bounds)."""


class StateValidationError(SeamgridError, ValueError):
    """A set of tiles does not form a perfect partition of the container."""


class TileNotFoundError(SeamgridError, LookupError):
    def __init__(self, tile_id: str):
        super().__init__(TILE_NOT_FOUND, f"Tile {tile_id} not found", {"tile_id": tile_id})


class ConfigError(SeamgridError, ValueError):
    """Configuration payload failed validation; ``issues`` lists every problem."""

    def __init__(self, issues: List[object]):
        summary = "; ".join(f"{issue.path}: {issue.message}" for issue in issues)
        super().__init__(
            CONFIG_INVALID,
            f"Invalid configuration: {summary}",
            {"issue_count": len(issues)},
        )
        self.issues = list(issues)


class SnapshotError(SeamgridError, ValueError):
    def __init__(self, message: str, context: Optional[Dict[str, object]] = None):
        super().__init__(SNAPSHOT_INVALID, message, context)


class StrategyNotFoundError(SeamgridError, LookupError):
    def __init__(self, kind: str, key: str, available: List[str]):
        super().__init__(
            STRATEGY_NOT_FOUND,
            f"Unknown {kind} strategy '{key}' (available: {', '.join(sorted(available))})",
            {"kind": kind, "key": key},
        )


class GraphNotFoundError(SeamgridError, LookupError):
    def __init__(self, operation: str):
        super().__init__(
            GRAPH_NOT_FOUND,
            f"No decision graph registered for operation '{operation}'",
            {"operation": operation},
        )
