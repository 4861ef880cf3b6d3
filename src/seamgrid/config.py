"""
Configuration for the tiling core.

The configuration is an immutable value passed explicitly to every decision
evaluation and algorithm call. Partial payloads (plain dicts, e.g. from a
snapshot's ``settings``) are deep-merged over the defaults after validation.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional

from seamgrid.contracts import Edge, TileConstraints
from seamgrid.errors import ConfigError
from seamgrid.geometry import CONTAINER_SIZE, EPSILON

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinTile:
    width: float = 5.0
    height: float = 5.0


@dataclass(frozen=True)
class TileDefaults:
    """Defaults applied to tiles without their own constraint overrides."""

    min_width: Optional[float] = None
    min_height: Optional[float] = None
    max_width: float = CONTAINER_SIZE
    max_height: float = CONTAINER_SIZE
    aspect_ratio: Optional[float] = None


@dataclass(frozen=True)
class TilingConfig:
    min_tile: MinTile = field(default_factory=MinTile)
    max_tiles: Optional[int] = None
    epsilon: float = EPSILON
    snap_grid: Optional[float] = None
    tile_defaults: TileDefaults = field(default_factory=TileDefaults)
    tile_constraints: Mapping[str, TileConstraints] = field(default_factory=dict)

    def with_changes(self, **changes) -> "TilingConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, object]:
        return {
            "min_tile": {"width": self.min_tile.width, "height": self.min_tile.height},
            "max_tiles": self.max_tiles,
            "epsilon": self.epsilon,
            "snap_grid": self.snap_grid,
            "tile_defaults": {
                "min_width": self.tile_defaults.min_width,
                "min_height": self.tile_defaults.min_height,
                "max_width": self.tile_defaults.max_width,
                "max_height": self.tile_defaults.max_height,
                "aspect_ratio": self.tile_defaults.aspect_ratio,
            },
            "tile_constraints": {
                tile_id: constraints.to_dict()
                for tile_id, constraints in sorted(self.tile_constraints.items())
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "TilingConfig":
        """Build from a complete payload (use ``create_config`` for partial ones)."""
        min_tile = payload["min_tile"]
        defaults = payload["tile_defaults"]
        max_tiles = payload.get("max_tiles")
        snap_grid = payload.get("snap_grid")
        return cls(
            min_tile=MinTile(width=float(min_tile["width"]), height=float(min_tile["height"])),
            max_tiles=None if max_tiles is None else int(max_tiles),
            epsilon=float(payload["epsilon"]),
            snap_grid=None if snap_grid is None else float(snap_grid),
            tile_defaults=TileDefaults(
                min_width=_optional_float(defaults.get("min_width")),
                min_height=_optional_float(defaults.get("min_height")),
                max_width=float(defaults.get("max_width", CONTAINER_SIZE)),
                max_height=float(defaults.get("max_height", CONTAINER_SIZE)),
                aspect_ratio=_optional_float(defaults.get("aspect_ratio")),
            ),
            tile_constraints={
                tile_id: TileConstraints.from_dict(value)
                for tile_id, value in (payload.get("tile_constraints") or {}).items()
            },
        )


DEFAULT_CONFIG = TilingConfig()


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


@dataclass(frozen=True)
class EffectiveConstraints:
    """Resolved limits for one tile."""

    min_width: float
    min_height: float
    max_width: float
    max_height: float
    aspect_ratio: Optional[float] = None
    locked_edges: frozenset = frozenset()


def effective_constraints(
    tile,
    config: TilingConfig = DEFAULT_CONFIG,
    overrides: Optional[Mapping[str, TileConstraints]] = None,
) -> EffectiveConstraints:
    """Resolve a tile's limits.

    Precedence per field: ``overrides[tile.id]``, then
    ``config.tile_constraints[tile.id]``, then ``tile.constraints``, then
    ``config.tile_defaults``, then ``config.min_tile`` for the minimums.
    Pass ``tile=None`` for the limits of a freshly created tile.
    """
    layered = TileConstraints()
    if tile is not None:
        layered = layered.merged_with(tile.constraints)
        layered = layered.merged_with(config.tile_constraints.get(tile.id))
        if overrides:
            layered = layered.merged_with(overrides.get(tile.id))
    defaults = config.tile_defaults

    def pick(override, default, fallback: float) -> float:
        for value in (override, default):
            if value is not None:
                return float(value)
        return float(fallback)

    return EffectiveConstraints(
        min_width=pick(layered.min_width, defaults.min_width, config.min_tile.width),
        min_height=pick(layered.min_height, defaults.min_height, config.min_tile.height),
        max_width=pick(layered.max_width, defaults.max_width, CONTAINER_SIZE),
        max_height=pick(layered.max_height, defaults.max_height, CONTAINER_SIZE),
        aspect_ratio=layered.aspect_ratio if layered.aspect_ratio is not None else defaults.aspect_ratio,
        locked_edges=layered.locked_edges,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigIssue:
    path: str
    message: str
    value: object = None


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _check_percentage(issues: List[ConfigIssue], path: str, value, allow_none: bool = True) -> None:
    if value is None and allow_none:
        return
    if not _is_number(value) or value < 0 or value > CONTAINER_SIZE:
        issues.append(ConfigIssue(path, f"{path} must be a number between 0 and 100", value))


def validate_tile_constraints(payload: Mapping[str, object], path: str = "") -> List[ConfigIssue]:
    """Validate one constraint-override dict (snake_case keys)."""
    prefix = f"{path}." if path else ""
    issues: List[ConfigIssue] = []
    if not isinstance(payload, Mapping):
        return [ConfigIssue(path or "constraints", "constraints must be an object", payload)]

    for key in ("min_width", "min_height", "max_width", "max_height"):
        if key in payload:
            _check_percentage(issues, f"{prefix}{key}", payload[key])

    for axis in ("width", "height"):
        low, high = payload.get(f"min_{axis}"), payload.get(f"max_{axis}")
        if _is_number(low) and _is_number(high) and low > high:
            issues.append(
                ConfigIssue(
                    f"{prefix}min_{axis}",
                    f"min_{axis} cannot be greater than max_{axis}",
                    low,
                )
            )

    if "aspect_ratio" in payload:
        ratio = payload["aspect_ratio"]
        if ratio is not None and (not _is_number(ratio) or ratio <= 0):
            issues.append(
                ConfigIssue(
                    f"{prefix}aspect_ratio", "aspect_ratio must be a positive number or null", ratio
                )
            )

    if "locked_edges" in payload:
        edges = payload["locked_edges"]
        valid = {edge.value for edge in Edge}
        if not isinstance(edges, (list, tuple, set, frozenset)):
            issues.append(ConfigIssue(f"{prefix}locked_edges", "locked_edges must be a list", edges))
        else:
            for edge in edges:
                value = edge.value if isinstance(edge, Edge) else edge
                if value not in valid:
                    issues.append(
                        ConfigIssue(
                            f"{prefix}locked_edges",
                            "locked_edges entries must be one of: top, bottom, left, right",
                            edge,
                        )
                    )
    return issues


def validate_config(payload: Mapping[str, object]) -> List[ConfigIssue]:
    """Validate a (possibly partial) configuration dict.

    Only keys present in ``payload`` are checked; unknown keys are ignored so
    that settings written by newer versions still load.
    """
    issues: List[ConfigIssue] = []
    if not isinstance(payload, Mapping):
        return [ConfigIssue("", "configuration must be an object", payload)]

    if "min_tile" in payload:
        min_tile = payload["min_tile"]
        if not isinstance(min_tile, Mapping):
            issues.append(ConfigIssue("min_tile", "min_tile must be an object", min_tile))
        else:
            for axis in ("width", "height"):
                if axis not in min_tile:
                    continue
                value = min_tile[axis]
                if not _is_number(value) or value <= 0 or value > CONTAINER_SIZE:
                    issues.append(
                        ConfigIssue(
                            f"min_tile.{axis}",
                            f"min_tile.{axis} must be a positive number <= 100",
                            value,
                        )
                    )

    if "max_tiles" in payload:
        value = payload["max_tiles"]
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
            issues.append(ConfigIssue("max_tiles", "max_tiles must be a positive integer", value))

    if "epsilon" in payload:
        value = payload["epsilon"]
        if not _is_number(value) or value <= 0:
            issues.append(ConfigIssue("epsilon", "epsilon must be a positive number", value))

    if "snap_grid" in payload:
        value = payload["snap_grid"]
        if value is not None and (not _is_number(value) or value <= 0 or value > CONTAINER_SIZE):
            issues.append(
                ConfigIssue("snap_grid", "snap_grid must be a positive number <= 100 or null", value)
            )

    if "tile_defaults" in payload:
        defaults = payload["tile_defaults"]
        issues.extend(validate_tile_constraints(defaults, "tile_defaults"))
        if isinstance(defaults, Mapping) and "locked_edges" in defaults:
            issues.append(
                ConfigIssue(
                    "tile_defaults.locked_edges",
                    "locked_edges can only be set per tile",
                    defaults["locked_edges"],
                )
            )

    if "tile_constraints" in payload:
        per_tile = payload["tile_constraints"]
        if not isinstance(per_tile, Mapping):
            issues.append(
                ConfigIssue("tile_constraints", "tile_constraints must be an object", per_tile)
            )
        else:
            for tile_id, constraints in per_tile.items():
                issues.extend(validate_tile_constraints(constraints, f"tile_constraints.{tile_id}"))

    return issues


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def deep_merge(base: Mapping[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def create_config(
    partial: Optional[Mapping[str, object]] = None,
    base: TilingConfig = DEFAULT_CONFIG,
) -> TilingConfig:
    """Validate ``partial`` and deep-merge it over ``base``.

    Raises:
        ConfigError: if any present key holds an invalid value.
    """
    if not partial:
        return base
    issues = validate_config(partial)
    if issues:
        raise ConfigError(issues)
    merged = deep_merge(base.to_dict(), partial)
    known = set(DEFAULT_CONFIG.to_dict())
    unknown = sorted(set(merged) - known)
    if unknown:
        logger.debug("Ignoring unknown config keys: %s", ", ".join(unknown))
    config = TilingConfig.from_dict({k: v for k, v in merged.items() if k in known})

    # A merged min can still end up above a merged max
    cross_issues = validate_tile_constraints(merged["tile_defaults"], "tile_defaults")
    if cross_issues:
        raise ConfigError(cross_issues)
    return config
