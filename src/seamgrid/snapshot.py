"""
Snapshot format.

Version 1::

    {"version": 1, "tiles": [{"id", "x", "y", "width", "height", "locked", "meta"}]}

Version 2 adds per-tile ``constraints``, a ``settings`` dict (a partial
configuration, deep-merged over the defaults on load) and ``groups``.
The loader detects the version and fills missing tile fields with defaults.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from seamgrid.config import DEFAULT_CONFIG, TilingConfig, create_config, validate_tile_constraints
from seamgrid.contracts import TileConstraints
from seamgrid.errors import SnapshotError
from seamgrid.tiling import Tile, Tiling

logger = logging.getLogger(__name__)

LATEST_VERSION = 2
_V2_KEYS = ("settings", "groups")


@dataclass(frozen=True)
class LoadedSnapshot:
    version: int
    tiling: Tiling
    config: Optional[TilingConfig] = None


def canonical_json(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def snapshot_sha256(payload: Mapping[str, Any]) -> str:
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Dump
# ---------------------------------------------------------------------------


def dump_snapshot(
    tiling: Tiling,
    config: Optional[TilingConfig] = None,
    include_settings: bool = False,
    include_constraints: bool = False,
) -> Dict[str, Any]:
    """Serialise a tiling; any v2 extra bumps the version to 2."""
    version = 2 if (include_settings or include_constraints) else 1
    tiles: List[Dict[str, Any]] = []
    for tile in tiling:
        entry = {
            "id": tile.id,
            "x": tile.x,
            "y": tile.y,
            "width": tile.width,
            "height": tile.height,
            "locked": tile.locked,
            "meta": dict(tile.meta),
        }
        if include_constraints and tile.constraints is not None:
            entry["constraints"] = tile.constraints.to_dict()
        tiles.append(entry)

    payload: Dict[str, Any] = {"version": version, "tiles": tiles}
    if include_settings:
        payload["settings"] = (config or DEFAULT_CONFIG).to_dict()
    if version == 2 and tiling.groups:
        payload["groups"] = {name: sorted(members) for name, members in sorted(tiling.groups.items())}
    return payload


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def detect_version(payload: Mapping[str, Any]) -> int:
    version = payload.get("version")
    if version is not None:
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise SnapshotError(f"Unsupported snapshot version {version!r}", {"version": version})
        if version > LATEST_VERSION:
            logger.warning("Snapshot version %d is newer than %d; loading as %d", version, LATEST_VERSION, LATEST_VERSION)
            return LATEST_VERSION
        return version
    tiles = payload.get("tiles") or []
    if any(key in payload for key in _V2_KEYS):
        return 2
    if any(isinstance(t, Mapping) and "constraints" in t for t in tiles):
        return 2
    return 1


def _tile_from_entry(entry: Any, index: int, version: int) -> Tile:
    if not isinstance(entry, Mapping):
        raise SnapshotError(f"tiles[{index}] must be an object", {"index": index})
    missing = [key for key in ("id", "x", "y", "width", "height") if key not in entry]
    if missing:
        raise SnapshotError(
            f"tiles[{index}] is missing {', '.join(missing)}", {"index": index, "missing": missing}
        )

    constraints = None
    if version >= 2 and entry.get("constraints") is not None:
        issues = validate_tile_constraints(entry["constraints"], f"tiles[{index}].constraints")
        if issues:
            raise SnapshotError(
                "; ".join(f"{issue.path}: {issue.message}" for issue in issues),
                {"index": index},
            )
        constraints = TileConstraints.from_dict(entry["constraints"])

    return Tile(
        id=str(entry["id"]),
        x=entry["x"],
        y=entry["y"],
        width=entry["width"],
        height=entry["height"],
        locked=bool(entry.get("locked", False)),
        meta=dict(entry.get("meta") or {}),
        constraints=constraints,
    )


def _check_groups(groups: Any, tile_ids: Set[str]) -> None:
    if not isinstance(groups, Mapping):
        raise SnapshotError("'groups' must map group names to lists of tile ids")
    for name, members in groups.items():
        if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
            raise SnapshotError(f"groups.{name} must be a list of tile ids")
        for member in members:
            if member not in tile_ids:
                raise SnapshotError(f"groups.{name} references unknown tile id {member}")


def load_snapshot(payload: Mapping[str, Any], base_config: TilingConfig = DEFAULT_CONFIG) -> LoadedSnapshot:
    """Rebuild a tiling (and config, for v2 settings) from a snapshot payload.

    Raises:
        SnapshotError: malformed payload.
        ConfigError: invalid ``settings``.
        TileValidationError, StateValidationError: tiles that do not form a
            valid partition.
    """
    if not isinstance(payload, Mapping):
        raise SnapshotError("Snapshot must be an object")
    tiles = payload.get("tiles")
    if not isinstance(tiles, list) or not tiles:
        raise SnapshotError("Snapshot must contain a non-empty 'tiles' list")

    version = detect_version(payload)
    config: Optional[TilingConfig] = None
    if version >= 2 and payload.get("settings"):
        config = create_config(payload["settings"], base=base_config)

    parsed = [_tile_from_entry(entry, i, version) for i, entry in enumerate(tiles)]
    groups = payload.get("groups") if version >= 2 else None
    if groups is not None:
        _check_groups(groups, {tile.id for tile in parsed})

    tiling = Tiling(
        parsed,
        groups=groups,
        epsilon=(config or base_config).epsilon,
    )
    logger.debug("Loaded v%d snapshot with %d tile(s)", version, len(tiling))
    return LoadedSnapshot(version=version, tiling=tiling, config=config)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def read_snapshot(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"{path} is not valid JSON: {exc}", {"path": str(path)}) from exc


def write_snapshot(path: Union[str, Path], payload: Mapping[str, Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    return path
