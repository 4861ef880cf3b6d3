#!/usr/bin/env python3
"""Apply a sequence of tiling operations to a snapshot and write the result."""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import Callable, Dict, List, Tuple

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from seamgrid import DecisionResult, Edge, Orientation, TilingModel
from seamgrid.errors import SeamgridError
from seamgrid.oplog import OperationLog
from seamgrid.snapshot import read_snapshot, snapshot_sha256, write_snapshot

logger = logging.getLogger("edit_layout")

OP_USAGE = {
    "split": "split ID ORIENTATION [RATIO]",
    "delete": "delete ID",
    "insert": "insert ID SIDE [SIZE]",
    "resize": "resize ID EDGE DELTA",
    "seam": "seam SEAM_ID DELTA",
}

ParsedOp = Tuple[str, Dict[str, object], Callable[[TilingModel], DecisionResult]]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Edit a 100x100 tiling with split/delete/insert/resize operations"
    )
    parser.add_argument(
        "--snapshot", default=None, help="Input snapshot JSON (default: one full tile)"
    )
    parser.add_argument(
        "--op",
        action="append",
        default=[],
        help="Operation to apply, repeatable. One of: " + "; ".join(OP_USAGE.values()),
    )
    parser.add_argument("--min-width", type=float, default=None, help="Minimum tile width (%%)")
    parser.add_argument("--min-height", type=float, default=None, help="Minimum tile height (%%)")
    parser.add_argument("--max-tiles", type=int, default=None, help="Maximum number of tiles")
    parser.add_argument("--out", default=None, help="Write the resulting snapshot here")
    parser.add_argument("--log", default=None, help="Append a hash-chained operation log here")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def _expect(tokens: List[str], low: int, high: int) -> None:
    if not low <= len(tokens) - 1 <= high:
        raise ValueError(f"Usage: {OP_USAGE[tokens[0]]}")


def parse_op(text: str) -> ParsedOp:
    """Turn ``"split tile-0 vertical 0.5"`` into (name, params, call)."""
    tokens = shlex.split(text)
    if not tokens or tokens[0] not in OP_USAGE:
        raise ValueError(f"Unknown operation {text!r}; expected one of {', '.join(OP_USAGE)}")
    name = tokens[0]

    if name == "split":
        _expect(tokens, 2, 3)
        tile_id, orientation = tokens[1], Orientation(tokens[2])
        ratio = float(tokens[3]) if len(tokens) > 3 else None
        params = {"tile_id": tile_id, "orientation": orientation, "ratio": ratio}
        return name, params, lambda m: m.split_tile(tile_id, orientation, ratio)
    if name == "delete":
        _expect(tokens, 1, 1)
        tile_id = tokens[1]
        return name, {"tile_id": tile_id}, lambda m: m.delete_tile(tile_id)
    if name == "insert":
        _expect(tokens, 2, 3)
        tile_id, side = tokens[1], Edge(tokens[2])
        size = float(tokens[3]) if len(tokens) > 3 else None
        params = {"tile_id": tile_id, "side": side, "size": size}
        return name, params, lambda m: m.insert_tile(tile_id, side, size)
    if name == "resize":
        _expect(tokens, 3, 3)
        tile_id, edge, delta = tokens[1], Edge(tokens[2]), float(tokens[3])
        params = {"tile_id": tile_id, "edge": edge, "delta": delta}
        return name, params, lambda m: m.resize_tile(tile_id, edge, delta)

    _expect(tokens, 2, 2)
    seam_id, delta = tokens[1], float(tokens[2])
    return "seam:resize", {"seam_id": seam_id, "delta": delta}, lambda m: m.resize_seam(seam_id, delta)


def _config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    partial: Dict[str, object] = {}
    min_tile = {}
    if args.min_width is not None:
        min_tile["width"] = args.min_width
    if args.min_height is not None:
        min_tile["height"] = args.min_height
    if min_tile:
        partial["min_tile"] = min_tile
    if args.max_tiles is not None:
        partial["max_tiles"] = args.max_tiles
    return partial


def _build_summary(model: TilingModel, applied: int, rejected: List[str]) -> str:
    lines = [
        f"Tiles: {len(model.tiling)}",
        f"Seams: {len(model.seams)}",
        f"Operations: {applied} applied, {len(rejected)} rejected",
    ]
    lines.extend(f"  rejected: {entry}" for entry in rejected)
    for tile in model.tiling:
        lines.append(
            f"  {tile.id}: x={tile.x:.3f} y={tile.y:.3f} w={tile.width:.3f} h={tile.height:.3f}"
        )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        ops = [parse_op(text) for text in args.op]
        model = TilingModel()
        if args.snapshot:
            model.restore_snapshot(read_snapshot(args.snapshot))
        overrides = _config_overrides(args)
        if overrides:
            adjusted = model.set_config(overrides)
            if not adjusted.success:
                print(f"ERROR: {adjusted.error}", file=sys.stderr)
                return 2
    except (SeamgridError, ValueError, OSError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    log = OperationLog(args.log) if args.log else None
    applied = 0
    rejected: List[str] = []
    for (name, params, call), text in zip(ops, args.op):
        result = call(model)
        if result.valid:
            applied += 1
        else:
            rejected.append(f"{text} ({', '.join(result.codes)})")
        if log is not None:
            log.append(
                op=name,
                params=params,
                result=result,
                tile_count=len(model.tiling),
                snapshot_sha256=snapshot_sha256(model.create_snapshot()),
            )

    if args.out:
        out_path = write_snapshot(args.out, model.create_snapshot(include_constraints=True))
        logger.info("Wrote %s", out_path)
    if log is not None:
        logger.info("Operation log head: %s", log.final_hash)

    print(_build_summary(model, applied, rejected))
    return 1 if rejected else 0


if __name__ == "__main__":
    raise SystemExit(main())
