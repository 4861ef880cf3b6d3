from __future__ import annotations

import hashlib
import json
from pathlib import Path

from seamgrid.contracts import DecisionResult, Edge, Orientation, Violation
from seamgrid.oplog import GENESIS_HASH, OperationLog, verify_chain


def _canonical(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _write_two_entries(path: Path) -> OperationLog:
    log = OperationLog(path, session_id="case")
    log.append(
        op="split",
        params={"tile_id": "tile-0", "orientation": Orientation.VERTICAL, "ratio": 0.5},
        result=DecisionResult.ok("tile-1"),
        tile_count=2,
        snapshot_sha256="ab" * 32,
    )
    log.append(
        op="resize",
        params={"tile_id": "tile-0", "edge": Edge.LEFT, "delta": 5.0},
        result=DecisionResult.rejected(Violation("SeamNotCovered", "not covered")),
        tile_count=2,
    )
    return log


def test_oplog_hash_chain(tmp_path: Path):
    path = tmp_path / "logs" / "ops.jsonl"
    log = _write_two_entries(path)

    records = [
        json.loads(line)
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    assert [record["seq"] for record in records] == [1, 2]
    assert records[0]["params"]["orientation"] == "vertical"
    assert records[0]["new_tile_id"] == "tile-1"
    assert records[1]["valid"] is False
    assert records[1]["violation_codes"] == ["SeamNotCovered"]

    prev_hash = GENESIS_HASH
    for record in records:
        assert record["previous_hash"] == prev_hash
        payload = {k: v for k, v in record.items() if k != "hash"}
        digest = hashlib.sha256(_canonical(payload).encode("utf-8")).hexdigest()
        assert digest == record["hash"]
        prev_hash = digest

    assert log.final_hash == prev_hash
    assert len(log.entries) == 2
    assert verify_chain(path)


def test_oplog_tampering_breaks_chain(tmp_path: Path):
    path = tmp_path / "ops.jsonl"
    _write_two_entries(path)

    lines = path.read_text(encoding="utf-8").splitlines()
    first = json.loads(lines[0])
    first["tile_count"] = 99
    lines[0] = json.dumps(first, sort_keys=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert not verify_chain(path)
