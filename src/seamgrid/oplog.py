"""Append-only operation log with per-entry hash chaining."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from seamgrid.contracts import DecisionResult
from seamgrid.snapshot import canonical_json

GENESIS_HASH = "0" * 64


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _jsonable(value):
    if hasattr(value, "value") and isinstance(value.value, str):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


class OperationLog:
    """JSONL writer: one line per operation, each hashing the previous one."""

    def __init__(self, path: Union[str, Path], session_id: str = "session"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.session_id = session_id
        self._sequence = 0
        self._prev_hash = GENESIS_HASH
        self._entries: List[Dict[str, object]] = []

    @property
    def final_hash(self) -> str:
        return self._prev_hash

    @property
    def entries(self) -> List[Dict[str, object]]:
        return list(self._entries)

    def append(
        self,
        *,
        op: str,
        params: Mapping[str, object],
        result: DecisionResult,
        tile_count: int,
        snapshot_sha256: Optional[str] = None,
    ) -> Dict[str, object]:
        self._sequence += 1
        payload: Dict[str, object] = {
            "schema_version": "seamgrid.oplog.v1",
            "session_id": self.session_id,
            "seq": self._sequence,
            "timestamp_utc": _utc_now_iso(),
            "op": op,
            "params": _jsonable(dict(params)),
            "valid": result.valid,
            "violation_codes": list(result.codes),
            "new_tile_id": result.new_tile_id,
            "tile_count": int(tile_count),
            "snapshot_sha256": snapshot_sha256,
            "previous_hash": self._prev_hash,
        }
        digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
        payload["hash"] = digest

        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, sort_keys=True) + "\n")

        self._entries.append(payload)
        self._prev_hash = digest
        return payload


def verify_chain(path: Union[str, Path]) -> bool:
    """Recompute every hash in a log file and check the links."""
    prev_hash = GENESIS_HASH
    with Path(path).open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            record = json.loads(line)
            if record.get("previous_hash") != prev_hash:
                return False
            body = {k: v for k, v in record.items() if k != "hash"}
            digest = hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()
            if digest != record.get("hash"):
                return False
            prev_hash = digest
    return True
