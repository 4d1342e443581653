"""
Snapshot helpers for canonical orchestrator error payloads.

Snapshots are a *minimum contract*: every key present in the snapshot must
exist in the runtime payload with the same value; extra keys are allowed.
Dict keys are normalized (sorted) so snapshot files stay diff-friendly.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

SNAPSHOT_DIR = Path(__file__).parent / "snapshots"

REQUIRED_FIELDS = ("type", "message", "details", "hint", "decision_required")


def _normalize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _normalize(obj[k]) for k in sorted(obj.keys())}
    if isinstance(obj, (list, tuple)):
        return [_normalize(v) for v in obj]
    return obj


def _load_snapshot(snapshot_name: str) -> Dict[str, Any]:
    path = SNAPSHOT_DIR / snapshot_name
    if not path.exists():
        raise AssertionError(f"Snapshot not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _save_snapshot(snapshot_name: str, data: Dict[str, Any]) -> None:
    SNAPSHOT_DIR.mkdir(parents=True, exist_ok=True)
    path = SNAPSHOT_DIR / snapshot_name
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)


def _assert_subset(expected: Any, actual: Any, path: str = "$") -> None:
    """Assert that `expected` is a subset of `actual` (recursive)."""
    if isinstance(expected, dict):
        assert isinstance(actual, dict), f"{path}: expected dict, got {type(actual)}"
        for k, v in expected.items():
            assert k in actual, f"{path}: missing key '{k}'"
            _assert_subset(v, actual[k], f"{path}.{k}")
        return

    if isinstance(expected, list):
        assert isinstance(actual, list), f"{path}: expected list, got {type(actual)}"
        assert len(actual) == len(expected), f"{path}: expected list len {len(expected)}, got {len(actual)}"
        for i, v in enumerate(expected):
            _assert_subset(v, actual[i], f"{path}[{i}]")
        return

    assert expected == actual, f"{path}: expected {expected!r}, got {actual!r}"


def assert_error_snapshot(snapshot_name: str, error_payload: Dict[str, Any], *, update: bool = False) -> None:
    """Assert that an error payload matches a stored snapshot (minimum contract)."""
    assert isinstance(error_payload, dict), "error_payload must be a dict"
    for field in REQUIRED_FIELDS:
        assert field in error_payload, f"Missing required error field: {field}"
    json.dumps(error_payload)

    normalized_actual = _normalize(error_payload)

    if update:
        _save_snapshot(snapshot_name, normalized_actual)
        return

    _assert_subset(_normalize(_load_snapshot(snapshot_name)), normalized_actual, "$error")
