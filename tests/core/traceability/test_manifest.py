# tests/core/traceability/test_manifest.py
"""
Testes do Manifest de run.

Os testes asseguram que:
- a criação registra run_id, versão e hash da configuração
- o estado por objeto evolui de `running` para o status final
- o Event Log preserva a ordem de chamada
- a persistência JSON é um round-trip sem perdas
"""

from datetime import datetime, timedelta, timezone

import pytest

try:
    from etlv_orchestrator.core.traceability.manifest import (
        RunManifest,
        add_event,
        create_manifest,
        iso,
        load_manifest,
        ms_between,
        object_failed,
        object_finished,
        object_started,
        run_finished,
        save_manifest,
    )
except Exception as e:  # noqa: BLE001
    RunManifest = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


T0 = datetime(2026, 1, 16, 12, 0, 0, tzinfo=timezone.utc)


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing traceability manifest. Implement:\n"
            "- src/etlv_orchestrator/core/traceability/manifest.py\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _manifest():
    return create_manifest(run_id="run-test-001", started_at=T0, version="0.1.0", config_hash="a" * 64)


def test_create_manifest():
    _require_imports()
    m = _manifest()
    assert m.run == {"run_id": "run-test-001", "started_at": "2026-01-16T12:00:00+00:00", "version": "0.1.0"}
    assert m.inputs == {"config_hash": "a" * 64}
    assert m.objects == {}
    assert m.events == []


def test_object_lifecycle_updates_state_and_events():
    _require_imports()
    m = _manifest()
    object_started(m, object_id="GL_BALANCE", ts=T0, wave=1)
    assert m.objects["GL_BALANCE"]["status"] == "running"
    assert m.objects["GL_BALANCE"]["wave"] == 1

    result = {
        "object_id": "GL_BALANCE",
        "status": "completed_with_errors",
        "phases": {"load": {"status": "errors", "record_count": 4}},
        "stats": {"duration_ms": 250},
    }
    object_finished(m, object_id="GL_BALANCE", ts=T0 + timedelta(seconds=1), result=result)

    entry = m.objects["GL_BALANCE"]
    assert entry["status"] == "completed_with_errors"
    assert entry["duration_ms"] == 250
    assert entry["phases"] == {"load": {"status": "errors", "record_count": 4}}
    assert [e["event_type"] for e in m.events] == ["object_started", "object_finished"]
    assert m.events[1]["payload"] == {"status": "completed_with_errors", "duration_ms": 250}


def test_object_finished_without_duration_uses_started_at():
    _require_imports()
    m = _manifest()
    object_started(m, object_id="A", ts=T0)
    object_finished(m, object_id="A", ts=T0 + timedelta(milliseconds=1500), result={"status": "completed"})
    assert m.objects["A"]["duration_ms"] == 1500


def test_object_failed_records_error():
    _require_imports()
    m = _manifest()
    error = {"type": "ERR_PHASE_FATAL", "message": "Gateway inacessível", "details": {"phase": "extract"}}
    object_failed(m, object_id="A", ts=T0, error=error)

    assert m.objects["A"]["status"] == "error"
    assert m.objects["A"]["error"] == error
    assert m.events[-1]["event_type"] == "object_failed"


def test_run_finished_closes_run():
    _require_imports()
    m = _manifest()
    run_finished(m, ts=T0 + timedelta(seconds=3), stats={"total": 2, "completed": 2, "failed": 0})
    assert m.run["finished_at"] == "2026-01-16T12:00:03+00:00"
    assert m.run["stats"]["total"] == 2
    assert m.events[-1] == {
        "event_type": "run_finished",
        "timestamp": "2026-01-16T12:00:03+00:00",
        "payload": {"total": 2},
    }


def test_add_event_without_object_or_payload():
    _require_imports()
    m = _manifest()
    add_event(m, event_type="run_planned", ts=T0)
    assert m.events == [{"event_type": "run_planned", "timestamp": "2026-01-16T12:00:00+00:00"}]


def test_round_trip(tmp_path):
    _require_imports()
    m = _manifest()
    object_started(m, object_id="A", ts=T0, wave=0)
    object_finished(m, object_id="A", ts=T0, result={"status": "completed", "stats": {"duration_ms": 1}})
    run_finished(m, ts=T0, stats={"total": 1})

    path = tmp_path / "nested" / "manifest.json"
    save_manifest(m, path)
    loaded = load_manifest(path)

    assert isinstance(loaded, RunManifest)
    assert loaded.to_dict() == m.to_dict()


def test_time_helpers_treat_naive_as_utc():
    _require_imports()
    naive = datetime(2026, 1, 16, 12, 0, 0)
    assert iso(naive) == "2026-01-16T12:00:00+00:00"
    assert ms_between(T0, naive) == 0
    assert ms_between(T0 + timedelta(seconds=1), T0) == 0
