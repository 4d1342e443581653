# tests/core/engine/test_runtime.py
"""
Testes do runtime ETLV (um objeto por chamada).

Os testes asseguram que:
- as fases executam na ordem extract → transform → validate → load
- exceções em qualquer fase são fatais, registradas e nunca propagadas
- erros de validação bloqueiam o load salvo opt-in explícito
- warnings nunca bloqueiam o load
- extração vazia encerra o objeto como `completed`
- eventos de um objeto são totalmente ordenados

Invariantes:
    - `phases` sempre contém as quatro fases
    - falha fatal não emite `migration:complete`
"""

import threading

import pytest

try:
    from etlv_orchestrator.core.engine.runtime import ETLVRuntime, run_object
    from etlv_orchestrator.core.pipeline.hooks import merge_dual_roles
    from etlv_orchestrator.core.pipeline.types import ObjectStatus, PhaseStatus
    from etlv_orchestrator.core.progress.bus import ProgressBus
except Exception as e:  # noqa: BLE001
    ETLVRuntime = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing runtime modules. Implement:\n"
            "- src/etlv_orchestrator/core/engine/runtime.py (ETLVRuntime)\n"
            "- src/etlv_orchestrator/core/progress/bus.py (ProgressBus)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _runtime(recording_sink, ctx=None, **kwargs):
    bus = ProgressBus()
    bus.subscribe(recording_sink, direct=True)
    return ETLVRuntime(bus=bus, ctx=ctx, **kwargs)


def test_happy_path_runs_all_phases_in_order(DummyObject, mock_gateway, recording_sink, dummy_ctx):
    _require_imports()
    calls = []
    obj = DummyObject("A", calls=calls)
    gw = mock_gateway(seeded=["A"])

    result = _runtime(recording_sink, dummy_ctx).run(obj, gw)

    assert result.status == ObjectStatus.COMPLETED
    assert calls == [("A", "extract"), ("A", "transform"), ("A", "validate"), ("A", "load")]
    assert list(result.phases) == ["extract", "transform", "validate", "load"]
    assert all(p.status == PhaseStatus.PASSED for p in result.phases.values())
    assert set(result.stats) == {"duration_ms", "started_at", "finished_at"}
    assert result.stats["duration_ms"] >= 0
    assert gw.written["A"] == [{"ID": "1", "NAME": "alpha"}]

    assert recording_sink.types() == [
        "migration:start",
        "migration:progress",
        "migration:progress",
        "migration:progress",
        "migration:progress",
        "migration:complete",
    ]
    assert recording_sink.events[-1].data["status"] == "completed"
    assert dummy_ctx.events_for("A")


def test_event_ids_increase_for_a_single_object(DummyObject, mock_gateway, recording_sink):
    _require_imports()
    _runtime(recording_sink).run(DummyObject("A"), mock_gateway(seeded=["A"]))
    ids = [e.id for e in recording_sink.for_object("A")]
    assert ids == sorted(ids)
    assert len(ids) == len(set(ids))


def test_unreachable_gateway_is_fatal_on_extract(DummyObject, mock_gateway, recording_sink):
    """Gateway inacessível → extract FATAL, objeto `error`, sem `migration:complete`."""
    _require_imports()
    calls = []
    gw = mock_gateway(seeded=["A"], reachable=False)

    result = _runtime(recording_sink).run(DummyObject("A", calls=calls), gw)

    assert result.status == ObjectStatus.ERROR
    assert result.phases["extract"].status == PhaseStatus.FATAL
    assert result.phases["transform"].status == PhaseStatus.SKIPPED
    assert result.phases["load"].status == PhaseStatus.SKIPPED
    assert result.error["type"] == "ERR_PHASE_FATAL"
    assert result.error["details"]["object_id"] == "A"
    assert result.error["details"]["phase"] == "extract"
    assert calls == [("A", "extract")]

    assert recording_sink.types() == ["migration:start", "migration:error"]
    assert recording_sink.events[-1].data["phase"] == "extract"


def test_exception_in_transform_halts_object(DummyObject, mock_gateway):
    _require_imports()
    calls = []
    result = run_object(DummyObject("A", fail_on="transform", calls=calls), mock_gateway(seeded=["A"]))

    assert result.status == ObjectStatus.ERROR
    assert result.phases["extract"].status == PhaseStatus.PASSED
    assert result.phases["transform"].status == PhaseStatus.FATAL
    assert result.error["details"]["exception_class"] == "RuntimeError"
    assert result.error["message"] == "transform boom"
    assert ("A", "load") not in calls


def test_exception_in_load_is_recorded(DummyObject, mock_gateway):
    _require_imports()
    result = run_object(DummyObject("A", fail_on="load"), mock_gateway(seeded=["A"]))
    assert result.status == ObjectStatus.ERROR
    assert result.phases["validate"].status == PhaseStatus.PASSED
    assert result.phases["load"].status == PhaseStatus.FATAL


def test_phase_returning_wrong_type_is_fatal(DummyObject, mock_gateway):
    _require_imports()
    obj = DummyObject("A")
    obj.validate = lambda records: {"status": "passed"}

    result = run_object(obj, mock_gateway(seeded=["A"]))

    assert result.status == ObjectStatus.ERROR
    assert result.phases["validate"].status == PhaseStatus.FATAL
    assert result.error["details"]["exception_class"] == "TypeError"


def test_validation_errors_block_load_by_default(DummyObject, mock_gateway, dummy_ctx):
    _require_imports()
    calls = []
    obj = DummyObject("A", calls=calls, quality_checks={"required": ["MISSING"]})

    result = ETLVRuntime(ctx=dummy_ctx).run(obj, mock_gateway(seeded=["A"]))

    assert result.status == ObjectStatus.VALIDATION_FAILED
    assert result.phases["validate"].status == PhaseStatus.ERRORS
    assert result.phases["load"].status == PhaseStatus.SKIPPED
    assert result.phases["load"].meta["reason"]
    assert result.error["type"] == "ERR_PHASE_VALIDATION"
    assert ("A", "load") not in calls
    assert dummy_ctx.warnings["A"]


def test_object_opt_in_loads_despite_validation_errors(DummyObject, mock_gateway):
    _require_imports()
    calls = []
    obj = DummyObject("A", calls=calls, quality_checks={"required": ["MISSING"]}, load_on_validation_errors=True)

    result = run_object(obj, mock_gateway(seeded=["A"]))

    assert ("A", "load") in calls
    assert result.phases["load"].status == PhaseStatus.PASSED
    assert result.status == ObjectStatus.VALIDATION_FAILED


def test_runtime_opt_in_loads_despite_validation_errors(DummyObject, mock_gateway):
    _require_imports()
    obj = DummyObject("A", quality_checks={"required": ["MISSING"]})
    result = ETLVRuntime(load_on_validation_errors=True).run(obj, mock_gateway(seeded=["A"]))
    assert result.phases["load"].status == PhaseStatus.PASSED


def test_unknown_converter_marks_validation_failed(DummyObject, mock_gateway):
    _require_imports()
    obj = DummyObject("A", field_mappings=[{"source": "ID", "target": "Id", "convert": "toKlingon"}])
    result = run_object(obj, mock_gateway(seeded=["A"]))

    assert result.status == ObjectStatus.VALIDATION_FAILED
    assert result.phases["transform"].status == PhaseStatus.ERRORS
    assert result.phases["validate"].status == PhaseStatus.PASSED
    assert result.phases["load"].status == PhaseStatus.SKIPPED
    assert result.error["message"] == "Conversor desconhecido no mapeamento"


def test_warnings_never_block_load(DummyObject, mock_gateway, dummy_ctx):
    _require_imports()
    tables = {"A": [{"NAME": "ACME Corp"}, {"NAME": "ACME Corp."}]}
    obj = DummyObject("A", quality_checks={"fuzzyDuplicate": {"keys": ["NAME"]}})

    result = ETLVRuntime(ctx=dummy_ctx).run(obj, mock_gateway(tables))

    assert result.phases["validate"].status == PhaseStatus.WARNINGS
    assert result.phases["validate"].warning_count == 1
    assert result.phases["load"].status == PhaseStatus.PASSED
    assert result.status == ObjectStatus.COMPLETED
    assert dummy_ctx.warnings["A"]


def test_partial_load_failure_is_completed_with_errors(DummyObject, mock_gateway):
    _require_imports()
    tables = {"A": [{"ID": "1"}, {"ID": "2"}]}
    result = run_object(DummyObject("A"), mock_gateway(tables, load_error_rate=0.5))

    assert result.status == ObjectStatus.COMPLETED_WITH_ERRORS
    assert result.phases["load"].success_count == 1
    assert result.phases["load"].error_count == 1


def test_empty_extraction_short_circuits(DummyObject, mock_gateway, recording_sink):
    _require_imports()
    calls = []
    result = _runtime(recording_sink).run(DummyObject("A", calls=calls), mock_gateway({"A": []}))

    assert result.status == ObjectStatus.COMPLETED
    assert calls == [("A", "extract")]
    assert result.phases["extract"].record_count == 0
    for name in ("transform", "validate", "load"):
        assert result.phases[name].status == PhaseStatus.SKIPPED
    assert recording_sink.types()[-1] == "migration:complete"


def test_post_transform_hook_runs_after_mapping(DummyObject, mock_gateway):
    """O hook de fusão reduz os registros e publica `merged_count` no meta do transform."""
    _require_imports()

    class _Partner(DummyObject):
        def post_transform(self, records):
            return merge_dual_roles(records)

    tables = {
        "BUSINESS_PARTNER": [
            {"BusinessPartnerFullName": "ACME", "CityName": "Berlin", "Customer": "C1"},
            {"BusinessPartnerFullName": "ACME", "CityName": "Berlin", "Supplier": "V1"},
        ]
    }
    gw = mock_gateway(tables)
    result = run_object(_Partner("BUSINESS_PARTNER"), gw)

    transform = result.phases["transform"]
    assert transform.record_count == 1
    assert transform.meta["merged_count"] == 1
    assert result.phases["load"].record_count == 1
    assert len(gw.written["BUSINESS_PARTNER"]) == 1


def test_cancellation_between_phases_skips_object(DummyObject, mock_gateway, recording_sink):
    _require_imports()
    cancel = threading.Event()
    calls = []

    class _CancelAfterExtract(DummyObject):
        def extract(self, gateway):
            result = super().extract(gateway)
            cancel.set()
            return result

    result = _runtime(recording_sink).run(
        _CancelAfterExtract("A", calls=calls),
        mock_gateway(seeded=["A"]),
        cancel_event=cancel,
    )

    assert result.status == ObjectStatus.SKIPPED
    assert result.phases["extract"].status == PhaseStatus.PASSED
    assert result.phases["transform"].status == PhaseStatus.SKIPPED
    assert calls == [("A", "extract")]
    assert recording_sink.events[-1].data["status"] == "skipped"
