# tests/core/progress/test_bus.py
"""
Testes do Progress Bus.

Os testes asseguram que:
- o histórico é um ring buffer limitado (mais antigos descartados primeiro)
- quem assina recebe o replay dos últimos N eventos antes dos novos
- tipos fora do conjunto fechado são rejeitados com diagnóstico
- um sink que falha é removido sem afetar o emissor
- um sink lento não atrasa o emissor (fila própria, descarte quando cheia)
- ids de eventos crescem lexicograficamente
"""

import threading
import time

import pytest

try:
    from etlv_orchestrator.core.progress.bus import EVENT_TYPES, ProgressBus
except Exception as e:  # noqa: BLE001
    ProgressBus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing progress bus. Implement:\n"
            "- src/etlv_orchestrator/core/progress/bus.py (ProgressBus)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _emit_n(bus, n, event_type="migration:progress"):
    return [bus.emit(event_type, {"object_id": f"O{i}", "n": i}) for i in range(n)]


def test_emit_returns_event_and_records_history():
    _require_imports()
    bus = ProgressBus()
    ev = bus.emit("migration:start", {"object_id": "A"})

    assert ev.type == "migration:start"
    assert ev.data == {"object_id": "A"}
    assert ev.timestamp.endswith("+00:00")
    assert bus.get_history() == [ev]


def test_history_is_bounded_oldest_first():
    _require_imports()
    bus = ProgressBus(history_size=5)
    events = _emit_n(bus, 8)
    assert bus.get_history() == events[3:]


def test_invalid_history_size_is_rejected():
    _require_imports()
    with pytest.raises(ValueError):
        ProgressBus(history_size=0)


def test_late_subscriber_receives_replay_then_live_events(recording_sink):
    """Quem assina após 50 eventos recebe os últimos 20, em ordem, e depois os novos."""
    _require_imports()
    bus = ProgressBus()
    events = _emit_n(bus, 50)

    bus.subscribe(recording_sink)
    assert bus.flush()
    assert recording_sink.events == events[-20:]

    live = bus.emit("migration:complete", {"object_id": "O49"})
    assert bus.flush()
    assert recording_sink.events[-1] == live
    assert len(recording_sink.events) == 21


def test_replay_count_override(recording_sink):
    _require_imports()
    bus = ProgressBus(replay_count=20)
    events = _emit_n(bus, 10)

    bus.subscribe(recording_sink, replay_count=3)
    assert bus.flush()
    assert recording_sink.events == events[-3:]


def test_zero_replay_delivers_only_live_events(recording_sink):
    _require_imports()
    bus = ProgressBus()
    _emit_n(bus, 5)
    bus.subscribe(recording_sink, replay_count=0)
    assert bus.flush()
    assert recording_sink.events == []


def test_last_event_id_resumes_after_known_event(recording_sink):
    _require_imports()
    bus = ProgressBus()
    events = _emit_n(bus, 30)

    bus.subscribe(recording_sink, last_event_id=events[24].id)
    assert bus.flush()
    assert recording_sink.events == events[25:]


def test_unknown_last_event_id_falls_back_to_default_window(recording_sink):
    _require_imports()
    bus = ProgressBus(replay_count=4)
    events = _emit_n(bus, 10)

    bus.subscribe(recording_sink, last_event_id="0000000000000-999999")
    assert bus.flush()
    assert recording_sink.events == events[-4:]


def test_unknown_event_type_is_rejected_with_diagnostic(recording_sink):
    _require_imports()
    bus = ProgressBus()
    bus.subscribe(recording_sink)

    assert bus.emit("migration:exploded", {"object_id": "A"}) is None
    assert bus.flush()
    assert bus.get_history() == []
    assert recording_sink.events == []
    assert bus.diagnostics[0]["type"] == "ERR_BUS_UNKNOWN_EVENT"
    assert bus.diagnostics[0]["details"] == {"event_type": "migration:exploded"}


def test_failing_sink_is_removed_silently(recording_sink):
    _require_imports()
    bus = ProgressBus()

    def _broken(event):
        raise BrokenPipeError("client gone")

    broken = bus.subscribe(_broken)
    bus.subscribe(recording_sink)
    assert bus.subscriber_count == 2

    ev = bus.emit("system:info", {"event": "ping"})
    assert bus.flush()

    assert ev is not None
    assert broken.active is False
    assert bus.subscriber_count == 1
    assert recording_sink.events == [ev]


def test_unsubscribe_stops_delivery(recording_sink):
    _require_imports()
    bus = ProgressBus()
    sub = bus.subscribe(recording_sink)
    assert bus.unsubscribe(sub) is True
    assert bus.unsubscribe(sub) is False

    bus.emit("system:info", {})
    assert bus.flush()
    assert recording_sink.events == []
    assert bus.subscriber_count == 0


def test_event_ids_are_strictly_increasing():
    _require_imports()
    bus = ProgressBus(history_size=500)
    ids = [e.id for e in _emit_n(bus, 300)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_concurrent_emits_keep_history_consistent():
    _require_imports()
    bus = ProgressBus(history_size=1000)

    def _worker():
        _emit_n(bus, 100)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ids = [e.id for e in bus.get_history()]
    assert len(ids) == 400
    assert ids == sorted(ids)


def test_get_history_prefix_filter_and_count():
    _require_imports()
    bus = ProgressBus()
    bus.emit("migration:start", {"object_id": "A"})
    bus.emit("system:info", {"event": "x"})
    bus.emit("migration:error", {"object_id": "A"})
    bus.emit("migration:complete", {"object_id": "B"})

    assert [e.type for e in bus.get_history(type_filter="migration")] == [
        "migration:start",
        "migration:error",
        "migration:complete",
    ]
    assert [e.type for e in bus.get_history(type_filter="migration:error")] == ["migration:error"]
    assert [e.type for e in bus.get_history(count=2)] == ["migration:error", "migration:complete"]
    assert bus.get_history(count=0) == []


def test_from_config_reads_progress_section():
    _require_imports()
    bus = ProgressBus.from_config({"progress": {"history_size": 50, "replay_count": 5}})
    assert bus.history_size == 50
    assert bus.replay_count == 5


def test_event_type_set_is_closed():
    _require_imports()
    assert "migration:start" in EVENT_TYPES
    assert "system:health" in EVENT_TYPES
    assert len(EVENT_TYPES) == 14


def test_slow_sink_does_not_delay_emit(recording_sink):
    _require_imports()
    bus = ProgressBus()
    release = threading.Event()

    def _slow(event):
        release.wait(0.5)

    bus.subscribe(_slow, replay_count=0)
    bus.subscribe(recording_sink, replay_count=0)

    started = time.monotonic()
    events = _emit_n(bus, 3)
    elapsed = time.monotonic() - started

    assert elapsed < 0.25
    release.set()
    assert bus.flush()
    assert recording_sink.events == events


def test_sink_runs_outside_emitting_thread(recording_sink):
    _require_imports()
    bus = ProgressBus()
    seen = []
    bus.subscribe(lambda event: seen.append(threading.current_thread().name), replay_count=0)

    bus.emit("system:info", {})
    assert bus.flush()
    assert seen and seen[0] != threading.current_thread().name


def test_full_subscriber_queue_drops_events():
    _require_imports()
    bus = ProgressBus(subscriber_queue_size=2)
    release = threading.Event()
    entered = threading.Event()
    received = []

    def _blocked(event):
        entered.set()
        release.wait(5)
        received.append(event)

    sub = bus.subscribe(_blocked, replay_count=0)
    first = bus.emit("migration:progress", {"n": 0})
    assert entered.wait(5)

    events = _emit_n(bus, 5)
    release.set()
    assert bus.flush()

    assert sub.dropped == 3
    assert received == [first] + events[:2]
    assert len(bus.get_history()) == 6


def test_direct_subscription_delivers_inline(recording_sink):
    _require_imports()
    bus = ProgressBus()
    events = _emit_n(bus, 3)

    bus.subscribe(recording_sink, direct=True)
    assert recording_sink.events == events
    live = bus.emit("system:info", {})
    assert recording_sink.events[-1] == live


def test_from_config_reads_subscriber_queue_size():
    _require_imports()
    bus = ProgressBus.from_config({"progress": {"subscriber_queue_size": 7}})
    sub = bus.subscribe(lambda event: None)
    assert sub.queue_size == 7
    assert bus.unsubscribe(sub) is True
