# src/etlv_orchestrator/core/traceability/manifest.py
"""
Manifest de run — registro de auditoria de uma execução do orquestrador.

O Manifest consolida, de forma serializável:
    - metadados da run (run_id, started_at, versão, finished_at, stats)
    - hash da configuração efetiva
    - estado incremental por objeto de migração
    - Event Log ordenado de eventos explícitos

Decisões arquiteturais:
    - UTC é o timezone canônico de todos os timestamps
    - Persistência em JSON determinístico (chaves ordenadas)
    - Nenhum evento é emitido implicitamente: apenas as funções deste
      módulo mutam o Manifest

Invariantes:
    - `objects` é sempre um dicionário indexado por object_id
    - `events` é sempre uma lista na ordem de chamada

Limites explícitos:
    - Não executa objetos
    - Não é checkpoint: a run não é retomada a partir do Manifest
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def ensure_utc(dt: datetime) -> datetime:
    """Timestamps sem timezone são assumidos como UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: datetime) -> str:
    return ensure_utc(dt).isoformat()


def ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, nunca negativa."""
    s = ensure_utc(start)
    e = ensure_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class RunManifest:
    run: Dict[str, Any]
    inputs: Dict[str, Any]
    objects: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "objects": {k: dict(v) for k, v in self.objects.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            objects={k: dict(v) for k, v in (data.get("objects", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    version: str,
    config_hash: str,
) -> RunManifest:
    """Cria o Manifest inicial; `objects` e `events` começam vazios."""
    return RunManifest(
        run={
            "run_id": run_id,
            "started_at": iso(started_at),
            "version": version,
        },
        inputs={"config_hash": config_hash},
    )


def add_event(
    manifest: RunManifest,
    *,
    event_type: str,
    ts: datetime,
    object_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": iso(ts)}
    if object_id is not None:
        ev["object_id"] = object_id
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def object_started(manifest: RunManifest, *, object_id: str, ts: datetime, wave: Optional[int] = None) -> None:
    entry = manifest.objects.setdefault(object_id, {"object_id": object_id})
    entry.update({"status": "running", "started_at": iso(ts)})
    if wave is not None:
        entry["wave"] = wave
    add_event(manifest, event_type="object_started", ts=ts, object_id=object_id, payload={"wave": wave})


def object_finished(manifest: RunManifest, *, object_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    """
    Registra o desfecho de um objeto a partir de `ObjectResult.to_dict()`.

    A duração é a do próprio resultado quando presente; caso contrário é
    calculada a partir de `started_at` registrado no Manifest.
    """
    entry = manifest.objects.setdefault(object_id, {"object_id": object_id})
    status = result.get("status", "completed")
    stats = result.get("stats", {}) or {}

    duration = stats.get("duration_ms")
    if duration is None:
        started_iso = entry.get("started_at")
        started_dt = datetime.fromisoformat(started_iso) if started_iso else ts
        duration = ms_between(started_dt, ts)

    entry.update(
        {
            "status": status,
            "finished_at": iso(ts),
            "duration_ms": int(duration),
            "phases": {
                name: {"status": p.get("status"), "record_count": p.get("record_count", 0)}
                for name, p in (result.get("phases", {}) or {}).items()
            },
        }
    )
    if result.get("error") is not None:
        entry["error"] = result["error"]
    add_event(
        manifest,
        event_type="object_finished",
        ts=ts,
        object_id=object_id,
        payload={"status": status, "duration_ms": entry["duration_ms"]},
    )


def object_failed(manifest: RunManifest, *, object_id: str, ts: datetime, error: Dict[str, Any]) -> None:
    entry = manifest.objects.setdefault(object_id, {"object_id": object_id})
    entry.update({"status": "error", "finished_at": iso(ts), "error": dict(error)})
    add_event(manifest, event_type="object_failed", ts=ts, object_id=object_id, payload={"error": dict(error)})


def run_finished(manifest: RunManifest, *, ts: datetime, stats: Dict[str, Any]) -> None:
    manifest.run.update({"finished_at": iso(ts), "stats": dict(stats)})
    add_event(manifest, event_type="run_finished", ts=ts, payload={"total": stats.get("total", 0)})


def save_manifest(manifest: RunManifest, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def load_manifest(path: Path) -> RunManifest:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return RunManifest.from_dict(data)
