# src/etlv_orchestrator/core/engine/orchestrator.py
"""
Orquestrador de runs — executa o plano onda a onda.

Fluxo:
    plan_execution → para cada onda: runtime por objeto → agregação → RunResult

Decisões arquiteturais:
    - Paralelismo apenas dentro de uma onda (ThreadPoolExecutor); a onda
      k+1 só começa depois que todos os objetos da onda k terminaram
    - Falhas por objeto nunca abortam a onda nem as ondas seguintes
    - Callback `on_progress`, Manifest e agregação rodam na thread
      coordenadora, na ordem de término dos objetos
    - Exceções no callback viram diagnóstico ERR_CALLBACK_FAULT e a run
      continua
    - Cancelamento: objetos em curso terminam a fase atual; objetos ainda
      não iniciados e ondas restantes ficam `skipped`

Invariantes:
    - stats.total == len(results) == soma dos tamanhos das ondas
    - stats.completed + stats.failed == stats.total
    - `results` segue a ordem das ondas, não a ordem de término

Limites explícitos:
    - Não persiste checkpoint
    - Não faz rollback entre objetos
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from etlv_orchestrator.core.errors import callback_fault
from etlv_orchestrator.core.exceptions import exception_to_error
from etlv_orchestrator.core.gateway import Gateway
from etlv_orchestrator.core.pipeline.context import RunContext
from etlv_orchestrator.core.pipeline.registry import ObjectRegistry
from etlv_orchestrator.core.pipeline.types import (
    PHASE_ORDER,
    ObjectResult,
    ObjectStatus,
    PhaseResult,
    RunResult,
)
from etlv_orchestrator.core.progress.bus import ProgressBus
from etlv_orchestrator.core.traceability.manifest import (
    RunManifest,
    add_event,
    iso,
    ms_between,
    object_failed,
    object_finished,
    object_started,
    run_finished,
)

from .planner import ExecutionPlan, RunOptions, plan_execution
from .runtime import REASON_CANCELLED, ETLVRuntime


logger = logging.getLogger(__name__)


def _skipped_result(object_id: str, ts: datetime) -> ObjectResult:
    return ObjectResult(
        object_id=object_id,
        status=ObjectStatus.SKIPPED,
        phases={p.value: PhaseResult.skipped(p, REASON_CANCELLED) for p in PHASE_ORDER},
        stats={"duration_ms": 0, "started_at": iso(ts), "finished_at": iso(ts)},
    )


def _crashed_result(object_id: str, exc: Exception, ts: datetime) -> ObjectResult:
    payload = exception_to_error(exc, object_id=object_id).to_dict()
    return ObjectResult(
        object_id=object_id,
        status=ObjectStatus.ERROR,
        phases={p.value: PhaseResult.skipped(p, payload["message"]) for p in PHASE_ORDER},
        stats={"duration_ms": 0, "started_at": iso(ts), "finished_at": iso(ts)},
        error=payload,
    )


def compute_stats(results: Mapping[str, ObjectResult], waves: List[List[str]], total_duration_ms: int) -> Dict[str, Any]:
    """Agrega contagens da run. Objetos `skipped` contam em `failed`."""
    by_status: Dict[str, int] = {s.value: 0 for s in ObjectStatus}
    for result in results.values():
        by_status[result.status.value] += 1
    completed = sum(1 for r in results.values() if r.succeeded)
    return {
        "total": len(results),
        "completed": completed,
        "failed": len(results) - completed,
        "skipped": by_status[ObjectStatus.SKIPPED.value],
        "by_status": by_status,
        "total_duration_ms": int(total_duration_ms),
        "waves": len(waves),
        "execution_order": [list(w) for w in waves],
    }


class Orchestrator:
    """Executor de runs sobre um `ObjectRegistry`."""

    def __init__(
        self,
        registry: ObjectRegistry,
        *,
        bus: Optional[ProgressBus] = None,
        ctx: Optional[RunContext] = None,
        config: Optional[Mapping[str, Any]] = None,
        manifest: Optional[RunManifest] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.registry = registry
        self.bus = bus
        self.ctx = ctx
        self.config: Dict[str, Any] = dict(config or (ctx.config if ctx is not None else {}) or {})
        self.manifest = manifest
        self.clock = clock

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.bus is not None:
            self.bus.emit(event_type, data)

    def plan(self, options: Optional[RunOptions] = None) -> ExecutionPlan:
        return plan_execution(self.registry, options or RunOptions.from_config(self.config))

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _run_one(
        self,
        runtime: ETLVRuntime,
        object_id: str,
        gateway: Gateway,
        cancel_event: Optional[threading.Event],
    ) -> ObjectResult:
        if cancel_event is not None and cancel_event.is_set():
            return _skipped_result(object_id, self.clock())
        try:
            return runtime.run(self.registry.get(object_id), gateway, cancel_event=cancel_event)
        except Exception as exc:
            logger.error("Falha inesperada fora das fases de %s: %s", object_id, exc)
            return _crashed_result(object_id, exc, self.clock())

    def _collect(
        self,
        result: ObjectResult,
        options: RunOptions,
        results: Dict[str, ObjectResult],
        diagnostics: List[Dict[str, Any]],
    ) -> None:
        results[result.object_id] = result

        if self.manifest is not None:
            ts = self.clock()
            if result.status == ObjectStatus.ERROR and result.error is not None:
                object_failed(self.manifest, object_id=result.object_id, ts=ts, error=result.error)
            else:
                object_finished(self.manifest, object_id=result.object_id, ts=ts, result=result.to_dict())

        if options.on_progress is None:
            return
        try:
            options.on_progress(result.object_id, result)
        except Exception as exc:
            logger.warning("Callback on_progress falhou para %s: %s", result.object_id, exc)
            diagnostics.append(
                callback_fault(
                    object_id=result.object_id,
                    exc_type=exc.__class__.__name__,
                    exc_message=str(exc),
                ).to_dict()
            )

    def run_all(self, gateway: Gateway, options: Optional[RunOptions] = None) -> RunResult:
        """
        Planeja e executa a run completa.

        Raises:
            PlannerUnknownObject: id solicitado não registrado.
            PlannerBadOptions: opções malformadas.
        """
        options = options or RunOptions.from_config(self.config)
        plan = plan_execution(self.registry, options)
        started_at = self.clock()
        cancel_event = options.cancel_event

        logger.info("Plano: %d objeto(s) em %d onda(s)", len(plan.object_ids), len(plan.waves))
        self._emit(
            "system:info",
            {"event": "run_started", "object_count": len(plan.object_ids), "waves": len(plan.waves)},
        )
        if self.manifest is not None:
            add_event(self.manifest, event_type="run_planned", ts=started_at, payload=plan.to_dict())

        runtime = ETLVRuntime(
            bus=self.bus,
            ctx=self.ctx,
            load_on_validation_errors=options.load_on_validation_errors,
            clock=self.clock,
        )
        results: Dict[str, ObjectResult] = {}
        diagnostics: List[Dict[str, Any]] = []

        for index, wave in enumerate(plan.waves):
            if cancel_event is not None and cancel_event.is_set():
                for object_id in wave:
                    self._collect(_skipped_result(object_id, self.clock()), options, results, diagnostics)
                continue

            self._emit("system:info", {"event": "wave_started", "wave": index, "object_ids": list(wave)})
            if self.manifest is not None:
                for object_id in wave:
                    object_started(self.manifest, object_id=object_id, ts=self.clock(), wave=index)

            if options.parallel and len(wave) > 1:
                workers = min(options.max_workers, len(wave))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"wave-{index}") as executor:
                    futures = {
                        executor.submit(self._run_one, runtime, object_id, gateway, cancel_event): object_id
                        for object_id in wave
                    }
                    for future in as_completed(futures):
                        self._collect(future.result(), options, results, diagnostics)
            else:
                for object_id in wave:
                    self._collect(
                        self._run_one(runtime, object_id, gateway, cancel_event),
                        options,
                        results,
                        diagnostics,
                    )

        finished_at = self.clock()
        ordered = {oid: results[oid] for wave in plan.waves for oid in wave}
        stats = compute_stats(ordered, plan.waves, ms_between(started_at, finished_at))

        self._emit(
            "system:info",
            {
                "event": "run_finished",
                "total": stats["total"],
                "completed": stats["completed"],
                "failed": stats["failed"],
            },
        )
        if self.manifest is not None:
            run_finished(self.manifest, ts=finished_at, stats=stats)
        logger.info(
            "Run finalizada: %d concluído(s), %d falha(s) em %d ms",
            stats["completed"],
            stats["failed"],
            stats["total_duration_ms"],
        )

        return RunResult(
            timestamp=iso(started_at),
            results=ordered,
            stats=stats,
            diagnostics=diagnostics,
        )
