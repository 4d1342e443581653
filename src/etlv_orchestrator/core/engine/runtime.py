# src/etlv_orchestrator/core/engine/runtime.py
"""
Runtime ETLV — execução das quatro fases de um objeto de migração.

Protocolo (sempre nesta ordem):
    1. emite `migration:start` e registra `started_at`
    2. extract; exceção → fase FATAL, `migration:error`, objeto `error`
       (zero registros extraídos → demais fases SKIPPED, objeto `completed`)
    3. transform (+ hook `post_transform` do objeto, quando existir)
    4. validate; ERRORS não levanta, marca `validation_failed`
    5. load, exceto quando bloqueado por erros de validação sem opt-in
    6. calcula `duration_ms`, emite `migration:complete{object_id, status}`

Derivação do status final:
    error > validation_failed > completed_with_errors > completed

Decisões arquiteturais:
    - Nenhuma fase é re-executada (retry é responsabilidade do gateway)
    - Exceções viram `OrchestratorErrorPayload` via `exception_to_error`,
      sem stack trace no resultado
    - Diagnósticos de erro do transform (ex.: conversor desconhecido)
      seguem a mesma política de bloqueio de load que erros de validação
    - Cancelamento é observado entre fases: a fase em curso termina, as
      restantes são SKIPPED e o objeto fica `skipped`

Invariantes:
    - Eventos de um objeto são totalmente ordenados:
      start < progress* < (complete | error)
    - `phases` sempre contém extract, transform, validate e load

Limites explícitos:
    - Não conhece ondas nem outros objetos
    - Não persiste resultados
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from etlv_orchestrator.core.errors import ERR_PHASE_VALIDATION, phase_validation
from etlv_orchestrator.core.exceptions import exception_to_error
from etlv_orchestrator.core.gateway import Gateway
from etlv_orchestrator.core.pipeline.context import RunContext
from etlv_orchestrator.core.pipeline.migration_object import MigrationObject
from etlv_orchestrator.core.pipeline.types import (
    PHASE_ORDER,
    ObjectResult,
    ObjectStatus,
    Phase,
    PhaseResult,
    PhaseStatus,
)
from etlv_orchestrator.core.progress.bus import ProgressBus
from etlv_orchestrator.core.traceability.manifest import iso, ms_between


REASON_NO_RECORDS = "Nenhum registro extraído"
REASON_VALIDATION = "Erros de validação encontrados"
REASON_CANCELLED = "Execução cancelada"
REASON_HALTED = "Fase anterior falhou"


class _Cancelled(Exception):
    pass


def _first_validation_error(result: PhaseResult) -> Optional[Dict[str, Any]]:
    for diag in result.diagnostics:
        if diag.get("type") == ERR_PHASE_VALIDATION:
            return dict(diag)
    return None


class ETLVRuntime:
    """Executor das fases ETLV de um único objeto por chamada a `run`."""

    def __init__(
        self,
        *,
        bus: Optional[ProgressBus] = None,
        ctx: Optional[RunContext] = None,
        load_on_validation_errors: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.bus = bus
        self.ctx = ctx
        self.load_on_validation_errors = load_on_validation_errors
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.bus is not None:
            self.bus.emit(event_type, data)

    def _log(self, object_id: str, level: str, message: str, **extra: Any) -> None:
        if self.ctx is not None:
            self.ctx.log(object_id=object_id, level=level, message=message, **extra)

    def _warn(self, object_id: str, message: str) -> None:
        if self.ctx is not None:
            self.ctx.add_warning(object_id=object_id, message=message)

    def _allows_load_on_errors(self, obj: MigrationObject) -> bool:
        return bool(getattr(obj, "load_on_validation_errors", False)) or self.load_on_validation_errors

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _Cancelled()

    def _invoke(self, phase: Phase, fn: Callable[..., Any], *args: Any) -> PhaseResult:
        result = fn(*args)
        if not isinstance(result, PhaseResult):
            raise TypeError(f"{phase.value}() must return PhaseResult, got {type(result).__name__}")
        return result

    def _progress(self, object_id: str, result: PhaseResult) -> None:
        self._emit(
            "migration:progress",
            {
                "object_id": object_id,
                "phase": result.phase.value,
                "status": result.status.value,
                "record_count": result.record_count,
            },
        )
        self._log(
            object_id,
            "info",
            f"{result.phase.value}: {result.status.value}",
            phase=result.phase.value,
            record_count=result.record_count,
            error_count=result.error_count,
            warning_count=result.warning_count,
        )

    def _finish(
        self,
        *,
        object_id: str,
        status: ObjectStatus,
        phases: Dict[str, PhaseResult],
        started_at: datetime,
        skip_reason: str,
        error: Optional[Dict[str, Any]] = None,
    ) -> ObjectResult:
        for phase in PHASE_ORDER:
            phases.setdefault(phase.value, PhaseResult.skipped(phase, skip_reason))
        finished_at = self.clock()
        return ObjectResult(
            object_id=object_id,
            status=status,
            phases={p.value: phases[p.value] for p in PHASE_ORDER},
            stats={
                "duration_ms": ms_between(started_at, finished_at),
                "started_at": iso(started_at),
                "finished_at": iso(finished_at),
            },
            error=error,
        )

    # ------------------------------------------------------------------
    # Protocolo ETLV
    # ------------------------------------------------------------------
    def run(
        self,
        obj: MigrationObject,
        gateway: Gateway,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> ObjectResult:
        object_id = obj.object_id
        started_at = self.clock()
        phases: Dict[str, PhaseResult] = {}

        self._emit("migration:start", {"object_id": object_id, "name": getattr(obj, "name", object_id)})
        self._log(object_id, "info", "migration started")

        current = Phase.EXTRACT
        try:
            # Extract
            extracted = self._invoke(Phase.EXTRACT, obj.extract, gateway)
            phases[Phase.EXTRACT.value] = extracted
            self._progress(object_id, extracted)

            if extracted.record_count == 0 and not extracted.records:
                self._log(object_id, "info", REASON_NO_RECORDS)
                result = self._finish(
                    object_id=object_id,
                    status=ObjectStatus.COMPLETED,
                    phases=phases,
                    started_at=started_at,
                    skip_reason=REASON_NO_RECORDS,
                )
                self._complete(result)
                return result

            # Transform (+ hook)
            self._check_cancel(cancel_event)
            current = Phase.TRANSFORM
            transformed = self._invoke(Phase.TRANSFORM, obj.transform, list(extracted.records))
            hook = getattr(obj, "post_transform", None)
            if callable(hook):
                hooked, hook_meta = hook(list(transformed.records))
                transformed = replace(
                    transformed,
                    records=list(hooked),
                    record_count=len(hooked),
                    meta={**transformed.meta, **dict(hook_meta or {})},
                )
            phases[Phase.TRANSFORM.value] = transformed
            self._progress(object_id, transformed)

            # Validate
            self._check_cancel(cancel_event)
            current = Phase.VALIDATE
            validated = self._invoke(Phase.VALIDATE, obj.validate, list(transformed.records))
            phases[Phase.VALIDATE.value] = validated
            self._progress(object_id, validated)

            status = ObjectStatus.COMPLETED
            error: Optional[Dict[str, Any]] = None
            if transformed.status == PhaseStatus.ERRORS or validated.status == PhaseStatus.ERRORS:
                status = ObjectStatus.VALIDATION_FAILED
                error = _first_validation_error(validated) or _first_validation_error(transformed)
                if error is None:
                    error = phase_validation(
                        object_id=object_id,
                        phase=Phase.VALIDATE.value,
                        error_count=transformed.error_count + validated.error_count,
                    ).to_dict()
                self._warn(object_id, REASON_VALIDATION)
            elif validated.status == PhaseStatus.WARNINGS:
                self._warn(object_id, f"{validated.warning_count} aviso(s) de qualidade")

            # Load
            if status == ObjectStatus.VALIDATION_FAILED and not self._allows_load_on_errors(obj):
                self._log(object_id, "warning", f"load skipped: {REASON_VALIDATION}")
                result = self._finish(
                    object_id=object_id,
                    status=status,
                    phases=phases,
                    started_at=started_at,
                    skip_reason=REASON_VALIDATION,
                    error=error,
                )
                self._complete(result)
                return result

            self._check_cancel(cancel_event)
            current = Phase.LOAD
            loaded = self._invoke(Phase.LOAD, obj.load, list(transformed.records), gateway)
            phases[Phase.LOAD.value] = loaded
            self._progress(object_id, loaded)

            if status == ObjectStatus.COMPLETED and loaded.error_count > 0:
                status = ObjectStatus.COMPLETED_WITH_ERRORS
                self._warn(object_id, f"{loaded.error_count} registro(s) rejeitado(s) no load")

            result = self._finish(
                object_id=object_id,
                status=status,
                phases=phases,
                started_at=started_at,
                skip_reason=REASON_HALTED,
                error=error,
            )
            self._complete(result)
            return result

        except _Cancelled:
            self._log(object_id, "warning", REASON_CANCELLED, phase=current.value)
            result = self._finish(
                object_id=object_id,
                status=ObjectStatus.SKIPPED,
                phases=phases,
                started_at=started_at,
                skip_reason=REASON_CANCELLED,
            )
            self._complete(result)
            return result

        except Exception as exc:
            payload = exception_to_error(exc, object_id=object_id, phase=current.value).to_dict()
            phases[current.value] = PhaseResult(
                phase=current,
                status=PhaseStatus.FATAL,
                diagnostics=[payload],
            )
            self._log(
                object_id,
                "error",
                f"{current.value} failed: {payload['message']}",
                phase=current.value,
                error=payload,
            )
            self._emit(
                "migration:error",
                {"object_id": object_id, "phase": current.value, "error": payload},
            )
            return self._finish(
                object_id=object_id,
                status=ObjectStatus.ERROR,
                phases=phases,
                started_at=started_at,
                skip_reason=REASON_HALTED,
                error=payload,
            )

    def _complete(self, result: ObjectResult) -> None:
        self._emit(
            "migration:complete",
            {
                "object_id": result.object_id,
                "status": result.status.value,
                "duration_ms": result.stats.get("duration_ms", 0),
            },
        )
        self._log(result.object_id, "info", f"migration finished: {result.status.value}")


def run_object(
    obj: MigrationObject,
    gateway: Gateway,
    *,
    bus: Optional[ProgressBus] = None,
    ctx: Optional[RunContext] = None,
    load_on_validation_errors: bool = False,
) -> ObjectResult:
    """Atalho para executar um único objeto fora do orquestrador."""
    runtime = ETLVRuntime(bus=bus, ctx=ctx, load_on_validation_errors=load_on_validation_errors)
    return runtime.run(obj, gateway)
