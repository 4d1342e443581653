# src/etlv_orchestrator/api.py
"""
Façade pública do orquestrador ETLV.

Uma operação por subsistema:
    - plan(registry, options)           → ExecutionPlan
    - run_all(registry, gateway, ...)   → RunResult
    - subscribe(bus, sink)              → Subscription

Exit codes (para adapters de CLI):
    0 → run concluída sem falhas de objeto
    1 → run concluída com uma ou mais falhas de objeto
    2 → erro de planejamento (id desconhecido, opções inválidas, ciclo
        em validação estrita)
    3 → erro interno irrecuperável
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

from etlv_orchestrator.core.engine import ExecutionPlan, Orchestrator, RunOptions, plan_execution
from etlv_orchestrator.core.exceptions import GraphCycleError, PlannerBadOptions, PlannerUnknownObject
from etlv_orchestrator.core.gateway import Gateway
from etlv_orchestrator.core.pipeline.context import RunContext
from etlv_orchestrator.core.pipeline.registry import ObjectRegistry
from etlv_orchestrator.core.pipeline.types import RunResult
from etlv_orchestrator.core.progress.bus import ProgressBus, Sink, Subscription
from etlv_orchestrator.core.traceability.manifest import RunManifest


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_OBJECT_FAILURES = 1
EXIT_PLANNER_ERROR = 2
EXIT_INTERNAL_ERROR = 3

PLANNER_ERRORS = (PlannerUnknownObject, PlannerBadOptions, GraphCycleError)


def _resolve_options(
    options: Optional[RunOptions],
    config: Optional[Mapping[str, Any]],
    overrides: Mapping[str, Any],
) -> RunOptions:
    if options is not None:
        if overrides:
            raise TypeError("pass either `options` or keyword overrides, not both")
        return options
    return RunOptions.from_config(config, **overrides)


def plan(
    registry: ObjectRegistry,
    options: Optional[RunOptions] = None,
    *,
    config: Optional[Mapping[str, Any]] = None,
    **overrides: Any,
) -> ExecutionPlan:
    return plan_execution(registry, _resolve_options(options, config, overrides))


def run_all(
    registry: ObjectRegistry,
    gateway: Gateway,
    options: Optional[RunOptions] = None,
    *,
    bus: Optional[ProgressBus] = None,
    ctx: Optional[RunContext] = None,
    config: Optional[Mapping[str, Any]] = None,
    manifest: Optional[RunManifest] = None,
    **overrides: Any,
) -> RunResult:
    """
    Planeja e executa uma run.

    Raises:
        PlannerUnknownObject / PlannerBadOptions: erros de programação do chamador.
    """
    resolved = _resolve_options(options, config, overrides)
    orchestrator = Orchestrator(registry, bus=bus, ctx=ctx, config=config, manifest=manifest)
    return orchestrator.run_all(gateway, resolved)


def subscribe(
    bus: ProgressBus,
    sink: Sink,
    *,
    replay_count: Optional[int] = None,
    last_event_id: Optional[str] = None,
    queue_size: Optional[int] = None,
) -> Subscription:
    """Assina o bus; o sink roda na thread da assinatura, nunca na do emissor."""
    return bus.subscribe(sink, replay_count=replay_count, last_event_id=last_event_id, queue_size=queue_size)


def exit_code_for(result: RunResult) -> int:
    return EXIT_OK if int(result.stats.get("failed", 0)) == 0 else EXIT_OBJECT_FAILURES


def run_with_exit_code(
    registry: ObjectRegistry,
    gateway: Gateway,
    options: Optional[RunOptions] = None,
    *,
    strict: bool = False,
    **kwargs: Any,
) -> Tuple[int, Optional[RunResult]]:
    """
    Executa `run_all` e traduz o desfecho em exit code.

    Com `strict=True` o grafo é validado antes da run e um ciclo vira
    erro de planejamento.
    """
    try:
        if strict:
            registry.graph.validate(registry.list_ids(), strict=True)
        result = run_all(registry, gateway, options, **kwargs)
    except PLANNER_ERRORS as exc:
        logger.error("Erro de planejamento (%s): %s", exc.code, exc.message)
        return EXIT_PLANNER_ERROR, None
    except Exception:
        logger.exception("Erro interno irrecuperável")
        return EXIT_INTERNAL_ERROR, None
    return exit_code_for(result), result
