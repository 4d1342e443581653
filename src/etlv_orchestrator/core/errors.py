"""
ETLV Orchestrator — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do orquestrador de migração.
Erros são artefatos de domínio e fazem parte do contrato operacional:
são registrados em `PhaseResult.diagnostics`, no Event Log e no Manifest.

Um erro canônico é sempre:

- identificado por um código estável (`ERR_*`)
- serializável (dict / JSON)
- acompanhado de uma mensagem curta e humana
- opcionalmente acompanhado de uma dica (`hint`) ao operador

Política de propagação:
    - erros por objeto são contidos na fronteira do runtime
    - erros de programação (id desconhecido, opções malformadas) propagam
    - erros do Progress Bus nunca propagam
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OrchestratorErrorPayload:
    """
    Payload canônico de erro do orquestrador.

    Campos:
    - type: código estável do erro (um dos `ERR_*` deste módulo)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador
    - decision_required: indica bloqueio aguardando decisão humana
    """

    type: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de códigos de erro (conjunto fechado)
# ---------------------------------------------------------------------------

# Planner
ERR_PLANNER_UNKNOWN_OBJECT = "ERR_PLANNER_UNKNOWN_OBJECT"
ERR_PLANNER_BAD_OPTIONS = "ERR_PLANNER_BAD_OPTIONS"

# Grafo
ERR_GRAPH_CYCLE = "ERR_GRAPH_CYCLE"

# Runtime ETLV
ERR_PHASE_FATAL = "ERR_PHASE_FATAL"
ERR_PHASE_VALIDATION = "ERR_PHASE_VALIDATION"

# Progress Bus / callbacks
ERR_BUS_UNKNOWN_EVENT = "ERR_BUS_UNKNOWN_EVENT"
ERR_CALLBACK_FAULT = "ERR_CALLBACK_FAULT"

ERROR_CODES = (
    ERR_PLANNER_UNKNOWN_OBJECT,
    ERR_PLANNER_BAD_OPTIONS,
    ERR_GRAPH_CYCLE,
    ERR_PHASE_FATAL,
    ERR_PHASE_VALIDATION,
    ERR_BUS_UNKNOWN_EVENT,
    ERR_CALLBACK_FAULT,
)


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def planner_unknown_object(
    *,
    object_ids: List[str],
    hint: str = "Registre o objeto de migração antes de solicitá-lo ou remova-o de `object_ids`.",
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_PLANNER_UNKNOWN_OBJECT,
        message="Objeto de migração não registrado",
        details={"object_ids": list(object_ids)},
        hint=hint,
    )


def planner_bad_options(
    *,
    option: str,
    reason: str,
    received: Any = None,
    hint: str = "Revise as opções de execução (include/exclude/flags) antes de reexecutar.",
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_PLANNER_BAD_OPTIONS,
        message="Opções de planejamento inválidas",
        details={
            "option": option,
            "reason": reason,
            "received": repr(received) if received is not None else None,
        },
        hint=hint,
    )


def graph_cycle(
    *,
    cycles: List[List[str]],
    hint: str = "Remova uma das arestas do ciclo via `set_dependencies` antes de executar.",
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_GRAPH_CYCLE,
        message="Dependência circular detectada no grafo de objetos",
        details={"cycles": [list(c) for c in cycles]},
        hint=hint,
        decision_required=True,
    )


def phase_fatal(
    *,
    object_id: str,
    phase: str,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique o log técnico e o gateway do objeto. Nenhum retry é aplicado pelo runtime.",
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_PHASE_FATAL,
        message="Falha fatal durante a execução da fase",
        details={
            "object_id": object_id,
            "phase": phase,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )


def phase_validation(
    *,
    object_id: str,
    phase: str,
    error_count: int,
    checks: Optional[List[Dict[str, Any]]] = None,
    hint: str = "Corrija os dados de origem ou o mapeamento; o load só roda com opt-in explícito do objeto.",
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_PHASE_VALIDATION,
        message="Validação de qualidade retornou erros",
        details={
            "object_id": object_id,
            "phase": phase,
            "error_count": int(error_count),
            "checks": list(checks or []),
        },
        hint=hint,
    )


def unknown_converter(
    *,
    target: str,
    primitive: str,
    occurrences: int,
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_PHASE_VALIDATION,
        message="Conversor desconhecido no mapeamento",
        details={
            "target": target,
            "primitive": primitive,
            "occurrences": int(occurrences),
        },
        hint="Use um dos conversores em CONVERTERS ou remova `convert` do mapeamento.",
    )


def bus_unknown_event(*, event_type: str) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_BUS_UNKNOWN_EVENT,
        message="Tipo de evento fora do conjunto fechado",
        details={"event_type": event_type},
        hint="Use um dos tipos em EVENT_TYPES.",
    )


def callback_fault(
    *,
    object_id: str,
    exc_type: str,
    exc_message: str,
) -> OrchestratorErrorPayload:
    return OrchestratorErrorPayload(
        type=ERR_CALLBACK_FAULT,
        message="Callback on_progress levantou exceção",
        details={
            "object_id": object_id,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint="A execução continua; corrija o callback do chamador.",
    )
