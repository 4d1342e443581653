"""
ETLV Orchestrator — Canonical Exceptions (v1)

Exceções tipadas internas do orquestrador.

Objetivo:
- Permitir que planner, grafo e objetos levantem exceções semânticas tipadas
- Mapear deterministicamente exceções para `OrchestratorErrorPayload`
- Evitar ValueError/RuntimeError genéricos em erros de programação

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- O código estável (`code`) é um atributo de classe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from .errors import (
    ERR_GRAPH_CYCLE,
    ERR_PHASE_FATAL,
    ERR_PHASE_VALIDATION,
    ERR_PLANNER_BAD_OPTIONS,
    ERR_PLANNER_UNKNOWN_OBJECT,
    OrchestratorErrorPayload,
)


@dataclass(frozen=True)
class OrchestratorException(Exception):
    """Base class para exceções internas do orquestrador.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    code: ClassVar[str] = ERR_PHASE_FATAL

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> OrchestratorErrorPayload:
        return OrchestratorErrorPayload(
            type=self.code,
            message=self.message,
            details=dict(self.details),
            hint=self.hint,
            decision_required=self.decision_required,
        )


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlannerUnknownObject(OrchestratorException):
    """`object_ids` referencia um objeto que não está registrado."""

    code: ClassVar[str] = ERR_PLANNER_UNKNOWN_OBJECT


@dataclass(frozen=True)
class PlannerBadOptions(OrchestratorException):
    """Opções de include/exclude/flags malformadas."""

    code: ClassVar[str] = ERR_PLANNER_BAD_OPTIONS


# ---------------------------------------------------------------------------
# Grafo
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphCycleError(OrchestratorException):
    """Ciclo detectado por `validate` em modo estrito."""

    code: ClassVar[str] = ERR_GRAPH_CYCLE


# ---------------------------------------------------------------------------
# Fases
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PhaseFatalError(OrchestratorException):
    """Falha fatal levantada explicitamente por uma fase (ex.: gateway inacessível)."""

    code: ClassVar[str] = ERR_PHASE_FATAL


@dataclass(frozen=True)
class GatewayUnreachable(PhaseFatalError):
    """Gateway de origem/destino inacessível (inclui timeout do próprio gateway)."""


@dataclass(frozen=True)
class PhaseValidationError(OrchestratorException):
    """Dados rejeitados pela validação de qualidade."""

    code: ClassVar[str] = ERR_PHASE_VALIDATION


def exception_to_error(
    exc: BaseException,
    *,
    object_id: Optional[str] = None,
    phase: Optional[str] = None,
) -> OrchestratorErrorPayload:
    """Converte exceções em OrchestratorErrorPayload (serializável, acionável).

    Regras:
    - OrchestratorException: preserva código, details e hint.
    - Outras exceções: encapsular como ERR_PHASE_FATAL sem expor stack trace.
    """
    if isinstance(exc, OrchestratorException):
        payload = exc.to_payload()
        details = dict(payload.details)
        if object_id is not None:
            details.setdefault("object_id", object_id)
        if phase is not None:
            details.setdefault("phase", phase)
        return OrchestratorErrorPayload(
            type=payload.type,
            message=payload.message or "Erro de execução",
            details=details,
            hint=payload.hint,
            decision_required=payload.decision_required,
        )

    return OrchestratorErrorPayload(
        type=ERR_PHASE_FATAL,
        message=str(exc) or "Erro inesperado durante execução da fase",
        details={
            "object_id": object_id,
            "phase": phase,
            "exception_class": exc.__class__.__name__,
        },
        hint="Verifique o log técnico e o gateway do objeto",
        decision_required=False,
    )
