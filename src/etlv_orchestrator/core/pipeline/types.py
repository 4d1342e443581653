# src/etlv_orchestrator/core/pipeline/types.py
"""
Tipos canônicos do runtime ETLV.

Este módulo define as estruturas e enums que padronizam a comunicação
entre objetos de migração, runtime, orquestrador e rastreabilidade.

Componentes principais:
    - Phase        → fases ordenadas do ciclo ETLV
    - PhaseStatus  → status de uma fase (passed, warnings, errors, skipped, fatal)
    - ObjectStatus → status final de um objeto na run
    - PhaseResult  → resultado imutável de uma fase
    - ObjectResult → resultado agregado de um objeto
    - RunResult    → resultado agregado de uma run do orquestrador

Invariantes:
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - `PhaseResult` é imutável
    - `stats.failed` conta objetos com status ≠ completed e ≠ completed_with_errors

Limites explícitos:
    - Não executa fases
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Phase(str, Enum):
    """Fases do ciclo ETLV, na ordem em que sempre executam."""

    EXTRACT = "extract"
    TRANSFORM = "transform"
    VALIDATE = "validate"
    LOAD = "load"


PHASE_ORDER: List[Phase] = [Phase.EXTRACT, Phase.TRANSFORM, Phase.VALIDATE, Phase.LOAD]


class PhaseStatus(str, Enum):
    """
    Status de uma fase.

    - PASSED: concluída sem violações
    - WARNINGS: concluída com violações não bloqueantes
    - ERRORS: concluída com violações bloqueantes (ou falhas de registro no load)
    - SKIPPED: não executada (short-circuit, bloqueio ou cancelamento)
    - FATAL: levantou exceção; o objeto é interrompido
    """

    PASSED = "passed"
    WARNINGS = "warnings"
    ERRORS = "errors"
    SKIPPED = "skipped"
    FATAL = "fatal"


class ObjectStatus(str, Enum):
    """Status final de um objeto de migração em uma run."""

    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    VALIDATION_FAILED = "validation_failed"
    ERROR = "error"
    SKIPPED = "skipped"


SUCCESS_STATUSES = (ObjectStatus.COMPLETED, ObjectStatus.COMPLETED_WITH_ERRORS)


@dataclass(frozen=True)
class PhaseResult:
    """
    Resultado imutável de uma fase ETLV.

    Campos:
        - phase: fase que produziu o resultado
        - status: status da fase
        - record_count: quantidade de registros que saiu da fase
        - success_count / error_count / warning_count: contagens da fase
        - records: registros produzidos (extract/transform); vazio nas demais
        - diagnostics: erros canônicos e violações (dicts serializáveis)
        - meta: metadados livres (ex.: resumo de mapeamento, merged_count)
    """

    phase: Phase
    status: PhaseStatus
    record_count: int = 0
    success_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    records: List[Dict[str, Any]] = field(default_factory=list)
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, phase: Phase, reason: str) -> "PhaseResult":
        return cls(phase=phase, status=PhaseStatus.SKIPPED, meta={"reason": reason})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "status": self.status.value,
            "record_count": self.record_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "diagnostics": [dict(d) for d in self.diagnostics],
            "meta": dict(self.meta),
        }


@dataclass
class ObjectResult:
    """
    Resultado agregado de um objeto de migração.

    `phases` sempre contém as quatro fases; fases não executadas aparecem
    como SKIPPED. `stats` carrega duração e timestamps ISO (UTC).
    """

    object_id: str
    status: ObjectStatus
    phases: Dict[str, PhaseResult] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "object_id": self.object_id,
            "status": self.status.value,
            "phases": {name: pr.to_dict() for name, pr in self.phases.items()},
            "stats": dict(self.stats),
        }
        if self.error is not None:
            out["error"] = dict(self.error)
        return out


@dataclass
class RunResult:
    """
    Resultado agregado de uma run do orquestrador.

    `stats` contém: total, completed, failed, skipped, total_duration_ms,
    waves e execution_order. Objetos pulados contam em `failed` e também
    em `skipped`.
    """

    timestamp: str
    results: Dict[str, ObjectResult] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "results": {oid: r.to_dict() for oid, r in self.results.items()},
            "stats": dict(self.stats),
            "diagnostics": [dict(d) for d in self.diagnostics],
        }
