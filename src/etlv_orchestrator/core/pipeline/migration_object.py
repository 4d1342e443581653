# src/etlv_orchestrator/core/pipeline/migration_object.py
"""
Contrato canônico de objeto de migração.

Um objeto de migração é a unidade lógica migrada pelo orquestrador
(ex.: GL_ACCOUNT_MASTER, SALES_ORDER). Ele carrega identidade, lista de
mapeamentos, especificação de qualidade e as quatro fases ETLV.

Componentes:
    - MigrationObject (Protocol): interface mínima exigida pelo runtime
    - BaseMigrationObject: implementação auxiliar das fases genéricas
      (transform/validate/load) sobre as funções livres de mapeamento e
      qualidade

Hook opcional:
    - `post_transform(records) -> (records, meta)`: executado pelo runtime
      depois de `transform` (ex.: fusão de papéis cliente/fornecedor)

Invariantes:
    - `extract` pode ser reinvocado sem estado oculto
    - Mapeamentos e checagens são imutáveis após a construção
    - Fases retornam `PhaseResult`; exceções são tratadas pelo runtime

Limites explícitos:
    - Não emite eventos de progresso
    - Não decide se o load roda após erros de validação
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from etlv_orchestrator.core.errors import phase_validation
from etlv_orchestrator.core.gateway import Gateway

from .mapping import FieldMapping, apply_mappings, parse_mappings
from .quality import (
    DEFAULT_FUZZY_MAX_RECORDS,
    DEFAULT_FUZZY_THRESHOLD,
    SEVERITY_PASS,
    QualityChecks,
    check_quality,
)
from .types import Phase, PhaseResult, PhaseStatus


_QUALITY_STATUS = {
    "passed": PhaseStatus.PASSED,
    "warnings": PhaseStatus.WARNINGS,
    "errors": PhaseStatus.ERRORS,
}

# Limite de falhas por registro detalhadas no resultado do load
MAX_LOAD_FAILURE_DETAILS = 100


@runtime_checkable
class MigrationObject(Protocol):
    """
    Interface mínima de um objeto de migração.

    Atributos obrigatórios:
        - object_id: identificador simbólico único (ex.: "GL_BALANCE")
        - name: nome legível
        - module: tag de módulo (FI, CO, MM, ...)
        - depends_on: pré-requisitos diretos
        - load_on_validation_errors: opt-in para carregar mesmo com erros de validação
    """

    object_id: str
    name: str
    module: str
    depends_on: Sequence[str]
    load_on_validation_errors: bool

    def extract(self, gateway: Gateway) -> PhaseResult:
        ...

    def transform(self, records: List[Dict[str, Any]]) -> PhaseResult:
        ...

    def validate(self, records: List[Dict[str, Any]]) -> PhaseResult:
        ...

    def load(self, records: List[Dict[str, Any]], gateway: Gateway) -> PhaseResult:
        ...


class BaseMigrationObject:
    """
    Implementação auxiliar das fases ETLV a partir de dados declarativos.

    Subclasses tipicamente declaram apenas atributos de classe:

        class GlAccountMaster(BaseMigrationObject):
            object_id = "GL_ACCOUNT_MASTER"
            name = "GL Account Master"
            module = "FI"
            source_table = "SKA1"
            field_mappings = [{"source": "SAKNR", "target": "GLAccount", "convert": "padLeft10"}]
            quality_checks = {"required": ["GLAccount"], "exactDuplicate": {"keys": ["GLAccount"]}}

    Os mesmos valores podem ser passados ao construtor. Sem mapeamentos, a
    fase transform repassa os registros inalterados.
    """

    object_id: str = ""
    name: str = ""
    module: str = ""
    depends_on: Sequence[str] = ()
    source_table: Optional[str] = None
    source_fields: Sequence[str] = ()
    max_rows: Optional[int] = None
    field_mappings: Sequence[Any] = ()
    quality_checks: Any = None
    load_on_validation_errors: bool = False
    post_transform = None

    def __init__(
        self,
        *,
        object_id: Optional[str] = None,
        name: Optional[str] = None,
        module: Optional[str] = None,
        depends_on: Optional[Sequence[str]] = None,
        source_table: Optional[str] = None,
        source_fields: Optional[Sequence[str]] = None,
        max_rows: Optional[int] = None,
        field_mappings: Optional[Sequence[Any]] = None,
        quality_checks: Optional[Mapping[str, Any]] = None,
        load_on_validation_errors: Optional[bool] = None,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
        fuzzy_max_records: int = DEFAULT_FUZZY_MAX_RECORDS,
    ):
        self.object_id = object_id if object_id is not None else self.object_id
        if not isinstance(self.object_id, str) or not self.object_id.strip():
            raise ValueError("object_id must be a non-empty string")
        self.name = name if name is not None else (self.name or self.object_id)
        self.module = (module if module is not None else self.module or "").upper()
        self.depends_on = tuple(depends_on if depends_on is not None else self.depends_on)
        self.source_table = source_table if source_table is not None else (self.source_table or self.object_id)
        self.source_fields = tuple(source_fields if source_fields is not None else self.source_fields)
        self.max_rows = max_rows if max_rows is not None else self.max_rows
        if self.max_rows is not None and int(self.max_rows) < 0:
            raise ValueError("max_rows must be >= 0")
        self.raw_mappings: Tuple[Any, ...] = tuple(
            field_mappings if field_mappings is not None else self.field_mappings
        )
        self.field_mappings: Tuple[FieldMapping, ...] = tuple(parse_mappings(self.raw_mappings))
        self.quality_checks = QualityChecks.from_dict(
            quality_checks if quality_checks is not None else self.quality_checks
        )
        if load_on_validation_errors is not None:
            self.load_on_validation_errors = bool(load_on_validation_errors)
        self.fuzzy_threshold = fuzzy_threshold
        self.fuzzy_max_records = fuzzy_max_records

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> "BaseMigrationObject":
        """
        Constrói o objeto lendo a seção `quality` da configuração.

        Argumentos explícitos sempre vencem a configuração.
        """
        cfg = (config or {}).get("quality", {}) or {}
        kwargs.setdefault("fuzzy_threshold", float(cfg.get("fuzzy_threshold", DEFAULT_FUZZY_THRESHOLD)))
        kwargs.setdefault("fuzzy_max_records", int(cfg.get("fuzzy_max_records", DEFAULT_FUZZY_MAX_RECORDS)))
        return cls(**kwargs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(object_id={self.object_id!r}, module={self.module!r})"

    # -----------------------------
    # Extract
    # -----------------------------
    def read_source(self, gateway: Gateway) -> List[Dict[str, Any]]:
        """Leitura de origem; sobrescreva para extrações com múltiplas tabelas."""
        return gateway.read_table(
            self.source_table,
            fields=list(self.source_fields) or None,
            max_rows=self.max_rows,
        )

    def extract(self, gateway: Gateway) -> PhaseResult:
        records = list(self.read_source(gateway))
        return PhaseResult(
            phase=Phase.EXTRACT,
            status=PhaseStatus.PASSED,
            record_count=len(records),
            success_count=len(records),
            records=records,
            meta={"source_table": self.source_table, "mode": getattr(gateway, "mode", None)},
        )

    # -----------------------------
    # Transform
    # -----------------------------
    def transform(self, records: List[Dict[str, Any]]) -> PhaseResult:
        if not self.field_mappings:
            out = [dict(r) for r in records]
            return PhaseResult(
                phase=Phase.TRANSFORM,
                status=PhaseStatus.PASSED,
                record_count=len(out),
                success_count=len(out),
                records=out,
                meta={"mapping_summary": {"total_mappings": 0, "processed": len(out), "mapped": 0, "errors": 0}},
            )

        outcome = apply_mappings(self.field_mappings, records)
        errors = outcome.summary["errors"]
        return PhaseResult(
            phase=Phase.TRANSFORM,
            status=PhaseStatus.ERRORS if outcome.has_errors else PhaseStatus.PASSED,
            record_count=len(outcome.records),
            success_count=len(outcome.records),
            error_count=errors,
            records=outcome.records,
            diagnostics=outcome.diagnostics,
            meta={"mapping_summary": outcome.summary},
        )

    # -----------------------------
    # Validate
    # -----------------------------
    def validate(self, records: List[Dict[str, Any]]) -> PhaseResult:
        report = check_quality(
            records,
            self.quality_checks,
            fuzzy_threshold=self.fuzzy_threshold,
            fuzzy_max_records=self.fuzzy_max_records,
        )
        failing = [c for c in report.checks if c["severity"] != SEVERITY_PASS]
        diagnostics: List[Dict[str, Any]] = []
        if report.error_count > 0:
            diagnostics.append(
                phase_validation(
                    object_id=self.object_id,
                    phase=Phase.VALIDATE.value,
                    error_count=report.error_count,
                    checks=[{"name": c["name"], "count": c["count"]} for c in report.errors],
                ).to_dict()
            )
        diagnostics.extend(failing)

        return PhaseResult(
            phase=Phase.VALIDATE,
            status=_QUALITY_STATUS[report.status],
            record_count=len(records),
            success_count=len(records),
            error_count=report.error_count,
            warning_count=report.warning_count,
            diagnostics=diagnostics,
            meta={"checks": [{"name": c["name"], "severity": c["severity"], "count": c["count"]} for c in report.checks]},
        )

    # -----------------------------
    # Load
    # -----------------------------
    def load(self, records: List[Dict[str, Any]], gateway: Gateway) -> PhaseResult:
        loaded: List[Dict[str, Any]] = []
        failures: List[Dict[str, Any]] = []
        error_count = 0

        for row, record in enumerate(records):
            response = gateway.write_object(self.object_id, record) or {}
            if response.get("success", False):
                loaded.append(record)
                continue
            error_count += 1
            if len(failures) < MAX_LOAD_FAILURE_DETAILS:
                failures.append({"row": row, "error": response.get("error", "write rejected")})

        return PhaseResult(
            phase=Phase.LOAD,
            status=PhaseStatus.ERRORS if error_count else PhaseStatus.PASSED,
            record_count=len(records),
            success_count=len(loaded),
            error_count=error_count,
            records=loaded,
            diagnostics=failures,
        )
