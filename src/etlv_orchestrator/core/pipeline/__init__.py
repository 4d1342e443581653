# src/etlv_orchestrator/core/pipeline/__init__.py
"""
# Pipeline ETLV — contratos e estruturas

- **types**: `Phase`, `PhaseStatus`, `ObjectStatus`, `PhaseResult`, `ObjectResult`, `RunResult`
- **context**: `RunContext` (log estruturado e warnings por objeto)
- **migration_object**: `MigrationObject` (Protocol) e `BaseMigrationObject`
- **mapping**: variantes de mapeamento, `CONVERTERS`, `apply_mappings`, `validate_mappings`
- **quality**: `QualityChecks`, `check_quality`
- **hooks**: `merge_dual_roles`
- **registry**: `ObjectRegistry`

Objetos não conhecem o runtime nem o orquestrador; o estado compartilhado
da run é mediado pelo `RunContext`.
"""

from .context import RunContext
from .hooks import merge_dual_roles
from .mapping import (
    CONVERTERS,
    Concat,
    Convert,
    Copy,
    Literal,
    Lookup,
    apply_mappings,
    parse_mapping,
    validate_mappings,
)
from .migration_object import BaseMigrationObject, MigrationObject
from .quality import QualityChecks, QualityReport, check_quality
from .registry import ObjectRegistry
from .types import (
    ObjectResult,
    ObjectStatus,
    Phase,
    PhaseResult,
    PhaseStatus,
    RunResult,
)

__all__ = [
    "RunContext",
    "merge_dual_roles",
    "CONVERTERS",
    "Concat",
    "Convert",
    "Copy",
    "Literal",
    "Lookup",
    "apply_mappings",
    "parse_mapping",
    "validate_mappings",
    "BaseMigrationObject",
    "MigrationObject",
    "QualityChecks",
    "QualityReport",
    "check_quality",
    "ObjectRegistry",
    "ObjectResult",
    "ObjectStatus",
    "Phase",
    "PhaseResult",
    "PhaseStatus",
    "RunResult",
]
