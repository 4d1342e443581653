# src/etlv_orchestrator/core/engine/planner.py
"""
Planejamento de execução — seleção do subconjunto e partição em ondas.

Algoritmo:
    1. parte de `object_ids` (ou de todos os ids registrados)
    2. aplica `include_modules` e depois `exclude_modules` (case-insensitive)
    3. subtrai `exclude_objects`, depois `_CONFIG` e objetos de interface
       quando as respectivas flags são falsas
    4. fecha por pré-requisitos registrados (dependências vencem filtros)
    5. pede ao grafo a partição em ondas

Decisões arquiteturais:
    - Erros de programação (id desconhecido, opções malformadas) levantam
      exceções tipadas; nada mais levanta
    - A ordem de inserção do registry é preservada dentro de cada onda
    - O plano é um valor: pode ser inspecionado sem executar nada

Limites explícitos:
    - Não executa objetos
    - Não emite eventos
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from etlv_orchestrator.core.exceptions import PlannerBadOptions, PlannerUnknownObject
from etlv_orchestrator.core.errors import planner_bad_options, planner_unknown_object
from etlv_orchestrator.core.graph import CONFIG_SUFFIX, INTERFACE_OBJECTS
from etlv_orchestrator.core.pipeline.registry import ObjectRegistry
from etlv_orchestrator.core.pipeline.types import ObjectResult


ProgressCallback = Callable[[str, ObjectResult], Any]

_LIST_OPTIONS = ("object_ids", "include_modules", "exclude_modules", "exclude_objects")
_BOOL_OPTIONS = ("include_config", "include_interfaces", "parallel", "load_on_validation_errors")


@dataclass
class RunOptions:
    """
    Opções de uma run.

    `object_ids=None` significa "todos os registrados". Listas vazias em
    filtros de módulo são tratadas como ausência de filtro.
    """

    object_ids: Optional[List[str]] = None
    include_modules: Optional[List[str]] = None
    exclude_modules: Optional[List[str]] = None
    exclude_objects: Optional[List[str]] = None
    include_config: bool = True
    include_interfaces: bool = True
    parallel: bool = True
    max_workers: int = 8
    load_on_validation_errors: bool = False
    on_progress: Optional[ProgressCallback] = None
    cancel_event: Optional[threading.Event] = None

    def __post_init__(self) -> None:
        for name in _LIST_OPTIONS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
                raise _bad(name, "expected a list of strings", value)
            items = list(value)
            for item in items:
                if not isinstance(item, str) or not item.strip():
                    raise _bad(name, "items must be non-empty strings", value)
            setattr(self, name, items)

        for name in _BOOL_OPTIONS:
            if not isinstance(getattr(self, name), bool):
                raise _bad(name, "expected a boolean", getattr(self, name))

        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise _bad("max_workers", "expected a positive integer", self.max_workers)
        if self.on_progress is not None and not callable(self.on_progress):
            raise _bad("on_progress", "expected a callable", self.on_progress)

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "RunOptions":
        """
        Resolve opções a partir de `config["orchestrator"]`; argumentos
        explícitos sempre vencem a configuração.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise _bad(unknown[0], "unknown option", overrides[unknown[0]])

        section = (config or {}).get("orchestrator", {}) or {}
        if not isinstance(section, Mapping):
            raise _bad("orchestrator", "config section must be a mapping", section)

        values: Dict[str, Any] = {k: v for k, v in section.items() if k in known}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class ExecutionPlan:
    """Resultado do planejamento (sem execução)."""

    object_ids: List[str] = field(default_factory=list)
    waves: List[List[str]] = field(default_factory=list)
    added_prerequisites: List[str] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)
    validation: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_ids": list(self.object_ids),
            "waves": [list(w) for w in self.waves],
            "added_prerequisites": list(self.added_prerequisites),
            "excluded": list(self.excluded),
            "validation": dict(self.validation),
        }


def _bad(option: str, reason: str, received: Any) -> PlannerBadOptions:
    payload = planner_bad_options(option=option, reason=reason, received=received)
    return PlannerBadOptions(message=payload.message, details=payload.details, hint=payload.hint)


def _upper_set(values: Optional[Sequence[str]]) -> set:
    return {v.strip().upper() for v in (values or [])}


def _is_interface(object_id: str) -> bool:
    return object_id in INTERFACE_OBJECTS


def plan_execution(registry: ObjectRegistry, options: Optional[RunOptions] = None) -> ExecutionPlan:
    """Aplica a política de seleção e devolve o plano de ondas."""
    options = options or RunOptions()
    registered = registry.list_ids()
    graph = registry.graph

    requested = options.object_ids
    if requested is not None:
        unknown = [oid for oid in requested if not registry.has(oid)]
        if unknown:
            payload = planner_unknown_object(object_ids=unknown)
            raise PlannerUnknownObject(message=payload.message, details=payload.details, hint=payload.hint)
        wanted = set(requested)
        candidates = [oid for oid in registered if oid in wanted]
    else:
        candidates = list(registered)

    include = _upper_set(options.include_modules)
    exclude = _upper_set(options.exclude_modules)
    excluded: List[str] = []

    def _module(oid: str) -> str:
        return (graph.get_module(oid) or "").upper()

    dropped = set(options.exclude_objects or [])
    selected: List[str] = []
    for oid in candidates:
        if include and _module(oid) not in include:
            excluded.append(oid)
            continue
        if exclude and _module(oid) in exclude:
            excluded.append(oid)
            continue
        if oid in dropped:
            excluded.append(oid)
            continue
        if not options.include_config and oid.endswith(CONFIG_SUFFIX):
            excluded.append(oid)
            continue
        if not options.include_interfaces and _is_interface(oid):
            excluded.append(oid)
            continue
        selected.append(oid)

    chosen = set(selected)
    closure = set(chosen)
    for oid in selected:
        for dep in graph.get_transitive_dependencies(oid):
            if registry.has(dep):
                closure.add(dep)

    added = [oid for oid in registered if oid in closure and oid not in chosen]
    ordered = [oid for oid in registered if oid in closure]
    waves = graph.get_execution_waves(ordered) if ordered else []

    return ExecutionPlan(
        object_ids=ordered,
        waves=waves,
        added_prerequisites=added,
        excluded=[oid for oid in excluded if oid not in closure],
        validation=graph.validate(registered).to_dict(),
    )
