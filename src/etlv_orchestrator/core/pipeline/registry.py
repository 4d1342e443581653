# src/etlv_orchestrator/core/pipeline/registry.py
"""
Registro explícito de objetos de migração.

O `ObjectRegistry` é construído no início do processo e recebe objetos por
chamadas explícitas a `register`; não existe registro por efeito colateral
de import.

Decisões arquiteturais:
    - Registro por `object_id` simbólico
    - Re-registro do mesmo id é idempotente: o último vence e a posição
      original na ordem de inserção é mantida
    - O grafo de dependências é alimentado no registro (depends_on + módulo)
    - Definições de mapeamento são revisadas no registro; problemas são
      registrados no log, nunca levantados

Invariantes:
    - `list_ids()` reflete a ordem de primeira inserção
    - O registry só cresce durante a run (append-only)

Limites explícitos:
    - Não planeja nem executa objetos
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from etlv_orchestrator.core.graph import DependencyGraph

from .mapping import validate_mappings
from .migration_object import MigrationObject


logger = logging.getLogger(__name__)


class ObjectRegistry:
    """Registro canônico de objetos de migração + grafo de dependências."""

    def __init__(self, graph: Optional[DependencyGraph] = None):
        self.graph: DependencyGraph = graph if graph is not None else DependencyGraph()
        self._objects: Dict[str, MigrationObject] = {}
        self.mapping_issues: Dict[str, List[str]] = {}

    def register(self, obj: MigrationObject) -> None:
        object_id = getattr(obj, "object_id", None)
        if not isinstance(object_id, str) or not object_id.strip():
            raise ValueError("object_id must be a non-empty string")

        if object_id in self._objects:
            logger.debug("Objeto %s re-registrado; última definição prevalece", object_id)
        self._objects[object_id] = obj

        self.graph.set_dependencies(
            object_id,
            list(getattr(obj, "depends_on", ()) or ()),
            module=getattr(obj, "module", None) or None,
        )

        raw = getattr(obj, "raw_mappings", None)
        if raw is None:
            raw = getattr(obj, "field_mappings", ()) or ()
        review = validate_mappings(list(raw))
        if review["valid"]:
            self.mapping_issues.pop(object_id, None)
        else:
            self.mapping_issues[object_id] = list(review["errors"])
            for err in review["errors"]:
                logger.warning("Mapeamento inválido em %s: %s", object_id, err)

    def get(self, object_id: str) -> MigrationObject:
        return self._objects[object_id]

    def has(self, object_id: str) -> bool:
        return object_id in self._objects

    def list_ids(self) -> List[str]:
        return list(self._objects)

    def list(self) -> List[MigrationObject]:
        return list(self._objects.values())

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __iter__(self) -> Iterator[MigrationObject]:
        return iter(self.list())
