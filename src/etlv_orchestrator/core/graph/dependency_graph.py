# src/etlv_orchestrator/core/graph/dependency_graph.py
"""
Grafo de dependências entre objetos de migração.

Este módulo armazena a relação objeto → pré-requisitos e responde, de forma
pura sobre o estado atual do grafo:

    - dependências diretas e transitivas
    - seleção de subconjuntos (seeds + fecho transitivo) e por módulo
    - impacto (quem depende, transitivamente, de um objeto)
    - ordem topológica restrita a um conjunto de entrada
    - partição em ondas (waves) de objetos mutuamente independentes
    - detecção de ciclos e validação contra o conjunto registrado

Decisões arquiteturais:
    - Ordem topológica por DFS pós-ordem, desempate pela ordem de entrada
    - Ondas por rodadas estilo Kahn; ciclo remanescente vira onda final de
      fallback com warning (nunca deadlock, nunca exceção)
    - Impacto calculado sob demanda por BFS sobre as arestas reversas
    - Percursos em profundidade usam pilha explícita, sem recursão, para
      suportar cadeias de pré-requisitos arbitrariamente longas

Invariantes:
    - Consultas são puras e não levantam exceção, exceto `validate`
      em modo estrito
    - Pré-requisitos fora do conjunto de entrada são ignorados na ordenação
    - Toda mutação ocorre via `set_dependencies` / `set_module`

Limites explícitos:
    - Não executa objetos
    - Não conhece o registry nem o runtime
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from etlv_orchestrator.core.exceptions import GraphCycleError

from .catalog import DEFAULT_DEPENDENCIES, DEFAULT_MODULES


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphValidation:
    """
    Resultado de `DependencyGraph.validate`.

    Campos:
        - valid: True quando não há pré-requisito ausente nem ciclo
        - issues: lista de {object_id, missing_dependency}
        - circular_dependencies: caminhos fechados [a, b, ..., a]
    """

    valid: bool
    issues: List[Dict[str, str]] = field(default_factory=list)
    circular_dependencies: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [dict(i) for i in self.issues],
            "circular_dependencies": [list(c) for c in self.circular_dependencies],
        }


def _unique(items: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    out: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


class DependencyGraph:
    """
    Grafo dirigido objeto → pré-requisitos, com tag de módulo por objeto.

    A ordem de inserção dos objetos é preservada e usada como desempate
    determinístico em todas as consultas que iteram o grafo inteiro.
    """

    def __init__(
        self,
        dependencies: Optional[Mapping[str, Iterable[str]]] = None,
        modules: Optional[Mapping[str, str]] = None,
    ):
        self._dependencies: Dict[str, List[str]] = {}
        self._modules: Dict[str, str] = {}
        for object_id, deps in (dependencies or {}).items():
            self.set_dependencies(object_id, deps)
        for object_id, module in (modules or {}).items():
            self.set_module(object_id, module)

    @classmethod
    def from_catalog(cls) -> "DependencyGraph":
        """Constrói o grafo a partir do catálogo embutido de objetos padrão."""
        return cls(DEFAULT_DEPENDENCIES, DEFAULT_MODULES)

    # -----------------------------
    # Mutação
    # -----------------------------
    def set_dependencies(
        self,
        object_id: str,
        dependencies: Iterable[str],
        module: Optional[str] = None,
    ) -> None:
        """Define (ou substitui) os pré-requisitos diretos de um objeto."""
        if not isinstance(object_id, str) or not object_id.strip():
            raise ValueError("object_id must be a non-empty string")
        self._dependencies[object_id] = _unique(d for d in (dependencies or []) if d)
        if module:
            self.set_module(object_id, module)

    def set_module(self, object_id: str, module: str) -> None:
        self._modules[object_id] = str(module).upper()
        self._dependencies.setdefault(object_id, [])

    # -----------------------------
    # Consultas básicas
    # -----------------------------
    def object_ids(self) -> List[str]:
        return list(self._dependencies)

    def has_object(self, object_id: str) -> bool:
        return object_id in self._dependencies

    def get_module(self, object_id: str) -> Optional[str]:
        return self._modules.get(object_id)

    def get_dependencies(self, object_id: str) -> List[str]:
        return list(self._dependencies.get(object_id, []))

    def get_transitive_dependencies(self, object_id: str) -> List[str]:
        """
        Retorna todos os pré-requisitos alcançáveis a partir de `object_id`.

        A ordem é a de descoberta em profundidade (dependência antes de
        suas próprias dependências); duplicatas e ciclos são tolerados.
        """
        visited: Set[str] = {object_id}
        out: List[str] = []
        stack: List[Iterator[str]] = [iter(self._dependencies.get(object_id, []))]
        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                stack.pop()
                continue
            if dep in visited:
                continue
            visited.add(dep)
            out.append(dep)
            stack.append(iter(self._dependencies.get(dep, [])))
        return out

    def _dependents_index(self) -> Dict[str, List[str]]:
        reverse: Dict[str, List[str]] = {}
        for object_id, deps in self._dependencies.items():
            for dep in deps:
                reverse.setdefault(dep, []).append(object_id)
        return reverse

    def get_impact(self, object_id: str) -> List[str]:
        """Retorna os objetos que dependem (transitivamente) de `object_id`."""
        reverse = self._dependents_index()
        seen: Set[str] = {object_id}
        out: List[str] = []
        queue = deque([object_id])
        while queue:
            current = queue.popleft()
            for dependent in reverse.get(current, []):
                if dependent not in seen:
                    seen.add(dependent)
                    out.append(dependent)
                    queue.append(dependent)
        return out

    # -----------------------------
    # Seleção
    # -----------------------------
    def select_subset(self, object_ids: Iterable[str]) -> List[str]:
        """Seeds + fecho transitivo de pré-requisitos, em ordem topológica."""
        collected: List[str] = []
        for object_id in object_ids:
            collected.append(object_id)
            collected.extend(self.get_transitive_dependencies(object_id))
        return self.get_execution_order(_unique(collected))

    def select_module(self, module: str) -> List[str]:
        """
        Seleciona os objetos de um módulo, expandidos pelo fecho de
        pré-requisitos (que podem pertencer a outros módulos).

        Tag desconhecida retorna lista vazia.
        """
        wanted = str(module or "").upper()
        seeds = [oid for oid in self._dependencies if self._modules.get(oid) == wanted]
        if not seeds:
            return []
        return self.select_subset(seeds)

    # -----------------------------
    # Ordenação
    # -----------------------------
    def get_execution_order(self, object_ids: Iterable[str]) -> List[str]:
        """
        Ordem topológica restrita ao conjunto de entrada.

        DFS pós-ordem: cada objeto aparece depois de todos os seus
        pré-requisitos presentes na entrada. Arestas para fora do
        conjunto são ignoradas; ciclos não causam laço infinito.
        """
        available = _unique(object_ids)
        available_set = set(available)
        visited: Set[str] = set()
        order: List[str] = []

        for root in available:
            if root in visited:
                continue
            visited.add(root)
            stack: List[Tuple[str, Iterator[str]]] = [(root, iter(self._dependencies.get(root, [])))]
            while stack:
                current, deps = stack[-1]
                dep = next(deps, None)
                if dep is None:
                    stack.pop()
                    order.append(current)
                    continue
                if dep in available_set and dep not in visited:
                    visited.add(dep)
                    stack.append((dep, iter(self._dependencies.get(dep, []))))
        return order

    def get_execution_waves(self, object_ids: Iterable[str]) -> List[List[str]]:
        """
        Particiona o conjunto em ondas de objetos mutuamente independentes.

        Cada onda contém os objetos cujos pré-requisitos (dentro do
        conjunto) já foram colocados em ondas anteriores. Se sobrar um
        resíduo sem progresso possível (ciclo), ele é emitido como onda
        final de fallback e um warning é registrado.
        """
        remaining = _unique(object_ids)
        in_set = set(remaining)
        placed: Set[str] = set()
        waves: List[List[str]] = []

        while remaining:
            wave = [
                oid
                for oid in remaining
                if all(
                    dep in placed
                    for dep in self._dependencies.get(oid, [])
                    if dep in in_set
                )
            ]
            if not wave:
                logger.warning(
                    "Dependência circular entre %s; executando como onda final",
                    ", ".join(remaining),
                )
                waves.append(list(remaining))
                break
            waves.append(wave)
            placed.update(wave)
            remaining = [oid for oid in remaining if oid not in placed]

        return waves

    # -----------------------------
    # Ciclos e validação
    # -----------------------------
    def detect_circular_dependencies(self) -> List[List[str]]:
        """
        Retorna os ciclos encontrados como caminhos fechados.

        Exemplo: P → Q → P produz ["P", "Q", "P"].
        """
        cycles: List[List[str]] = []
        visited: Set[str] = set()
        in_stack: Set[str] = set()

        for root in self._dependencies:
            if root in visited:
                continue
            visited.add(root)
            in_stack.add(root)
            path: List[str] = [root]
            stack: List[Iterator[str]] = [iter(self._dependencies.get(root, []))]
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    in_stack.discard(path.pop())
                    continue
                if dep in in_stack:
                    start = path.index(dep)
                    cycles.append(path[start:] + [dep])
                    continue
                if dep in visited:
                    continue
                visited.add(dep)
                in_stack.add(dep)
                path.append(dep)
                stack.append(iter(self._dependencies.get(dep, [])))
        return cycles

    def validate(
        self,
        registered_ids: Optional[Iterable[str]] = None,
        *,
        strict: bool = False,
    ) -> GraphValidation:
        """
        Valida o grafo contra o conjunto de objetos registrados.

        Todo pré-requisito referenciado deve existir em `registered_ids`
        (por padrão, os próprios objetos do grafo). Ciclos, incluindo o
        par mútuo A ↔ B, tornam o grafo inválido.

        Raises:
            GraphCycleError: Apenas com `strict=True` e ao menos um ciclo.
        """
        known = set(registered_ids) if registered_ids is not None else set(self._dependencies)
        issues: List[Dict[str, str]] = []
        for object_id, deps in self._dependencies.items():
            for dep in deps:
                if dep not in known:
                    issues.append({"object_id": object_id, "missing_dependency": dep})

        cycles = self.detect_circular_dependencies()
        if cycles and strict:
            raise GraphCycleError(
                message="Dependência circular detectada no grafo de objetos",
                details={"cycles": [list(c) for c in cycles]},
                hint="Remova uma das arestas do ciclo via `set_dependencies` antes de executar.",
                decision_required=True,
            )

        return GraphValidation(
            valid=not issues and not cycles,
            issues=issues,
            circular_dependencies=cycles,
        )

    def get_stats(self) -> Dict[str, int]:
        """Contagens estruturais: nós, arestas, raízes, folhas e ciclos."""
        reverse = self._dependents_index()
        total_edges = sum(len(deps) for deps in self._dependencies.values())
        roots = sum(1 for deps in self._dependencies.values() if not deps)
        leaves = sum(1 for oid in self._dependencies if not reverse.get(oid))
        return {
            "total_nodes": len(self._dependencies),
            "total_edges": total_edges,
            "roots": roots,
            "leaves": leaves,
            "cycles": len(self.detect_circular_dependencies()),
        }
