# src/etlv_orchestrator/core/engine/__init__.py
"""
Engine do orquestrador ETLV.

Este pacote planeja e executa runs de migração sobre um registry de
objetos, respeitando o grafo de dependências e as opções da run.

Componentes principais:
    - runtime      → protocolo ETLV de um único objeto (fail-stop por objeto)
    - planner      → seleção por módulo/include/exclude + fecho de
                     pré-requisitos + partição em ondas
    - orchestrator → execução onda a onda (paralela dentro da onda) e
                     agregação em RunResult

Invariantes:
    - Objetos só executam depois de seus pré-requisitos selecionados
    - Cada objeto executa no máximo uma vez por run
    - Falha de um objeto nunca aborta a run

Limites explícitos:
    - Não define objetos de migração concretos
    - Não persiste checkpoint
"""

from .orchestrator import Orchestrator, compute_stats
from .planner import ExecutionPlan, RunOptions, plan_execution
from .runtime import ETLVRuntime, run_object

__all__ = [
    "Orchestrator",
    "compute_stats",
    "ExecutionPlan",
    "RunOptions",
    "plan_execution",
    "ETLVRuntime",
    "run_object",
]
