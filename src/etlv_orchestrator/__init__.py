# src/etlv_orchestrator/__init__.py
"""
ETLV Orchestrator — execução de migrações Extract/Transform/Validate/Load
entre sistemas corporativos, respeitando dependências entre objetos.

Arquitetura em alto nível:
    - core.graph        → grafo de dependências e partição em ondas
    - core.pipeline     → contrato de objeto de migração e registry
    - core.engine       → runtime ETLV, planner e orquestrador
    - core.progress     → Progress Bus com replay e transporte SSE
    - core.traceability → Manifest de auditoria
    - api               → façade pública (plan, run_all, subscribe, exit codes)

Limites explícitos:
    - Não define objetos de migração concretos de negócio
    - Não implementa gateways reais (apenas o contrato e um mock)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
