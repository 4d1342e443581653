# src/etlv_orchestrator/core/__init__.py
"""
Core do orquestrador ETLV.

Componentes principais:
    - config       → defaults YAML, merge e hashing de configuração
    - errors       → taxonomia fechada de erros (payload + códigos)
    - graph        → grafo de dependências, catálogo padrão e ondas
    - pipeline     → contrato de objeto, mapeamento, qualidade e registry
    - engine       → runtime ETLV, planner e orquestrador
    - progress     → Progress Bus e transporte SSE
    - traceability → Manifest de auditoria da run
    - gateway      → contrato de origem/destino e gateway mock

Princípios fundamentais:
    - Falhas por objeto são contidas e registradas, nunca propagadas
    - Erros de programação (ids desconhecidos, opções inválidas) propagam
    - Todo estado de run é rastreável (RunContext, eventos, Manifest)

Limites explícitos:
    - Não implementa protocolo de backend real
    - Não persiste estado entre processos
"""
