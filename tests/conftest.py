# tests/conftest.py
"""
Fixtures compartilhados para testes do orquestrador ETLV.

Este módulo define fixtures reutilizáveis que fornecem:
- configuração mínima e determinística (dict já resolvido)
- contexto de execução controlado (RunContext)
- fábrica de objetos de migração dummy sobre `BaseMigrationObject`
- gateway mock em memória
- sink de progresso que apenas grava os eventos recebidos

Decisões arquiteturais:
    - Imports do core são realizados de forma lazy para melhorar a
      clareza de erros durante falhas
    - Objetos dummy leem registros do gateway mock pela tabela com o
      mesmo nome do object_id
    - Falhas são injetadas por parâmetro (`fail_on`), nunca por estado global

Invariantes:
    - Nenhuma fixture executa run real
    - Nenhuma fixture acessa rede
    - Todas as fixtures são isoladas entre testes

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica de domínio
"""

import threading
from datetime import datetime, timezone

import pytest


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """YAML de defaults semelhante ao `defaults.yaml` empacotado (fornecido como string)."""
    return """\
orchestrator:
  parallel: true
  max_workers: 4
progress:
  history_size: 200
  replay_count: 20
quality:
  fuzzy_threshold: 0.85
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """YAML de overrides locais (apenas chaves sobrescritas)."""
    return """\
orchestrator:
  parallel: false
progress:
  replay_count: 5
"""


@pytest.fixture
def dummy_config() -> dict:
    """
    Configuração mínima e já resolvida para testes do engine.

    Invariantes:
        - execução serial por padrão (determinismo de ordem nos testes)
        - load bloqueado quando há erros de validação
    """
    return {
        "orchestrator": {
            "parallel": False,
            "max_workers": 4,
            "include_config": True,
            "include_interfaces": True,
            "load_on_validation_errors": False,
        },
        "progress": {"history_size": 200, "replay_count": 20},
        "gateway": {"mode": "mock", "load_error_rate": 0.0},
    }


@pytest.fixture
def dummy_ctx(dummy_config):
    """
    RunContext determinístico (run_id e created_at fixos, UTC).

    Usado por:
        - Testes do runtime e do orquestrador
        - Testes de logging estruturado
    """
    from etlv_orchestrator.core.pipeline.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config=dummy_config,
        meta={"source": "pytest"},
    )


# =====================================================
# Objetos de migração e gateway
# =====================================================

@pytest.fixture
def DummyObject():
    """
    Fixture factory que fornece uma classe de objeto de migração dummy.

    A classe retornada herda de `BaseMigrationObject` e aceita:
        - `fail_on`: nome da fase que deve levantar RuntimeError
        - `calls`: lista compartilhada onde cada fase executada é anotada
          como (object_id, phase)

    Returns:
        type: Classe _DummyObject instanciável pelos testes.
    """
    from etlv_orchestrator.core.pipeline.migration_object import BaseMigrationObject

    class _DummyObject(BaseMigrationObject):
        def __init__(self, object_id, *, fail_on=None, calls=None, **kwargs):
            super().__init__(object_id=object_id, **kwargs)
            self.fail_on = fail_on
            self.calls = calls if calls is not None else []

        def _mark(self, phase):
            self.calls.append((self.object_id, phase))
            if self.fail_on == phase:
                raise RuntimeError(f"{phase} boom")

        def extract(self, gateway):
            self._mark("extract")
            return super().extract(gateway)

        def transform(self, records):
            self._mark("transform")
            return super().transform(records)

        def validate(self, records):
            self._mark("validate")
            return super().validate(records)

        def load(self, records, gateway):
            self._mark("load")
            return super().load(records, gateway)

    return _DummyObject


@pytest.fixture
def mock_gateway():
    """
    Fábrica de MockGateway. Cada id em `seeded` recebe uma tabela com um
    único registro `{"ID": "1", "NAME": "alpha"}`.
    """
    from etlv_orchestrator.core.gateway import MockGateway

    def _factory(tables=None, *, seeded=(), **kwargs):
        data = {oid: [{"ID": "1", "NAME": "alpha"}] for oid in seeded}
        data.update(tables or {})
        return MockGateway(data, **kwargs)

    return _factory


@pytest.fixture
def recording_sink():
    """Sink de progresso que grava eventos recebidos (thread-safe)."""

    class _Recorder:
        def __init__(self):
            self.events = []
            self._lock = threading.Lock()

        def __call__(self, event):
            with self._lock:
                self.events.append(event)

        def types(self):
            return [e.type for e in self.events]

        def for_object(self, object_id):
            return [e for e in self.events if e.data.get("object_id") == object_id]

    return _Recorder()
