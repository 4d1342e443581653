# src/etlv_orchestrator/core/config/__init__.py
"""
Camada de configuração do orquestrador.

Carrega, mescla e identifica a configuração efetiva de uma run:

    - `defaults.yaml` empacotado (obrigatório)
    - arquivo local de overrides (opcional, YAML ou JSON)

Política de merge:
    - dict → merge recursivo por chave
    - list → sobrescrita total
    - escalar → sobrescrita direta
    - conflito de tipos → `ConfigTypeConflictError`

A configuração efetiva é um `dict` puro; o hash SHA-256 da forma canônica
identifica a configuração no Manifest da run.
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import DEFAULTS_PATH, load_config
from .merge import deep_merge

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "DEFAULTS_PATH",
    "load_config",
    "deep_merge",
]
