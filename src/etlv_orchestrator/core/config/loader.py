# src/etlv_orchestrator/core/config/loader.py
"""
Loader canônico de configuração do orquestrador.

A configuração é resolvida a partir de:
    - um arquivo de defaults (obrigatório; por padrão o `defaults.yaml` empacotado)
    - um arquivo local de overrides (opcional)

Invariantes:
    - O resultado é sempre um dicionário puro (`dict`)
    - Overrides nunca mutam os defaults
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não valida semântica de opções de execução (ver `RunOptions.from_config`)
    - Não persiste configuração nem hash
"""

from pathlib import Path
from typing import Any, Dict, Optional
import json

import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)


DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


def _load_file(path: Path) -> Dict[str, Any]:
    """
    Carrega um arquivo de configuração e valida sua estrutura básica.

    Arquivos vazios são interpretados como dicionários vazios.

    Raises:
        DefaultsNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo de defaults não encontrado: {path}")

    suffix = path.suffix.lower()

    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)

    else:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__}"
        )

    return data


def load_config(
    *,
    defaults_path: Optional[str] = None,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do orquestrador.

    Política de resolução:
        - O arquivo de defaults é obrigatório (empacotado quando omitido)
        - O arquivo local é opcional e ignorado quando não existe
        - Quando presente, o local sempre tem prioridade sobre defaults

    Args:
        defaults_path (Optional[str]): Caminho para o arquivo de configuração base.
        local_path (Optional[str]): Caminho opcional para overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        DefaultsNotFoundError: Se o arquivo de defaults não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    defaults_file = Path(defaults_path) if defaults_path is not None else DEFAULTS_PATH
    effective = _load_file(defaults_file)

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            local = _load_file(local_file)
            effective = deep_merge(effective, local)

    return effective
