# src/etlv_orchestrator/core/config/errors.py
"""
Exceções canônicas da camada de configuração.

Todas herdam de `ConfigError`, permitindo captura genérica de falhas de
configuração e distinção clara em relação a falhas de execução de objetos.
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do orquestrador.

    Limites explícitos:
        - Não representa erro de domínio
        - Não representa falha de fase de um objeto de migração
    """


class DefaultsNotFoundError(ConfigError):
    """
    O arquivo de configuração base (defaults) não existe no caminho informado.

    Sem defaults não existe configuração efetiva válida.
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Formato de arquivo não suportado pelo loader.

    Formatos suportados:
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz da configuração não é um dicionário (`dict`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"orchestrator": {"parallel": true}}
        - override: {"orchestrator": "serial"}

    Nenhum merge parcial é produzido em caso de conflito.
    """
