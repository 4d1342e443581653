# src/etlv_orchestrator/core/pipeline/context.py
"""
Contexto de execução compartilhado de uma run de migração.

O `RunContext` concentra identidade da run, configuração resolvida, log
estruturado de eventos e warnings por objeto. É o único estado mutável
compartilhado entre runtime e orquestrador durante a execução.

Decisões arquiteturais:
    - Logs estruturados ficam em `events` (auditáveis e testáveis)
    - Cada chamada a `log` também é repassada ao logger do processo
    - Escritas são serializadas por lock (objetos de uma onda rodam em paralelo)

Invariantes:
    - Logs sempre incluem `run_id` e `object_id`
    - Warnings são agrupados por `object_id`

Limites explícitos:
    - Não executa objetos
    - Não persiste dados automaticamente
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class RunContext:
    """Contexto de execução de uma run do orquestrador."""

    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, object_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "object_id": object_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)
        logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", object_id, message)

    def add_warning(self, *, object_id: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(object_id, []).append(message)

    def events_for(self, object_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [e for e in self.events if e.get("object_id") == object_id]
