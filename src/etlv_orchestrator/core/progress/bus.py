# src/etlv_orchestrator/core/progress/bus.py
"""
Progress Bus — difusão de eventos de progresso com histórico limitado.

Responsabilidades:
    - construir eventos (id lexicograficamente crescente + timestamp UTC)
    - manter um ring buffer de histórico (capacidade padrão 200)
    - entregar cada evento a todos os assinantes, na ordem de emissão
    - reenviar os últimos N eventos a quem assina (replay)

Decisões arquiteturais:
    - O histórico é o único recurso mutável compartilhado; emissão e
      snapshot de leitura são serializados por lock
    - Cada assinatura tem fila própria limitada e uma thread de entrega:
      `emit` só enfileira, e o sink roda fora do lock e fora da thread
      emissora
    - Fila cheia descarta o evento para aquele assinante (`dropped`)
    - Assinaturas `direct=True` chamam o sink na própria emissão; uso
      restrito a sinks que apenas enfileiram (ex.: `SSEStream`)
    - Um sink que levanta exceção é removido silenciosamente
    - Tipos fora do conjunto fechado são rejeitados com diagnóstico
      ERR_BUS_UNKNOWN_EVENT, sem registro em histórico

Invariantes:
    - O bus nunca reordena nem deduplica eventos
    - Cada assinante recebe o replay antes de qualquer evento novo
    - Erros do bus nunca propagam para quem emite
    - Keepalives não passam pelo bus (ver `sse.py`)
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from etlv_orchestrator.core.errors import bus_unknown_event


logger = logging.getLogger(__name__)


EVENT_TYPES = frozenset(
    [
        "extraction:start",
        "extraction:progress",
        "extraction:complete",
        "extraction:error",
        "migration:start",
        "migration:progress",
        "migration:complete",
        "migration:error",
        "agent:start",
        "agent:progress",
        "agent:complete",
        "agent:error",
        "system:health",
        "system:info",
    ]
)

DEFAULT_HISTORY_SIZE = 200
DEFAULT_REPLAY_COUNT = 20
DEFAULT_SUBSCRIBER_QUEUE_SIZE = 256

Sink = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    id: str
    type: str
    timestamp: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


class Subscription:
    """
    Assinatura do bus: fila limitada + thread de entrega.

    `offer` nunca bloqueia; quem chama o sink é a thread da assinatura.
    """

    def __init__(
        self,
        id: int,
        sink: Sink,
        *,
        queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE,
        direct: bool = False,
        on_failure: Optional[Callable[["Subscription"], None]] = None,
    ):
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self.id = id
        self.sink = sink
        self.queue_size = queue_size
        self.direct = direct
        self.active = True
        self.dropped = 0
        self._on_failure = on_failure
        self._pending: Deque[Event] = deque()
        self._busy = False
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "Subscription":
        if not self.direct:
            self._thread = threading.Thread(
                target=self._drain,
                name=f"progress-sink-{self.id}",
                daemon=True,
            )
            self._thread.start()
        return self

    def _fail(self, exc: Exception) -> None:
        self.close()
        logger.debug("Assinante %s removido após falha de escrita: %s", self.id, exc)
        if self._on_failure is not None:
            self._on_failure(self)

    def offer(self, event: Event) -> bool:
        """Entrega (direct) ou enfileira o evento. False quando não aceito."""
        if self.direct:
            if not self.active:
                return False
            try:
                self.sink(event)
            except Exception as exc:
                self._fail(exc)
                return False
            return True

        with self._cond:
            if not self.active:
                return False
            if len(self._pending) >= self.queue_size:
                self.dropped += 1
                return False
            self._pending.append(event)
            self._cond.notify_all()
            return True

    def _drain(self) -> None:
        while True:
            with self._cond:
                while self.active and not self._pending:
                    self._cond.wait()
                if not self.active:
                    return
                event = self._pending.popleft()
                self._busy = True
            try:
                self.sink(event)
            except Exception as exc:
                self._fail(exc)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self.active = False
            self._pending.clear()
            self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Aguarda a fila esvaziar e o sink em curso terminar."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._pending and not self._busy, timeout)


class ProgressBus:
    """Broadcaster de eventos de progresso (thread-safe)."""

    def __init__(
        self,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        replay_count: int = DEFAULT_REPLAY_COUNT,
        subscriber_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE,
    ):
        if history_size <= 0:
            raise ValueError("history_size must be positive")
        self.history_size = history_size
        self.replay_count = replay_count
        self.subscriber_queue_size = subscriber_queue_size
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._subscribers: Dict[int, Subscription] = {}
        self._lock = threading.RLock()
        self._sub_ids = itertools.count(1)
        self._last_ms = 0
        self._seq = 0
        self.diagnostics: List[Dict[str, Any]] = []

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProgressBus":
        cfg = (config or {}).get("progress", {}) or {}
        return cls(
            history_size=int(cfg.get("history_size", DEFAULT_HISTORY_SIZE)),
            replay_count=int(cfg.get("replay_count", DEFAULT_REPLAY_COUNT)),
            subscriber_queue_size=int(cfg.get("subscriber_queue_size", DEFAULT_SUBSCRIBER_QUEUE_SIZE)),
        )

    # -----------------------------
    # Emissão
    # -----------------------------
    def _next_id(self) -> str:
        now_ms = int(time.time() * 1000)
        if now_ms > self._last_ms:
            self._last_ms = now_ms
            self._seq = 0
        else:
            self._seq += 1
        return f"{self._last_ms:013d}-{self._seq:06d}"

    def emit(self, event_type: str, data: Optional[Mapping[str, Any]] = None) -> Optional[Event]:
        """
        Registra e difunde um evento. Não espera pelos sinks.

        Returns:
            O evento criado, ou None quando o tipo é rejeitado.
        """
        if event_type not in EVENT_TYPES:
            diag = bus_unknown_event(event_type=event_type).to_dict()
            with self._lock:
                self.diagnostics.append(diag)
            logger.warning("Evento rejeitado: tipo desconhecido %r", event_type)
            return None

        # enfileirar sob o lock mantém a ordem de histórico em todas as filas
        with self._lock:
            event = Event(
                id=self._next_id(),
                type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                data=dict(data or {}),
            )
            self._history.append(event)
            for sub in list(self._subscribers.values()):
                sub.offer(event)
        return event

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            self._subscribers.pop(sub.id, None)

    # -----------------------------
    # Assinaturas
    # -----------------------------
    def _replay_window(self, replay_count: Optional[int], last_event_id: Optional[str]) -> List[Event]:
        history = list(self._history)
        if last_event_id is not None:
            for idx, ev in enumerate(history):
                if ev.id == last_event_id:
                    return history[idx + 1:]
        count = self.replay_count if replay_count is None else replay_count
        if count <= 0:
            return []
        return history[-count:]

    def subscribe(
        self,
        sink: Sink,
        *,
        replay_count: Optional[int] = None,
        last_event_id: Optional[str] = None,
        queue_size: Optional[int] = None,
        direct: bool = False,
    ) -> Subscription:
        """
        Assina o bus. O replay é entregue antes de qualquer novo evento.

        Com `last_event_id` ainda presente no histórico, o replay retoma a
        partir do evento seguinte; caso contrário usa a janela padrão.
        """
        with self._lock:
            sub = Subscription(
                next(self._sub_ids),
                sink,
                queue_size=queue_size or self.subscriber_queue_size,
                direct=direct,
                on_failure=self._remove,
            )
            self._subscribers[sub.id] = sub
            for event in self._replay_window(replay_count, last_event_id):
                sub.offer(event)
                if not sub.active:
                    break
            sub.start()
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        with self._lock:
            subscription.close()
            return self._subscribers.pop(subscription.id, None) is not None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def flush(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Aguarda a entrega de tudo o que já foi enfileirado.

        Returns:
            False se algum assinante não esvaziou dentro de `timeout`.
        """
        with self._lock:
            subs = list(self._subscribers.values())
        deadline = None if timeout is None else time.monotonic() + timeout
        drained = True
        for sub in subs:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            drained = sub.wait_idle(remaining) and drained
        return drained

    # -----------------------------
    # Histórico
    # -----------------------------
    def get_history(self, count: Optional[int] = None, type_filter: Optional[str] = None) -> List[Event]:
        """
        Snapshot do histórico em ordem de emissão.

        `type_filter` é um prefixo (ex.: "migration" ou "migration:error").
        `count` limita aos últimos N eventos após o filtro.
        """
        with self._lock:
            events = list(self._history)
        if type_filter:
            events = [e for e in events if e.type.startswith(type_filter)]
        if count is not None:
            events = events[-count:] if count > 0 else []
        return events
