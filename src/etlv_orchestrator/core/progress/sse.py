# src/etlv_orchestrator/core/progress/sse.py
"""
Transporte server-sent events para assinantes do Progress Bus.

Formato (UTF-8, enquadrado por linhas):

    id: <id>
    event: <type>
    data: <json>
    <linha em branco>

Keepalive: `: keepalive` a cada `heartbeat_seconds` sem tráfego; não
carrega id e não é registrado em histórico.

O `SSEStream` é dono de uma fila limitada e de uma thread escritora: o
sink registrado no bus (assinatura `direct`) só enfileira, nunca
bloqueia o emissor, e eventos excedentes são descartados quando a fila
está cheia.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from .bus import DEFAULT_SUBSCRIBER_QUEUE_SIZE, Event, ProgressBus, Subscription


logger = logging.getLogger(__name__)

KEEPALIVE = ": keepalive\n"
DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_QUEUE_SIZE = DEFAULT_SUBSCRIBER_QUEUE_SIZE

_STOP = object()


def format_sse(event: Event) -> str:
    payload = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
    return f"id: {event.id}\nevent: {event.type}\ndata: {payload}\n\n"


def format_connected(client_id: str, ts: Optional[datetime] = None) -> str:
    stamp = (ts or datetime.now(timezone.utc)).isoformat()
    payload = json.dumps({"type": "connected", "client_id": client_id, "timestamp": stamp})
    return f"event: connected\ndata: {payload}\n\n"


class SSEStream:
    """
    Assinante de streaming: enfileira eventos do bus e os escreve em
    `write` a partir de uma thread dedicada.

    Uma falha em `write` encerra o stream e cancela a assinatura.
    """

    def __init__(
        self,
        bus: ProgressBus,
        write: Callable[[str], Any],
        *,
        client_id: Optional[str] = None,
        heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        last_event_id: Optional[str] = None,
        replay_count: Optional[int] = None,
    ):
        self.bus = bus
        self.write = write
        self.client_id = client_id or uuid.uuid4().hex
        self.heartbeat_seconds = heartbeat_seconds
        self.last_event_id = last_event_id
        self.replay_count = replay_count
        self.dropped = 0
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_size)
        self._subscription: Optional[Subscription] = None
        self._thread: Optional[threading.Thread] = None
        self._closed = threading.Event()

    @classmethod
    def from_config(cls, bus: ProgressBus, write: Callable[[str], Any], config: Mapping[str, Any], **kwargs: Any) -> "SSEStream":
        cfg = (config or {}).get("progress", {}) or {}
        kwargs.setdefault("heartbeat_seconds", float(cfg.get("heartbeat_seconds", DEFAULT_HEARTBEAT_SECONDS)))
        kwargs.setdefault("queue_size", int(cfg.get("subscriber_queue_size", DEFAULT_QUEUE_SIZE)))
        return cls(bus, write, **kwargs)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _enqueue(self, event: Event) -> None:
        if self._closed.is_set():
            raise RuntimeError("stream closed")
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1

    def start(self) -> "SSEStream":
        self.write(format_connected(self.client_id))
        self._subscription = self.bus.subscribe(
            self._enqueue,
            replay_count=self.replay_count,
            last_event_id=self.last_event_id,
            direct=True,
        )
        self._thread = threading.Thread(
            target=self._run,
            name=f"sse-{self.client_id[:8]}",
            daemon=True,
        )
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._closed.is_set():
            try:
                item = self._queue.get(timeout=self.heartbeat_seconds)
            except queue.Empty:
                item = None
            if item is _STOP:
                break
            try:
                if item is None:
                    self.write(KEEPALIVE)
                else:
                    self.write(format_sse(item))
            except Exception as exc:
                logger.debug("Cliente SSE %s desconectado: %s", self.client_id, exc)
                self._shutdown()
                break

    def _shutdown(self) -> None:
        self._closed.set()
        if self._subscription is not None:
            self.bus.unsubscribe(self._subscription)

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self._shutdown()
        try:
            self._queue.put_nowait(_STOP)
        except queue.Full:
            pass
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
