# src/etlv_orchestrator/core/gateway.py
"""
Contrato do gateway de origem/destino e gateway mock determinístico.

O gateway é consumido pelas fases extract e load. O orquestrador não
define o protocolo de rede de nenhum backend: apenas exige

    - `mode` ∈ {"mock", "live"}
    - `read_table(name, fields=None, max_rows=None) -> List[dict]`
    - `write_object(object_type, record) -> dict` com `success: bool`

Política de falhas:
    - Rejeição de um registro é reportada no retorno de `write_object`
      (`success=False`), nunca por exceção
    - Exceção levantada pelo gateway (inacessível, timeout) é fatal para a fase

O `MockGateway` lê registros de um dicionário em memória ou de fixtures
JSON (`<dir>/<TABELA>.json`) e simula uma taxa determinística de falhas
de load.
"""

from __future__ import annotations

import copy
import json
import math
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from etlv_orchestrator.core.exceptions import GatewayUnreachable


MODE_MOCK = "mock"
MODE_LIVE = "live"


@runtime_checkable
class Gateway(Protocol):
    mode: str

    def read_table(
        self,
        name: str,
        fields: Optional[Sequence[str]] = None,
        max_rows: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def write_object(self, object_type: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        ...


class MockGateway:
    """
    Gateway em memória para modo mock e testes.

    `load_error_rate` define a fração de registros rejeitados por tipo de
    objeto: entre os n primeiros registros escritos, exatamente
    floor(n * rate) são rejeitados, sempre nas mesmas posições.
    """

    mode = MODE_MOCK

    def __init__(
        self,
        tables: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None,
        *,
        fixtures_dir: Optional[Union[str, Path]] = None,
        load_error_rate: float = 0.0,
        reachable: bool = True,
    ):
        if not 0.0 <= float(load_error_rate) <= 1.0:
            raise ValueError("load_error_rate must be within [0, 1]")
        self._tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.fixtures_dir = Path(fixtures_dir) if fixtures_dir is not None else None
        self.load_error_rate = float(load_error_rate)
        self.reachable = reachable
        self.written: Dict[str, List[Dict[str, Any]]] = {}
        self._write_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> "MockGateway":
        gw_cfg = (config or {}).get("gateway", {}) or {}
        kwargs.setdefault("load_error_rate", float(gw_cfg.get("load_error_rate", 0.0)))
        return cls(**kwargs)

    def _ensure_reachable(self) -> None:
        if not self.reachable:
            raise GatewayUnreachable(
                message="Gateway inacessível",
                details={"mode": self.mode},
                hint="Verifique conectividade com o sistema de origem/destino.",
            )

    def _load_fixture(self, name: str) -> List[Dict[str, Any]]:
        if name in self._tables:
            return self._tables[name]
        if self.fixtures_dir is None:
            return []
        path = self.fixtures_dir / f"{name}.json"
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        rows = data.get("records", []) if isinstance(data, dict) else data
        self._tables[name] = [dict(r) for r in rows]
        return self._tables[name]

    def read_table(
        self,
        name: str,
        fields: Optional[Sequence[str]] = None,
        max_rows: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._ensure_reachable()
        with self._lock:
            rows = copy.deepcopy(self._load_fixture(name))
        if max_rows is not None:
            rows = rows[: max(0, int(max_rows))]
        if fields:
            rows = [{f: r.get(f) for f in fields} for r in rows]
        return rows

    def write_object(self, object_type: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        self._ensure_reachable()
        with self._lock:
            index = self._write_counts.get(object_type, 0)
            self._write_counts[object_type] = index + 1
            rejected = math.floor((index + 1) * self.load_error_rate) > math.floor(index * self.load_error_rate)
            if not rejected:
                self.written.setdefault(object_type, []).append(dict(record))

        if rejected:
            return {"success": False, "index": index, "error": "Registro rejeitado pelo destino (simulado)"}
        return {"success": True, "index": index}
