# src/etlv_orchestrator/core/traceability/__init__.py
"""
Rastreabilidade de runs do orquestrador (Manifest).

API pública:
    - RunManifest      → estrutura do Manifest
    - create_manifest  → criação explícita
    - add_event        → evento explícito no Event Log
    - object_started / object_finished / object_failed → estado por objeto
    - run_finished     → fechamento da run com stats
    - save_manifest / load_manifest → persistência JSON
"""

from .manifest import (
    RunManifest,
    add_event,
    create_manifest,
    load_manifest,
    object_failed,
    object_finished,
    object_started,
    run_finished,
    save_manifest,
)

__all__ = [
    "RunManifest",
    "add_event",
    "create_manifest",
    "load_manifest",
    "object_failed",
    "object_finished",
    "object_started",
    "run_finished",
    "save_manifest",
]
