# src/etlv_orchestrator/core/pipeline/hooks.py
"""
Hooks pós-transform específicos de objeto.

Um hook recebe os registros já mapeados e devolve `(registros, meta)`;
o runtime o executa depois da passada genérica de mapeamento.

Hook disponível:
    - merge_dual_roles: consolida cliente e fornecedor que representam a
      mesma entidade em um único parceiro com os dois papéis
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple


CUSTOMER_ROLE = "FLCU01"
SUPPLIER_ROLE = "FLVN01"
ROLES_FIELD = "_roles"

_BLANK_IDS = {"0000000000"}


def _has_value(value: Any) -> bool:
    return value is not None and value != "" and value not in _BLANK_IDS


def merge_dual_roles(
    records: Sequence[Dict[str, Any]],
    *,
    key_fields: Sequence[str] = ("BusinessPartnerFullName", "CityName"),
    customer_field: str = "Customer",
    supplier_field: str = "Supplier",
) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Funde registros com a mesma chave (campos de `key_fields`, em maiúsculas).

    O primeiro registro de cada chave é mantido; campos vazios dele são
    preenchidos com valores não vazios dos registros seguintes. Cada
    registro resultante recebe `_roles` com FLCU01 e/ou FLVN01.

    Returns:
        (registros fundidos, {"merged_count": n}) onde n é a redução na
        quantidade de registros.
    """
    by_key: Dict[str, Dict[str, Any]] = {}
    merged: List[Dict[str, Any]] = []

    for original in records:
        rec = dict(original)
        key = "|".join(str(rec.get(f) or "").upper() for f in key_fields)
        existing = by_key.get(key)

        if existing is None:
            roles: List[str] = []
            if _has_value(rec.get(customer_field)):
                roles.append(CUSTOMER_ROLE)
            if _has_value(rec.get(supplier_field)):
                roles.append(SUPPLIER_ROLE)
            rec[ROLES_FIELD] = roles
            by_key[key] = rec
            merged.append(rec)
            continue

        for k, v in rec.items():
            if k == ROLES_FIELD:
                continue
            if not _has_value(existing.get(k)) and _has_value(v):
                existing[k] = v
        if _has_value(rec.get(customer_field)) and CUSTOMER_ROLE not in existing[ROLES_FIELD]:
            existing[ROLES_FIELD].append(CUSTOMER_ROLE)
        if _has_value(rec.get(supplier_field)) and SUPPLIER_ROLE not in existing[ROLES_FIELD]:
            existing[ROLES_FIELD].append(SUPPLIER_ROLE)

    return merged, {"merged_count": len(records) - len(merged)}
