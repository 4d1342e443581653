# src/etlv_orchestrator/core/pipeline/quality.py
"""
Verificações de qualidade de dados (fase validate).

Especificação declarativa por objeto (`QualityChecks`):

    required        → campos não vazios em todo registro           (error)
    exact_duplicate → chaves únicas no conjunto de registros        (error)
    fuzzy_duplicate → pares semelhantes acima do limiar             (warning)
    referential     → valores dentro de um domínio permitido        (error)
    format          → valores aderentes a uma expressão regular     (warning)
    range           → valores numéricos dentro de [min, max]        (warning)

Decisões arquiteturais:
    - Duplicidade exata é detectada com `pandas.Series.duplicated`
      (primeira ocorrência é a referência)
    - Similaridade aproximada é a de Levenshtein normalizada
      (`1 - distância / maior comprimento`, via rapidfuzz) sobre as chaves
      normalizadas (minúsculas, sem espaços nas bordas)
    - Pares idênticos (similaridade 1.0) pertencem à regra exata, não à aproximada

Invariantes:
    - `error_count` / `warning_count` somam as violações das checagens de
      severidade correspondente
    - status = errors se error_count > 0; warnings se warning_count > 0; senão passed
    - Nenhuma checagem muta os registros

Limites explícitos:
    - Não remove nem corrige registros
    - Não decide se o load deve rodar
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd
from rapidfuzz.distance import Levenshtein


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_PASS = "pass"

DEFAULT_FUZZY_THRESHOLD = 0.85
DEFAULT_FUZZY_MAX_RECORDS = 10000


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


@dataclass(frozen=True)
class QualityChecks:
    """Especificação imutável das checagens de um objeto de migração."""

    required: Sequence[str] = ()
    exact_duplicate_keys: Sequence[str] = ()
    fuzzy_duplicate_keys: Sequence[str] = ()
    fuzzy_threshold: Optional[float] = None
    referential: Sequence[Mapping[str, Any]] = ()
    format: Sequence[Mapping[str, Any]] = ()
    range: Sequence[Mapping[str, Any]] = ()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "QualityChecks":
        """
        Aceita a forma declarativa `{required[], exactDuplicate{keys[]},
        fuzzyDuplicate{keys[], threshold}, referential[], format[], range[]}`
        (chaves em camelCase ou snake_case).
        """
        if isinstance(data, QualityChecks):
            return data
        data = dict(data or {})
        exact = data.get("exactDuplicate", data.get("exact_duplicate")) or {}
        fuzzy = data.get("fuzzyDuplicate", data.get("fuzzy_duplicate")) or {}
        return cls(
            required=tuple(data.get("required") or ()),
            exact_duplicate_keys=tuple(exact.get("keys") or ()),
            fuzzy_duplicate_keys=tuple(fuzzy.get("keys") or ()),
            fuzzy_threshold=fuzzy.get("threshold"),
            referential=tuple(data.get("referential") or ()),
            format=tuple(data.get("format") or ()),
            range=tuple(data.get("range") or ()),
        )


@dataclass
class QualityReport:
    status: str
    total_records: int
    checks: List[Dict[str, Any]] = field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0

    @property
    def errors(self) -> List[Dict[str, Any]]:
        return [c for c in self.checks if c["severity"] == SEVERITY_ERROR]

    @property
    def warnings(self) -> List[Dict[str, Any]]:
        return [c for c in self.checks if c["severity"] == SEVERITY_WARNING]


def _check(name: str, severity_on_fail: str, violations: List[Dict[str, Any]], fail_msg: str, ok_msg: str) -> Dict[str, Any]:
    failed = bool(violations)
    return {
        "name": name,
        "severity": severity_on_fail if failed else SEVERITY_PASS,
        "message": fail_msg if failed else ok_msg,
        "count": len(violations),
        "details": violations,
    }


# ---------------------------------------------------------------------------
# Checagens individuais
# ---------------------------------------------------------------------------

def check_required(records: Sequence[Mapping[str, Any]], fields: Sequence[str]) -> Dict[str, Any]:
    missing = [
        {"row": i, "field": f}
        for i, rec in enumerate(records)
        for f in fields
        if _is_empty(rec.get(f))
    ]
    joined = ", ".join(fields)
    return _check(
        "required",
        SEVERITY_ERROR,
        missing,
        f"{len(missing)} valor(es) obrigatório(s) ausente(s) nos campos: {joined}",
        f"Campos obrigatórios presentes: {joined}",
    )


def find_exact_duplicates(records: Sequence[Mapping[str, Any]], keys: Sequence[str]) -> Dict[str, Any]:
    composite = pd.Series(
        ["|".join("" if rec.get(k) is None else str(rec.get(k)) for k in keys) for rec in records],
        dtype=object,
    )
    duplicated = composite.duplicated(keep="first")

    first_seen: Dict[str, int] = {}
    for idx, key in composite[~duplicated].items():
        first_seen[key] = int(idx)

    dups = [
        {"row": int(idx), "duplicate_of": first_seen[key], "key": key}
        for idx, key in composite[duplicated].items()
    ]
    joined = ", ".join(keys)
    return _check(
        "exactDuplicate",
        SEVERITY_ERROR,
        dups,
        f"{len(dups)} duplicata(s) exata(s) nas chaves: {joined}",
        f"Nenhuma duplicata exata nas chaves: {joined}",
    )


def similarity(a: str, b: str) -> float:
    """Similaridade normalizada em [0, 1]; duas strings vazias são idênticas."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def find_fuzzy_duplicates(
    records: Sequence[Mapping[str, Any]],
    keys: Sequence[str],
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
    max_records: int = DEFAULT_FUZZY_MAX_RECORDS,
) -> Dict[str, Any]:
    strings = [
        " ".join(str(rec.get(k) or "").lower().strip() for k in keys)
        for rec in records
    ]
    limit = min(len(strings), max_records)
    candidates: List[Dict[str, Any]] = []
    for i in range(limit):
        for j in range(i + 1, limit):
            sim = similarity(strings[i], strings[j])
            if threshold <= sim < 1.0:
                candidates.append({"row_a": i, "row_b": j, "similarity": round(sim, 2)})

    return _check(
        "fuzzyDuplicate",
        SEVERITY_WARNING,
        candidates,
        f"{len(candidates)} possível(is) duplicata(s) aproximada(s) (limiar: {threshold})",
        f"Nenhuma duplicata aproximada (limiar: {threshold})",
    )


def check_referential(records: Sequence[Mapping[str, Any]], field_name: str, valid_values: Iterable[Any]) -> Dict[str, Any]:
    allowed = set(valid_values)
    violations = [
        {"row": i, "field": field_name, "value": rec.get(field_name)}
        for i, rec in enumerate(records)
        if not _is_empty(rec.get(field_name)) and rec.get(field_name) not in allowed
    ]
    return _check(
        "referentialIntegrity",
        SEVERITY_ERROR,
        violations,
        f"{len(violations)} violação(ões) de integridade referencial em {field_name}",
        f"Integridade referencial OK em {field_name}",
    )


def check_format(
    records: Sequence[Mapping[str, Any]],
    field_name: str,
    pattern: str,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    regex = re.compile(pattern)
    violations = [
        {"row": i, "field": field_name, "value": rec.get(field_name)}
        for i, rec in enumerate(records)
        if not _is_empty(rec.get(field_name)) and not regex.search(str(rec.get(field_name)))
    ]
    return _check(
        "format",
        SEVERITY_WARNING,
        violations,
        f"{len(violations)} violação(ões) de formato em {field_name} ({description or pattern})",
        f"Formato OK em {field_name}",
    )


def check_range(
    records: Sequence[Mapping[str, Any]],
    field_name: str,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Dict[str, Any]:
    violations: List[Dict[str, Any]] = []
    for i, rec in enumerate(records):
        raw = rec.get(field_name)
        if _is_empty(raw):
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if min_value is not None and value < min_value:
            violations.append({"row": i, "field": field_name, "value": value, "reason": f"abaixo do mínimo {min_value}"})
        if max_value is not None and value > max_value:
            violations.append({"row": i, "field": field_name, "value": value, "reason": f"acima do máximo {max_value}"})
    return _check(
        "range",
        SEVERITY_WARNING,
        violations,
        f"{len(violations)} violação(ões) de faixa em {field_name}",
        f"Faixa OK em {field_name}",
    )


# ---------------------------------------------------------------------------
# Orquestração das checagens
# ---------------------------------------------------------------------------

def check_quality(
    records: Sequence[Mapping[str, Any]],
    checks: Any,
    *,
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    fuzzy_max_records: int = DEFAULT_FUZZY_MAX_RECORDS,
) -> QualityReport:
    """
    Executa todas as checagens declaradas e consolida o relatório.

    `fuzzy_threshold` é usado quando a própria especificação não declara limiar.
    """
    qc = QualityChecks.from_dict(checks)
    results: List[Dict[str, Any]] = []

    if qc.required:
        results.append(check_required(records, qc.required))
    if qc.exact_duplicate_keys:
        results.append(find_exact_duplicates(records, qc.exact_duplicate_keys))
    if qc.fuzzy_duplicate_keys:
        threshold = qc.fuzzy_threshold if qc.fuzzy_threshold is not None else fuzzy_threshold
        results.append(
            find_fuzzy_duplicates(records, qc.fuzzy_duplicate_keys, threshold, fuzzy_max_records)
        )
    for ref in qc.referential:
        results.append(
            check_referential(records, ref["field"], ref.get("valid_values", ref.get("validSet", ())))
        )
    for fmt in qc.format:
        results.append(check_format(records, fmt["field"], fmt["pattern"], fmt.get("description")))
    for rng in qc.range:
        results.append(check_range(records, rng["field"], rng.get("min"), rng.get("max")))

    error_count = sum(c["count"] for c in results if c["severity"] == SEVERITY_ERROR)
    warning_count = sum(c["count"] for c in results if c["severity"] == SEVERITY_WARNING)
    if error_count > 0:
        status = "errors"
    elif warning_count > 0:
        status = "warnings"
    else:
        status = "passed"

    return QualityReport(
        status=status,
        total_records=len(records),
        checks=results,
        error_count=error_count,
        warning_count=warning_count,
    )
