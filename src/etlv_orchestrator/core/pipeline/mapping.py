# src/etlv_orchestrator/core/pipeline/mapping.py
"""
Mapeamento declarativo de campos (fase transform).

Cada entrada de mapeamento é modelada como uma variante explícita:

    - Literal{target, value}                     → constante em todo registro
    - Copy{source, target, default}              → cópia simples (rename)
    - Convert{source, target, primitive, default}→ conversão por primitiva nomeada
    - Lookup{source, target, table, fallback}    → remapeamento por tabela
    - Concat{sources, target, separator}         → concatenação de campos

Entradas heterogêneas `{source?, target, convert?, valueMap?, default?}`
são convertidas para a variante correspondente por `parse_mapping`.

Semântica por registro (ordem fixa):
    1. valor lido de `source`
    2. primitiva aplicada quando presente
    3. tabela aplicada quando presente e quando contém o valor
    4. valor vazio (None ou "") com `default` definido → `default`

Invariantes:
    - Cada mapeamento produz exatamente um campo alvo por registro de entrada
    - Mapeamentos são aplicados na ordem de declaração
    - Primitiva desconhecida nunca levanta exceção: o valor passa inalterado
      e um diagnóstico ERR_PHASE_VALIDATION é emitido

Limites explícitos:
    - Não executa transformações específicas de objeto (ver hooks)
    - Não valida qualidade dos dados
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from etlv_orchestrator.core.errors import unknown_converter


# ---------------------------------------------------------------------------
# Primitivas de conversão (conjunto fechado)
# ---------------------------------------------------------------------------

_FLAG_VALUES = {"Y", "X", "TRUE", "1"}
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _is_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().upper() in _FLAG_VALUES
    return False


def _pad_left(width: int) -> Callable[[Any], str]:
    def _convert(value: Any) -> str:
        if value is None:
            return ""
        return str(value).rjust(width, "0")

    return _convert


def _to_date(value: Any) -> Optional[str]:
    if _is_empty(value):
        return None
    digits = re.sub(r"[^0-9]", "", str(value))
    if len(digits) == 8:
        return f"{digits[0:4]}-{digits[4:6]}-{digits[6:8]}"
    return str(value)


def _to_decimal(value: Any) -> float:
    if _is_empty(value):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_integer(value: Any) -> int:
    if _is_empty(value):
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    match = _INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else 0


def _to_upper(value: Any) -> str:
    return "" if value is None else str(value).upper()


def _to_lower(value: Any) -> str:
    return "" if value is None else str(value).lower()


def _trim(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _strip_leading_zeros(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lstrip("0") or "0"


CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "toDate": _to_date,
    "toDecimal": _to_decimal,
    "toInteger": _to_integer,
    "toUpperCase": _to_upper,
    "toLowerCase": _to_lower,
    "trim": _trim,
    "stripLeadingZeros": _strip_leading_zeros,
    "boolYN": lambda v: "X" if _is_flag(v) else "",
    "boolTF": lambda v: "T" if _is_flag(v) else "F",
    "padLeft6": _pad_left(6),
    "padLeft10": _pad_left(10),
    "padLeft12": _pad_left(12),
    "padLeft40": _pad_left(40),
}


# ---------------------------------------------------------------------------
# Variantes de mapeamento
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    kind: ClassVar[str] = "literal"

    target: str
    value: Any = None


@dataclass(frozen=True)
class Copy:
    kind: ClassVar[str] = "copy"

    source: str
    target: str
    default: Any = None


@dataclass(frozen=True)
class Convert:
    kind: ClassVar[str] = "convert"

    source: str
    target: str
    primitive: str
    default: Any = None


@dataclass(frozen=True)
class Lookup:
    """Remapeia pela tabela; valor ausente da tabela ou vazio cai em `fallback` (ou no próprio valor)."""

    kind: ClassVar[str] = "lookup"

    source: str
    target: str
    table: Dict[Any, Any] = field(default_factory=dict)
    fallback: Any = None
    primitive: Optional[str] = None


@dataclass(frozen=True)
class Concat:
    kind: ClassVar[str] = "concat"

    sources: Tuple[str, ...]
    target: str
    separator: str = " "


FieldMapping = Union[Literal, Copy, Convert, Lookup, Concat]
_VARIANTS = (Literal, Copy, Convert, Lookup, Concat)


def parse_mapping(entry: Union[FieldMapping, Mapping[str, Any]]) -> FieldMapping:
    """
    Converte uma entrada declarativa na variante explícita correspondente.

    Raises:
        ValueError: Se a entrada não tiver `target` ou não tiver fonte nem default.
    """
    if isinstance(entry, _VARIANTS):
        return entry

    target = entry.get("target")
    if not target:
        raise ValueError(f"Mapping without target: {dict(entry)!r}")

    sources = entry.get("sources")
    source = entry.get("source")
    convert = entry.get("convert")
    value_map = entry.get("valueMap", entry.get("value_map"))
    default = entry.get("default")

    if sources:
        separator = entry.get("separator")
        return Concat(
            sources=tuple(sources),
            target=target,
            separator=" " if separator is None else str(separator),
        )

    if source and value_map is not None:
        return Lookup(
            source=source,
            target=target,
            table=dict(value_map),
            fallback=default,
            primitive=convert,
        )

    if source and convert:
        return Convert(source=source, target=target, primitive=convert, default=default)

    if source:
        return Copy(source=source, target=target, default=default)

    if "default" in entry:
        return Literal(target=target, value=default)

    raise ValueError(f"Mapping '{target}' has no source, sources or default")


def parse_mappings(entries: Sequence[Union[FieldMapping, Mapping[str, Any]]]) -> List[FieldMapping]:
    return [parse_mapping(e) for e in entries]


# ---------------------------------------------------------------------------
# Aplicação
# ---------------------------------------------------------------------------

@dataclass
class MappingOutcome:
    """Registros mapeados + resumo + diagnósticos agregados da passada."""

    records: List[Dict[str, Any]]
    summary: Dict[str, int]
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.diagnostics)


def _apply_one(mapping: FieldMapping, record: Mapping[str, Any]) -> Tuple[Any, Optional[str]]:
    """Retorna (valor, primitiva desconhecida ou None)."""
    if isinstance(mapping, Literal):
        return mapping.value, None

    if isinstance(mapping, Concat):
        parts = ["" if record.get(s) is None else str(record.get(s)) for s in mapping.sources]
        return mapping.separator.join(parts), None

    value = record.get(mapping.source)
    unknown: Optional[str] = None

    primitive = getattr(mapping, "primitive", None)
    if primitive:
        converter = CONVERTERS.get(primitive)
        if converter is None:
            unknown = primitive
        else:
            value = converter(value)

    if isinstance(mapping, Lookup):
        try:
            mapped = mapping.table.get(value)
        except TypeError:
            mapped = None
        if mapped is not None:
            value = mapped
        elif mapping.fallback is not None:
            value = mapping.fallback
        if _is_empty(value) and mapping.fallback is not None:
            value = mapping.fallback
        return value, unknown

    if _is_empty(value) and mapping.default is not None:
        value = mapping.default
    return value, unknown


def apply_mappings(
    mappings: Sequence[Union[FieldMapping, Mapping[str, Any]]],
    records: Sequence[Mapping[str, Any]],
) -> MappingOutcome:
    """
    Aplica a lista de mapeamentos, em ordem, a cada registro.

    Exceções de uma primitiva em um registro não interrompem a passada:
    o campo alvo recebe None e a falha é contada em `summary["errors"]`.
    """
    parsed = parse_mappings(mappings)
    out: List[Dict[str, Any]] = []
    mapped = 0
    errors = 0
    unknown_hits: Dict[int, int] = {}
    failures: Dict[int, str] = {}

    for record in records:
        target: Dict[str, Any] = {}
        for idx, mapping in enumerate(parsed):
            try:
                value, unknown = _apply_one(mapping, record)
            except Exception as exc:
                errors += 1
                failures.setdefault(idx, f"{exc.__class__.__name__}: {exc}")
                target[mapping.target] = None
                continue
            if unknown is not None:
                errors += 1
                unknown_hits[idx] = unknown_hits.get(idx, 0) + 1
            target[mapping.target] = value
            mapped += 1
        out.append(target)

    diagnostics: List[Dict[str, Any]] = []
    for idx, count in unknown_hits.items():
        m = parsed[idx]
        diagnostics.append(
            unknown_converter(
                target=m.target,
                primitive=str(getattr(m, "primitive", "")),
                occurrences=count,
            ).to_dict()
        )
    for idx, reason in failures.items():
        diagnostics.append(
            {
                "type": "mapping_error",
                "target": parsed[idx].target,
                "message": reason,
            }
        )

    summary = {
        "total_mappings": len(parsed),
        "processed": len(out),
        "mapped": mapped,
        "errors": errors,
    }
    return MappingOutcome(records=out, summary=summary, diagnostics=diagnostics)


def validate_mappings(entries: Sequence[Union[FieldMapping, Mapping[str, Any]]]) -> Dict[str, Any]:
    """
    Revisa definições de mapeamento sem aplicá-las. Nunca levanta exceção.

    Problemas reportados: alvo ausente, ausência de source/sources/default,
    conversor desconhecido e alvo duplicado.
    """
    errors: List[str] = []
    targets = set()

    for i, entry in enumerate(entries):
        if isinstance(entry, _VARIANTS):
            target = entry.target
            primitive = getattr(entry, "primitive", None)
            has_input = True
        else:
            target = entry.get("target")
            primitive = entry.get("convert")
            has_input = bool(entry.get("source") or entry.get("sources")) or "default" in entry

        if not target:
            errors.append(f"Mapping[{i}]: missing target field")
        if not has_input:
            errors.append(f"Mapping[{i}]: no source, sources, or default defined")
        if primitive and primitive not in CONVERTERS:
            errors.append(f"Mapping[{i}]: unknown converter '{primitive}'")
        if target and target in targets:
            errors.append(f"Mapping[{i}]: duplicate target '{target}'")
        if target:
            targets.add(target)

    return {"valid": not errors, "errors": errors}
