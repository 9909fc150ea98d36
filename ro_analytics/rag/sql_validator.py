from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from ro_analytics.db.schema_catalog import DEFAULT_CATALOG
from ro_analytics.rag.dialect import (
    CORRECTION_RULES,
    CorrectionRule,
    apply_corrections,
    mask_quoted,
    quote_known_tables,
)

logger = logging.getLogger(__name__)


_LIMIT_RE = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)

# FROM list up to the next clause keyword or parenthesis; EXTRACT(x FROM y) stops at its ')'.
_FROM_LIST_RE = re.compile(
    r"\bFROM\s+((?:(?!\b(?:WHERE|GROUP|ORDER|LIMIT|HAVING|JOIN|UNION|LEFT|RIGHT|INNER|FULL|CROSS|ON|OFFSET)\b)[^()])+)",
    re.IGNORECASE,
)
_CENTS_RE = re.compile(r"cents\b", re.IGNORECASE)
_DIV_100_RE = re.compile(r"/\s*100(?:\.0*)?\b")


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of the static PostgreSQL check of one proposed query."""

    is_valid: bool
    corrected_sql: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    fired_rules: List[str] = field(default_factory=list)


def _has_comma_join(sql: str) -> bool:
    # Quoted names like "Order" would otherwise read as clause keywords.
    masked = mask_quoted(sql, " q ")
    return any("," in m.group(1) for m in _FROM_LIST_RE.finditer(masked))


def validate_postgres_sql(
    sql: str,
    table_names: Optional[Iterable[str]] = None,
    rules: Sequence[CorrectionRule] = CORRECTION_RULES,
) -> ValidationReport:
    """
    Statically check a proposed query for PostgreSQL dialect problems and style issues.
    Nothing is executed. Dialect rule matches are errors; everything else is a warning.
    """
    errors: List[str] = []
    warnings: List[str] = []
    rewritten = False

    working = sql.strip()
    if working.endswith(";"):
        working = working[:-1].strip()

    working, fired = apply_corrections(working, rules)
    if fired:
        errors.extend(r.error_message for r in fired)
        rewritten = True

    names = DEFAULT_CATALOG.table_names() if table_names is None else tuple(table_names)
    working, quoted = quote_known_tables(working, names)
    for name in quoted:
        warnings.append(f'Tabela {name} deve estar entre aspas duplas: "{name}"')
    if quoted:
        rewritten = True

    if not _LIMIT_RE.search(working):
        warnings.append("Considere adicionar LIMIT para consultas grandes")

    if _has_comma_join(working):
        warnings.append("Considere usar JOINs explícitos em vez de vírgulas para múltiplas tabelas")

    if _CENTS_RE.search(working) and not _DIV_100_RE.search(working):
        warnings.append("Considere converter centavos para reais dividindo por 100.0")

    report = ValidationReport(
        is_valid=not errors,
        corrected_sql=working if rewritten else None,
        errors=errors,
        warnings=warnings,
        fired_rules=[r.name for r in fired],
    )
    if errors:
        logger.warning("SQL validation errors: %s", errors)
    if warnings:
        logger.info("SQL validation warnings: %s", warnings)
    return report


def build_feedback_prompt(original_sql: str, errors: List[str], corrected_sql: Optional[str] = None) -> str:
    """Instruction block telling the model which PostgreSQL rules its query broke."""
    lines = ["ATENÇÃO: A consulta SQL gerada contém erros PostgreSQL.", ""]
    if errors:
        lines.append("ERROS DETECTADOS:")
        lines += [f"{i}. {e}" for i, e in enumerate(errors, start=1)]
        lines.append("")
    if corrected_sql:
        lines.append(f"SQL ORIGINAL: {original_sql}")
        lines.append(f"SQL CORRIGIDA: {corrected_sql}")
        lines.append("")
    lines += [
        "REGRAS POSTGRESQL LEMBRADAS:",
        "- NUNCA use date(), time(), datetime(), getdate(), curdate()",
        "- Use DATE_TRUNC('day', campo) para extrair data",
        '- Use aspas duplas para nomes: "Order", "createdAt"',
        "- Sempre inclua LIMIT para consultas grandes",
        "- Use JOINs explícitos em vez de vírgulas",
        "- Para centavos: campo/100.0 para converter para reais",
        "",
        "Por favor, gere uma nova consulta SQL seguindo as regras PostgreSQL.",
    ]
    return "\n".join(lines)
