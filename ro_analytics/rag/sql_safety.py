from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from ro_analytics.db.schema_catalog import DEFAULT_CATALOG
from ro_analytics.rag.errors import SQLSafetyError

logger = logging.getLogger(__name__)


WRITE_KEYWORDS = re.compile(
    r"\b(INSERT|UPDATE|DELETE|UPSERT|DROP|ALTER|TRUNCATE|CREATE|GRANT|REVOKE|MERGE|COPY)\b",
    re.IGNORECASE,
)
COMMENT_MARKERS = re.compile(r"--|/\*")
ALLOWED_START = re.compile(r"^(SELECT|WITH)\s", re.IGNORECASE)
LIMIT_RE = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)
# Server-side functions that read files, sleep or change session state.
FORBIDDEN_FUNCTIONS = re.compile(
    r"\b(pg_sleep|pg_read_file|pg_read_binary_file|pg_ls_dir|lo_import|lo_export|dblink\w*|set_config)\s*\(",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class SQLSafetyConfig:
    """Configuration for the read-only statement gate."""

    allowed_tables: tuple[str, ...] = DEFAULT_CATALOG.table_names()
    max_rows: int = 200


def is_write_query(sql: str) -> bool:
    """Return True if the SQL string appears to perform a write operation."""
    return bool(WRITE_KEYWORDS.search(sql))


def has_limit(sql: str) -> bool:
    return bool(LIMIT_RE.search(sql))


def apply_safe_limit(sql: str, limit: int = 200) -> str:
    """Append a LIMIT clause unless one is already present."""
    if has_limit(sql):
        return sql
    return f"{sql} LIMIT {limit}"


def _cte_names(parsed: exp.Expression) -> set[str]:
    return {cte.alias_or_name.lower() for cte in parsed.find_all(exp.CTE) if cte.alias_or_name}


def _extract_table_names(parsed: exp.Expression) -> set[str]:
    """Collect unqualified table names from a parsed SQL expression."""
    tables: set[str] = set()
    for t in parsed.find_all(exp.Table):
        if t.name:
            tables.add(t.name.lower())
    return tables


def enforce_sql_safety(sql: str, cfg: Optional[SQLSafetyConfig] = None) -> str:
    """
    Validate that the text is one read-only SELECT/WITH statement and cap its rows.
    Returns the SQL with a LIMIT clause. Raises SQLSafetyError if unsafe.
    """
    cfg = cfg or SQLSafetyConfig()

    if not isinstance(sql, str) or not sql.strip():
        raise SQLSafetyError("Consulta SQL vazia ou inválida")

    sql = sql.strip()
    if sql.endswith(";"):
        sql = sql[:-1].strip()

    if ";" in sql:
        logger.warning("Rejected multi-statement SQL")
        raise SQLSafetyError("Não use ponto e vírgula na consulta")

    if not ALLOWED_START.match(sql):
        logger.warning("Rejected non-select SQL")
        raise SQLSafetyError("A consulta precisa começar com SELECT ou WITH")

    if is_write_query(sql) or COMMENT_MARKERS.search(sql) or FORBIDDEN_FUNCTIONS.search(sql):
        logger.warning("Rejected write-like SQL")
        raise SQLSafetyError("A consulta contém comandos não permitidos")

    try:
        statements = [s for s in sqlglot.parse(sql, read="postgres") if s is not None]
    except SqlglotError as e:
        logger.error("SQL parse error: %s", e)
        raise SQLSafetyError(f"A consulta SQL não pôde ser interpretada: {e}") from e

    if len(statements) != 1:
        logger.warning("Rejected SQL with %s statements", len(statements))
        raise SQLSafetyError("Envie apenas uma consulta SQL por vez")

    parsed = statements[0]
    if not isinstance(parsed, exp.Query):
        logger.warning("Rejected non-query statement: %s", type(parsed).__name__)
        raise SQLSafetyError("A consulta precisa começar com SELECT ou WITH")

    allowed = {t.lower() for t in cfg.allowed_tables} | _cte_names(parsed)
    disallowed = sorted(t for t in _extract_table_names(parsed) if t not in allowed)
    if disallowed:
        logger.warning("Query references disallowed tables: %s", disallowed)
        raise SQLSafetyError(f"A consulta usa tabelas não permitidas: {disallowed}")

    limited = apply_safe_limit(sql, cfg.max_rows)
    if limited != sql:
        logger.info("Added default LIMIT %s", cfg.max_rows)
    return limited
