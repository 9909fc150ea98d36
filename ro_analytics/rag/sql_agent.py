from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ro_analytics.rag.failures import DatabaseFailure
from ro_analytics.rag.sql_safety import SQLSafetyConfig, enforce_sql_safety

logger = logging.getLogger(__name__)


@dataclass
class SQLRunResult:
    sql: str
    rows: List[Dict[str, Any]]
    row_count: int
    """Result of executing a SQL query including rows and count."""


class QueryExecutionError(Exception):
    """Raised when the database rejects a query; carries the structured driver failure."""

    def __init__(self, sql: str, failure: DatabaseFailure):
        super().__init__(failure.message)
        self.sql = sql
        self.failure = failure


def to_database_failure(exc: SQLAlchemyError) -> DatabaseFailure:
    """Pull SQLSTATE and message out of a SQLAlchemy-wrapped driver error."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return DatabaseFailure(sqlstate=sqlstate, message=str(orig).strip())
    return DatabaseFailure(sqlstate=None, message=str(exc).strip())


class SQLAgent:
    def __init__(self, engine: Engine, safety_cfg: Optional[SQLSafetyConfig] = None):
        """SQL executor that enforces the read-only gate before running queries."""
        self.engine = engine
        self.safety_cfg = safety_cfg or SQLSafetyConfig()

    def run_sql(self, sql: str) -> SQLRunResult:
        """Gate and execute one query; the pooled connection is released on every exit path."""
        safe_sql = enforce_sql_safety(sql, self.safety_cfg)
        logger.info("Executing SQL via SQLAlchemy")
        logger.debug("SQL: %s", safe_sql)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(safe_sql))
                rows = [dict(r._mapping) for r in result.fetchall()]
        except SQLAlchemyError as e:
            failure = to_database_failure(e)
            logger.warning("SQL execution failed: sqlstate=%s message=%s", failure.sqlstate, failure.message)
            raise QueryExecutionError(safe_sql, failure) from e
        row_count = len(rows)
        logger.info("SQL executed successfully; rows=%s", row_count)
        return SQLRunResult(sql=safe_sql, rows=rows, row_count=row_count)
