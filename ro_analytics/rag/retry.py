from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from ro_analytics.rag.dialect import fix_date_function, quote_identifiers
from ro_analytics.rag.errors import (
    ClassifiedExecutionError,
    QueryTimeoutError,
    RetryExhaustedError,
    UnclassifiedExecutionError,
)
from ro_analytics.rag.failures import (
    FAILURE_EXPLANATIONS,
    DatabaseFailure,
    FailureClassifier,
    FailureKind,
    PostgresFailureClassifier,
)
from ro_analytics.rag.sql_agent import QueryExecutionError, SQLRunResult
from ro_analytics.utils.deadline import Deadline

logger = logging.getLogger(__name__)


class QueryRunner(Protocol):
    def run_sql(self, sql: str) -> SQLRunResult:
        ...


@dataclass(frozen=True)
class ExecutionAttempt:
    sql: str
    row_count: Optional[int] = None
    failure: Optional[DatabaseFailure] = None
    kind: Optional[FailureKind] = None


@dataclass
class ExecutionTrace:
    """Attempts made for one request, ending with the successful run."""

    attempts: List[ExecutionAttempt] = field(default_factory=list)
    result: Optional[SQLRunResult] = None

    @property
    def executed_sql(self) -> str:
        return self.attempts[-1].sql

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return self.result.rows if self.result else []

    @property
    def retried(self) -> bool:
        return len(self.attempts) > 1


class RetryingExecutor:
    """
    Runs a validated query and recovers from a known set of PostgreSQL failures.

    Identifier errors retry with every mixed-case identifier quoted; date() errors
    retry with the date rewrite applied to the original proposal. Each signature
    gets one retry, and a failing retry ends the request.
    """

    def __init__(self, runner: QueryRunner, classifier: Optional[FailureClassifier] = None):
        self.runner = runner
        self.classifier = classifier or PostgresFailureClassifier()

    def execute(
        self,
        proposed_sql: str,
        preferred_sql: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ExecutionTrace:
        trace = ExecutionTrace()
        sql = preferred_sql or proposed_sql

        while True:
            try:
                result = self.runner.run_sql(sql)
            except QueryExecutionError as e:
                kind = self.classifier.classify(e.failure)
                trace.attempts.append(ExecutionAttempt(sql=e.sql, failure=e.failure, kind=kind))
                logger.warning(
                    "SQL attempt %s failed (kind=%s, sqlstate=%s): %s",
                    len(trace.attempts),
                    kind.value if kind else None,
                    e.failure.sqlstate,
                    e.sql,
                )
                sql = self._next_sql(kind, e, proposed_sql, trace, deadline)
                continue

            trace.attempts.append(ExecutionAttempt(sql=result.sql, row_count=result.row_count))
            trace.result = result
            logger.info("SQL attempt %s succeeded; rows=%s", len(trace.attempts), result.row_count)
            return trace

    def _next_sql(
        self,
        kind: Optional[FailureKind],
        error: QueryExecutionError,
        proposed_sql: str,
        trace: ExecutionTrace,
        deadline: Optional[Deadline],
    ) -> str:
        """Pick the corrected text for the next attempt, or raise the terminal error."""
        if kind is FailureKind.TIMEOUT:
            raise _explained(QueryTimeoutError, kind)

        # Only classified failures are retried, so the first attempt always has a kind here.
        if trace.retried:
            first = trace.attempts[0].kind
            explanation = FAILURE_EXPLANATIONS[kind or first]
            raise RetryExhaustedError(
                "A correção automática foi aplicada, mas a consulta falhou novamente.",
                label=FAILURE_EXPLANATIONS[first].label,
                hint=explanation.hint,
            )

        if kind is None:
            logger.error("Unclassified database failure: %s", error.failure.message)
            raise UnclassifiedExecutionError("Não foi possível executar a consulta no banco de dados.")

        if kind is FailureKind.UNKNOWN_FUNCTION:
            raise _explained(ClassifiedExecutionError, kind)

        if kind is FailureKind.MISSING_COLUMN:
            source = error.sql
            corrected = quote_identifiers(source)
        else:
            # The original proposal, so earlier rewrites are not compounded.
            source = proposed_sql
            corrected = fix_date_function(source)

        if corrected == source:
            # The rewrite changes nothing, so another run would fail the same way.
            raise _explained(ClassifiedExecutionError, kind)

        if deadline is not None and deadline.expired():
            raise _explained(QueryTimeoutError, FailureKind.TIMEOUT)

        logger.warning("Retrying once after %s failure", kind.value)
        return corrected


def _explained(error_cls, kind: FailureKind):
    explanation = FAILURE_EXPLANATIONS[kind]
    return error_cls(explanation.details, label=explanation.label, hint=explanation.hint)
