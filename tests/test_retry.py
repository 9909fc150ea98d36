import pytest

from ro_analytics.rag.errors import (
    ClassifiedExecutionError,
    QueryTimeoutError,
    RetryExhaustedError,
    UnclassifiedExecutionError,
)
from ro_analytics.rag.failures import DatabaseFailure
from ro_analytics.rag.retry import RetryingExecutor
from ro_analytics.rag.sql_agent import QueryExecutionError, SQLRunResult
from ro_analytics.utils.deadline import Deadline

COLUMN_MISSING = DatabaseFailure("42703", 'column "totalcents" does not exist')
DATE_MISSING = DatabaseFailure("42883", "function date(timestamp without time zone) does not exist")
UNKNOWN_FUNCTION = DatabaseFailure("42883", "function strftime(unknown, timestamp) does not exist")
TIMEOUT = DatabaseFailure("57014", "canceling statement due to statement timeout")
SYNTAX = DatabaseFailure("42601", 'syntax error at or near "FORM"')


class ScriptedRunner:
    """Fails with the scripted failures in order, then returns rows."""

    def __init__(self, *failures, rows=None):
        self.failures = list(failures)
        self.rows = rows if rows is not None else [{"total": 1}]
        self.calls = []

    def run_sql(self, sql):
        self.calls.append(sql)
        if self.failures:
            raise QueryExecutionError(sql, self.failures.pop(0))
        return SQLRunResult(sql=sql, rows=self.rows, row_count=len(self.rows))


def test_success_on_first_attempt():
    runner = ScriptedRunner()
    trace = RetryingExecutor(runner).execute("SELECT 1")
    assert runner.calls == ["SELECT 1"]
    assert trace.executed_sql == "SELECT 1"
    assert not trace.retried


def test_preferred_text_runs_first():
    runner = ScriptedRunner()
    RetryingExecutor(runner).execute("SELECT date(a) FROM t", preferred_sql="SELECT DATE_TRUNC('day', a) FROM t")
    assert runner.calls == ["SELECT DATE_TRUNC('day', a) FROM t"]


def test_missing_column_retries_once_with_quoted_identifiers():
    runner = ScriptedRunner(COLUMN_MISSING)
    trace = RetryingExecutor(runner).execute('SELECT SUM(totalCents) FROM "Order"')
    assert runner.calls == ['SELECT SUM(totalCents) FROM "Order"', 'SELECT SUM("totalCents") FROM "Order"']
    assert trace.retried
    assert trace.executed_sql == 'SELECT SUM("totalCents") FROM "Order"'
    assert trace.rows == [{"total": 1}]


def test_missing_column_twice_is_exhausted():
    runner = ScriptedRunner(COLUMN_MISSING, COLUMN_MISSING)
    with pytest.raises(RetryExhaustedError) as exc:
        RetryingExecutor(runner).execute('SELECT SUM(totalCents) FROM "Order"')
    assert len(runner.calls) == 2
    assert exc.value.status_code == 400
    assert exc.value.label == "Coluna desconhecida"
    assert exc.value.hint


def test_date_failure_rewrites_original_proposal():
    runner = ScriptedRunner(DATE_MISSING)
    proposed = 'SELECT COUNT(*) FROM "Order" WHERE date("createdAt") = CURRENT_DATE'
    trace = RetryingExecutor(runner).execute(proposed)
    assert runner.calls[1] == 'SELECT COUNT(*) FROM "Order" WHERE DATE_TRUNC(\'day\', "createdAt") = CURRENT_DATE'
    assert len(trace.attempts) == 2


def test_date_failure_without_date_call_does_not_retry():
    runner = ScriptedRunner(DATE_MISSING)
    with pytest.raises(ClassifiedExecutionError) as exc:
        RetryingExecutor(runner).execute("SELECT DATE_TRUNC('day', x) FROM t")
    assert len(runner.calls) == 1
    assert "DATE_TRUNC" in exc.value.hint


def test_unknown_function_is_not_retried():
    runner = ScriptedRunner(UNKNOWN_FUNCTION)
    with pytest.raises(ClassifiedExecutionError) as exc:
        RetryingExecutor(runner).execute("SELECT strftime('%Y', x) FROM t")
    assert len(runner.calls) == 1
    assert exc.value.status_code == 400
    assert exc.value.label == "Função SQL desconhecida"
    assert not isinstance(exc.value, RetryExhaustedError)


def test_unclassified_failure_is_internal():
    runner = ScriptedRunner(SYNTAX)
    with pytest.raises(UnclassifiedExecutionError) as exc:
        RetryingExecutor(runner).execute("SELECT x FORM t")
    assert len(runner.calls) == 1
    assert exc.value.status_code == 500
    # driver text stays out of the payload
    assert "FORM" not in str(exc.value.to_payload())


def test_statement_timeout_is_not_retried():
    runner = ScriptedRunner(TIMEOUT)
    with pytest.raises(QueryTimeoutError) as exc:
        RetryingExecutor(runner).execute("SELECT 1")
    assert len(runner.calls) == 1
    assert exc.value.status_code == 500


def test_expired_deadline_stops_the_retry():
    runner = ScriptedRunner(COLUMN_MISSING)
    with pytest.raises(QueryTimeoutError):
        RetryingExecutor(runner).execute('SELECT SUM(totalCents) FROM "Order"', deadline=Deadline(0))
    assert len(runner.calls) == 1


def test_never_more_than_two_attempts():
    runner = ScriptedRunner(DATE_MISSING, COLUMN_MISSING, COLUMN_MISSING)
    with pytest.raises(RetryExhaustedError) as exc:
        RetryingExecutor(runner).execute("SELECT date(createdAt) FROM t")
    assert len(runner.calls) == 2
    assert exc.value.label == "Função date() inválida"
