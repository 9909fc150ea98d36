from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


@dataclass(frozen=True)
class DatabaseFailure:
    """Structured view of a driver error: SQLSTATE (when known) plus message text."""

    sqlstate: Optional[str]
    message: str


class FailureKind(str, Enum):
    MISSING_COLUMN = "missing_column"
    DATE_FUNCTION = "date_function"
    UNKNOWN_FUNCTION = "unknown_function"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class FailureExplanation:
    label: str
    details: str
    hint: Optional[str]


# User-safe wording per failure class; raw driver text never goes here.
FAILURE_EXPLANATIONS = {
    FailureKind.MISSING_COLUMN: FailureExplanation(
        label="Coluna desconhecida",
        details="A consulta referencia uma coluna que não existe com esse nome.",
        hint="Confira nomes de colunas e utilize aspas se estiverem em camelCase.",
    ),
    FailureKind.DATE_FUNCTION: FailureExplanation(
        label="Função date() inválida",
        details="A consulta usa a função date(), que não é suportada aqui.",
        hint="A função date() não existe no PostgreSQL. Use DATE_TRUNC('day', campo) ou CAST(campo AS DATE) em vez de date().",
    ),
    FailureKind.UNKNOWN_FUNCTION: FailureExplanation(
        label="Função SQL desconhecida",
        details="A consulta usa uma função que o PostgreSQL não reconhece.",
        hint="Use funções suportadas pelo PostgreSQL, como DATE_TRUNC ou CAST, em vez de date().",
    ),
    FailureKind.TIMEOUT: FailureExplanation(
        label="Tempo esgotado",
        details="A consulta demorou mais do que o permitido e foi cancelada.",
        hint=None,
    ),
}


class FailureClassifier(Protocol):
    def classify(self, failure: DatabaseFailure) -> Optional[FailureKind]:
        ...


SQLSTATE_UNDEFINED_COLUMN = "42703"
SQLSTATE_UNDEFINED_FUNCTION = "42883"
SQLSTATE_QUERY_CANCELED = "57014"

_COLUMN_MISSING_RE = re.compile(r'column\s+"?.+?"?\s+does not exist', re.IGNORECASE)
_FUNCTION_MISSING_RE = re.compile(r"function\s+.+\s+does not exist", re.IGNORECASE)
_DATE_FUNCTION_RE = re.compile(r"function\s+(?:\w+\.)?date\s*\(", re.IGNORECASE)
_TIMEOUT_RE = re.compile(r"canceling statement due to statement timeout", re.IGNORECASE)


class PostgresFailureClassifier:
    """Matches PostgreSQL error signatures by SQLSTATE and, as a fallback, by message."""

    def classify(self, failure: DatabaseFailure) -> Optional[FailureKind]:
        code, message = failure.sqlstate, failure.message or ""

        if code == SQLSTATE_QUERY_CANCELED or _TIMEOUT_RE.search(message):
            return FailureKind.TIMEOUT

        if code == SQLSTATE_UNDEFINED_COLUMN or (code is None and _COLUMN_MISSING_RE.search(message)):
            return FailureKind.MISSING_COLUMN

        # 42883 also covers "operator does not exist", which is not a function problem.
        if code in (None, SQLSTATE_UNDEFINED_FUNCTION) and _FUNCTION_MISSING_RE.search(message):
            if _DATE_FUNCTION_RE.search(message):
                return FailureKind.DATE_FUNCTION
            return FailureKind.UNKNOWN_FUNCTION

        return None
