from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


# Single-quoted literals (with '' escapes), double-quoted identifiers, backtick identifiers.
_QUOTED_SEGMENT = re.compile(r"('(?:[^']|'')*'|\"[^\"]*\"|`[^`]*`)")

_IDENTIFIER = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\b(\s*\()?")

RESERVED_KEYWORDS = frozenset(
    {
        "SELECT", "FROM", "WHERE", "GROUP", "BY", "ORDER", "LIMIT", "OFFSET", "JOIN", "INNER", "LEFT",
        "RIGHT", "FULL", "OUTER", "CROSS", "ON", "AS", "AND", "OR", "NOT", "NULL", "IS", "COUNT", "SUM",
        "AVG", "MIN", "MAX", "CASE", "WHEN", "THEN", "ELSE", "END", "DISTINCT", "HAVING", "LIKE", "ILIKE",
        "IN", "BETWEEN", "WITH", "UNION", "ALL", "ASC", "DESC", "TRUE", "FALSE", "INTERVAL", "CAST",
        "COALESCE", "EXTRACT", "DATE_TRUNC", "NOW", "CURRENT_DATE", "CURRENT_TIMESTAMP",
        # type names
        "DATE", "TIME", "TIMESTAMP", "TIMESTAMPTZ", "NUMERIC", "DECIMAL", "INTEGER", "INT", "BIGINT", "TEXT",
        "VARCHAR", "BOOLEAN", "FLOAT", "REAL", "DOUBLE", "PRECISION", "ZONE",
    }
)


def _map_unquoted(sql: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to every part of ``sql`` that is outside quotes and string literals."""
    parts = _QUOTED_SEGMENT.split(sql)
    # split() with one capture group alternates: unquoted, quoted, unquoted, ...
    return "".join(fn(p) if i % 2 == 0 else p for i, p in enumerate(parts))


def mask_quoted(sql: str, placeholder: str = " ") -> str:
    """Replace every quoted identifier and string literal with ``placeholder``."""
    return _QUOTED_SEGMENT.sub(placeholder, sql)


def _find_closing_paren(text: str, open_idx: int) -> Optional[int]:
    depth = 0
    for i in range(open_idx, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def _rewrite_calls(pattern: Pattern[str], build: Callable[[str], str]) -> Callable[[str], str]:
    """
    Build a rewrite that replaces ``name(arg)`` calls with ``build(arg)``.
    Calls whose closing parenthesis cannot be found are left untouched.
    """

    def rewrite_segment(segment: str) -> str:
        out: List[str] = []
        pos = 0
        while True:
            m = pattern.search(segment, pos)
            if m is None:
                out.append(segment[pos:])
                break
            open_idx = m.end() - 1
            close_idx = _find_closing_paren(segment, open_idx)
            if close_idx is None:
                out.append(segment[pos:])
                break
            out.append(segment[pos:m.start()])
            out.append(build(segment[open_idx + 1:close_idx].strip()))
            pos = close_idx + 1
        return "".join(out)

    return lambda sql: _map_unquoted(sql, rewrite_segment)


@dataclass(frozen=True)
class CorrectionRule:
    """A known PostgreSQL incompatibility and its deterministic rewrite."""

    name: str
    pattern: Pattern[str]
    error_message: str
    hint: str
    rewrite: Callable[[str], str]

    def matches(self, sql: str) -> bool:
        return bool(self.pattern.search(mask_quoted(sql)))


_DATE_CALL = re.compile(r"\bdate\s*\(", re.IGNORECASE)
_DATETIME_CALL = re.compile(r"\bdatetime\s*\(", re.IGNORECASE)
_TIME_CALL = re.compile(r"\btime\s*\(", re.IGNORECASE)
_GETDATE_CALL = re.compile(r"\bgetdate\s*\(", re.IGNORECASE)
_CURDATE_CALL = re.compile(r"\bcurdate\s*\(", re.IGNORECASE)


def _fix_date_prefix(sql: str) -> str:
    # Only the call head changes, so the argument and its closing paren are kept as written.
    return _map_unquoted(sql, lambda s: _DATE_CALL.sub("DATE_TRUNC('day', ", s))


# Order matters only when two patterns could match the same substring; the first one wins.
CORRECTION_RULES: Tuple[CorrectionRule, ...] = (
    CorrectionRule(
        name="date",
        pattern=_DATE_CALL,
        error_message="Função date() não existe no PostgreSQL. Use DATE_TRUNC('day', campo) ou CAST(campo AS DATE)",
        hint="Use DATE_TRUNC('day', campo) em vez de date(campo)",
        rewrite=_fix_date_prefix,
    ),
    CorrectionRule(
        name="datetime",
        pattern=_DATETIME_CALL,
        error_message="Função datetime() não existe no PostgreSQL. Use CAST(campo AS TIMESTAMP)",
        hint="Use CAST(campo AS TIMESTAMP) em vez de datetime(campo)",
        rewrite=_rewrite_calls(_DATETIME_CALL, lambda arg: f"CAST({arg} AS TIMESTAMP)"),
    ),
    CorrectionRule(
        name="time",
        pattern=_TIME_CALL,
        error_message="Função time() não existe no PostgreSQL. Use CAST(campo AS TIME) ou EXTRACT",
        hint="Use CAST(campo AS TIME) em vez de time(campo)",
        rewrite=_rewrite_calls(_TIME_CALL, lambda arg: f"CAST({arg} AS TIME)"),
    ),
    CorrectionRule(
        name="getdate",
        pattern=_GETDATE_CALL,
        error_message="Função getdate() não existe no PostgreSQL. Use NOW()",
        hint="Use NOW() em vez de getdate()",
        rewrite=_rewrite_calls(_GETDATE_CALL, lambda arg: "NOW()"),
    ),
    CorrectionRule(
        name="curdate",
        pattern=_CURDATE_CALL,
        error_message="Função curdate() não existe no PostgreSQL. Use CURRENT_DATE",
        hint="Use CURRENT_DATE em vez de curdate()",
        rewrite=_rewrite_calls(_CURDATE_CALL, lambda arg: "CURRENT_DATE"),
    ),
)

DATE_RULE = CORRECTION_RULES[0]


def find_matching_rules(sql: str, rules: Iterable[CorrectionRule] = CORRECTION_RULES) -> List[CorrectionRule]:
    """Return the rules whose pattern occurs in the SQL, in table order."""
    return [r for r in rules if r.matches(sql)]


def apply_corrections(sql: str, rules: Iterable[CorrectionRule] = CORRECTION_RULES) -> Tuple[str, List[CorrectionRule]]:
    """Apply every matching rule in order; returns the rewritten SQL and the rules that fired."""
    fired: List[CorrectionRule] = []
    for rule in rules:
        if rule.matches(sql):
            sql = rule.rewrite(sql)
            fired.append(rule)
            logger.debug("Correction rule %s applied", rule.name)
    return sql, fired


def fix_date_function(sql: str) -> str:
    """Rewrite only the date() calls; used after the database rejected a date function."""
    return DATE_RULE.rewrite(sql)


# -----------------------------
# Identifier quoting
# -----------------------------
def quote_known_tables(sql: str, table_names: Iterable[str]) -> Tuple[str, List[str]]:
    """
    Quote catalog table names that appear bare (case-sensitive, whole word).
    Returns the rewritten SQL and the names that were quoted.
    """
    quoted: List[str] = []
    for name in table_names:
        # "Order By" is the clause, not the table.
        bare = re.compile(rf"(?<![\w\"]){re.escape(name)}(?![\w\"])(?!\s+(?i:by)\b)")
        if bare.search(mask_quoted(sql)):
            sql = _map_unquoted(sql, lambda s, bare=bare, name=name: bare.sub(f'"{name}"', s))
            quoted.append(name)
    return sql, quoted


def _should_quote(word: str) -> bool:
    if not any(c.isupper() for c in word):
        return False
    if word.upper() == word:
        return False
    return word.upper() not in RESERVED_KEYWORDS


def quote_identifiers(sql: str) -> str:
    """Quote every mixed-case identifier outside literals, so PostgreSQL keeps its case."""

    def quote_segment(segment: str) -> str:
        def repl(m: re.Match) -> str:
            word, call = m.group(1), m.group(2)
            # Function calls keep their names.
            if call or not _should_quote(word):
                return m.group(0)
            return f'"{word}"'

        return _IDENTIFIER.sub(repl, segment)

    return _map_unquoted(sql, quote_segment)
