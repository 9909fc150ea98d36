import pytest

from ro_analytics.rag.dialect import (
    CORRECTION_RULES,
    apply_corrections,
    find_matching_rules,
    fix_date_function,
    quote_identifiers,
    quote_known_tables,
)
from ro_analytics.rag.sql_safety import is_write_query


def test_date_call_becomes_date_trunc():
    sql = 'SELECT COUNT(*) FROM "Order" WHERE date("createdAt") = CURRENT_DATE'
    out, fired = apply_corrections(sql)
    assert out == 'SELECT COUNT(*) FROM "Order" WHERE DATE_TRUNC(\'day\', "createdAt") = CURRENT_DATE'
    assert [r.name for r in fired] == ["date"]


def test_rules_are_case_insensitive():
    out, _ = apply_corrections("SELECT DATE(x), GetDate(), CURDATE() FROM t")
    assert out == "SELECT DATE_TRUNC('day', x), NOW(), CURRENT_DATE FROM t"


def test_datetime_and_time_wrap_the_argument():
    out, _ = apply_corrections("SELECT datetime(a), time(coalesce(b, c)) FROM t")
    assert out == "SELECT CAST(a AS TIMESTAMP), CAST(coalesce(b, c) AS TIME) FROM t"


def test_rules_are_word_bounded():
    sql = 'SELECT "updateDate", mydate(x), runtime(y) FROM t'
    assert find_matching_rules(sql) == []
    assert apply_corrections(sql)[0] == sql


def test_string_literals_are_left_alone():
    sql = "SELECT * FROM t WHERE note = 'date(x) é texto'"
    assert find_matching_rules(sql) == []


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT date(a) FROM t",
        "SELECT datetime(a), time(b) FROM t",
        "SELECT getdate(), curdate()",
    ],
)
def test_corrections_are_idempotent(sql):
    once, _ = apply_corrections(sql)
    twice, fired = apply_corrections(once)
    assert twice == once
    assert fired == []


def test_rewrites_never_add_write_keywords():
    for rule in CORRECTION_RULES:
        assert not is_write_query(rule.rewrite("SELECT date(a), datetime(b), time(c), getdate(), curdate()"))


def test_fix_date_function_only_touches_date():
    assert fix_date_function("SELECT date(a), getdate()") == "SELECT DATE_TRUNC('day', a), getdate()"


def test_quote_known_tables():
    sql = 'SELECT * FROM Order o JOIN Customer c ON c.id = o."customerId" ORDER BY o.id'
    out, quoted = quote_known_tables(sql, ["Order", "Customer"])
    assert out == 'SELECT * FROM "Order" o JOIN "Customer" c ON c.id = o."customerId" ORDER BY o.id'
    assert quoted == ["Order", "Customer"]


def test_quote_known_tables_skips_already_quoted():
    sql = 'SELECT * FROM "Order"'
    assert quote_known_tables(sql, ["Order"]) == (sql, [])


def test_quote_identifiers_quotes_mixed_case_only():
    sql = "SELECT SUM(totalCents) FROM \"Order\" WHERE customerId = 3 AND status = 'preparingFood'"
    out = quote_identifiers(sql)
    assert out == "SELECT SUM(\"totalCents\") FROM \"Order\" WHERE \"customerId\" = 3 AND status = 'preparingFood'"


def test_quote_identifiers_skips_function_names():
    assert quote_identifiers("SELECT myFunc(a) FROM t") == "SELECT myFunc(a) FROM t"


def test_quote_identifiers_keeps_type_names():
    out = quote_identifiers('SELECT CAST(createdAt AS Date), totalCents::Numeric FROM "Order"')
    assert out == 'SELECT CAST("createdAt" AS Date), "totalCents"::Numeric FROM "Order"'
