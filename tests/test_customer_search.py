from ro_analytics.rag.customer_search import (
    MAX_CANDIDATES,
    SearchKind,
    analyze_customer_search,
    extract_search_term,
    render_search_outcome,
)


def _customer(name, **extra):
    return {"name": name, "phone": "11999990000", **extra}


def test_no_rows_gives_suggestions():
    outcome = analyze_customer_search([], "Joana")
    assert outcome.kind is SearchKind.NONE
    assert "Joana" in outcome.message
    assert outcome.suggestions
    assert "Dicas" in render_search_outcome(outcome)


def test_single_row_is_exact():
    outcome = analyze_customer_search([_customer("Maria Silva")], "maria")
    assert outcome.kind is SearchKind.EXACT
    assert "**Maria Silva**" in render_search_outcome(outcome)


def test_single_row_not_containing_term_is_partial():
    outcome = analyze_customer_search([_customer("Mariana Souza")], "Marina")
    assert outcome.kind is SearchKind.PARTIAL
    assert "Mariana Souza" in outcome.message


def test_unique_literal_match_wins_among_many():
    rows = [_customer("Ana"), _customer("ana paula"), _customer("Ana Clara")]
    outcome = analyze_customer_search(rows, "ANA")
    assert outcome.kind is SearchKind.EXACT
    assert outcome.customers == [rows[0]]


def test_many_without_literal_match_is_multiple_and_capped():
    rows = [_customer(f"João {i}") for i in range(15)]
    outcome = analyze_customer_search(rows, "João")
    assert outcome.kind is SearchKind.MULTIPLE
    assert outcome.total == 15
    assert len(outcome.customers) == MAX_CANDIDATES
    rendered = render_search_outcome(outcome)
    assert "Encontrei 15 cliente(s)" in rendered
    assert "primeiros 10 de 15" in rendered


def test_duplicate_literal_names_stay_multiple():
    rows = [_customer("Carlos"), _customer("carlos")]
    assert analyze_customer_search(rows, "Carlos").kind is SearchKind.MULTIPLE


def test_extract_search_term():
    assert extract_search_term("SELECT * FROM \"Customer\" WHERE name ILIKE '%maria%' LIMIT 5") == "maria"
    assert extract_search_term("SELECT * FROM \"Customer\" WHERE LOWER(name) LIKE LOWER('%Jo''ana%')") == "Jo'ana"
    assert extract_search_term("SELECT * FROM \"Customer\" WHERE \"name\" = 'Ana'") == "Ana"
    assert extract_search_term('SELECT * FROM "Customer"') is None
