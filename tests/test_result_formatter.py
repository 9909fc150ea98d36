import json

import pytest

from ro_analytics.rag.customer_search import SearchKind
from ro_analytics.rag.result_formatter import (
    RowShape,
    create_clean_response,
    detect_shape,
    format_rows_for_model,
    status_label,
)
from ro_analytics.utils.formatting import format_currency, format_date, parse_currency


@pytest.mark.parametrize(
    "columns,expected",
    [
        (["id", "name", "phone"], RowShape.CUSTOMER),
        (["name", "email", "status"], RowShape.CUSTOMER),
        (["id", "status", "valor"], RowShape.ORDER),
        (["id", "cliente", "data"], RowShape.ORDER),
        (["data", "vendas", "faturamento"], RowShape.SALES),
        (["name", "total_vendido", "receita"], RowShape.PRODUCT),
        (["categoria", "quantidade"], RowShape.GENERIC),
    ],
)
def test_detect_shape_priority(columns, expected):
    assert detect_shape(columns) is expected


@pytest.mark.parametrize("cents", [0, 5, 99, 100, 123456, 100000000, -2550])
def test_currency_round_trip(cents):
    assert round(parse_currency(format_currency(cents)) * 100) == cents


def test_currency_format():
    assert format_currency(123456) == "R$ 1.234,56"
    assert format_currency(-50) == "-R$ 0,50"


def test_date_format():
    assert format_date("2024-03-01T12:30:00") == "01/03/2024"
    assert format_date("não é data") == "não é data"


def test_status_labels():
    assert status_label("DELIVERED") == "🚚 Entregue"
    assert status_label("em_rota") == "📋 em_rota"


def test_sales_rendering_uses_reais_and_dates():
    rows = [{"data": "2024-03-01", "vendas": 12, "faturamento": 1520.5}]
    result = create_clean_response(rows, 'SELECT ... FROM "Order"')
    assert result.shape is RowShape.SALES
    assert "01/03/2024" in result.rendered
    assert "R$ 1.520,50" in result.rendered


def test_order_rendering_reads_cents():
    rows = [{"id": 7, "status": "pending", "totalCents": 4590, "createdAt": "2024-03-01T18:05:00"}]
    result = create_clean_response(rows)
    assert result.shape is RowShape.ORDER
    assert "Pedido #7" in result.rendered
    assert "R$ 45,90" in result.rendered
    assert "01/03/2024 18:05" in result.rendered


def test_generic_rendering_has_count_and_table():
    rows = [{"categoria": "Marmitas", "quantidade": i} for i in range(12)]
    result = create_clean_response(rows)
    assert result.shape is RowShape.GENERIC
    assert result.rendered.startswith("Encontrei 12 registro(s).")
    assert "| categoria | quantidade |" in result.rendered
    assert "primeiras 10 de 12" in result.rendered


def test_customer_rows_are_disambiguated_with_search_term_from_sql():
    rows = [{"name": "Ana", "phone": "1"}, {"name": "Ana Clara", "phone": "2"}]
    sql = "SELECT name, phone FROM \"Customer\" WHERE name ILIKE '%ana%'"
    result = create_clean_response(rows, sql)
    assert result.shape is RowShape.CUSTOMER
    assert result.outcome.kind is SearchKind.EXACT
    assert "**Ana**" in result.rendered
    assert json.loads(result.preview) == [{"name": "Ana", "phone": "1"}]


def test_empty_customer_lookup_gets_suggestions():
    sql = "SELECT * FROM \"Customer\" WHERE name ILIKE '%zé%'"
    result = create_clean_response([], sql)
    assert result.outcome.kind is SearchKind.NONE
    assert "zé" in result.rendered


def test_empty_result():
    result = create_clean_response([], 'SELECT COUNT(*) FROM "Order"')
    assert result.rendered == "Nenhum dado encontrado."
    assert result.shape is RowShape.GENERIC


def test_model_preview_is_limited():
    rows = [{"i": i} for i in range(30)]
    assert len(json.loads(format_rows_for_model(rows))) == 10


def test_generic_counts_are_not_rendered_as_money():
    rows = [{"status": "pending", "total": 5}, {"status": "delivered", "total": 12}]
    result = create_clean_response(rows, 'SELECT status, COUNT(*) AS total FROM "Order" GROUP BY status')
    assert result.shape is RowShape.GENERIC
    assert "| ⏳ Pendente | 5 |" in result.rendered
    assert "| 🚚 Entregue | 12 |" in result.rendered
    assert "R$" not in result.rendered


def test_generic_money_aliases_are_rendered_as_reais():
    rows = [{"categoria": "Marmitas", "faturamento": 1520.5, "pedidosCents": 990}]
    result = create_clean_response(rows)
    assert "R$ 1.520,50" in result.rendered
    assert "R$ 9,90" in result.rendered
