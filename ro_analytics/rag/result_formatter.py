from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ro_analytics.rag.customer_search import (
    SearchOutcome,
    analyze_customer_search,
    extract_search_term,
    render_search_outcome,
)
from ro_analytics.utils.formatting import format_currency, format_date, format_datetime, rows_to_markdown_table

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 10

CONTACT_COLUMNS = frozenset({"phone", "email", "address"})
ORDER_MARKER_COLUMNS = frozenset({"status", "cliente"})
DATE_COLUMNS = ("data", "dia", "date", "day", "mes", "month")
SALES_VALUE_COLUMNS = frozenset({"total_vendido", "receita", "revenue", "faturamento", "vendas"})

# Money aliases the prompt tells the model to express in reais (already divided by 100).
# "total" and "valor" are left out; they often hold counts.
REAIS_COLUMNS = frozenset(
    {"valor_total", "faturamento", "receita", "preco_medio", "total_gasto", "gasto_total", "total_despesas", "lucro"}
)

STATUS_LABELS = {
    "pending": "⏳ Pendente",
    "confirmed": "✅ Confirmado",
    "preparing": "👨‍🍳 Em preparo",
    "ready": "🍽️ Pronto",
    "delivered": "🚚 Entregue",
    "cancelled": "❌ Cancelado",
}


class RowShape(str, Enum):
    CUSTOMER = "customer"
    ORDER = "order"
    SALES = "sales"
    PRODUCT = "product"
    GENERIC = "generic"


def detect_shape(columns: Iterable[str]) -> RowShape:
    """Classify a result set by its column names; the checks run in priority order."""
    cols = {c.lower() for c in columns}
    if "name" in cols and cols & CONTACT_COLUMNS:
        return RowShape.CUSTOMER
    if "id" in cols and cols & ORDER_MARKER_COLUMNS:
        return RowShape.ORDER
    if cols & set(DATE_COLUMNS):
        return RowShape.SALES
    if "name" in cols and cols & SALES_VALUE_COLUMNS:
        return RowShape.PRODUCT
    return RowShape.GENERIC


def status_label(status: Any) -> str:
    text = str(status)
    return STATUS_LABELS.get(text.lower(), f"📋 {text}")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _money(row: Dict[str, Any], column: str) -> Optional[str]:
    """Currency text for a column, whether it holds reais or raw cents."""
    value = row.get(column)
    if not _is_number(value):
        return None
    if column.lower().endswith("cents"):
        return format_currency(value)
    return format_currency(value * 100)


# -----------------------------
# Renderers
# -----------------------------
def render_orders(rows: List[Dict[str, Any]]) -> str:
    blocks = [f"Encontrei {len(rows)} pedido(s):"]
    for i, order in enumerate(rows, start=1):
        lines = [f"**Pedido #{order.get('id') or i}**"]
        if order.get("cliente"):
            lines.append(f"👤 Cliente: {order['cliente']}")
        if order.get("status"):
            lines.append(f"Status: {status_label(order['status'])}")
        value = _money(order, "valor") or _money(order, "totalCents")
        if value:
            lines.append(f"💰 Valor: {value}")
        created = order.get("createdAt") or order.get("data")
        if created:
            lines.append(f"📅 Data: {format_datetime(created)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def render_sales(rows: List[Dict[str, Any]]) -> str:
    blocks = ["📊 Relatório de vendas:"]
    for sale in rows:
        lines = []
        day = next((sale[c] for c in DATE_COLUMNS if sale.get(c)), None)
        if day:
            lines.append(f"📅 **{format_date(day)}**")
        if sale.get("vendas") is not None:
            lines.append(f"🛒 Vendas: {sale['vendas']}")
        for column, label in (
            ("faturamento", "💰 Faturamento"),
            ("total_despesas", "💸 Despesas"),
            ("lucro", "📈 Lucro"),
        ):
            value = _money(sale, column)
            if value:
                lines.append(f"{label}: {value}")
        if lines:
            blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def render_products(rows: List[Dict[str, Any]]) -> str:
    blocks = ["🛍️ Produtos encontrados:"]
    for i, product in enumerate(rows, start=1):
        lines = [f"**{i}. {product.get('name')}**"]
        if product.get("total_vendido") is not None:
            lines.append(f"📦 Vendidos: {product['total_vendido']}")
        receita = _money(product, "receita")
        if receita:
            lines.append(f"💰 Receita: {receita}")
        preco = _money(product, "preco_medio")
        if preco:
            lines.append(f"💵 Preço médio: {preco}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _display_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in row.items():
        money = _money(row, k) if (k.lower() in REAIS_COLUMNS or k.lower().endswith("cents")) else None
        if money:
            out[k] = money
        elif k.lower() == "status" and v:
            out[k] = status_label(v)
        else:
            out[k] = v
    return out


def render_generic(rows: List[Dict[str, Any]]) -> str:
    table = rows_to_markdown_table([_display_row(r) for r in rows], max_rows=PREVIEW_ROWS)
    return f"Encontrei {len(rows)} registro(s).\n\n{table}"


_CUSTOMER_TABLE_RE = re.compile(r'(?<!\w)"?Customer"?(?!\w)')


def _is_customer_lookup(sql: Optional[str]) -> bool:
    return bool(sql and _CUSTOMER_TABLE_RE.search(sql))


def format_rows_for_model(rows: List[Dict[str, Any]], max_preview: int = PREVIEW_ROWS) -> str:
    """JSON preview of the first rows for the narration call."""
    return json.dumps(rows[:max_preview], ensure_ascii=False, indent=2, default=str)


# -----------------------------
# Entry point
# -----------------------------
@dataclass(frozen=True)
class FormattedResult:
    rendered: str
    rows: List[Dict[str, Any]]
    sql: Optional[str]
    reason: Optional[str]
    shape: RowShape
    outcome: Optional[SearchOutcome] = None

    @property
    def preview(self) -> str:
        if self.outcome is not None:
            return format_rows_for_model(self.outcome.customers)
        return format_rows_for_model(self.rows)


def create_clean_response(
    rows: List[Dict[str, Any]],
    sql: Optional[str] = None,
    reason: Optional[str] = None,
    search_term: Optional[str] = None,
) -> FormattedResult:
    """
    Render normalized rows for presentation. SQL and reason ride along for logging
    only; callers forward ``rendered`` and ``preview`` and nothing else.
    """
    term = search_term if search_term is not None else extract_search_term(sql)

    if not rows:
        if term and (search_term is not None or _is_customer_lookup(sql)):
            # An empty customer lookup still deserves search suggestions.
            outcome = analyze_customer_search([], term)
            return FormattedResult(render_search_outcome(outcome), rows, sql, reason, RowShape.CUSTOMER, outcome)
        return FormattedResult("Nenhum dado encontrado.", rows, sql, reason, RowShape.GENERIC)

    shape = detect_shape(rows[0].keys())
    logger.debug("Detected result shape: %s", shape.value)

    if shape is RowShape.CUSTOMER:
        outcome = analyze_customer_search(rows, term)
        logger.info("Customer search outcome: %s (%s rows)", outcome.kind.value, len(rows))
        return FormattedResult(render_search_outcome(outcome), rows, sql, reason, shape, outcome)

    if shape is RowShape.ORDER:
        rendered = render_orders(rows)
    elif shape is RowShape.SALES:
        rendered = render_sales(rows)
    elif shape is RowShape.PRODUCT:
        rendered = render_products(rows)
    else:
        rendered = render_generic(rows)
    return FormattedResult(rendered, rows, sql, reason, shape)
