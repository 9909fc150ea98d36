from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ro_analytics.utils.formatting import format_address, format_currency, format_date

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 10

NONE_SUGGESTIONS = (
    "Verifique se o nome está correto",
    "Tente usar apenas o primeiro nome",
    "Tente usar parte do sobrenome",
    "Verifique se há variações na grafia (acentos, hífens)",
    "Tente buscar por telefone ou email se souber",
)
MULTIPLE_SUGGESTIONS = (
    "Seja mais específico com o nome completo",
    "Adicione o sobrenome se souber",
    "Verifique a lista abaixo e escolha o cliente correto",
    "Tente buscar por telefone ou email se souber",
)
PARTIAL_SUGGESTIONS = (
    "Confirme se este é o cliente que você procurava",
    "Se não for, tente o nome completo ou o telefone",
)

# name = 'x', name ILIKE '%x%', LOWER(name) LIKE LOWER('%x%') ...
_NAME_FILTER_RE = re.compile(
    r"\bname\"?\s*\)?\s*(?:=|I?LIKE)\s*(?:(?:LOWER|UPPER|unaccent)\s*\(\s*)?'((?:[^']|'')*)'",
    re.IGNORECASE,
)


class SearchKind(str, Enum):
    EXACT = "exact"
    MULTIPLE = "multiple"
    NONE = "none"
    PARTIAL = "partial"


@dataclass(frozen=True)
class SearchOutcome:
    kind: SearchKind
    customers: List[Dict[str, Any]]
    message: str
    suggestions: List[str] = field(default_factory=list)
    total: int = 0


def extract_search_term(sql: Optional[str]) -> Optional[str]:
    """Literal the query filtered customer names by, without LIKE wildcards."""
    if not sql:
        return None
    m = _NAME_FILTER_RE.search(sql)
    if not m:
        return None
    term = m.group(1).replace("''", "'").strip("%").strip()
    return term or None


def _name(row: Dict[str, Any]) -> str:
    value = row.get("name")
    return value.strip() if isinstance(value, str) else ""


def analyze_customer_search(
    customers: Sequence[Dict[str, Any]],
    search_term: Optional[str],
    max_candidates: int = MAX_CANDIDATES,
) -> SearchOutcome:
    """
    Decide whether customer rows answer the question with one confident match.

    A single row is exact unless a known search term does not even occur in its name.
    With several rows, a unique case-insensitive literal match on the search term wins;
    duplicates of that literal name, or no literal match at all, stay ambiguous.
    """
    term = (search_term or "").strip()
    shown_term = term or "essa busca"
    total = len(customers)

    if total == 0:
        return SearchOutcome(
            kind=SearchKind.NONE,
            customers=[],
            message=f'Não encontrei nenhum cliente com o nome "{shown_term}".',
            suggestions=list(NONE_SUGGESTIONS),
        )

    if total == 1:
        only = customers[0]
        if term and term.lower() not in _name(only).lower():
            return SearchOutcome(
                kind=SearchKind.PARTIAL,
                customers=[only],
                message=f'Não achei "{term}" exatamente, mas encontrei o cliente "{_name(only)}".',
                suggestions=list(PARTIAL_SUGGESTIONS),
                total=1,
            )
        return SearchOutcome(
            kind=SearchKind.EXACT,
            customers=[only],
            message=f'Encontrei o cliente "{_name(only)}".',
            total=1,
        )

    if term:
        exact = [c for c in customers if _name(c).lower() == term.lower()]
        if len(exact) == 1:
            return SearchOutcome(
                kind=SearchKind.EXACT,
                customers=exact,
                message=f'Encontrei o cliente "{_name(exact[0])}".',
                total=total,
            )
        if len(exact) > 1:
            logger.info("Customer search: %s rows share the exact name %r", len(exact), term)

    return SearchOutcome(
        kind=SearchKind.MULTIPLE,
        customers=list(customers[:max_candidates]),
        message=f'Encontrei {total} cliente(s) com nome similar a "{shown_term}".',
        suggestions=list(MULTIPLE_SUGGESTIONS),
        total=total,
    )


# -----------------------------
# Rendering
# -----------------------------
def _contact_lines(customer: Dict[str, Any]) -> List[str]:
    lines = []
    if customer.get("phone"):
        lines.append(f"📞 Telefone: {customer['phone']}")
    if customer.get("email"):
        lines.append(f"📧 Email: {customer['email']}")
    if customer.get("doc"):
        lines.append(f"📄 Documento: {customer['doc']}")
    if customer.get("address"):
        lines.append(f"🏠 Endereço: {format_address(customer['address'])}")
    return lines


def render_customer_detail(customer: Dict[str, Any]) -> str:
    lines = [f"**{_name(customer) or 'Cliente sem nome'}**", *_contact_lines(customer)]
    if customer.get("total_pedidos") is not None:
        lines.append(f"🛒 Total de pedidos: {customer['total_pedidos']}")
    if isinstance(customer.get("total_gasto"), (int, float)):
        lines.append(f"💰 Total gasto: {format_currency(customer['total_gasto'] * 100)}")
    if customer.get("ultimo_pedido"):
        lines.append(f"📅 Último pedido: {format_date(customer['ultimo_pedido'])}")
    return "\n".join(lines)


def render_customer_list(customers: Sequence[Dict[str, Any]]) -> str:
    if not customers:
        return ""
    blocks = ["**Clientes encontrados:**"]
    for i, customer in enumerate(customers, start=1):
        blocks.append("\n".join([f"**{i}. {_name(customer) or 'Cliente sem nome'}**", *_contact_lines(customer)]))
    return "\n\n".join(blocks)


def _render_suggestions(title: str, suggestions: Sequence[str]) -> str:
    return "\n".join([f"**💡 {title}:**", *(f"• {s}" for s in suggestions)])


def render_search_outcome(outcome: SearchOutcome) -> str:
    if outcome.kind is SearchKind.EXACT:
        return render_customer_detail(outcome.customers[0])
    if outcome.kind is SearchKind.PARTIAL:
        return "\n\n".join(
            [
                outcome.message,
                render_customer_detail(outcome.customers[0]),
                _render_suggestions("Dicas para confirmar", outcome.suggestions),
            ]
        )
    if outcome.kind is SearchKind.MULTIPLE:
        parts = [outcome.message, render_customer_list(outcome.customers)]
        if outcome.total > len(outcome.customers):
            parts.append(f"_Mostrando os primeiros {len(outcome.customers)} de {outcome.total}._")
        parts.append(_render_suggestions("Dicas para refinar a busca", outcome.suggestions))
        return "\n\n".join(parts)
    return "\n\n".join([outcome.message, _render_suggestions("Dicas para melhorar a busca", outcome.suggestions)])
