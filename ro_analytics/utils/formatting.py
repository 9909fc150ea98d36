from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional


def format_currency(cents: float) -> str:
    """Format an amount in cents as Brazilian reais, e.g. 123456 -> 'R$ 1.234,56'."""
    reais = cents / 100
    sign = "-" if round(reais, 2) < 0 else ""
    # Format with US separators, then swap them for pt-BR.
    us = f"{abs(reais):,.2f}"
    br = us.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {br}"


_CURRENCY_RE = re.compile(r"(-?)R\$\s*([\d.]+,\d{2})")


def parse_currency(text: str) -> Optional[float]:
    """Read back the first 'R$ x.xxx,xx' figure in ``text`` as reais."""
    m = _CURRENCY_RE.search(text)
    if not m:
        return None
    value = float(m.group(2).replace(".", "").replace(",", "."))
    return -value if m.group(1) else value


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def format_date(value: Any) -> str:
    """dd/mm/yyyy; anything unparseable is returned as text."""
    dt = _to_datetime(value)
    return dt.strftime("%d/%m/%Y") if dt else str(value)


def format_datetime(value: Any) -> str:
    dt = _to_datetime(value)
    return dt.strftime("%d/%m/%Y %H:%M") if dt else str(value)


def format_address(address: Any) -> str:
    if not isinstance(address, dict):
        return "Endereço não informado"
    parts = [str(address[k]) for k in ("street", "number", "complement", "neighborhood", "city", "state") if address.get(k)]
    if address.get("zip"):
        parts.append(f"CEP: {address['zip']}")
    return ", ".join(parts) or "Endereço não informado"


def rows_to_markdown_table(rows: List[Dict[str, Any]], max_rows: int = 50) -> str:
    if not rows:
        return "_Nenhuma linha retornada._"

    shown = rows[:max_rows]
    cols = list(shown[0].keys())

    def esc(x: Any) -> str:
        s = "" if x is None else str(x)
        return s.replace("|", "\\|").replace("\n", " ")

    header = "| " + " | ".join(cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    body_lines = [
        "| " + " | ".join(esc(r.get(c)) for c in cols) + " |"
        for r in shown
    ]

    extra = ""
    if len(rows) > max_rows:
        extra = f"\n\n_Mostrando as primeiras {max_rows} de {len(rows)} linhas._"

    return "\n".join([header, sep, *body_lines]) + extra
