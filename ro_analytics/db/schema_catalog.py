from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TableInfo:
    name: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class SchemaCatalog:
    """Static description of the back-office schema the assistant may query."""

    tables: Tuple[TableInfo, ...]
    relationships: Tuple[str, ...]

    def table_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tables)

    def describe(self) -> str:
        """Render the catalog as the plain-text reference embedded in the analysis prompt."""
        lines = ["Tabelas disponíveis:"]
        lines += [f"- {t.name}({', '.join(t.columns)})" for t in self.tables]
        lines.append("")
        lines.append("Relacionamentos principais:")
        lines += [f"- {r}" for r in self.relationships]
        return "\n".join(lines)


# Column names are the real (camelCase) ones; optional columns carry no marker here.
DEFAULT_CATALOG = SchemaCatalog(
    tables=(
        TableInfo("User", ("id", "name", "email", "password", "role", "active", "createdAt", "updatedAt")),
        TableInfo(
            "Customer",
            ("id", "name", "phone", "email", "doc", "barcode", "address", "active", "createdAt", "updatedAt"),
        ),
        TableInfo("Category", ("id", "name", "createdAt", "updatedAt")),
        TableInfo(
            "Product",
            (
                "id", "name", "barcode", "categoryId", "priceCents", "description", "stockEnabled", "stock",
                "imageUrl", "productType", "variableProduct", "active", "createdAt", "updatedAt",
            ),
        ),
        TableInfo(
            "Order",
            (
                "id", "customerId", "status", "subtotalCents", "discountCents", "deliveryFeeCents", "totalCents",
                "paymentMethod", "cashReceivedCents", "changeCents", "fichaPaymentForOrderId", "createdAt",
                "updatedAt",
            ),
        ),
        TableInfo("OrderItem", ("id", "orderId", "productId", "quantity", "priceCents")),
        TableInfo(
            "CustomerProductPreset",
            ("id", "customerId", "productId", "quantity", "active", "createdAt", "updatedAt"),
        ),
        TableInfo(
            "PreOrder",
            (
                "id", "customerId", "subtotalCents", "discountCents", "deliveryFeeCents", "totalCents", "notes",
                "createdAt", "updatedAt",
            ),
        ),
        TableInfo("PreOrderItem", ("id", "preOrderId", "productId", "quantity", "priceCents")),
        TableInfo("SystemConfig", ("id", "key", "value", "type", "category", "createdAt", "updatedAt")),
        TableInfo("ExpenseType", ("id", "name", "description", "active", "createdAt", "updatedAt")),
        TableInfo("SupplierType", ("id", "name", "description", "active", "createdAt", "updatedAt")),
        TableInfo(
            "Expense",
            ("id", "typeId", "supplierTypeId", "amountCents", "description", "date", "createdAt", "updatedAt"),
        ),
    ),
    relationships=(
        "Customer 1:N Order | Customer 1:N PreOrder | Customer 1:N CustomerProductPreset",
        "Category 1:N Product",
        "Product 1:N OrderItem | Product 1:N PreOrderItem | Product 1:N CustomerProductPreset",
        "Order 1:N OrderItem | Order possui auto-relação via fichaPaymentForOrder",
        "PreOrder 1:N PreOrderItem",
        "ExpenseType 1:N Expense",
        "SupplierType 1:N Expense",
    ),
)
