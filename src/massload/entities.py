"""
Entity kinds, their storage columns and the FK dependency graph.

Records are plain row dicts keyed by column name. The generator never keeps
them after a successful flush; the external store is the system of record.
"""

from __future__ import annotations

from enum import Enum


class EntityKind(Enum):
    """Entity kinds in phase order. Value is (code, table, label)."""

    DEPARTMENT = (1, "departments", "Department")
    CATEGORY = (2, "categories", "Category")
    USER = (3, "users", "User")
    PRODUCT = (4, "products", "Product")
    ORDER = (5, "orders", "Order")
    ORDER_ITEM = (6, "order_items", "OrderItem")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def table(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return self.value[2]

    @property
    def columns(self) -> list[str]:
        return COLUMNS[self]

    @classmethod
    def from_table(cls, table: str) -> EntityKind:
        """Look up a kind by table name ("users") or label ("User")."""
        for kind in cls:
            if table in (kind.table, kind.label, kind.name.lower()):
                return kind
        raise KeyError(f"Unknown entity '{table}'. Valid: {[k.table for k in cls]}")


# Insert column order (ids come from the store's identity column)
COLUMNS: dict[EntityKind, list[str]] = {
    EntityKind.DEPARTMENT: ["name", "description", "budget"],
    EntityKind.CATEGORY: ["name", "description"],
    EntityKind.USER: ["name", "email", "created_at", "department_id"],
    EntityKind.PRODUCT: [
        "name",
        "description",
        "price",
        "stock_quantity",
        "category_id",
        "image_data",
    ],
    EntityKind.ORDER: [
        "order_number",
        "order_date",
        "status",
        "total_amount",
        "user_id",
        "invoice_pdf",
    ],
    EntityKind.ORDER_ITEM: ["order_id", "product_id", "quantity", "unit_price"],
}

# Independent entities first, dependents after
PHASE_ORDER: list[EntityKind] = [
    EntityKind.DEPARTMENT,
    EntityKind.CATEGORY,
    EntityKind.USER,
    EntityKind.PRODUCT,
    EntityKind.ORDER,
    EntityKind.ORDER_ITEM,
]

# child -> {fk column: parent kind}
PARENTS: dict[EntityKind, dict[str, EntityKind]] = {
    EntityKind.USER: {"department_id": EntityKind.DEPARTMENT},
    EntityKind.PRODUCT: {"category_id": EntityKind.CATEGORY},
    EntityKind.ORDER: {"user_id": EntityKind.USER},
    EntityKind.ORDER_ITEM: {
        "order_id": EntityKind.ORDER,
        "product_id": EntityKind.PRODUCT,
    },
}

# FK columns that may be written as NULL when no parent exists
NULLABLE_FKS: set[tuple[EntityKind, str]] = {
    (EntityKind.USER, "department_id"),
}

BLOB_COLUMNS: dict[EntityKind, str] = {
    EntityKind.PRODUCT: "image_data",
    EntityKind.ORDER: "invoice_pdf",
}

ORDER_STATUSES = ["PENDING", "CONFIRMED", "SHIPPED", "DELIVERED", "CANCELLED"]
