# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderStatus, OrderItemStatus, PaymentStatus, PaymentMethod,
    TableStatus, MenuItemStatus, SelectionType, RecordStatus,

    # Menu
    MenuItem, ModifierGroup, ModifierOption, MenuItemModifierGroup,

    # Dining
    DiningTable,

    # Orders / payments
    Order, OrderItem, OrderItemModifier, Payment,

    # Audit
    AuditLog,
)

__all__ = [
    # Enums
    "OrderStatus", "OrderItemStatus", "PaymentStatus", "PaymentMethod",
    "TableStatus", "MenuItemStatus", "SelectionType", "RecordStatus",

    # Menu
    "MenuItem", "ModifierGroup", "ModifierOption", "MenuItemModifierGroup",

    # Dining
    "DiningTable",

    # Orders / payments
    "Order", "OrderItem", "OrderItemModifier", "Payment",

    # Audit
    "AuditLog",
]
