from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, List
from datetime import datetime

from qrdine.models.core import OrderStatus, OrderItemStatus, PaymentStatus, PaymentMethod, TableStatus

OrderStatusLiteral = Literal["PENDING", "ACCEPTED", "PREPARING", "READY", "SERVED", "COMPLETED", "CANCELLED"]


class _In(BaseModel):
    # clients send camelCase, internal callers snake_case
    model_config = ConfigDict(populate_by_name=True)


class ModifierSelectionIn(_In):
    modifier_option_id: str = Field(alias="modifierOptionId")


class OrderItemIn(_In):
    menu_item_id: str = Field(alias="menuItemId")
    quantity: int = Field(ge=1, le=99)
    special_request: Optional[str] = Field(default=None, alias="specialRequest", max_length=255)
    modifiers: List[ModifierSelectionIn] = []


class OrderIn(_In):
    table_id: str = Field(alias="tableId")
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: List[OrderItemIn] = Field(min_length=1)


class AddItemsIn(_In):
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: List[OrderItemIn] = Field(min_length=1)


class StatusIn(BaseModel):
    status: OrderStatusLiteral


# ── responses ──────────────────────────────────────────────────────────────
class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SelectedModifierOut(_Out):
    id: str
    modifier_option_id: str
    modifier_group_id: str
    modifier_group_name: str
    modifier_option_name: str
    price_adjustment: float


class OrderItemOut(_Out):
    id: str
    menu_item_id: str
    menu_item_name: str
    unit_price: float
    quantity: int
    modifiers_total: float
    subtotal: float
    status: OrderItemStatus
    special_request: Optional[str] = None
    selected_modifiers: List[SelectedModifierOut] = []


class TableRef(_Out):
    id: str
    table_number: str
    location: Optional[str] = None
    status: TableStatus
    current_order_id: Optional[str] = None


class PaymentOut(_Out):
    id: str
    order_id: str
    method: PaymentMethod
    amount: float
    status: PaymentStatus
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OrderOut(_Out):
    id: str
    order_number: str
    table_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal_amount: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    table: Optional[TableRef] = None
    items: List[OrderItemOut] = []
    payments: List[PaymentOut] = []
